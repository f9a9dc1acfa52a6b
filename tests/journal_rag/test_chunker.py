"""
Unit tests for the Chunker module.
"""

import pytest

from journal_rag.chunker import Chunker

LOREM = "Lorem ipsum dolor sit amet, consectetur adipiscing elit. "


@pytest.mark.unit
class TestChunker:
    """Test suite for the Chunker class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.chunker = Chunker()

    def test_chunker_initialization(self):
        chunker = Chunker(chunk_size=400, overlap=50)
        assert chunker.chunk_size == 400
        assert chunker.overlap == 50

    def test_overlap_must_be_below_half_the_chunk_size(self):
        with pytest.raises(ValueError):
            Chunker(chunk_size=100, overlap=50)
        with pytest.raises(ValueError):
            Chunker(chunk_size=0, overlap=0)

    def test_chunk_empty_text(self):
        assert self.chunker.chunk("") == []
        assert self.chunker.chunk("   \n\n  ") == []

    def test_chunk_small_text(self):
        text = "  A short entry about today.  "
        assert self.chunker.chunk(text) == ["A short entry about today."]

    def test_chunks_never_exceed_chunk_size(self):
        text = LOREM * 40
        for chunk in self.chunker.chunk(text):
            assert len(chunk) <= 1000

    def test_windows_overlap_and_cover_the_text(self):
        text = LOREM * 40
        spans = self.chunker.spans(text)

        assert spans[0][0] == 0
        assert spans[-1][1] == len(text)
        for (_, prev_end), (next_start, _) in zip(spans, spans[1:]):
            assert next_start == prev_end - 200

    def test_prefers_sentence_boundaries(self):
        chunks = self.chunker.chunk(LOREM * 40)

        assert len(chunks) > 1
        for chunk in chunks[:-1]:
            assert chunk.endswith(".")

    def test_falls_back_to_paragraph_break(self):
        text = "a" * 600 + "\n\n" + "b" * 600
        chunks = self.chunker.chunk(text)

        assert chunks[0] == "a" * 600

    def test_falls_back_to_word_boundary(self):
        text = "abcd " * 300
        chunks = self.chunker.chunk(text)

        assert len(chunks) == 2
        for chunk in chunks:
            assert all(word == "abcd" for word in chunk.split())

    def test_hard_cut_without_any_boundary(self):
        text = "x" * 2500
        assert self.chunker.spans(text) == [(0, 1000), (800, 1800), (1600, 2500)]

    def test_ignores_boundaries_before_the_midpoint(self):
        text = "Short sentence. " + "y" * 1200
        chunks = self.chunker.chunk(text)

        assert chunks[0] == text[:1000]

    def test_chunking_is_deterministic(self):
        text = LOREM * 25 + "\n\nA second paragraph follows here."
        assert self.chunker.chunk(text) == self.chunker.chunk(text)

    def test_chunk_records(self):
        text = LOREM * 40
        records = self.chunker.chunk_records("entry-1", text, total_pages=3)

        assert [record.chunk_index for record in records] == list(range(len(records)))
        for record in records:
            assert record.file_id == "entry-1"
            assert record.word_count == len(record.text.split())
            assert 1 <= record.page_number <= 3

    def test_estimate_page_number(self):
        assert Chunker.estimate_page_number(0, 4, 2) == 1
        assert Chunker.estimate_page_number(3, 4, 2) == 2
        assert Chunker.estimate_page_number(3, 4, 1) == 1
