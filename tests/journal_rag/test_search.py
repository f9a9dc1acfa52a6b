"""
Unit tests for similarity search over the vector store.
"""

import shutil
import sqlite3
import tempfile
import time
from pathlib import Path

import pytest

from journal_rag.models import JournalFile
from journal_rag.services import SearchService
from journal_rag.vector_store import VectorStore


@pytest.mark.unit
class TestSearchService:
    """Test suite for SearchService."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.db_path = Path(self.temp_dir) / "vectors.db"
        self.service = SearchService(store=VectorStore(db_path=self.db_path))

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _index(self, file_id, text, name=None):
        file = JournalFile(id=file_id, name=name or file_id, content=text)
        return self.service.index_file(file, text)

    def _index_three_files(self):
        self._index("a", "Planning my summer vacation to Italy", name="File A")
        self._index("b", "Quarterly budget review with the finance team on Monday.", name="File B")
        self._index("c", "Cooked pasta and watched a movie with friends tonight.", name="File C")

    def test_empty_index_returns_empty_list(self):
        assert self.service.search("anything at all") == []

    def test_matching_file_ranks_first(self):
        self._index_three_files()
        results = self.service.search("vacation plans")

        assert [result.file_id for result in results][0] == "a"
        assert results[0].score == max(result.score for result in results)
        assert results[0].best_chunk_text == "Planning my summer vacation to Italy"
        assert results[0].file_name == "File A"

    def test_no_minimum_score(self):
        self._index_three_files()
        results = self.service.search("vacation plans")
        assert {result.file_id for result in results} == {"a", "b", "c"}

    def test_results_sorted_descending_and_limited(self):
        self._index_three_files()
        results = self.service.search("vacation plans", top_k=2)

        assert len(results) == 2
        assert results[0].score >= results[1].score
        assert self.service.search("vacation plans", top_k=0) == []

    def test_one_result_per_file(self):
        long_text = "My vacation in Italy was lovely. " * 40 + "Budget spreadsheets at work. " * 40
        chunks = self._index("long", long_text)
        results = self.service.search("vacation Italy")

        assert chunks > 1
        assert [result.file_id for result in results] == ["long"]
        assert "vacation" in results[0].best_chunk_text

    def test_corrupt_rows_are_skipped(self):
        self._index_three_files()
        with sqlite3.connect(str(self.db_path)) as conn:
            conn.execute(
                "INSERT INTO chunk_embeddings (file_id, chunk_index, content, embedding, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                ("broken", 0, "vacation plans", b"\x00" * 396, time.time()),
            )
            conn.execute(
                "INSERT INTO chunk_embeddings (file_id, chunk_index, content, embedding, created_at) "
                "VALUES (?, ?, ?, ?, ?)",
                ("truncated", 0, "vacation plans", b"\x01\x02\x03", time.time()),
            )

        results = self.service.search("vacation plans")
        assert {result.file_id for result in results} == {"a", "b", "c"}

    def test_remove_and_rebuild(self):
        self._index_three_files()
        assert self.service.remove("a") == 1
        assert "a" not in {result.file_id for result in self.service.search("vacation")}

        files = [
            JournalFile(id="x", name="X", content="Rebuilt entry about the garden."),
            JournalFile(id="empty", name="Empty", content="   "),
        ]
        assert self.service.rebuild(files) == 1
        assert [result.file_id for result in self.service.search("garden")] == ["x"]

    def test_index_empty_text_clears_file(self):
        self._index("a", "Some content here.")
        assert self._index("a", "") == 0
        assert self.service.store.chunks_for_file("a") == []
