"""
Unit tests for the SQLite vector store.
"""

import shutil
import tempfile
from pathlib import Path

import numpy as np
import pytest

from journal_rag.chunker import Chunker
from journal_rag.embedder import Embedder, blob_to_vector
from journal_rag.errors import EmbeddingError, StorageUnavailable
from journal_rag.models import JournalFile
from journal_rag.vector_store import VectorStore


@pytest.mark.unit
class TestVectorStore:
    """Test suite for VectorStore."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()
        self.store = VectorStore(db_path=Path(self.temp_dir) / "vectors.db")
        self.embedder = Embedder()
        self.chunker = Chunker()

    def teardown_method(self):
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def _file(self, file_id, updated_at=100.0):
        return JournalFile(
            id=file_id,
            name=f"Entry {file_id}",
            journal_date="2024-05-01",
            created_at=50.0,
            updated_at=updated_at,
        )

    def _index(self, file, text):
        chunks = self.chunker.chunk_records(file.id, text)
        vectors = self.embedder.embed_batch([chunk.text for chunk in chunks])
        return self.store.replace_file(file, chunks, vectors)

    def test_empty_store(self):
        assert self.store.count() == 0
        assert list(self.store.iter_chunk_embeddings()) == []

    def test_put_is_an_upsert(self):
        vector = self.embedder.embed("first version")
        self.store.put("a", 0, "first version", vector)
        self.store.put("a", 0, "second version", self.embedder.embed("second version"))

        rows = self.store.chunks_for_file("a")
        assert self.store.count() == 1
        assert rows[0].text == "second version"

    def test_put_accepts_valid_blob(self):
        vector = self.embedder.embed("stored as bytes")
        self.store.put("a", 0, "stored as bytes", vector.tobytes())

        stored = self.store.chunks_for_file("a")[0]
        assert np.array_equal(blob_to_vector(stored.embedding), vector)

    def test_put_rejects_malformed_blob(self):
        with pytest.raises(EmbeddingError):
            self.store.put("a", 0, "text", b"\x00" * 12)
        assert self.store.count() == 0

    def test_put_rejects_negative_index(self):
        with pytest.raises(ValueError):
            self.store.put("a", -1, "text", self.embedder.embed("text"))

    def test_replace_file_supersedes_previous_chunks(self):
        file = self._file("a")
        first = self._index(file, "Sentence number one is here. " * 80)
        second = self._index(file, "Now the entry is short.")

        assert first > 1
        assert second == 1
        rows = self.store.chunks_for_file("a")
        assert [row.chunk_index for row in rows] == [0]
        assert rows[0].text == "Now the entry is short."

    def test_replace_file_length_mismatch(self):
        chunks = self.chunker.chunk_records("a", "Some text.")
        with pytest.raises(ValueError):
            self.store.replace_file(self._file("a"), chunks, [])

    def test_rows_carry_file_metadata(self):
        self._index(self._file("a"), "Metadata travels with each row.")
        row = self.store.chunks_for_file("a")[0]

        assert row.metadata["file_name"] == "Entry a"
        assert row.metadata["journal_date"] == "2024-05-01"
        assert row.metadata["word_count"] == 5
        assert row.metadata["file_updated_at"] == 100.0

    def test_delete_chunks_for_file(self):
        self._index(self._file("a"), "Sentence number one is here. " * 80)
        self._index(self._file("b"), "Another file entirely.")

        removed = self.store.delete_chunks_for_file("a")
        assert removed > 1
        assert self.store.chunks_for_file("a") == []
        assert self.store.file_count() == 1
        assert self.store.delete_chunks_for_file("missing") == 0

    def test_iteration_order(self):
        self._index(self._file("old", updated_at=100.0), "Older sentence here. " * 80)
        self._index(self._file("new", updated_at=200.0), "Newer sentence here. " * 80)

        rows = list(self.store.iter_chunk_embeddings())
        file_ids = [row.file_id for row in rows]
        first_old = file_ids.index("old")

        assert all(file_id == "new" for file_id in file_ids[:first_old])
        assert all(file_id == "old" for file_id in file_ids[first_old:])
        new_indexes = [row.chunk_index for row in rows if row.file_id == "new"]
        assert new_indexes == sorted(new_indexes)

    def test_clear(self):
        self._index(self._file("a"), "Some words.")
        self.store.clear()
        assert self.store.count() == 0

    def test_unopenable_database_raises_storage_unavailable(self):
        # A directory cannot be opened as a database file.
        with pytest.raises(StorageUnavailable):
            VectorStore(db_path=self.temp_dir)
