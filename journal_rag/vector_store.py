"""
Vector store module for journal_rag.

Keeps one embedding per (file_id, chunk_index) in SQLite. Each row carries the
chunk text, the 400-byte float32 blob and a denormalised copy of the owning
file's metadata so that search results can be displayed without a join.
"""

import sqlite3
import time
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Union

import numpy as np

from journal_rag.embedder import blob_to_vector, vector_to_blob
from journal_rag.errors import StorageUnavailable
from journal_rag.logging_config import get_logger
from journal_rag.models import Chunk, JournalFile, StoredChunk, count_words

log = get_logger(__name__)

VectorLike = Union[bytes, bytearray, memoryview, np.ndarray, Sequence[float]]

_SCHEMA = """
CREATE TABLE IF NOT EXISTS chunk_embeddings (
    file_id TEXT NOT NULL,
    chunk_index INTEGER NOT NULL,
    content TEXT NOT NULL,
    word_count INTEGER NOT NULL DEFAULT 0,
    page_number INTEGER NOT NULL DEFAULT 1,
    embedding BLOB NOT NULL,
    file_name TEXT NOT NULL DEFAULT '',
    file_path TEXT NOT NULL DEFAULT '',
    folder_id TEXT,
    journal_date TEXT,
    file_created_at REAL,
    file_updated_at REAL,
    created_at REAL NOT NULL,
    PRIMARY KEY (file_id, chunk_index)
)
"""

_UPSERT = """
INSERT OR REPLACE INTO chunk_embeddings (
    file_id, chunk_index, content, word_count, page_number, embedding,
    file_name, file_path, folder_id, journal_date,
    file_created_at, file_updated_at, created_at
) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

_METADATA_COLUMNS = (
    "file_name",
    "file_path",
    "folder_id",
    "journal_date",
    "file_created_at",
    "file_updated_at",
    "word_count",
    "page_number",
)


class VectorStore:
    """SQLite-backed storage for chunk embeddings."""

    def __init__(self, db_path: Union[str, Path] = "storage/vectors.db", timeout: float = 5.0):
        """
        Initialize the store and create the table if needed.

        Args:
            db_path: SQLite database file
            timeout: Seconds to wait on a locked database
        """
        self.db_path = Path(db_path)
        self.timeout = timeout
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StorageUnavailable(f"Cannot create vector store directory: {exc}") from exc
        with self._connect() as conn:
            conn.execute(_SCHEMA)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def put(
        self,
        file_id: str,
        chunk_index: int,
        text: str,
        vector: VectorLike,
        file: Optional[JournalFile] = None,
        page_number: int = 1,
    ):
        """Insert or overwrite the embedding for one chunk."""
        row = self._row(file_id, chunk_index, text, vector, file, page_number)
        with self._connect() as conn:
            conn.execute(_UPSERT, row)

    def replace_file(
        self,
        file: JournalFile,
        chunks: List[Chunk],
        vectors: Sequence[VectorLike],
    ) -> int:
        """Swap every stored chunk of a file for a new set in one transaction."""
        if len(chunks) != len(vectors):
            raise ValueError(f"Length mismatch: {len(chunks)} chunks vs {len(vectors)} vectors.")

        rows = [
            self._row(file.id, chunk.chunk_index, chunk.text, vector, file, chunk.page_number)
            for chunk, vector in zip(chunks, vectors)
        ]
        with self._connect() as conn:
            conn.execute("DELETE FROM chunk_embeddings WHERE file_id = ?", (file.id,))
            conn.executemany(_UPSERT, rows)
        log.debug("Stored %d chunk vectors for %s", len(rows), file.id)
        return len(rows)

    def iter_chunk_embeddings(self) -> Iterator[StoredChunk]:
        """Stream every stored chunk, most recently updated files first."""
        with self._connect() as conn:
            cursor = conn.execute(
                "SELECT * FROM chunk_embeddings "
                "ORDER BY file_updated_at DESC, file_id ASC, chunk_index ASC"
            )
            for row in cursor:
                yield StoredChunk(
                    file_id=row["file_id"],
                    chunk_index=row["chunk_index"],
                    text=row["content"],
                    embedding=row["embedding"],
                    metadata={column: row[column] for column in _METADATA_COLUMNS},
                )

    def chunks_for_file(self, file_id: str) -> List[StoredChunk]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM chunk_embeddings WHERE file_id = ? ORDER BY chunk_index ASC",
                (file_id,),
            ).fetchall()
        return [
            StoredChunk(
                file_id=row["file_id"],
                chunk_index=row["chunk_index"],
                text=row["content"],
                embedding=row["embedding"],
                metadata={column: row[column] for column in _METADATA_COLUMNS},
            )
            for row in rows
        ]

    def delete_chunks_for_file(self, file_id: str) -> int:
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM chunk_embeddings WHERE file_id = ?", (file_id,))
            return cursor.rowcount

    def clear(self):
        with self._connect() as conn:
            conn.execute("DELETE FROM chunk_embeddings")

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM chunk_embeddings").fetchone()[0]

    def file_count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(DISTINCT file_id) FROM chunk_embeddings").fetchone()[0]

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @contextmanager
    def _connect(self):
        try:
            with closing(sqlite3.connect(str(self.db_path), timeout=self.timeout)) as conn:
                conn.row_factory = sqlite3.Row
                with conn:
                    yield conn
        except sqlite3.Error as exc:
            log.error("Vector store failure at %s: %s", self.db_path, exc)
            raise StorageUnavailable(f"Vector store unavailable: {exc}") from exc

    def _row(
        self,
        file_id: str,
        chunk_index: int,
        text: str,
        vector: VectorLike,
        file: Optional[JournalFile],
        page_number: int,
    ) -> tuple:
        if chunk_index < 0:
            raise ValueError("chunk_index must be >= 0")
        if isinstance(vector, (bytes, bytearray, memoryview)):
            blob = bytes(vector)
            blob_to_vector(blob)  # reject malformed blobs before they are written
        else:
            blob = vector_to_blob(vector)

        return (
            file_id,
            chunk_index,
            text,
            count_words(text),
            page_number,
            blob,
            file.name if file else "",
            file.file_path if file else "",
            file.folder_id if file else None,
            file.journal_date if file else None,
            file.created_at if file else None,
            file.updated_at if file else None,
            time.time(),
        )
