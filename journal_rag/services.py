"""Service layer for coordinating storage, search and question answering."""

from __future__ import annotations

import os
from typing import Dict, List, Optional, Sequence

from journal_rag.chunker import Chunker
from journal_rag.context_budget import DEFAULT_TOP_K, DEFAULT_TOTAL_BUDGET, ContextBudgetAllocator
from journal_rag.embedder import Embedder, blob_to_vector
from journal_rag.errors import EmbeddingError
from journal_rag.generator import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_RESPONSE_CHAR_LIMIT,
    GenerationClient,
    apply_response_limit,
)
from journal_rag.logging_config import get_logger
from journal_rag.models import (
    PROFILE_FILE_ID,
    ContextSettings,
    ConversationMessage,
    JournalFile,
    SaveFileRequest,
    SimilarityResult,
    StatsPayload,
)
from journal_rag.prompt import PromptAssembler
from journal_rag.storage import JournalStorage
from journal_rag.vector_store import VectorStore

log = get_logger(__name__)


class SearchService:
    """Wraps chunking, embedding, and vector store operations."""

    def __init__(
        self,
        chunker: Chunker | None = None,
        embedder: Embedder | None = None,
        store: VectorStore | None = None,
    ):
        self.chunker = chunker or Chunker()
        self.embedder = embedder or Embedder()
        self.store = store or VectorStore()

    def index_file(self, file: JournalFile, full_text: str) -> int:
        """Replace every stored chunk of a file. Returns number of chunks written."""
        chunks = self.chunker.chunk_records(file.id, full_text)
        if not chunks:
            removed = self.store.delete_chunks_for_file(file.id)
            log.info("Cleared %d chunks for empty file %s", removed, file.id)
            return 0

        vectors = self.embedder.embed_batch([chunk.text for chunk in chunks])
        written = self.store.replace_file(file, chunks, vectors)
        log.info("Indexed %s: %d chunks", file.id, written)
        return written

    def remove(self, file_id: str) -> int:
        removed = self.store.delete_chunks_for_file(file_id)
        log.info("Removed %d chunks for %s", removed, file_id)
        return removed

    def rebuild(self, files: Sequence[JournalFile]) -> int:
        self.store.clear()
        processed = 0
        for file in files:
            if file.id == PROFILE_FILE_ID or not file.content.strip():
                continue
            self.index_file(file, file.content)
            processed += 1
        return processed

    def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> List[SimilarityResult]:
        """
        Rank stored files against a query.

        Every stored chunk is scored; each file keeps its best chunk (the
        earliest one on ties). Rows whose blob cannot be decoded are skipped.
        There is no minimum score.

        Args:
            query: Free text to search for
            top_k: Maximum number of files returned

        Returns:
            Results ordered by descending score, ties in scan order
        """
        if top_k <= 0:
            return []

        query_vector = self.embedder.embed(query)
        best: Dict[str, SimilarityResult] = {}
        skipped = 0

        for row in self.store.iter_chunk_embeddings():
            try:
                vector = blob_to_vector(row.embedding)
                score = self.embedder.cosine_similarity(query_vector, vector)
            except EmbeddingError as exc:
                skipped += 1
                log.warning("Skipping chunk %s#%d: %s", row.file_id, row.chunk_index, exc)
                continue

            current = best.get(row.file_id)
            if current is None or score > current.score:
                best[row.file_id] = SimilarityResult(
                    file_id=row.file_id,
                    best_chunk_text=row.text,
                    score=score,
                    chunk_index=row.chunk_index,
                    file_name=row.metadata.get("file_name") or row.file_id,
                    journal_date=row.metadata.get("journal_date"),
                )

        ranked = sorted(best.values(), key=lambda r: r.score, reverse=True)
        log.debug("Search scored %d files (%d rows skipped)", len(ranked), skipped)
        return ranked[:top_k]


class JournalService:
    """Coordinates file storage, indexing and the query pipeline."""

    def __init__(
        self,
        storage: JournalStorage | None = None,
        search: SearchService | None = None,
        allocator: ContextBudgetAllocator | None = None,
        assembler: PromptAssembler | None = None,
        generator: GenerationClient | None = None,
        token_budget: Optional[int] = None,
        max_response_tokens: Optional[int] = None,
        response_char_limit: Optional[int] = None,
    ):
        self.storage = storage or JournalStorage()
        self.search = search or SearchService()
        self.allocator = allocator or ContextBudgetAllocator()
        self.assembler = assembler or PromptAssembler()
        self.generator = generator or GenerationClient()
        self.token_budget = token_budget or int(
            os.environ.get("JOURNAL_RAG_TOKEN_BUDGET", DEFAULT_TOTAL_BUDGET)
        )
        self.max_response_tokens = max_response_tokens or int(
            os.environ.get("JOURNAL_RAG_MAX_RESPONSE_TOKENS", DEFAULT_MAX_TOKENS)
        )
        self.response_char_limit = response_char_limit or int(
            os.environ.get("JOURNAL_RAG_RESPONSE_CHAR_LIMIT", DEFAULT_RESPONSE_CHAR_LIMIT)
        )

    # ------------------------------------------------------------------
    # Files and indexing
    # ------------------------------------------------------------------
    def get_file(self, file_id: str) -> JournalFile:
        return self.storage.get_file(file_id)

    def save_file(self, request: SaveFileRequest) -> JournalFile:
        record, _ = self.storage.save_file(
            request.file_id,
            request.name,
            request.content,
            folder_id=request.folder_id,
            journal_date=request.journal_date,
            is_pinned=request.is_pinned,
        )
        if not record.is_profile:
            self.search.index_file(record, record.content)
        return record

    def index_file(self, file_id: str, full_text: str) -> int:
        """Chunk, embed and store text under file_id, replacing earlier chunks."""
        record = self.storage.find_file(file_id) or JournalFile(id=file_id, name=file_id)
        return self.search.index_file(record, full_text)

    def reindex_file(self, file_id: str) -> int:
        record = self.storage.get_file(file_id)
        return self.search.index_file(record, record.content)

    def remove_file(self, file_id: str) -> int:
        return self.search.remove(file_id)

    def delete_file(self, file_id: str) -> JournalFile:
        record = self.storage.delete_file(file_id)
        self.search.remove(record.id)
        return record

    def reindex_all(self) -> int:
        processed = self.search.rebuild(self.storage.list_files())
        log.info("Rebuilt index from %d files", processed)
        return processed

    def stats(self) -> StatsPayload:
        store = self.search.store
        return StatsPayload(
            chunks_indexed=store.count(),
            files_indexed=store.file_count(),
            files_stored=len(self.storage.list_files()),
            embedding_dimension=self.search.embedder.get_embedding_dim(),
        )

    # ------------------------------------------------------------------
    # Question answering
    # ------------------------------------------------------------------
    def query(
        self,
        user_text: str,
        conversation: Sequence[ConversationMessage] = (),
        settings: ContextSettings | None = None,
    ) -> str:
        """
        Answer a question from the user's journal.

        Raises:
            GenerationBackendError: the backend failed; carries a user message
            StorageUnavailable: the file or vector store could not be read
        """
        settings = settings or ContextSettings()
        total_budget = settings.max_tokens or self.token_budget

        context = self.allocator.allocate(
            user_text,
            self.storage.profile_text(),
            list(conversation),
            self._custom_files(settings.selected_file_ids),
            total_budget,
            self._search_with_content,
            index_size=self.search.store.count(),
        )
        prompt = self.assembler.assemble(user_text, context)
        log.info(
            "Query with %d/%d context tokens, prompt %d chars",
            context.total_used,
            total_budget,
            len(prompt),
        )

        answer = self.generator.generate(prompt, max_tokens=self.max_response_tokens)
        return apply_response_limit(answer, self.response_char_limit)

    def _search_with_content(self, query: str, top_k: int) -> List[SimilarityResult]:
        """Search results carrying whole file content; unknown files keep their chunk."""
        results = self.search.search(query, top_k)
        for result in results:
            record = self.storage.find_file(result.file_id)
            if record is not None:
                result.content = record.content
        return results

    def _custom_files(self, selected_ids: Sequence[str]) -> List[JournalFile]:
        """Selected files in request order, then pinned files; no duplicates."""
        files: List[JournalFile] = []
        seen = set()
        for file_id in selected_ids:
            if file_id in seen:
                continue
            seen.add(file_id)
            record = self.storage.find_file(file_id)
            if record is None:
                log.debug("Selected file %s no longer exists", file_id)
                continue
            files.append(record)

        for record in self.storage.pinned_files():
            if record.id not in seen:
                seen.add(record.id)
                files.append(record)
        return files
