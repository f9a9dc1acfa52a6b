"""Application state: one explicitly wired service graph per data directory."""

from __future__ import annotations

import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from journal_rag.chunker import Chunker
from journal_rag.context_budget import DEFAULT_TOP_K, HISTORY_WINDOW, ContextBudgetAllocator
from journal_rag.embedder import Embedder
from journal_rag.generator import GenerationClient
from journal_rag.logging_config import get_logger
from journal_rag.prompt import PromptAssembler
from journal_rag.services import JournalService, SearchService
from journal_rag.storage import JournalStorage
from journal_rag.vector_store import VectorStore

log = get_logger(__name__)


def default_data_dir() -> Path:
    configured = os.environ.get("JOURNAL_RAG_DATA_DIR")
    if configured:
        return Path(configured).expanduser()
    return Path(__file__).resolve().parent / "storage"


@dataclass
class JournalServices:
    data_dir: Path
    storage: JournalStorage
    store: VectorStore
    search: SearchService
    journal: JournalService


class JournalAppState:
    """Holds the service graph for the configured data directory."""

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        generator: Optional[GenerationClient] = None,
    ):
        self._lock = threading.RLock()
        self._generator = generator
        self._services: Optional[JournalServices] = None
        self._load(Path(data_dir) if data_dir else default_data_dir())

    def current(self) -> JournalServices:
        with self._lock:
            assert self._services is not None
            return self._services

    def _load(self, data_dir: Path) -> None:
        storage = JournalStorage(root=data_dir / "files")
        storage.ensure_profile_file()
        store = VectorStore(db_path=data_dir / "vectors.db")
        search = SearchService(chunker=Chunker(), embedder=Embedder(), store=store)

        allocator = ContextBudgetAllocator(
            history_window=int(os.environ.get("JOURNAL_RAG_HISTORY_MESSAGES", HISTORY_WINDOW)),
            top_k=int(os.environ.get("JOURNAL_RAG_TOP_K", DEFAULT_TOP_K)),
        )
        journal = JournalService(
            storage=storage,
            search=search,
            allocator=allocator,
            assembler=PromptAssembler(),
            generator=self._generator or GenerationClient(),
        )

        with self._lock:
            self._services = JournalServices(
                data_dir=data_dir,
                storage=storage,
                store=store,
                search=search,
                journal=journal,
            )
        log.info("Journal services ready at %s", data_dir)
