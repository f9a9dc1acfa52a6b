"""Shared models for journal_rag."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

PROFILE_FILE_ID = "profile_special_file"


def _timestamp() -> float:
    return time.time()


def count_words(text: str) -> int:
    return len(text.split())


@dataclass
class JournalFile:
    """A journal entry or imported note held by the file store."""

    id: str
    name: str
    content: str = ""
    folder_id: Optional[str] = None
    file_path: str = ""
    journal_date: Optional[str] = None
    is_pinned: bool = False
    created_at: float = field(default_factory=_timestamp)
    updated_at: float = field(default_factory=_timestamp)

    @property
    def word_count(self) -> int:
        return count_words(self.content)

    @property
    def is_profile(self) -> bool:
        return self.id == PROFILE_FILE_ID


@dataclass(frozen=True)
class Chunk:
    file_id: str
    chunk_index: int
    text: str
    word_count: int
    page_number: int = 1


@dataclass(frozen=True)
class StoredChunk:
    """One row streamed back from the vector store."""

    file_id: str
    chunk_index: int
    text: str
    embedding: bytes
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class SimilarityResult:
    file_id: str
    best_chunk_text: str
    score: float
    chunk_index: int = 0
    file_name: str = ""
    journal_date: Optional[str] = None
    content: Optional[str] = None  # whole file text, when resolved from storage


@dataclass(frozen=True)
class ConversationMessage:
    role: str  # "user" or "assistant"
    content: str
    timestamp: float = field(default_factory=_timestamp)


@dataclass(frozen=True)
class ContextSettings:
    selected_file_ids: List[str] = field(default_factory=list)
    max_tokens: Optional[int] = None


@dataclass
class TokenBudget:
    """Per-tier caps derived from a single total for one query."""

    total: int
    profile: int = 0
    conversation: int = 0
    custom: int = 0
    retrieved: int = 0


@dataclass
class AssembledContext:
    profile: str = ""
    history: str = ""
    custom: str = ""
    retrieved: str = ""
    budget: Optional[TokenBudget] = None
    used: Dict[str, int] = field(default_factory=dict)

    def sections(self) -> List[tuple]:
        return [
            ("profile", self.profile),
            ("history", self.history),
            ("custom", self.custom),
            ("retrieved", self.retrieved),
        ]

    @property
    def total_used(self) -> int:
        return sum(self.used.values())


# API payloads


class FilePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(alias="file_id")
    name: str
    content: str = ""
    folder_id: Optional[str] = Field(default=None, alias="folder_id")
    journal_date: Optional[str] = Field(default=None, alias="journal_date")
    is_pinned: bool = Field(default=False, alias="is_pinned")
    word_count: int = Field(default=0, alias="word_count")


class SaveFileRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(alias="file_id")
    name: str
    content: str = ""
    folder_id: Optional[str] = Field(default=None, alias="folder_id")
    journal_date: Optional[str] = Field(default=None, alias="journal_date")
    is_pinned: Optional[bool] = Field(default=None, alias="is_pinned")  # None keeps the stored flag


class SearchRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    top_k: int = Field(default=10, ge=1, le=100, alias="top_k")


class SearchHitPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_id: str = Field(alias="file_id")
    file_name: str = Field(default="", alias="file_name")
    chunk_index: int = Field(default=0, alias="chunk_index")
    text: str
    score: float


class SearchResponsePayload(BaseModel):
    results: List[SearchHitPayload] = Field(default_factory=list)


class MessagePayload(BaseModel):
    role: str
    content: str
    timestamp: float = Field(default_factory=_timestamp)


class QueryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    text: str
    history: List[MessagePayload] = Field(default_factory=list)
    selected_file_ids: List[str] = Field(default_factory=list, alias="selected_file_ids")
    max_tokens: Optional[int] = Field(default=None, ge=1, alias="max_tokens")


class QueryResponsePayload(BaseModel):
    answer: str


class StatsPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chunks_indexed: int = Field(alias="chunks_indexed")
    files_indexed: int = Field(alias="files_indexed")
    files_stored: int = Field(alias="files_stored")
    embedding_dimension: int = Field(alias="embedding_dimension")
