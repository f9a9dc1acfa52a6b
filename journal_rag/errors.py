"""Exception types raised by the retrieval pipeline."""

from __future__ import annotations


class JournalRagError(RuntimeError):
    """Base class for pipeline failures."""


class EmbeddingError(JournalRagError):
    """A stored vector could not be decoded."""


class DimensionMismatch(EmbeddingError):
    """A vector does not have the expected dimensionality."""

    def __init__(self, expected: int, actual: int):
        super().__init__(f"Vector dimensions don't match: expected {expected}, got {actual}")
        self.expected = expected
        self.actual = actual


class StorageUnavailable(JournalRagError):
    """The file or vector store could not be read or written."""


class GenerationBackendError(JournalRagError):
    """The text-generation backend failed or timed out."""

    DEFAULT_USER_MESSAGE = "Sorry, I had trouble processing your question. Please try again."

    def __init__(self, message: str, user_message: str = DEFAULT_USER_MESSAGE):
        super().__init__(message)
        self.user_message = user_message
