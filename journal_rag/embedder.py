"""
Embedding module for journal_rag.

Converts text into a fixed 100-dimensional feature vector built from word
frequencies, closed word-list categories, structure and sentiment. The layout
is part of the stored-index contract:

    0-29   top-30 word frequencies, bucketed by sha256(word)[0] % 30
    30-32  emotion / time / relationship word fractions
    33-36  sentences/100, paragraphs/50, questions/20, exclamations/20
    37-38  positive / negative word fractions
    39-99  reserved, always zero

Vectors are persisted as 400 bytes of little-endian float32.
"""

import hashlib
import re
from collections import Counter
from typing import List, Sequence

import numpy as np

from journal_rag.errors import DimensionMismatch, EmbeddingError

EMBEDDING_DIM = 100
FREQUENCY_SLOTS = 30
BLOB_DTYPE = np.dtype("<f4")
BLOB_SIZE = EMBEDDING_DIM * BLOB_DTYPE.itemsize

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
    "of", "with", "by", "is", "are", "was", "were", "be", "been", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "this", "that", "these", "those", "i", "me", "my", "we", "our", "you",
    "your", "he", "him", "his", "she", "her", "it", "its", "they", "them",
})

EMOTION_WORDS = frozenset({
    "happy", "sad", "angry", "excited", "depressed", "anxious", "calm",
    "stressed", "relaxed", "worried", "confident", "grateful", "frustrated",
})

TIME_WORDS = frozenset({
    "today", "yesterday", "tomorrow", "morning", "afternoon", "evening",
    "night", "week", "month", "year", "recently", "later", "soon",
})

RELATIONSHIP_WORDS = frozenset({
    "family", "friend", "work", "colleague", "partner", "spouse", "parent",
    "child", "sibling", "boss", "team", "relationship", "love", "conflict",
})

POSITIVE_WORDS = frozenset({
    "good", "great", "amazing", "wonderful", "excellent", "perfect",
    "love", "beautiful", "happy", "joy", "success", "win", "achieve",
})

NEGATIVE_WORDS = frozenset({
    "bad", "terrible", "awful", "horrible", "worst", "hate", "sad",
    "angry", "frustrated", "fail", "problem", "issue", "struggle",
})

_NON_WORD = re.compile(r"[^A-Za-z0-9_\s]")
_SPACES = re.compile(r"\s+")
_SENTENCE_SPLIT = re.compile(r"[.!?]")


def tokenize(text: str) -> List[str]:
    """Lowercase, replace punctuation with spaces and split on whitespace."""
    processed = _NON_WORD.sub(" ", text.lower())
    processed = _SPACES.sub(" ", processed).strip()
    return [word for word in processed.split(" ") if word]


def bucket_for(word: str, slots: int = FREQUENCY_SLOTS) -> int:
    return hashlib.sha256(word.encode("utf-8")).digest()[0] % slots


def vector_to_blob(vector: Sequence[float]) -> bytes:
    """Serialize a vector as little-endian float32 bytes (400 bytes)."""
    arr = np.asarray(vector, dtype=BLOB_DTYPE)
    if arr.ndim != 1 or arr.size != EMBEDDING_DIM:
        raise DimensionMismatch(EMBEDDING_DIM, int(arr.size))
    return arr.tobytes()


def blob_to_vector(blob) -> np.ndarray:
    """Decode a stored blob back into a float32 vector.

    Raises:
        EmbeddingError: blob is missing, not bytes, or not whole float32 values
        DimensionMismatch: blob decodes to a length other than 100
    """
    if blob is None:
        raise EmbeddingError("Stored embedding is empty")
    if not isinstance(blob, (bytes, bytearray, memoryview)):
        raise EmbeddingError(f"Stored embedding has unexpected type {type(blob).__name__}")
    raw = bytes(blob)
    if not raw:
        raise EmbeddingError("Stored embedding is empty")
    if len(raw) % BLOB_DTYPE.itemsize:
        raise EmbeddingError(f"Stored embedding is {len(raw)} bytes, not a whole number of float32 values")

    arr = np.frombuffer(raw, dtype=BLOB_DTYPE)
    if arr.size != EMBEDDING_DIM:
        raise DimensionMismatch(EMBEDDING_DIM, int(arr.size))
    if not np.all(np.isfinite(arr)):
        raise EmbeddingError("Stored embedding contains non-finite values")
    return arr.astype(np.float32)


class Embedder:
    """Hand-engineered, deterministic text embedder."""

    def __init__(self, embedding_dim: int = EMBEDDING_DIM):
        if embedding_dim != EMBEDDING_DIM:
            raise ValueError(f"The feature layout is fixed at {EMBEDDING_DIM} dimensions")
        self.embedding_dim = embedding_dim

    def embed(self, text: str) -> np.ndarray:
        """
        Convert text to embedding vector.

        Args:
            text: Text to embed

        Returns:
            float32 array of length 100 with unit L2 norm, or all zeros when
            the text has no words
        """
        vector = np.zeros(self.embedding_dim, dtype=np.float64)
        if not text or not text.strip():
            return vector.astype(np.float32)

        words = tokenize(text)
        if not words:
            return vector.astype(np.float32)

        self._add_frequency_features(words, vector)
        self._add_category_features(words, vector)
        self._add_structural_features(text, vector)
        self._add_sentiment_features(words, vector)

        return self.normalize_vector(vector)

    def embed_batch(self, texts: List[str]) -> List[np.ndarray]:
        return [self.embed(text) for text in texts]

    def get_embedding_dim(self) -> int:
        return self.embedding_dim

    def cosine_similarity(self, vec1: Sequence[float], vec2: Sequence[float]) -> float:
        """
        Calculate cosine similarity between two vectors.

        Returns 0.0 when either vector has zero norm.

        Raises:
            DimensionMismatch: if the vectors differ in length
        """
        v1 = np.asarray(vec1, dtype=np.float64)
        v2 = np.asarray(vec2, dtype=np.float64)
        if v1.shape != v2.shape:
            raise DimensionMismatch(int(v1.size), int(v2.size))

        norm1 = float(np.linalg.norm(v1))
        norm2 = float(np.linalg.norm(v2))
        if norm1 == 0 or norm2 == 0:
            return 0.0

        return float(np.dot(v1, v2) / (norm1 * norm2))

    def normalize_vector(self, vector: Sequence[float]) -> np.ndarray:
        """Scale a vector to unit length; a zero vector is returned unchanged."""
        v = np.asarray(vector, dtype=np.float64)
        norm = float(np.linalg.norm(v))
        if norm == 0 or not np.isfinite(norm):
            return np.zeros_like(v, dtype=np.float32)
        return (v / norm).astype(np.float32)

    def _add_frequency_features(self, words: List[str], vector: np.ndarray):
        total = len(words)
        counts = Counter(word for word in words if word not in STOP_WORDS)
        for word, count in counts.most_common(FREQUENCY_SLOTS):
            vector[bucket_for(word)] += count / total

    def _add_category_features(self, words: List[str], vector: np.ndarray):
        total = len(words)
        vector[30] = sum(1 for word in words if word in EMOTION_WORDS) / total
        vector[31] = sum(1 for word in words if word in TIME_WORDS) / total
        vector[32] = sum(1 for word in words if word in RELATIONSHIP_WORDS) / total

    def _add_structural_features(self, text: str, vector: np.ndarray):
        # Counted on the raw text, before tokenization.
        vector[33] = len(_SENTENCE_SPLIT.split(text)) / 100.0
        vector[34] = len(text.split("\n\n")) / 50.0
        vector[35] = text.count("?") / 20.0
        vector[36] = text.count("!") / 20.0

    def _add_sentiment_features(self, words: List[str], vector: np.ndarray):
        total = len(words)
        vector[37] = sum(1 for word in words if word in POSITIVE_WORDS) / total
        vector[38] = sum(1 for word in words if word in NEGATIVE_WORDS) / total
