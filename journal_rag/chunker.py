"""
Text chunking module for journal_rag.

Splits imported journal text into overlapping ~1000 character segments that
end on natural boundaries where possible.
"""

import math
import re
from typing import List, Tuple

from journal_rag.models import Chunk, count_words

_SENTENCE_END = re.compile(r"[.!?]\s")
_WHITESPACE = re.compile(r"\s")


class Chunker:
    """Handles splitting text into overlapping chunks for embedding."""

    def __init__(self, chunk_size: int = 1000, overlap: int = 200):
        """
        Initialize the chunker.

        Args:
            chunk_size: Maximum chunk size in characters
            overlap: Characters shared by consecutive chunks
        """
        if chunk_size <= 0:
            raise ValueError("chunk_size must be a positive integer.")
        if overlap < 0 or overlap >= chunk_size // 2:
            raise ValueError("overlap must be >= 0 and less than half of chunk_size.")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def chunk(self, text: str) -> List[str]:
        """
        Split text into chunks for embedding.

        Args:
            text: The text to chunk

        Returns:
            Trimmed, non-empty chunk texts in document order
        """
        text = self._clean_text(text)
        chunks = []
        for start, end in self.spans(text):
            segment = text[start:end].strip()
            if segment:
                chunks.append(segment)
        return chunks

    def chunk_records(self, file_id: str, text: str, total_pages: int = 1) -> List[Chunk]:
        """Chunk text and wrap each segment with its index, word count and page."""
        texts = self.chunk(text)
        return [
            Chunk(
                file_id=file_id,
                chunk_index=index,
                text=segment,
                word_count=count_words(segment),
                page_number=self.estimate_page_number(index, len(texts), total_pages),
            )
            for index, segment in enumerate(texts)
        ]

    def spans(self, text: str) -> List[Tuple[int, int]]:
        """Return the (start, end) character window of every chunk, untrimmed."""
        if not text or not text.strip():
            return []

        spans: List[Tuple[int, int]] = []
        start = 0
        length = len(text)

        while start < length:
            end = start + self.chunk_size
            if end >= length:
                spans.append((start, length))
                break

            end = self._find_break(text, start, end)
            spans.append((start, end))
            start = end - self.overlap

        return spans

    @staticmethod
    def estimate_page_number(chunk_index: int, total_chunks: int, total_pages: int) -> int:
        if total_pages <= 1 or total_chunks <= 0:
            return 1
        progress = chunk_index / total_chunks
        return min(max(math.ceil(progress * total_pages), 1), total_pages)

    def _find_break(self, text: str, start: int, end: int) -> int:
        """Pick the cut position for a window that does not reach the end of text.

        Candidates must lie past the middle of the window; the first kind found
        wins: sentence end, blank line, any whitespace. Falls back to `end`.
        """
        floor = start + self.chunk_size // 2

        last_sentence = None
        for match in _SENTENCE_END.finditer(text, floor + 1, end + 1):
            last_sentence = match
        if last_sentence is not None:
            return last_sentence.start() + 1

        paragraph = text.rfind("\n\n", floor + 1, end)
        if paragraph != -1:
            return paragraph + 2

        last_space = None
        for match in _WHITESPACE.finditer(text, floor + 1, end):
            last_space = match
        if last_space is not None:
            return last_space.start() + 1

        return end

    def _clean_text(self, text: str) -> str:
        """Normalise line endings so paragraph breaks are detected."""
        if not text:
            return ""
        return text.replace("\r\n", "\n").replace("\r", "\n")
