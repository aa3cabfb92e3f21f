"""
Text Chunker
============

Splits document text into overlapping, boundary-aware chunks for embedding.
"""

import re
from typing import List

from src.knowledge_base.domain.entities import TextChunk

_WHITESPACE = re.compile(r"\s+")

DEFAULT_CHUNK_SIZE = 1000
DEFAULT_CHUNK_OVERLAP = 200


def normalize_text(text: str) -> str:
    """Collapse whitespace runs (newlines included) to single spaces and trim."""
    return _WHITESPACE.sub(" ", text).strip()


class TextChunker:
    """
    Deterministic sliding-window chunker.

    Each window is chunk_size characters of normalized text. A window that
    does not reach the end of the text is cut after the last period (or
    newline) inside it, provided that breakpoint lies past the window's
    midpoint; otherwise it is cut at the raw boundary. The next window
    starts chunk_overlap characters before the previous cut.

    Example:
        chunker = TextChunker(chunk_size=1000, chunk_overlap=200)
        texts = chunker.split(document_text)
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        chunk_overlap: int = DEFAULT_CHUNK_OVERLAP
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if chunk_overlap < 0:
            raise ValueError("chunk_overlap must not be negative")
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")

        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    def split(self, text: str) -> List[str]:
        """Split text into chunk strings, in document order."""
        return [chunk.text for chunk in self.chunk(text)]

    def chunk(self, text: str) -> List[TextChunk]:
        """
        Split text into TextChunks carrying their offsets in the normalized text.

        Empty or whitespace-only input yields an empty list.
        """
        normalized = normalize_text(text)
        length = len(normalized)
        chunks: List[TextChunk] = []

        start = 0
        while start < length:
            end = self._find_end(normalized, start, length)

            piece = normalized[start:end].strip()
            if piece:
                chunks.append(TextChunk(index=len(chunks), text=piece, start=start, end=end))

            if end >= length:
                break
            start = end - self.chunk_overlap

        return chunks

    def _find_end(self, text: str, start: int, length: int) -> int:
        end = start + self.chunk_size
        if end >= length:
            return length

        breakpoint = max(text.rfind(".", start, end), text.rfind("\n", start, end))
        cut = breakpoint + 1
        # The cut must sit past the midpoint and still leave the next window
        # starting after this one.
        if breakpoint > start + self.chunk_size // 2 and cut - self.chunk_overlap > start:
            return cut
        return end
