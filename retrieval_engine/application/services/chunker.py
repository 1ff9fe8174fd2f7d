"""Text chunker — splits normalized text into overlapping, boundary-aware segments."""

import hashlib

from retrieval_engine.domain.entities.chunk import ChunkDraft

# ── Chunking constants ──────────────────────────────────────────────
_DEFAULT_CHUNK_SIZE = 1200  # ~300 tokens (rough 4:1 char-to-token ratio)
_DEFAULT_CHUNK_OVERLAP = 200  # Overlap for context continuity
_DEFAULT_SOFT_BOUNDARY = 200  # Search window around the nominal cut
_PARAGRAPH_BREAK = "\n\n"


def content_hash(content: str) -> str:
    """Deterministic sha256 fingerprint of a chunk's content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class TextChunker:
    """Splits text into fixed-size chunks that prefer paragraph boundaries.

    Each chunk is nominally ``chunk_size`` characters, shares ``overlap``
    characters with its predecessor, and is cut at the right-most paragraph
    break within ``soft_boundary`` characters of the nominal cut.
    """

    def __init__(
        self,
        *,
        chunk_size: int = _DEFAULT_CHUNK_SIZE,
        overlap: int = _DEFAULT_CHUNK_OVERLAP,
        soft_boundary: int = _DEFAULT_SOFT_BOUNDARY,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if overlap < 0 or overlap >= chunk_size:
            raise ValueError("overlap must be in [0, chunk_size)")
        if soft_boundary < 0:
            raise ValueError("soft_boundary must not be negative")
        self._chunk_size = chunk_size
        self._overlap = overlap
        self._soft_boundary = soft_boundary

    @property
    def overlap(self) -> int:
        return self._overlap

    def chunk(self, text: str) -> list[ChunkDraft]:
        """Split text into ordered chunk drafts. Blank input yields no chunks."""
        if not text or not text.strip():
            return []

        normalized = text.replace("\r\n", "\n")
        length = len(normalized)
        chunks: list[ChunkDraft] = []

        start = 0
        index = 0
        while start < length:
            end = self._find_cut(normalized, start)
            content = normalized[start:end]
            chunks.append(
                ChunkDraft(
                    index=index,
                    content=content,
                    content_hash=content_hash(content),
                    start_char=start,
                    end_char=end,
                )
            )

            if end >= length:
                break

            # Always advance, even when the overlap would swallow the whole chunk
            start = max(end - self._overlap, start + 1)
            index += 1

        return chunks

    def _find_cut(self, text: str, start: int) -> int:
        """Pick the end of the chunk starting at ``start``."""
        length = len(text)
        nominal = min(start + self._chunk_size, length)

        window_start = max(start + self._chunk_size - self._soft_boundary, start)
        window_end = min(start + self._chunk_size + self._soft_boundary, length)
        split_at = text.rfind(_PARAGRAPH_BREAK, window_start, window_end)

        if split_at != -1 and split_at > start:
            return split_at
        return nominal
