"""Relevance scoring helpers shared by the retrieval strategies."""

import math
import re
from collections.abc import Sequence
from typing import TypeVar

from retrieval_engine.domain.entities.chunk import ScoredChunk

_TOKEN_SPLIT = re.compile(r"[^a-zA-Z0-9]+")

T = TypeVar("T", bound=ScoredChunk)


def tokenize(text: str) -> list[str]:
    """Lower-cased alphanumeric tokens."""
    return [token for token in _TOKEN_SPLIT.split(text.lower()) if token]


def keyword_score(query: str, content: str) -> float:
    """Heuristic keyword relevance of a chunk for a query.

    One point per query token present in the chunk, two per adjacent query
    bigram appearing verbatim in the chunk, plus a small prior for longer
    queries (capped at 1).
    """
    query_tokens = tokenize(query)
    chunk_tokens = set(tokenize(content))
    lowered = content.lower()

    score = float(sum(1 for token in query_tokens if token in chunk_tokens))

    for first, second in zip(query_tokens, query_tokens[1:]):
        if f"{first} {second}" in lowered:
            score += 2

    score += min(len(query_tokens) / 10, 1)
    return score


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors; 0.0 for mismatched or zero vectors."""
    if not a or not b or len(a) != len(b):
        return 0.0

    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def sort_by_relevance(scored: list[T]) -> list[T]:
    """Score descending, ties broken by ascending chunk index."""
    return sorted(scored, key=lambda item: (-item.score, item.chunk_index))


def limit_context_by_length(chunks: list[T], max_length: int) -> list[T]:
    """Keep the longest prefix whose total content length fits the budget.

    The first chunk is always kept, even if it alone exceeds the budget.
    """
    total = 0
    selected: list[T] = []
    for chunk in chunks:
        proposed = total + len(chunk.content)
        if proposed > max_length and selected:
            break
        total = proposed
        selected.append(chunk)
    return selected
