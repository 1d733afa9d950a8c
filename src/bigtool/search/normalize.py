"""Score normalization and fusion for search results.

Keyword (BM25) scores are unbounded while vector similarities are bounded,
so every mode maps its raw scores onto [0, 1] before results are compared or
fused.
"""
import math
from typing import Dict, List, Literal, Optional, Sequence

from ..common.types import SearchResult

DEFAULT_SIGMOID_K = 5.0
DEFAULT_RRF_K = 60
DEFAULT_WEIGHTS = {"keyword": 0.5, "vector": 0.5}

FusionStrategy = Literal["weighted", "rrf"]


def normalize_keyword_scores(scores: Sequence[float]) -> List[float]:
    """Min-max normalize a list of raw keyword scores onto [0, 1].

    A single score, or a list of equal scores, maps to 1.0 everywhere.
    """
    if not scores:
        return []
    if len(scores) == 1:
        return [1.0]

    low = min(scores)
    high = max(scores)
    spread = high - low
    if spread == 0:
        return [1.0 for _ in scores]
    return [(s - low) / spread for s in scores]


def sigmoid_normalize(score: float, k: float = DEFAULT_SIGMOID_K) -> float:
    """Normalize a single keyword score when no peer list is available.

    Evaluated in the form whose exponent is never positive, so large scores
    of either sign saturate at 0 or 1 instead of overflowing.
    """
    x = score / k
    if x >= 0:
        return 1.0 / (1.0 + math.exp(-x))
    e = math.exp(x)
    return e / (1.0 + e)


def cosine_to_unit(similarity: float) -> float:
    """Map cosine similarity from [-1, 1] to [0, 1]."""
    return (similarity + 1.0) / 2.0


def clamp_vector_score(score: float) -> float:
    return max(0.0, min(1.0, score))


def weighted_fusion(
    keyword_score: Optional[float],
    vector_score: Optional[float],
    weights: Optional[Dict[str, float]] = None,
) -> float:
    """Weighted average of the two mode scores, missing modes counting as 0."""
    weights = weights or DEFAULT_WEIGHTS
    kw_weight = weights.get("keyword", 0.0)
    vec_weight = weights.get("vector", 0.0)
    total = kw_weight + vec_weight
    if total <= 0:
        return 0.0
    return ((keyword_score or 0.0) * kw_weight + (vector_score or 0.0) * vec_weight) / total


def reciprocal_rank_fusion(ranks: Sequence[Optional[int]], k: int = DEFAULT_RRF_K) -> float:
    """Sum of 1/(k + rank) over the lists a tool appears in (ranks are 1-indexed)."""
    return sum(1.0 / (k + rank) for rank in ranks if rank is not None)


def merge_and_rank(
    keyword_results: Sequence[SearchResult],
    vector_results: Sequence[SearchResult],
    strategy: FusionStrategy = "weighted",
    weights: Optional[Dict[str, float]] = None,
    k: int = DEFAULT_RRF_K,
) -> List[SearchResult]:
    """Fuse keyword and vector results into one list sorted by score."""
    keyword_scores = {r.tool_id: r.score for r in keyword_results}
    vector_scores = {r.tool_id: r.score for r in vector_results}
    keyword_ranks = {r.tool_id: i + 1 for i, r in enumerate(keyword_results)}
    vector_ranks = {r.tool_id: i + 1 for i, r in enumerate(vector_results)}

    # Union in first-seen order so ties keep a stable order
    tool_ids = list(dict.fromkeys([*keyword_scores, *vector_scores]))

    if strategy == "rrf":
        fused = {
            tool_id: reciprocal_rank_fusion([keyword_ranks.get(tool_id), vector_ranks.get(tool_id)], k)
            for tool_id in tool_ids
        }
        top = max(fused.values(), default=0.0)
        if top > 0:
            fused = {tool_id: score / top for tool_id, score in fused.items()}
    else:
        fused = {
            tool_id: weighted_fusion(keyword_scores.get(tool_id), vector_scores.get(tool_id), weights)
            for tool_id in tool_ids
        }

    results = [
        SearchResult(tool_id=tool_id, score=clamp_vector_score(score), match_type="hybrid")
        for tool_id, score in fused.items()
    ]
    results.sort(key=lambda r: r.score, reverse=True)
    return results
