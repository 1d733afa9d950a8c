"""Tool search: BM25 keyword, vector and hybrid retrieval."""
from .cache import LRUEmbeddingCache, MemoryEmbeddingCache, RedisEmbeddingCache
from .index import (
    DefaultSearchIndex,
    HybridWeights,
    SearchConfig,
    create_bm25_search,
    create_hybrid_search,
    create_vector_search,
)
from .keyword import BM25Index, FieldBoost
from .normalize import (
    clamp_vector_score,
    cosine_to_unit,
    merge_and_rank,
    normalize_keyword_scores,
    reciprocal_rank_fusion,
    sigmoid_normalize,
    weighted_fusion,
)
from .vector import VectorStore

__all__ = [
    "BM25Index",
    "DefaultSearchIndex",
    "FieldBoost",
    "HybridWeights",
    "LRUEmbeddingCache",
    "MemoryEmbeddingCache",
    "RedisEmbeddingCache",
    "SearchConfig",
    "VectorStore",
    "clamp_vector_score",
    "cosine_to_unit",
    "create_bm25_search",
    "create_hybrid_search",
    "create_vector_search",
    "merge_and_rank",
    "normalize_keyword_scores",
    "reciprocal_rank_fusion",
    "sigmoid_normalize",
    "weighted_fusion",
]
