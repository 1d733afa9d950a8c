"""In-memory cosine similarity search over tool embeddings."""
from typing import Dict, List, Sequence, Tuple

import numpy as np


class VectorStore:
    """Matrix of unit-normalized embeddings keyed by tool id."""

    def __init__(self, dimensions: int):
        self.dimensions = dimensions
        self._ids: List[str] = []
        self._matrix = np.zeros((0, dimensions), dtype=np.float32)

    @staticmethod
    def _normalize(vectors: np.ndarray) -> np.ndarray:
        norms = np.linalg.norm(vectors, axis=-1, keepdims=True)
        norms[norms == 0] = 1.0
        return vectors / norms

    def build(self, vectors: Dict[str, Sequence[float]]) -> None:
        """Replace the store contents."""
        self._ids = list(vectors.keys())
        if not self._ids:
            self._matrix = np.zeros((0, self.dimensions), dtype=np.float32)
            return
        matrix = np.asarray([vectors[tool_id] for tool_id in self._ids], dtype=np.float32)
        if matrix.ndim != 2 or matrix.shape[1] != self.dimensions:
            raise ValueError(
                f"Embedding dimension mismatch: expected {self.dimensions}, got {matrix.shape[-1]}"
            )
        self._matrix = self._normalize(matrix)

    def search(self, vector: Sequence[float], limit: int, similarity: float = 0.0) -> List[Tuple[str, float]]:
        """Return up to ``limit`` (tool_id, cosine) pairs at or above ``similarity``."""
        if not self._ids:
            return []
        query = np.asarray(vector, dtype=np.float32)
        if query.shape != (self.dimensions,):
            raise ValueError(
                f"Query dimension mismatch: expected {self.dimensions}, got {query.shape[-1]}"
            )
        query = self._normalize(query)
        scores = self._matrix @ query

        order = np.argsort(-scores, kind="stable")
        results = []
        for i in order:
            score = float(scores[i])
            if score < similarity:
                break
            results.append((self._ids[i], score))
            if len(results) >= limit:
                break
        return results

    def __len__(self) -> int:
        return len(self._ids)
