"""BM25 keyword index over tool metadata fields."""
import math
import re
from collections import Counter
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel

from ..common.types import ToolMetadata

STOP_WORDS = frozenset({
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "i",
    "in", "is", "it", "me", "my", "of", "on", "or", "that", "the", "this", "to",
    "was", "with", "you", "your", "can", "do", "please", "want", "need",
})

FIELDS = ("name", "description", "keywords", "categories")


class FieldBoost(BaseModel):
    """Per-field multipliers applied to BM25 scores."""
    name: float = 2.0
    description: float = 1.0
    keywords: float = 1.5
    categories: float = 1.0


def tokenize(text: str) -> List[str]:
    """Lowercase word tokens, splitting camelCase and snake_case, without stop words."""
    text = text.replace("_", " ").replace("-", " ")
    text = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", text)
    words = re.findall(r"[a-z0-9]+", text.lower())
    return [w for w in words if w not in STOP_WORDS]


def tool_fields(tool: ToolMetadata) -> Dict[str, str]:
    """Flatten a tool into searchable text per field; list fields are joined."""
    return {
        "name": tool.name,
        "description": tool.description,
        "keywords": " ".join(tool.keywords or []),
        "categories": " ".join(tool.categories or []),
    }


class BM25Index:
    """Field-boosted Okapi BM25.

    Each field keeps its own term frequencies, document lengths and average
    length; a document's score is the boosted sum of its per-field scores.
    """

    def __init__(self, boost: Optional[FieldBoost] = None, k1: float = 1.2, b: float = 0.75):
        self.boost = boost or FieldBoost()
        self.k1 = k1
        self.b = b
        self._reset()

    def _reset(self) -> None:
        self._doc_ids: List[str] = []
        self._term_freqs: Dict[str, List[Counter]] = {f: [] for f in FIELDS}
        self._lengths: Dict[str, List[int]] = {f: [] for f in FIELDS}
        self._avg_length: Dict[str, float] = {f: 0.0 for f in FIELDS}
        self._doc_freq: Dict[str, Counter] = {f: Counter() for f in FIELDS}

    def build(self, tools: List[ToolMetadata]) -> None:
        """Replace the index contents with ``tools``."""
        self._reset()
        for tool in tools:
            self._doc_ids.append(tool.id)
            for field_name, text in tool_fields(tool).items():
                tokens = tokenize(text)
                counts = Counter(tokens)
                self._term_freqs[field_name].append(counts)
                self._lengths[field_name].append(len(tokens))
                self._doc_freq[field_name].update(counts.keys())

        for field_name in FIELDS:
            lengths = self._lengths[field_name]
            self._avg_length[field_name] = sum(lengths) / len(lengths) if lengths else 0.0

    def _idf(self, field_name: str, term: str) -> float:
        n = len(self._doc_ids)
        df = self._doc_freq[field_name].get(term, 0)
        return math.log(1 + (n - df + 0.5) / (df + 0.5))

    def _field_score(self, field_name: str, doc: int, terms: List[str]) -> float:
        counts = self._term_freqs[field_name][doc]
        if not counts:
            return 0.0
        avg = self._avg_length[field_name] or 1.0
        norm = 1 - self.b + self.b * self._lengths[field_name][doc] / avg
        score = 0.0
        for term in terms:
            tf = counts.get(term, 0)
            if tf:
                score += self._idf(field_name, term) * tf * (self.k1 + 1) / (tf + self.k1 * norm)
        return score

    def search(self, query: str, limit: int) -> List[Tuple[str, float]]:
        """Return up to ``limit`` (tool_id, raw score) pairs with a positive score."""
        terms = tokenize(query)
        if not terms or not self._doc_ids:
            return []

        scored = []
        for doc, tool_id in enumerate(self._doc_ids):
            score = sum(
                getattr(self.boost, field_name) * self._field_score(field_name, doc, terms)
                for field_name in FIELDS
            )
            if score > 0:
                scored.append((tool_id, score))

        scored.sort(key=lambda item: item[1], reverse=True)
        return scored[:limit]

    def __len__(self) -> int:
        return len(self._doc_ids)
