"""
Provider interfaces for the vector search facade, plus in-memory versions.

- EmbeddingProvider: embed(text)
- VectorIndex: upsert(id, vector, metadata), query(vector, top_k, filter), delete(id)
- DocumentStore: upsert(record), get(id), delete(id)

The in-memory providers hold everything in process memory and are used for
development, tests and small single-instance deployments.
"""
import hashlib
import re
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional, Protocol, Sequence

import numpy as np

from astroai.models.search import EmbeddingRecord


@dataclass
class IndexMatch:
    id: str
    score: float  # cosine similarity clamped to [0, 1]
    metadata: Dict[str, Any] = field(default_factory=dict)


class EmbeddingProvider(Protocol):
    name: str
    dim: int

    async def embed(self, text: str) -> np.ndarray:
        ...


class VectorIndex(Protocol):
    name: str

    async def upsert(self, id: str, vector: Sequence[float], metadata: Dict[str, Any]) -> None:
        ...

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[IndexMatch]:
        ...

    async def delete(self, id: str) -> None:
        ...

    def size(self) -> int:
        ...


class DocumentStore(Protocol):
    name: str

    async def upsert(self, record: EmbeddingRecord) -> None:
        ...

    async def get(self, id: str) -> Optional[EmbeddingRecord]:
        ...

    async def delete(self, id: str) -> None:
        ...


def matches_filter(metadata: Dict[str, Any], filter: Optional[Dict[str, Any]]) -> bool:
    """Exact match on every non-empty filter key."""
    if not filter:
        return True
    return all(metadata.get(key) == value for key, value in filter.items() if value)


def normalize(vector: Sequence[float]) -> np.ndarray:
    """L2-normalize as float32; a zero vector stays zero."""
    array = np.asarray(vector, dtype="float32").reshape(-1)
    norm = float(np.linalg.norm(array))
    if norm == 0.0:
        return array
    return array / norm


def clamp_similarity(score: float) -> float:
    return max(0.0, min(1.0, float(score)))


_TOKEN = re.compile(r"[a-z0-9]+")


def pseudo_embedding(text: str, dim: int) -> np.ndarray:
    """
    Deterministic feature-hashed embedding.

    Each token (and each adjacent token pair) is hashed to a bucket and a
    sign. Texts sharing vocabulary end up with positive cosine similarity,
    which is enough for an index to keep working without a model.
    """
    vector = np.zeros(dim, dtype="float32")
    tokens = _TOKEN.findall((text or "").lower())
    features = tokens + [f"{a} {b}" for a, b in zip(tokens, tokens[1:])]
    for feature in features:
        digest = hashlib.md5(feature.encode("utf-8")).digest()
        bucket = int.from_bytes(digest[:4], "little") % dim
        sign = 1.0 if digest[4] & 1 else -1.0
        vector[bucket] += sign
    return normalize(vector)


class InMemoryIndex:
    """Exact cosine-similarity index over normalized numpy vectors."""

    name = "memory"

    def __init__(self, dim: int):
        self.dim = dim
        self._vectors: Dict[str, np.ndarray] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._lock = Lock()

    def _check_dim(self, array: np.ndarray) -> None:
        if array.shape[0] != self.dim:
            raise ValueError(f"vector dimension {array.shape[0]} != index dimension {self.dim}")

    async def upsert(self, id: str, vector: Sequence[float], metadata: Dict[str, Any]) -> None:
        array = normalize(vector)
        self._check_dim(array)
        with self._lock:
            self._vectors[id] = array
            self._metadata[id] = dict(metadata)

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[IndexMatch]:
        query = normalize(vector)
        self._check_dim(query)
        with self._lock:
            candidates = [
                (id, array) for id, array in self._vectors.items()
                if matches_filter(self._metadata[id], filter)
            ]
            if not candidates:
                return []
            ids = [id for id, _ in candidates]
            matrix = np.vstack([array for _, array in candidates])
            scores = matrix @ query
            order = np.argsort(-scores, kind="stable")[:top_k]
            return [
                IndexMatch(id=ids[i], score=clamp_similarity(scores[i]), metadata=dict(self._metadata[ids[i]]))
                for i in order
            ]

    async def delete(self, id: str) -> None:
        with self._lock:
            self._vectors.pop(id, None)
            self._metadata.pop(id, None)

    def size(self) -> int:
        with self._lock:
            return len(self._vectors)


class InMemoryDocumentStore:
    """Dict-backed document store."""

    name = "memory"

    def __init__(self):
        self._records: Dict[str, EmbeddingRecord] = {}
        self._lock = Lock()

    async def upsert(self, record: EmbeddingRecord) -> None:
        with self._lock:
            self._records[record.id] = record.model_copy(deep=True)

    async def get(self, id: str) -> Optional[EmbeddingRecord]:
        with self._lock:
            record = self._records.get(id)
            return record.model_copy(deep=True) if record is not None else None

    async def delete(self, id: str) -> None:
        with self._lock:
            self._records.pop(id, None)

    def size(self) -> int:
        with self._lock:
            return len(self._records)
