"""
FAISS-backed vector index.

Vectors are L2-normalized and stored in an inner-product flat index wrapped
in an IndexIDMap, so inner product equals cosine similarity and entries can
be removed by id. String ids are mapped to sequential int64 FAISS ids.
Metadata (including the raw content) is kept alongside in process memory.
"""
from threading import Lock
from typing import Any, Dict, List, Optional, Sequence

import faiss
import numpy as np

from astroai.core.logging import get_logger
from astroai.services.search.providers import IndexMatch, clamp_similarity, matches_filter, normalize

logger = get_logger(__name__)

# Extra candidates fetched per query so that metadata filtering still fills top_k
FILTER_OVERFETCH = 4


class FaissIndex:
    """In-process FAISS index with id-based upsert and delete."""

    name = "faiss"

    def __init__(self, dim: int):
        self.dim = dim
        self._index = faiss.IndexIDMap(faiss.IndexFlatIP(dim))
        self._ids: Dict[str, int] = {}
        self._reverse: Dict[int, str] = {}
        self._metadata: Dict[str, Dict[str, Any]] = {}
        self._next_id = 0
        self._lock = Lock()
        logger.info("faiss_index_created", dim=dim, index_type="IndexIDMap(IndexFlatIP)")

    def _prepare(self, vector: Sequence[float]) -> np.ndarray:
        array = normalize(vector)
        if array.shape[0] != self.dim:
            raise ValueError(f"vector dimension {array.shape[0]} != index dimension {self.dim}")
        # FAISS expects a contiguous (n x dim) float32 matrix
        return np.ascontiguousarray(array.reshape(1, -1), dtype="float32")

    def _remove(self, id: str) -> None:
        faiss_id = self._ids.pop(id, None)
        if faiss_id is None:
            return
        self._index.remove_ids(np.array([faiss_id], dtype="int64"))
        self._reverse.pop(faiss_id, None)
        self._metadata.pop(id, None)

    async def upsert(self, id: str, vector: Sequence[float], metadata: Dict[str, Any]) -> None:
        matrix = self._prepare(vector)
        with self._lock:
            self._remove(id)
            faiss_id = self._next_id
            self._next_id += 1
            self._index.add_with_ids(matrix, np.array([faiss_id], dtype="int64"))
            self._ids[id] = faiss_id
            self._reverse[faiss_id] = id
            self._metadata[id] = dict(metadata)

    async def query(
        self,
        vector: Sequence[float],
        top_k: int,
        filter: Optional[Dict[str, Any]] = None,
    ) -> List[IndexMatch]:
        matrix = self._prepare(vector)
        with self._lock:
            total = self._index.ntotal
            if total == 0:
                return []
            k = min(top_k * FILTER_OVERFETCH if filter else top_k, total)
            scores, faiss_ids = self._index.search(matrix, k)

            matches = []
            for score, faiss_id in zip(scores[0], faiss_ids[0]):
                if faiss_id == -1:  # FAISS returns -1 for empty slots
                    continue
                id = self._reverse.get(int(faiss_id))
                if id is None:
                    continue
                metadata = self._metadata.get(id, {})
                if not matches_filter(metadata, filter):
                    continue
                matches.append(IndexMatch(id=id, score=clamp_similarity(score), metadata=dict(metadata)))
                if len(matches) >= top_k:
                    break
            return matches

    async def delete(self, id: str) -> None:
        with self._lock:
            self._remove(id)

    def size(self) -> int:
        with self._lock:
            return int(self._index.ntotal)
