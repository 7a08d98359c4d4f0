from __future__ import annotations

from typing import Sequence

import numpy as np

# pip install faiss-cpu
import faiss


def l2_normalize(v: np.ndarray) -> np.ndarray:
    # v: (n, d); zero rows stay zero
    norms = np.linalg.norm(v, axis=1, keepdims=True) + 1e-12
    return v / norms


def build_index(vectors: Sequence[Sequence[float]] | np.ndarray) -> faiss.Index:
    arr = np.ascontiguousarray(np.asarray(vectors, dtype="float32"))
    arr = l2_normalize(arr)

    d = arr.shape[1]
    index = faiss.IndexFlatIP(d)  # cosine == inner product when normalized
    index.add(arr)
    return index


def query(index: faiss.Index, query_vector: Sequence[float], top_k: int = 5) -> tuple[list[float], list[int]]:
    q = np.array([query_vector], dtype="float32")
    q = l2_normalize(q)
    scores, ids = index.search(q, top_k)
    return scores[0].tolist(), ids[0].tolist()


def cosine_scores(query_vector: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine of the query against every row, returned in row order (float64)."""
    n = int(matrix.shape[0])
    out = np.zeros(n, dtype="float64")
    if n == 0 or not np.any(query_vector):
        return out

    index = build_index(matrix)
    scores, ids = query(index, query_vector, top_k=n)
    for s, i in zip(scores, ids):
        if i >= 0:
            out[i] = s
    return np.clip(out, -1.0, 1.0)
