from __future__ import annotations

import logging
import math
from typing import List, Sequence

import numpy as np

log = logging.getLogger("supportkb")

VECTOR_PRECISION = 6


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between ``a`` and ``b``.

    Vectors of different length, empty vectors and zero vectors all give 0.0.
    """
    if len(a) == 0 or len(a) != len(b):
        return 0.0

    va = np.asarray(a, dtype="float64")
    vb = np.asarray(b, dtype="float64")

    # elementwise products summed with np.sum keep sim(a, b) == sim(b, a) bit for bit
    na = float(np.sum(va * va))
    nb = float(np.sum(vb * vb))
    if na == 0.0 or nb == 0.0:
        return 0.0

    dot = float(np.sum(va * vb))
    # one sqrt over the product: sim(a, a) is exactly 1.0
    sim = dot / math.sqrt(na * nb)
    return max(-1.0, min(1.0, sim))


def cosine_scores(query: Sequence[float], matrix: np.ndarray) -> np.ndarray:
    """Cosine of ``query`` against every row of ``matrix`` (n, d); zero rows score 0.0."""
    q = np.asarray(query, dtype="float64")
    m = np.asarray(matrix, dtype="float64")
    if m.size == 0:
        return np.zeros(0, dtype="float64")

    q_sq = float(np.sum(q * q))
    if q_sq == 0.0:
        return np.zeros(m.shape[0], dtype="float64")

    # same elementwise sums as cosine_similarity, so a row equal to the query scores 1.0
    row_sq = np.sum(m * m, axis=1)
    dots = np.sum(m * q, axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        scores = np.where(row_sq > 0, dots / np.sqrt(row_sq * q_sq), 0.0)
    return np.clip(scores, -1.0, 1.0)


def encode_vector(vector: Sequence[float]) -> str:
    if not vector:
        return ""
    return ",".join(f"{float(v):.{VECTOR_PRECISION}f}" for v in vector)


def decode_vector(raw: str | None) -> List[float]:
    if not raw or not raw.strip():
        return []

    try:
        out = [float(s.strip()) for s in raw.split(",")]
    except ValueError as e:
        log.warning("VECTOR parse err | head=%r | err=%s", raw[:100], f"{type(e).__name__}: {e}")
        return []

    if not all(math.isfinite(v) for v in out):
        log.warning("VECTOR non-finite values | head=%r", raw[:100])
        return []
    return out
