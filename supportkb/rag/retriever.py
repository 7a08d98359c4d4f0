from __future__ import annotations

import argparse
import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Sequence

import numpy as np

from supportkb.config import pipeline_config, settings
from supportkb.rag import similarity, store_faiss
from supportkb.rag.types import RetrievalCandidate, SearchResult

log = logging.getLogger("supportkb")


def _snippet(text: str, n: int = 360) -> str:
    t = " ".join((text or "").split())
    return t if len(t) <= n else t[:n].rstrip() + "…"


def score_candidates(
    query_embedding: Sequence[float],
    candidates: Sequence[RetrievalCandidate],
    *,
    faiss_min_candidates: Optional[int] = None,
) -> List[float]:
    """Cosine score per candidate, in candidate order.

    Candidates whose embedding length differs from the query score 0.0.
    Large same-dimension sets go through a FAISS inner-product index.
    """
    min_faiss = settings.FAISS_MIN_CANDIDATES if faiss_min_candidates is None else faiss_min_candidates

    scores = [0.0] * len(candidates)
    dim = len(query_embedding)
    rows = [i for i, c in enumerate(candidates) if len(c.embedding) == dim]
    if not rows or dim == 0:
        return scores

    matrix = np.asarray([candidates[i].embedding for i in rows], dtype="float64")
    if len(rows) >= min_faiss:
        row_scores = store_faiss.cosine_scores(query_embedding, matrix)
    else:
        row_scores = similarity.cosine_scores(query_embedding, matrix)

    for i, s in zip(rows, row_scores):
        scores[i] = float(s)
    return scores


def retrieve(
    query_embedding: Sequence[float],
    candidates: Iterable[RetrievalCandidate],
    *,
    threshold: Optional[float] = None,
    top_k: Optional[int] = None,
    category: Optional[str] = None,
    faiss_min_candidates: Optional[int] = None,
) -> List[SearchResult]:
    """Top-k candidates by cosine similarity to ``query_embedding``.

    Inactive candidates and candidates without an embedding are skipped;
    ``category`` (when given) must match exactly. Results scoring below
    ``threshold`` are dropped, the rest are sorted best-first with ties in
    input order. An empty query embedding means the provider failed: the
    result is empty, never an exception.
    """
    thr = float(threshold) if threshold is not None else pipeline_config.similarity_threshold
    k = int(top_k) if top_k is not None else pipeline_config.top_k
    if k <= 0:
        raise ValueError("top_k must be > 0")

    if not query_embedding:
        log.warning("RETRIEVE skipped | reason=empty_query_embedding")
        return []

    pool = [
        c for c in candidates
        if c.is_active and c.embedding and (not category or c.category == category)
    ]

    scores = score_candidates(query_embedding, pool, faiss_min_candidates=faiss_min_candidates)

    pairs = [(c, s) for c, s in zip(pool, scores) if s >= thr]
    # sort by score desc; stable, so ties keep input order
    pairs.sort(key=lambda x: x[1], reverse=True)

    return [
        SearchResult(
            document_id=c.document_id,
            title=c.title,
            category=c.category,
            text=c.chunk_text,
            chunk_index=c.chunk_index,
            score=s,
        )
        for c, s in pairs[:k]
    ]


@dataclass
class RetrieveMetrics:
    embed_latency_ms: int
    search_latency_ms: int
    total_latency_ms: int
    candidates: int
    returned: int
    top_score: float | None


class Retriever:
    """Query text -> embedding -> ranked chunks from a document store."""

    def __init__(
        self,
        *,
        embedder,
        store,
        min_score: float | None = None,
        top_k: int | None = None,
        faiss_min_candidates: int | None = None,
    ):
        self.embedder = embedder
        self.store = store
        self.min_score = float(min_score) if min_score is not None else pipeline_config.similarity_threshold
        self.top_k = int(top_k) if top_k is not None else pipeline_config.top_k
        self.faiss_min_candidates = faiss_min_candidates

    def retrieve(
        self,
        query: str,
        *,
        top_k: int | None = None,
        threshold: float | None = None,
        category: str | None = None,
    ) -> tuple[list[SearchResult], RetrieveMetrics]:
        t0 = time.perf_counter()
        k = int(top_k) if top_k is not None else self.top_k
        thr = float(threshold) if threshold is not None else self.min_score

        q = (query or "").strip()
        if not q:
            log.warning("RETRIEVE skipped | reason=empty_query")
            return [], RetrieveMetrics(0, 0, 0, 0, 0, None)

        # 1) embed query
        emb_t0 = time.perf_counter()
        q_vec = self.embedder.embed(q)
        embed_latency_ms = int((time.perf_counter() - emb_t0) * 1000)

        # 2) candidates from active documents
        srch_t0 = time.perf_counter()
        candidates = list(self.store.iter_candidates(category))

        # 3) score + threshold + top-k
        hits = retrieve(
            q_vec,
            candidates,
            threshold=thr,
            top_k=k,
            category=category,
            faiss_min_candidates=self.faiss_min_candidates,
        )
        search_latency_ms = int((time.perf_counter() - srch_t0) * 1000)

        metrics = RetrieveMetrics(
            embed_latency_ms=embed_latency_ms,
            search_latency_ms=search_latency_ms,
            total_latency_ms=int((time.perf_counter() - t0) * 1000),
            candidates=len(candidates),
            returned=len(hits),
            top_score=hits[0].score if hits else None,
        )
        log.info(
            "RETRIEVE done | q_len=%s | category=%s | candidates=%s | returned=%s | top_score=%s | latency_ms=%s",
            len(q), category, metrics.candidates, metrics.returned, metrics.top_score, metrics.total_latency_ms
        )
        return hits, metrics


def main(argv: list[str] | None = None) -> int:
    from supportkb.rag.embedder import build_embedder
    from supportkb.rag.store import JsonlDocumentStore
    from supportkb.utils.logging import setup_logging

    parser = argparse.ArgumentParser(description="Retriever: query -> top-k chunks")
    parser.add_argument("query", type=str, help="Query string")
    parser.add_argument("--top_k", type=int, default=None, help="Override TOP_K from env")
    parser.add_argument("--min_score", type=float, default=None, help="Override SIMILARITY_THRESHOLD from env")
    parser.add_argument("--category", type=str, default=None, help="Only search documents of this category")
    parser.add_argument("--store", type=str, default=settings.STORE_DIR, help="JSONL store directory")
    args = parser.parse_args(argv)

    setup_logging()

    retriever = Retriever(
        embedder=build_embedder(),
        store=JsonlDocumentStore(Path(args.store)),
        min_score=args.min_score,
        top_k=args.top_k,
    )

    try:
        hits, m = retriever.retrieve(args.query, top_k=args.top_k, category=args.category)
    except Exception as e:
        print(f"ERROR: {type(e).__name__}: {e}")
        return 2

    q = (args.query or "").strip()
    print(f"\nQUERY: {q}")
    print(f"TOP_K: {retriever.top_k if args.top_k is None else args.top_k}")
    print(f"MIN_SCORE: {retriever.min_score}\n")

    if not hits:
        print("NOT FOUND: no relevant chunks above threshold.\n")
    else:
        for rank, h in enumerate(hits, start=1):
            print(f"[{rank}] score={h.score:.4f}")
            print(f"    title: {h.title}")
            print(f"    doc_id: {h.document_id}   category: {h.category}")
            print(f"    chunk_index: {h.chunk_index}")
            print(f"    snippet: {_snippet(h.text)}")
            print()

    print(
        "METRICS:"
        f" embed_latency_ms={m.embed_latency_ms}"
        f" search_latency_ms={m.search_latency_ms}"
        f" total_latency_ms={m.total_latency_ms}"
        f" candidates={m.candidates}"
        f" returned={m.returned}"
        f" top_score={(f'{m.top_score:.4f}' if m.top_score is not None else 'None')}"
    )
    print("\nOK\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
