from __future__ import annotations

import logging
import time
import unicodedata
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from openai import OpenAI

from supportkb.config import settings

MAX_INPUT_CHARS = 8000


@dataclass(frozen=True)
class EmbedResult:
    vectors: List[List[float]]  # aligned with the input texts; [] where no embedding is available
    model: str
    usage: Optional[Dict[str, int]]
    latency_ms: int
    batches: int
    failed: int = 0


def clean_input(text: str) -> str:
    kept = "".join(ch for ch in (text or "") if ch in "\n\r\t" or unicodedata.category(ch) != "Cc")
    s = " ".join(kept.split())
    return s[:MAX_INPUT_CHARS]


class Embedder:
    """Embedding provider over the OpenAI embeddings endpoint.

    Never raises for provider trouble: a text whose batch keeps failing after
    the retries gets an empty vector, and blank texts get one without a call.
    """

    def __init__(
        self,
        *,
        client: OpenAI,
        model: str,
        batch_size: int = 64,
        timeout_s: float = 30.0,
        retries: int = 2,
        max_workers: int = 1,
        logger: Optional[logging.Logger] = None,
        sleep_base_s: float = 0.5,
    ):
        self.client = client
        self.model = model
        self.batch_size = max(1, int(batch_size))
        self.timeout_s = float(timeout_s)
        self.retries = max(0, int(retries))
        self.max_workers = max(1, int(max_workers))
        self.log = logger or logging.getLogger("supportkb")
        self.sleep_base_s = float(sleep_base_s)

    def _embed_batch(
        self,
        positions: List[int],
        batch: List[str],
        batch_no: int,
        total_batches: int,
    ) -> Tuple[List[int], List[List[float]], int]:
        last_err: Optional[Exception] = None

        for attempt in range(1, self.retries + 2):
            try:
                resp = self.client.embeddings.create(
                    model=self.model,
                    input=batch,
                    timeout=self.timeout_s,
                )

                if len(resp.data) != len(batch):
                    raise RuntimeError(
                        f"Embeddings length mismatch: got {len(resp.data)} vectors for {len(batch)} texts"
                    )

                vecs: List[List[float]] = [[] for _ in batch]
                for k, item in enumerate(resp.data):
                    slot = getattr(item, "index", k)
                    vecs[slot] = list(item.embedding)

                tokens = 0
                usage_obj = getattr(resp, "usage", None)
                if usage_obj is not None:
                    tokens = int(getattr(usage_obj, "prompt_tokens", 0) or 0)

                self.log.info(
                    "EMBED batch ok | model=%s | batch=%s/%s | size=%s | attempt=%s",
                    self.model, batch_no, total_batches, len(batch), attempt
                )
                return positions, vecs, tokens

            except Exception as e:
                last_err = e
                self.log.info(
                    "EMBED batch err | model=%s | batch=%s/%s | attempt=%s | err=%s",
                    self.model, batch_no, total_batches, attempt, f"{type(e).__name__}: {e}"
                )
                if attempt <= self.retries:
                    time.sleep(self.sleep_base_s * attempt)

        self.log.warning(
            "EMBED batch failed, returning empty vectors | model=%s | batch=%s/%s | size=%s | err=%s",
            self.model, batch_no, total_batches, len(batch), f"{type(last_err).__name__}: {last_err}"
        )
        return positions, [[] for _ in batch], 0

    def embed_texts(self, texts: List[str]) -> EmbedResult:
        if not texts:
            return EmbedResult(
                vectors=[],
                model=self.model,
                usage={"input_tokens": 0},
                latency_ms=0,
                batches=0,
            )

        cleaned = [clean_input(t) for t in texts]
        vectors: List[List[float]] = [[] for _ in cleaned]

        todo = [i for i, s in enumerate(cleaned) if s]
        if len(todo) < len(cleaned):
            self.log.warning("EMBED skipped blank texts | count=%s", len(cleaned) - len(todo))

        groups = [todo[i : i + self.batch_size] for i in range(0, len(todo), self.batch_size)]
        total_batches = len(groups)

        t0 = time.perf_counter()
        total_input_tokens = 0

        jobs = [
            (positions, [cleaned[i] for i in positions], b + 1, total_batches)
            for b, positions in enumerate(groups)
        ]

        if self.max_workers == 1 or total_batches <= 1:
            outcomes = [self._embed_batch(*job) for job in jobs]
        else:
            outcomes = []
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = [pool.submit(self._embed_batch, *job) for job in jobs]
                for fut in as_completed(futures):
                    outcomes.append(fut.result())

        # completion order is irrelevant: every vector goes back to its input slot
        for positions, vecs, tokens in outcomes:
            total_input_tokens += tokens
            for pos, vec in zip(positions, vecs):
                vectors[pos] = vec

        latency_ms = int((time.perf_counter() - t0) * 1000)
        failed = sum(1 for v in vectors if not v)

        self.log.info(
            "EMBED done | texts=%s | batches=%s | failed=%s | model=%s | latency_ms=%s | input_tokens=%s",
            len(cleaned),
            total_batches,
            failed,
            self.model,
            latency_ms,
            total_input_tokens,
        )

        return EmbedResult(
            vectors=vectors,
            model=self.model,
            usage={"input_tokens": total_input_tokens},
            latency_ms=latency_ms,
            batches=total_batches,
            failed=failed,
        )

    def embed(self, text: str) -> List[float]:
        return self.embed_texts([text]).vectors[0]


def build_embedder(client: Optional[OpenAI] = None, logger: Optional[logging.Logger] = None) -> Embedder:
    return Embedder(
        client=client or OpenAI(api_key=settings.openai_api_key()),
        model=settings.EMBEDDING_MODEL,
        batch_size=settings.EMBED_BATCH_SIZE,
        timeout_s=settings.EMBED_TIMEOUT_S,
        retries=settings.EMBED_RETRIES,
        max_workers=settings.EMBED_MAX_WORKERS,
        logger=logger,
    )
