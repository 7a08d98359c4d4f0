from __future__ import annotations

import argparse
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

from supportkb.config import pipeline_config, settings


CASES_PATH_DEFAULT = Path("eval/cases.jsonl")


@dataclass
class Case:
    id: str
    query: str
    expectation: str  # "should_find" | "should_miss"
    must_include: List[str]  # document titles or ids
    category: Optional[str]


def load_cases(path: Path) -> List[Case]:
    cases: List[Case] = []
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            obj = json.loads(line)

            cid = str(obj.get("id") or f"case_{line_no}")
            q = str(obj.get("query") or "").strip()
            exp = str(obj.get("expectation") or "").strip()
            must = obj.get("must_include") or []
            category = obj.get("category") or None

            if not q:
                raise ValueError(f"Empty query in {path}:{line_no}")
            if exp not in {"should_find", "should_miss"}:
                raise ValueError(f"Bad expectation in {path}:{line_no}: {exp}")
            if not isinstance(must, list):
                raise ValueError(f"must_include must be list in {path}:{line_no}")

            cases.append(
                Case(
                    id=cid,
                    query=q,
                    expectation=exp,
                    must_include=[str(x) for x in must],
                    category=category,
                )
            )
    return cases


def _has_must_include(results: List[Any], must_include: List[str]) -> bool:
    if not must_include:
        return True
    seen = {r.document_id for r in results} | {r.title for r in results}
    return any(m in seen for m in must_include)


def _fmt_bool(x: bool) -> str:
    return "OK" if x else "FAIL"


def main() -> int:
    from supportkb.rag.embedder import build_embedder
    from supportkb.rag.service import DocumentService
    from supportkb.rag.store import JsonlDocumentStore

    p = argparse.ArgumentParser(description="Retrieval Eval Runner")
    p.add_argument("--cases", type=str, default=str(CASES_PATH_DEFAULT), help="Path to eval/cases.jsonl")
    p.add_argument("--store", type=str, default=settings.STORE_DIR, help="JSONL store directory")
    p.add_argument("--top_k", type=int, default=None, help="Override TOP_K")
    p.add_argument("--threshold", type=float, default=None, help="Override SIMILARITY_THRESHOLD")
    p.add_argument("--print_failures_only", action="store_true", help="Print only failed cases")
    args = p.parse_args()

    cases_path = Path(args.cases)
    if not cases_path.exists():
        raise RuntimeError(f"Missing cases file: {cases_path}")

    cases = load_cases(cases_path)
    service = DocumentService(
        store=JsonlDocumentStore(Path(args.store)),
        embedder=build_embedder(),
        config=pipeline_config,
    )

    total = len(cases)
    should_find_total = 0
    should_miss_total = 0

    hit_k_ok = 0
    miss_ok = 0
    empty_outputs = 0

    latencies: List[int] = []
    top_scores: List[float] = []

    print("\nEVAL RUN")
    print("--------")
    print(f"cases: {total}\n")

    for c in cases:
        try:
            results, metrics = service.search(
                c.query, category=c.category, top_k=args.top_k, threshold=args.threshold
            )
        except Exception as e:
            if not args.print_failures_only:
                print(f"[{c.id}] {c.expectation} | ERROR | {type(e).__name__}: {e}")
            continue

        latencies.append(metrics.total_latency_ms)
        if metrics.top_score is not None:
            top_scores.append(metrics.top_score)

        n = len(results)
        has_must = _has_must_include(results, c.must_include)

        case_ok = True
        notes: List[str] = []

        if c.expectation == "should_find":
            should_find_total += 1

            if n == 0:
                case_ok = False
                notes.append("no_results")
                empty_outputs += 1

            # hit@k: a must_include document appears among the results
            if has_must and n > 0:
                hit_k_ok += 1
            elif c.must_include:
                case_ok = False
                notes.append("missed_must_include")

        else:
            should_miss_total += 1

            if n == 0:
                miss_ok += 1
            else:
                case_ok = False
                notes.append("results_not_empty")

        if (not args.print_failures_only) or (not case_ok):
            top = f"{metrics.top_score:.4f}" if metrics.top_score is not None else "None"
            print(
                f"[{c.id}] exp={c.expectation} | {_fmt_bool(case_ok)} | "
                f"results={n} top_score={top} must={has_must} | {', '.join(notes) or '-'}"
            )

    def _rate(x: int, d: int) -> float:
        return (x / d) if d > 0 else 0.0

    print("\nSUMMARY")
    print("-------")
    print(f"should_find: {should_find_total}")
    print(f"should_miss: {should_miss_total}")
    print(f"hit@k: {hit_k_ok}/{should_find_total} = {_rate(hit_k_ok, should_find_total):.2f}")
    print(f"miss_quality: {miss_ok}/{should_miss_total} = {_rate(miss_ok, should_miss_total):.2f}")
    print(f"empty_rate (find-cases): {empty_outputs}/{should_find_total} = {_rate(empty_outputs, should_find_total):.2f}")

    if latencies:
        print(f"avg_latency_ms: {round(sum(latencies) / len(latencies), 1)}")
    if top_scores:
        print(f"avg_top_score: {round(sum(top_scores) / len(top_scores), 4)}")

    print("\nOK\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
