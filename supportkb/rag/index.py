from __future__ import annotations

import argparse
import json
import time
from pathlib import Path

from supportkb.config import pipeline_config, settings
from supportkb.rag.embedder import build_embedder
from supportkb.rag.ingest import iter_documents
from supportkb.rag.service import DocumentService
from supportkb.rag.store import JsonlDocumentStore
from supportkb.rag.types import DocumentUpload
from supportkb.utils.logging import setup_logging

DOCS_DIR = Path("data/docs")
STATS_JSON = "stats.json"


def index_folder(service: DocumentService, docs_dir: Path, *, category: str | None = None) -> dict:
    """Ingest every supported file under ``docs_dir``.

    A file already in the store (matched on its path) gets its content
    refreshed and is reprocessed instead of being added twice.
    """
    existing = {d.source_url: d for d in service.store.list_documents() if d.source_url}

    added = 0
    updated = 0
    skipped = 0
    chunks = 0

    for path, title, text in iter_documents(docs_dir):
        if not text or not text.strip():
            skipped += 1
            continue

        key = str(path)
        if key in existing:
            doc = existing[key]
            doc.content = text
            service.store.update_document(doc)
            service.reprocess_document(doc.id)
            chunks += len(service.store.get_chunks(doc.id))
            updated += 1
            continue

        _, records = service.process_document(
            DocumentUpload(
                title=title[:500],
                content=text,
                category=category,
                file_type=path.suffix.lower().lstrip("."),
                source_url=key,
            )
        )
        chunks += len(records)
        added += 1

    return {"added": added, "updated": updated, "skipped": skipped, "chunks": chunks}


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Index a folder of .txt/.md/.pdf files into the JSONL store")
    parser.add_argument("--docs", type=str, default=str(DOCS_DIR), help="Folder with source documents")
    parser.add_argument("--out", type=str, default=settings.STORE_DIR, help="JSONL store directory")
    parser.add_argument("--category", type=str, default=None, help="Category label for every document")
    args = parser.parse_args(argv)

    setup_logging()
    t0 = time.perf_counter()

    docs_dir = Path(args.docs)
    if not docs_dir.exists():
        raise RuntimeError(f"Missing folder: {docs_dir.resolve()}")

    out_dir = Path(args.out)
    out_dir.mkdir(parents=True, exist_ok=True)
    store = JsonlDocumentStore(out_dir)
    service = DocumentService(store=store, embedder=build_embedder(), config=pipeline_config)

    counts = index_folder(service, docs_dir, category=args.category)

    stats = {
        **counts,
        "documents_total": len(store.list_documents()),
        "build_time_sec": round(time.perf_counter() - t0, 3),
        "min_chunk_size": pipeline_config.min_chunk_size,
        "default_chunk_size": pipeline_config.default_chunk_size,
        "max_chunk_size": pipeline_config.max_chunk_size,
        "overlap_chars": pipeline_config.overlap_size,
        "embed_model": settings.EMBEDDING_MODEL,
        "store_dir": str(out_dir),
    }

    (out_dir / STATS_JSON).write_text(json.dumps(stats, ensure_ascii=False, indent=2), encoding="utf-8")

    print("OK")
    print(json.dumps(stats, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
