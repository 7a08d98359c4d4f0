from __future__ import annotations

import time
import uuid
from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from supportkb.config import pipeline_config, settings
from supportkb.rag.quality import score_chunk
from supportkb.rag.service import DocumentService
from supportkb.rag.types import DocumentUpload
from supportkb.schemas import (
    ActiveRequest,
    DocumentResponse,
    DocumentUploadRequest,
    OpResponse,
    ScoreRequest,
    ScoreResponse,
    SearchRequest,
    SearchResponse,
)
from supportkb.utils.logging import setup_logging


log = setup_logging()
app = FastAPI(title="Support KB Service", version="1.0")

_service: Optional[DocumentService] = None


def get_service() -> DocumentService:
    global _service
    if _service is None:
        from supportkb.rag.embedder import build_embedder
        from supportkb.rag.store import JsonlDocumentStore

        _service = DocumentService(
            store=JsonlDocumentStore(Path(settings.STORE_DIR)),
            embedder=build_embedder(),
            config=pipeline_config,
        )
    return _service


def _ms(t0: float) -> int:
    return int((time.perf_counter() - t0) * 1000)


def _error(status_code: int, request_id: str, error: str, latency_ms: int = 0) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"ok": False, "request_id": request_id, "error": error, "latency_ms": latency_ms},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(_, __: RequestValidationError):
    return _error(422, str(uuid.uuid4()), "validation_error")


@app.post("/documents", response_model=DocumentResponse)
def upload_document(req: DocumentUploadRequest):
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    log.info("REQ /documents | request_id=%s | title=%s | content_len=%s", request_id, req.title, len(req.content))

    try:
        doc, chunks = get_service().process_document(DocumentUpload(**req.model_dump()))
    except Exception as e:
        log.exception(
            "RES /documents | request_id=%s | status=error | latency_ms=%s | err=%s",
            request_id, _ms(t0), f"{type(e).__name__}: {e}",
        )
        return _error(500, request_id, "internal_error", _ms(t0))

    res = DocumentResponse(
        request_id=request_id,
        document_id=doc.id,
        title=doc.title,
        category=doc.category,
        is_active=doc.is_active,
        chunks=len(chunks),
        chunks_without_embedding=sum(1 for c in chunks if not c.embedding),
        latency_ms=_ms(t0),
    )
    log.info(
        "RES /documents | request_id=%s | status=ok | doc_id=%s | chunks=%s | latency_ms=%s",
        request_id, res.document_id, res.chunks, res.latency_ms,
    )
    return JSONResponse(status_code=200, content=res.model_dump())


def _document_op(name: str, document_id: str, op) -> JSONResponse:
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    try:
        found = op()
    except Exception as e:
        log.exception(
            "RES %s | request_id=%s | doc_id=%s | status=error | err=%s",
            name, request_id, document_id, f"{type(e).__name__}: {e}",
        )
        return _error(500, request_id, "internal_error", _ms(t0))

    if not found:
        log.info("RES %s | request_id=%s | doc_id=%s | status=not_found", name, request_id, document_id)
        return _error(404, request_id, "document_not_found", _ms(t0))

    log.info("RES %s | request_id=%s | doc_id=%s | status=ok", name, request_id, document_id)
    res = OpResponse(request_id=request_id, document_id=document_id, latency_ms=_ms(t0))
    return JSONResponse(status_code=200, content=res.model_dump())


@app.post("/documents/{document_id}/reprocess", response_model=OpResponse)
def reprocess_document(document_id: str):
    return _document_op("/reprocess", document_id, lambda: get_service().reprocess_document(document_id))


@app.delete("/documents/{document_id}", response_model=OpResponse)
def delete_document(document_id: str):
    return _document_op("/delete", document_id, lambda: get_service().delete_document(document_id))


@app.patch("/documents/{document_id}/active", response_model=OpResponse)
def set_document_active(document_id: str, req: ActiveRequest):
    return _document_op("/active", document_id, lambda: get_service().set_active(document_id, req.active))


@app.post("/search", response_model=SearchResponse)
def search(req: SearchRequest):
    request_id = str(uuid.uuid4())
    t0 = time.perf_counter()

    q = (req.query or "").strip()
    log.info("REQ /search | request_id=%s | q_len=%s | category=%s", request_id, len(q), req.category)

    try:
        results, metrics = get_service().search(
            q, category=req.category, top_k=req.top_k, threshold=req.threshold
        )
    except Exception as e:
        log.exception(
            "RES /search | request_id=%s | status=error | latency_ms=%s | err=%s",
            request_id, _ms(t0), f"{type(e).__name__}: {e}",
        )
        return _error(500, request_id, "internal_error", _ms(t0))

    res = SearchResponse(
        request_id=request_id,
        results=results,
        candidates=metrics.candidates,
        latency_ms=_ms(t0),
    )
    log.info(
        "RES /search | request_id=%s | status=ok | results=%s | latency_ms=%s",
        request_id, len(res.results), res.latency_ms,
    )
    return JSONResponse(status_code=200, content=res.model_dump())


@app.post("/score", response_model=ScoreResponse)
def score(req: ScoreRequest):
    res = ScoreResponse(score=score_chunk(req.text, pipeline_config), length=len(req.text))
    return JSONResponse(status_code=200, content=res.model_dump())


@app.get("/")
def root():
    return {"ok": True}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
