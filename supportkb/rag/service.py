from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Tuple

from supportkb.config import PipelineConfig, pipeline_config as default_config
from supportkb.rag.chunking import ingest
from supportkb.rag.retriever import RetrieveMetrics, Retriever
from supportkb.rag.types import ChunkRecord, Document, DocumentUpload, SearchResult

log = logging.getLogger("supportkb")


class DocumentService:
    """Document lifecycle on top of a store and an embedding provider.

    ``embedder`` needs ``embed(text)`` and ``embed_texts(texts)``; ``store``
    follows ``supportkb.rag.store.DocumentStore``.
    """

    def __init__(self, *, store, embedder, config: Optional[PipelineConfig] = None):
        self.store = store
        self.embedder = embedder
        self.config = config or default_config
        self.retriever = Retriever(
            embedder=embedder,
            store=store,
            min_score=self.config.similarity_threshold,
            top_k=self.config.top_k,
        )

    def process_document(self, upload: DocumentUpload) -> Tuple[Document, List[ChunkRecord]]:
        try:
            doc = Document(**upload.model_dump())
            self.store.add_document(doc)

            chunks = self.create_chunks(doc)

            log.info("DOC processed | doc_id=%s | title=%s | chunks=%s", doc.id, doc.title, len(chunks))
            return doc, chunks

        except Exception:
            log.exception("DOC process failed | title=%s", upload.title)
            raise

    def create_chunks(self, doc: Document) -> List[ChunkRecord]:
        try:
            if not doc.content or not doc.content.strip():
                log.warning("CHUNK skipped empty content | doc_id=%s", doc.id)
                self.store.replace_chunks(doc.id, [])
                return []

            candidates = ingest(doc.content, self.config)

            emb_res = self.embedder.embed_texts([c.text for c in candidates])
            vectors = emb_res.vectors
            if len(vectors) != len(candidates):
                raise RuntimeError(f"Vectors mismatch: {len(vectors)} != {len(candidates)}")

            chunks = [
                ChunkRecord(
                    document_id=doc.id,
                    text=c.text,
                    chunk_index=c.index,
                    start_char=c.start_char,
                    end_char=c.end_char,
                    embedding=v,
                    quality_score=c.quality_score,
                )
                for c, v in zip(candidates, vectors)
            ]
            self.store.replace_chunks(doc.id, chunks)

            missing = sum(1 for c in chunks if not c.embedding)
            if missing:
                log.warning("CHUNK without embedding | doc_id=%s | count=%s/%s", doc.id, missing, len(chunks))
            log.info("CHUNK stored | doc_id=%s | chunks=%s", doc.id, len(chunks))
            return chunks

        except Exception:
            log.exception("CHUNK create failed | doc_id=%s", doc.id)
            raise

    def reprocess_document(self, document_id: str) -> bool:
        doc = self.store.get_document(document_id)
        if doc is None:
            log.warning("DOC reprocess not found | doc_id=%s", document_id)
            return False

        # create_chunks swaps the chunk set only once the new one is built
        self.create_chunks(doc)

        doc.updated_at = datetime.now(timezone.utc)
        self.store.update_document(doc)

        log.info("DOC reprocessed | doc_id=%s", document_id)
        return True

    def delete_document(self, document_id: str) -> bool:
        deleted = self.store.delete_document(document_id)
        if not deleted:
            log.warning("DOC delete not found | doc_id=%s", document_id)
            return False

        log.info("DOC deleted | doc_id=%s", document_id)
        return True

    def set_active(self, document_id: str, active: bool) -> bool:
        doc = self.store.get_document(document_id)
        if doc is None:
            log.warning("DOC set_active not found | doc_id=%s", document_id)
            return False

        doc.is_active = bool(active)
        doc.updated_at = datetime.now(timezone.utc)
        self.store.update_document(doc)

        log.info("DOC set_active | doc_id=%s | active=%s", document_id, doc.is_active)
        return True

    def search(
        self,
        query: str,
        *,
        category: Optional[str] = None,
        top_k: Optional[int] = None,
        threshold: Optional[float] = None,
    ) -> Tuple[List[SearchResult], RetrieveMetrics]:
        return self.retriever.retrieve(query, top_k=top_k, threshold=threshold, category=category)
