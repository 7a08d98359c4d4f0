from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol

from supportkb.rag.similarity import decode_vector, encode_vector
from supportkb.rag.types import ChunkRecord, Document, RetrievalCandidate

log = logging.getLogger("supportkb")

DOCUMENTS_JSONL = "documents.jsonl"
CHUNKS_JSONL = "chunks.jsonl"


class DocumentStore(Protocol):
    def add_document(self, doc: Document) -> Document: ...

    def get_document(self, document_id: str) -> Optional[Document]: ...

    def list_documents(self, *, include_inactive: bool = True) -> List[Document]: ...

    def update_document(self, doc: Document) -> None: ...

    def delete_document(self, document_id: str) -> bool: ...

    def replace_chunks(self, document_id: str, chunks: List[ChunkRecord]) -> None: ...

    def get_chunks(self, document_id: str) -> List[ChunkRecord]: ...

    def iter_candidates(self, category: Optional[str] = None) -> Iterator[RetrievalCandidate]: ...


class InMemoryDocumentStore:
    """Dict-backed store. Documents keep insertion order; chunks are kept sorted by index."""

    def __init__(self) -> None:
        self._docs: Dict[str, Document] = {}
        self._chunks: Dict[str, List[ChunkRecord]] = {}

    def add_document(self, doc: Document) -> Document:
        if doc.id in self._docs:
            raise ValueError(f"Document already exists: {doc.id}")
        self._docs[doc.id] = doc.model_copy(deep=True)
        self._chunks[doc.id] = []
        return doc

    def get_document(self, document_id: str) -> Optional[Document]:
        doc = self._docs.get(document_id)
        return doc.model_copy(deep=True) if doc is not None else None

    def list_documents(self, *, include_inactive: bool = True) -> List[Document]:
        return [
            d.model_copy(deep=True)
            for d in self._docs.values()
            if include_inactive or d.is_active
        ]

    def update_document(self, doc: Document) -> None:
        if doc.id not in self._docs:
            raise KeyError(doc.id)
        self._docs[doc.id] = doc.model_copy(deep=True)

    def delete_document(self, document_id: str) -> bool:
        if document_id not in self._docs:
            return False
        del self._docs[document_id]
        self._chunks.pop(document_id, None)  # cascade
        return True

    def replace_chunks(self, document_id: str, chunks: List[ChunkRecord]) -> None:
        if document_id not in self._docs:
            raise KeyError(document_id)
        for c in chunks:
            if c.document_id != document_id:
                raise ValueError(f"Chunk {c.id} belongs to {c.document_id}, not {document_id}")
        ordered = sorted((c.model_copy(deep=True) for c in chunks), key=lambda c: c.chunk_index)
        self._chunks[document_id] = ordered

    def get_chunks(self, document_id: str) -> List[ChunkRecord]:
        return [c.model_copy(deep=True) for c in self._chunks.get(document_id, [])]

    def iter_candidates(self, category: Optional[str] = None) -> Iterator[RetrievalCandidate]:
        for doc in self._docs.values():
            if not doc.is_active:
                continue
            if category and doc.category != category:
                continue
            for c in self._chunks.get(doc.id, []):
                yield RetrievalCandidate(
                    document_id=doc.id,
                    title=doc.title,
                    category=doc.category,
                    chunk_text=c.text,
                    chunk_index=c.chunk_index,
                    embedding=list(c.embedding),
                    is_active=doc.is_active,
                )


# -----------------------------
# JSONL persistence
# -----------------------------

def write_jsonl(path: Path, rows: Iterable[dict]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    with tmp.open("w", encoding="utf-8") as f:
        for row in rows:
            f.write(json.dumps(row, ensure_ascii=False) + "\n")
    tmp.replace(path)


def load_jsonl(path: Path) -> list[dict[str, Any]]:
    rows: list[dict[str, Any]] = []
    if not path.exists():
        return rows
    with path.open("r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            rows.append(json.loads(line))
    return rows


def chunk_to_row(chunk: ChunkRecord) -> dict:
    row = chunk.model_dump(mode="json")
    row["embedding"] = encode_vector(chunk.embedding)
    return row


def chunk_from_row(row: dict) -> ChunkRecord:
    data = dict(row)
    raw = data.get("embedding")
    data["embedding"] = decode_vector(raw) if isinstance(raw, str) else (raw or [])
    return ChunkRecord.model_validate(data)


class JsonlDocumentStore(InMemoryDocumentStore):
    """In-memory store mirrored to ``documents.jsonl`` + ``chunks.jsonl`` under ``root``.

    Embeddings are written as fixed-precision decimal text. Every mutation
    rewrites both files.
    """

    def __init__(self, root: Path) -> None:
        super().__init__()
        self.root = Path(root)
        self.documents_path = self.root / DOCUMENTS_JSONL
        self.chunks_path = self.root / CHUNKS_JSONL
        self._load()

    def _load(self) -> None:
        for row in load_jsonl(self.documents_path):
            doc = Document.model_validate(row)
            self._docs[doc.id] = doc
            self._chunks[doc.id] = []

        orphans = 0
        for row in load_jsonl(self.chunks_path):
            chunk = chunk_from_row(row)
            if chunk.document_id not in self._docs:
                orphans += 1
                continue
            self._chunks[chunk.document_id].append(chunk)

        for doc_id in self._chunks:
            self._chunks[doc_id].sort(key=lambda c: c.chunk_index)

        if orphans:
            log.warning("STORE orphan chunks skipped | root=%s | count=%s", self.root, orphans)
        log.info(
            "STORE loaded | root=%s | documents=%s | chunks=%s",
            self.root, len(self._docs), sum(len(v) for v in self._chunks.values())
        )

    def _flush(self) -> None:
        write_jsonl(self.documents_path, (d.model_dump(mode="json") for d in self._docs.values()))
        write_jsonl(
            self.chunks_path,
            (chunk_to_row(c) for chunks in self._chunks.values() for c in chunks),
        )

    def add_document(self, doc: Document) -> Document:
        out = super().add_document(doc)
        self._flush()
        return out

    def update_document(self, doc: Document) -> None:
        super().update_document(doc)
        self._flush()

    def delete_document(self, document_id: str) -> bool:
        deleted = super().delete_document(document_id)
        if deleted:
            self._flush()
        return deleted

    def replace_chunks(self, document_id: str, chunks: List[ChunkRecord]) -> None:
        super().replace_chunks(document_id, chunks)
        self._flush()
