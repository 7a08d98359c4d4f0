from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return uuid.uuid4().hex


class Document(BaseModel):
    id: str = Field(default_factory=_new_id)
    title: str = Field(min_length=1, max_length=500)
    content: str
    category: Optional[str] = Field(default=None, max_length=100)
    file_type: Optional[str] = Field(default=None, max_length=50)
    source_url: Optional[str] = Field(default=None, max_length=1000)
    metadata: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)
    is_active: bool = True


class DocumentUpload(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    content: str
    category: Optional[str] = Field(default=None, max_length=100)
    file_type: Optional[str] = Field(default=None, max_length=50)
    source_url: Optional[str] = Field(default=None, max_length=1000)
    metadata: Optional[Dict[str, Any]] = None


class ChunkCandidate(BaseModel):
    """Ingest output: one chunk before it gets an embedding and an owner."""

    text: str = Field(min_length=1)
    index: int = Field(ge=0)
    start_char: int = Field(ge=0)
    end_char: int = Field(ge=0)
    quality_score: float = Field(default=0.0, ge=0.0, le=100.0)


class ChunkRecord(BaseModel):
    id: str = Field(default_factory=_new_id)
    document_id: str = Field(min_length=1)
    text: str = Field(min_length=1)
    chunk_index: int = Field(ge=0)
    start_char: int = Field(ge=0)
    end_char: int = Field(ge=0)
    embedding: List[float] = Field(default_factory=list)  # [] -> not available
    quality_score: float = 0.0
    created_at: datetime = Field(default_factory=_utcnow)


class RetrievalCandidate(BaseModel):
    document_id: str
    title: str
    category: Optional[str] = None
    chunk_text: str
    chunk_index: int = Field(ge=0)
    embedding: List[float] = Field(default_factory=list)
    is_active: bool = True


class SearchResult(BaseModel):
    document_id: str
    title: str
    category: Optional[str] = None
    text: str
    chunk_index: int
    score: float = Field(ge=-1.0, le=1.0)
