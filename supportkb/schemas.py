from __future__ import annotations

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from supportkb.rag.types import SearchResult


class DocumentUploadRequest(BaseModel):
    title: str = Field(min_length=1, max_length=500)
    content: str = Field(min_length=1)
    category: Optional[str] = Field(default=None, max_length=100)
    file_type: Optional[str] = Field(default=None, max_length=50)
    source_url: Optional[str] = Field(default=None, max_length=1000)
    metadata: Optional[Dict[str, Any]] = None


class DocumentResponse(BaseModel):
    ok: bool = True
    request_id: Optional[str] = None
    document_id: str
    title: str
    category: Optional[str] = None
    is_active: bool = True
    chunks: int = 0
    chunks_without_embedding: int = 0
    latency_ms: int = 0


class ActiveRequest(BaseModel):
    active: bool


class OpResponse(BaseModel):
    ok: bool = True
    request_id: Optional[str] = None
    document_id: str
    latency_ms: int = 0


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    category: Optional[str] = None
    top_k: Optional[int] = Field(default=None, ge=1, le=100)
    threshold: Optional[float] = Field(default=None, ge=-1.0, le=1.0)


class SearchResponse(BaseModel):
    ok: bool = True
    request_id: Optional[str] = None
    results: List[SearchResult] = Field(default_factory=list)
    candidates: int = 0
    latency_ms: int = 0


class ScoreRequest(BaseModel):
    text: str


class ScoreResponse(BaseModel):
    ok: bool = True
    score: float
    length: int
