from __future__ import annotations

import os
from typing import Tuple

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, model_validator

load_dotenv()


def _req(name: str) -> str:
    v = os.getenv(name)
    if not v:
        raise RuntimeError(f"{name} is not set")
    return v


def _csv(name: str) -> Tuple[str, ...]:
    raw = os.getenv(name, "")
    return tuple(x.strip() for x in raw.split(",") if x.strip())


DEFAULT_ABBREVIATIONS: Tuple[str, ...] = (
    "Dr.", "Doç.", "Prof.", "Yrd.", "Öğr.", "Arş.", "Uzm.", "Av.", "Müh.", "İng.", "Mim.",
    "Ltd.", "Şti.", "A.Ş.", "T.C.", "vb.", "vs.", "örn.", "yani", "Sayfa", "s.", "No.", "Tel.",
)

# product / ERP vocabulary, +5 each in the richness sub-score
DEFAULT_PRIMARY_TERMS: Tuple[str, ...] = (
    "mikro", "yazılım", "erp", "crm", "muhasebe", "bordro", "ticaret",
    "run", "jump", "fly", "müşavir", "paraşüt", "buluo",
    "fatura", "stok", "satış", "alış", "rapor", "analiz",
    "veritabanı", "entegrasyon", "api", "modül", "sistem",
)

# generic business vocabulary, +3 each
DEFAULT_SECONDARY_TERMS: Tuple[str, ...] = (
    "yönetim", "süreç", "işlem", "hesap", "kayıt", "data",
    "kullanıcı", "firma", "şirket", "işletme", "platform",
)


class PipelineConfig(BaseModel):
    """Every knob of the segment -> chunk -> filter -> score -> retrieve pipeline.

    Built once and passed into each stage. Invalid combinations raise
    ``pydantic.ValidationError`` at construction time.
    """

    model_config = ConfigDict(frozen=True)

    min_chunk_size: int = Field(default=100, gt=0)
    max_chunk_size: int = Field(default=1200, gt=0)
    default_chunk_size: int = Field(default=800, gt=0)
    overlap_fraction: float = Field(default=0.15, ge=0.0, lt=1.0)
    min_overlap: int = Field(default=50, ge=0)
    max_overlap: int = Field(default=250, ge=0)
    min_sentence_length: int = Field(default=10, ge=1)

    similarity_threshold: float = Field(default=0.7, ge=-1.0, le=1.0)
    top_k: int = Field(default=5, ge=1)

    abbreviations: Tuple[str, ...] = DEFAULT_ABBREVIATIONS
    primary_terms: Tuple[str, ...] = DEFAULT_PRIMARY_TERMS
    secondary_terms: Tuple[str, ...] = DEFAULT_SECONDARY_TERMS

    @model_validator(mode="after")
    def _check_bounds(self) -> "PipelineConfig":
        if self.min_chunk_size > self.default_chunk_size:
            raise ValueError("min_chunk_size must be <= default_chunk_size")
        if self.default_chunk_size > self.max_chunk_size:
            raise ValueError("default_chunk_size must be <= max_chunk_size")
        if self.min_overlap > self.max_overlap:
            raise ValueError("min_overlap must be <= max_overlap")
        if self.max_overlap >= self.default_chunk_size:
            raise ValueError("max_overlap must be < default_chunk_size")
        return self

    @property
    def overlap_size(self) -> int:
        target = int(self.default_chunk_size * self.overlap_fraction)
        return max(self.min_overlap, min(self.max_overlap, target))


class Settings:
    # --- Auth ---
    OPENAI_API_KEY: str = os.getenv("OPENAI_API_KEY", "")

    # --- Embeddings ---
    EMBEDDING_MODEL: str = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
    EMBED_BATCH_SIZE: int = int(os.getenv("EMBED_BATCH_SIZE", "64"))
    EMBED_TIMEOUT_S: float = float(os.getenv("EMBED_TIMEOUT_S", "60"))
    EMBED_RETRIES: int = int(os.getenv("EMBED_RETRIES", "2"))
    EMBED_MAX_WORKERS: int = int(os.getenv("EMBED_MAX_WORKERS", "1"))

    # --- Chunking ---
    MIN_CHUNK_SIZE: int = int(os.getenv("MIN_CHUNK_SIZE", "100"))
    MAX_CHUNK_SIZE: int = int(os.getenv("MAX_CHUNK_SIZE", "1200"))
    DEFAULT_CHUNK_SIZE: int = int(os.getenv("DEFAULT_CHUNK_SIZE", "800"))
    OVERLAP_FRACTION: float = float(os.getenv("OVERLAP_FRACTION", "0.15"))
    MIN_OVERLAP: int = int(os.getenv("MIN_OVERLAP", "50"))
    MAX_OVERLAP: int = int(os.getenv("MAX_OVERLAP", "250"))
    MIN_SENTENCE_LENGTH: int = int(os.getenv("MIN_SENTENCE_LENGTH", "10"))

    # --- Retrieval ---
    SIMILARITY_THRESHOLD: float = float(os.getenv("SIMILARITY_THRESHOLD", "0.7"))
    TOP_K: int = int(os.getenv("TOP_K", "5"))
    FAISS_MIN_CANDIDATES: int = int(os.getenv("FAISS_MIN_CANDIDATES", "2048"))

    # --- Locale / domain vocabularies (comma separated, empty -> built-in) ---
    ABBREVIATIONS: Tuple[str, ...] = _csv("ABBREVIATIONS") or DEFAULT_ABBREVIATIONS
    PRIMARY_TERMS: Tuple[str, ...] = _csv("PRIMARY_TERMS") or DEFAULT_PRIMARY_TERMS
    SECONDARY_TERMS: Tuple[str, ...] = _csv("SECONDARY_TERMS") or DEFAULT_SECONDARY_TERMS

    # --- Storage ---
    STORE_DIR: str = os.getenv("STORE_DIR", "data/artifacts/store")

    def openai_api_key(self) -> str:
        return self.OPENAI_API_KEY or _req("OPENAI_API_KEY")

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            min_chunk_size=self.MIN_CHUNK_SIZE,
            max_chunk_size=self.MAX_CHUNK_SIZE,
            default_chunk_size=self.DEFAULT_CHUNK_SIZE,
            overlap_fraction=self.OVERLAP_FRACTION,
            min_overlap=self.MIN_OVERLAP,
            max_overlap=self.MAX_OVERLAP,
            min_sentence_length=self.MIN_SENTENCE_LENGTH,
            similarity_threshold=self.SIMILARITY_THRESHOLD,
            top_k=self.TOP_K,
            abbreviations=self.ABBREVIATIONS,
            primary_terms=self.PRIMARY_TERMS,
            secondary_terms=self.SECONDARY_TERMS,
        )


settings = Settings()

# a bad env combination fails here, at load time, not mid-pipeline
pipeline_config = settings.pipeline_config()
