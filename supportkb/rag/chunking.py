from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional, Tuple

from supportkb.config import PipelineConfig, pipeline_config as default_config
from supportkb.rag.filtering import filter_chunks
from supportkb.rag.quality import score_chunk
from supportkb.rag.sentences import split_sentences
from supportkb.rag.types import ChunkCandidate

log = logging.getLogger("supportkb")

_PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


def clean_text(text: str) -> str:
    if not text:
        return ""

    t = text.replace("\r\n", "\n").replace("\r", "\n")
    t = re.sub(r"[ \t]+\n", "\n", t)          # trailing spaces before \n
    t = re.sub(r"\n{3,}", "\n\n", t)          # runs of blank lines
    t = re.sub(r"[ \t]{2,}", " ", t)          # repeated spaces inside lines
    return t.strip()


def split_paragraphs(text: str) -> List[str]:
    cleaned = clean_text(text)
    if not cleaned:
        return []
    return [p.strip() for p in _PARAGRAPH_BREAK.split(cleaned) if p.strip()]


# -----------------------------
# Overlap
# -----------------------------

def word_boundary_overlap(text: str, size: int) -> str:
    if len(text) <= size:
        return text

    start = len(text) - size
    while start > 0 and not text[start - 1].isspace():
        start -= 1

    if start == 0:
        # no whitespace to snap to
        return text[-size:].strip()
    return text[start:].strip()


def smart_overlap(text: str, size: int, config: PipelineConfig) -> str:
    """Tail of ``text`` to seed the next chunk with.

    Prefers whole trailing sentences whose combined length stays within
    1.5x ``size``; falls back to a word-boundary cut.
    """
    if len(text) <= size:
        return text

    sentences = split_sentences(
        text,
        abbreviations=config.abbreviations,
        min_length=config.min_sentence_length,
    )
    if len(sentences) <= 1:
        return word_boundary_overlap(text, size)

    limit = size * 1.5
    overlap = ""
    for sentence in reversed(sentences):
        candidate = f"{sentence} {overlap}".strip()
        if len(candidate) > limit:
            break
        overlap = candidate

    return overlap or word_boundary_overlap(text, size)


# -----------------------------
# Builder
# -----------------------------

def _wrap_long_sentence(sentence: str, width: int) -> List[str]:
    if len(sentence) <= width:
        return [sentence]

    pieces: List[str] = []
    current = ""
    for word in sentence.split():
        while len(word) > width:
            if current:
                pieces.append(current)
                current = ""
            pieces.append(word[:width])
            word = word[width:]

        candidate = f"{current} {word}" if current else word
        if len(candidate) > width:
            pieces.append(current)
            current = word
        else:
            current = candidate

    if current:
        pieces.append(current)
    return pieces


def split_large_paragraph(paragraph: str, config: PipelineConfig) -> List[str]:
    """Greedy sentence packing up to ``default_chunk_size`` with smart overlap."""
    size = config.default_chunk_size
    overlap_size = config.overlap_size

    sentences: List[str] = []
    for s in split_sentences(
        paragraph,
        abbreviations=config.abbreviations,
        min_length=config.min_sentence_length,
    ):
        sentences.extend(_wrap_long_sentence(s, size))

    chunks: List[str] = []
    current = ""
    carried = ""  # overlap seeded into `current`; current == carried means nothing new yet

    for sentence in sentences:
        if current != carried and len(current) + 1 + len(sentence) > size:
            if len(current) >= config.min_chunk_size:
                chunks.append(current)
            carried = current = smart_overlap(current, overlap_size, config)

        if current and len(current) + 1 + len(sentence) > config.max_chunk_size:
            carried = current = ""

        current = f"{current} {sentence}" if current else sentence

    if current == carried:
        return chunks

    if len(current) >= config.min_chunk_size or not chunks:
        chunks.append(current)
        return chunks

    fresh = current[len(carried):].strip()
    merged = f"{chunks[-1]} {fresh}"
    if len(merged) <= config.max_chunk_size:
        chunks[-1] = merged
    else:
        chunks.append(current)
    return chunks


def _fold_paragraph(
    chunks: Tuple[str, ...],
    pending: Optional[str],
    paragraph: str,
    config: PipelineConfig,
) -> Tuple[Tuple[str, ...], Optional[str]]:
    if pending:
        paragraph = f"{pending}\n\n{paragraph}"

    n = len(paragraph)
    if n > config.max_chunk_size:
        return chunks + tuple(split_large_paragraph(paragraph, config)), None
    if n >= config.min_chunk_size:
        return chunks + (paragraph,), None

    if chunks and len(chunks[-1]) + 2 + n <= config.max_chunk_size:
        return chunks[:-1] + (f"{chunks[-1]}\n\n{paragraph}",), None

    # too short to stand alone and nowhere to go: prefix it to the next paragraph
    return chunks, paragraph


def build_chunks(paragraphs: Iterable[str], config: Optional[PipelineConfig] = None) -> List[str]:
    """Turn paragraphs into chunk texts bounded by [min_chunk_size, max_chunk_size].

    Only the last chunk may fall under ``min_chunk_size``, when a short
    paragraph had no earlier chunk with room to absorb it.
    """
    config = config or default_config

    chunks: Tuple[str, ...] = ()
    pending: Optional[str] = None
    for paragraph in paragraphs:
        paragraph = paragraph.strip()
        if not paragraph:
            continue
        chunks, pending = _fold_paragraph(chunks, pending, paragraph, config)

    if pending:
        chunks = chunks + (pending,)
    return list(chunks)


def ingest(text: str, config: Optional[PipelineConfig] = None) -> List[ChunkCandidate]:
    """Document text -> ordered, filtered, scored chunk candidates.

    Offsets are sequence-relative: ``start_char = index * default_chunk_size``
    and ``end_char = start_char + len(text)``.
    """
    config = config or default_config

    paragraphs = split_paragraphs(text)
    if not paragraphs:
        return []

    texts = filter_chunks(build_chunks(paragraphs, config), config)

    out: List[ChunkCandidate] = []
    for i, t in enumerate(texts):
        start = i * config.default_chunk_size
        out.append(
            ChunkCandidate(
                text=t,
                index=i,
                start_char=start,
                end_char=start + len(t),
                quality_score=score_chunk(t, config),
            )
        )

    if out:
        log.info(
            "CHUNK done | paragraphs=%s | chunks=%s | avg_chars=%.1f | avg_quality=%.2f",
            len(paragraphs),
            len(out),
            sum(len(c.text) for c in out) / len(out),
            sum(c.quality_score for c in out) / len(out),
        )
    return out
