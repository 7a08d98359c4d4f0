"""Heuristic 0-100 quality score for a chunk.

Five weighted sub-scores, each on a 0-100 scale:

    length              30%
    sentence structure  25%
    word diversity      20%
    domain richness     15%
    readability         10%

The score only ranks chunks. Rejecting chunks is the filter's job.
"""
from __future__ import annotations

import re
from typing import List, Optional, Sequence, TypeVar

from supportkb.config import PipelineConfig, pipeline_config as default_config
from supportkb.rag.sentences import split_sentences

WEIGHTS = {
    "length": 0.30,
    "sentence": 0.25,
    "diversity": 0.20,
    "richness": 0.15,
    "readability": 0.10,
}

_DIGITS = re.compile(r"\d+")
_SENTENCE_PUNCT = ".,!?:;"
_LIST_MARKERS = ("-", "•", "1.")


def length_score(length: int, config: PipelineConfig) -> float:
    if 600 <= length <= 800:
        return 100.0
    if 400 <= length <= 1000:
        return 80.0
    if 200 <= length <= 1200:
        return 60.0
    if config.min_chunk_size <= length <= config.max_chunk_size:
        return 40.0
    return 20.0


def sentence_structure_score(text: str, config: PipelineConfig) -> float:
    sentences = split_sentences(
        text,
        abbreviations=config.abbreviations,
        min_length=config.min_sentence_length,
    )
    if not sentences:
        return 0.0

    score = 0.0
    n = len(sentences)
    if 2 <= n <= 6:
        score += 40
    elif 1 <= n <= 8:
        score += 25
    else:
        score += 10

    avg_len = sum(len(s) for s in sentences) / n
    if 50 <= avg_len <= 150:
        score += 35
    elif 30 <= avg_len <= 200:
        score += 20

    punct = sum(1 for ch in text if ch in _SENTENCE_PUNCT)
    if punct >= n:
        score += 25

    return score


def word_diversity_score(words: Sequence[str]) -> float:
    if not words:
        return 0.0

    ratio = len({w.casefold() for w in words}) / len(words)
    if 0.7 <= ratio <= 0.9:
        return 100.0
    if 0.5 <= ratio <= 0.95:
        return 80.0
    if ratio >= 0.3:
        return 60.0
    return 20.0


def domain_richness_score(text: str, config: PipelineConfig) -> float:
    lower = text.lower()

    primary = sum(1 for term in config.primary_terms if term.lower() in lower)
    secondary = sum(1 for term in config.secondary_terms if term.lower() in lower)

    score = min(50, primary * 5) + min(30, secondary * 3)
    if _DIGITS.search(text):
        score += 20
    return float(score)


def readability_score(text: str, words: Sequence[str]) -> float:
    if not words:
        return 0.0

    score = 0.0
    avg_word = sum(len(w) for w in words) / len(words)
    if 4 <= avg_word <= 8:
        score += 50
    elif 3 <= avg_word <= 10:
        score += 30

    long_ratio = sum(1 for w in words if len(w) > 12) / len(words)
    if long_ratio <= 0.1:
        score += 30
    elif long_ratio <= 0.2:
        score += 15

    if any(marker in text for marker in _LIST_MARKERS):
        score += 20

    return score


def score_chunk(text: str, config: Optional[PipelineConfig] = None) -> float:
    config = config or default_config
    if not text or not text.strip():
        return 0.0

    words = text.split()
    total = (
        length_score(len(text), config) * WEIGHTS["length"]
        + sentence_structure_score(text, config) * WEIGHTS["sentence"]
        + word_diversity_score(words) * WEIGHTS["diversity"]
        + domain_richness_score(text, config) * WEIGHTS["richness"]
        + readability_score(text, words) * WEIGHTS["readability"]
    )
    return round(max(0.0, min(100.0, total)), 2)


T = TypeVar("T")


def rank_chunks(chunks: Sequence[T], config: Optional[PipelineConfig] = None) -> List[T]:
    """Best-first copy of ``chunks``; accepts plain strings or anything with ``.text``.

    Ties keep their input order. The input sequence is left untouched.
    """
    config = config or default_config

    def _key(c: T) -> float:
        text = c if isinstance(c, str) else getattr(c, "text", "")
        return score_chunk(text, config)

    return sorted(chunks, key=_key, reverse=True)
