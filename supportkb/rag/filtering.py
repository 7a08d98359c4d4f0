from __future__ import annotations

import unicodedata
from typing import Iterable, List, Optional

from supportkb.config import PipelineConfig, pipeline_config as default_config

REPETITION_RATIO = 0.3


def is_repetitive(text: str) -> bool:
    words = text.split()
    if len(words) < 3:
        return False
    unique = len({w.casefold() for w in words})
    return unique / len(words) < REPETITION_RATIO


def is_punctuation_or_digits(text: str) -> bool:
    for ch in text:
        if ch.isspace() or ch.isdigit():
            continue
        if unicodedata.category(ch).startswith("P"):
            continue
        return False
    return True


def is_valid_chunk(text: str, config: Optional[PipelineConfig] = None) -> bool:
    config = config or default_config
    t = (text or "").strip()
    if len(t) < config.min_chunk_size:
        return False
    if is_repetitive(t):
        return False
    if is_punctuation_or_digits(t):
        return False
    return True


def filter_chunks(texts: Iterable[str], config: Optional[PipelineConfig] = None) -> List[str]:
    config = config or default_config
    return [t for t in texts if is_valid_chunk(t, config)]
