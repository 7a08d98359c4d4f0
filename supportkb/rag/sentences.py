from __future__ import annotations

from typing import Iterable, List

from supportkb.config import DEFAULT_ABBREVIATIONS

TERMINATORS = (".", "!", "?", ":")


def _is_abbreviation(token: str, abbreviations: frozenset[str]) -> bool:
    stem = token.rstrip(".!?:")
    return token in abbreviations or stem in abbreviations or (stem + ".") in abbreviations


def split_sentences(
    text: str,
    *,
    abbreviations: Iterable[str] = DEFAULT_ABBREVIATIONS,
    min_length: int = 10,
) -> List[str]:
    """Split a block of text into sentences.

    Tokens are whitespace separated. A token ending in ``. ! ? :`` closes the
    running sentence unless it is a known abbreviation ("Dr.", "vb.", "A.Ş.")
    or the sentence is still shorter than ``min_length``; in both cases the
    token stays in the buffer and scanning continues. Whatever is left at the
    end is emitted as the last sentence. Sentences shorter than ``min_length``
    after trimming are dropped, which can only hit that trailing residue.
    """
    if not text:
        return []

    abbr = frozenset(abbreviations)
    sentences: List[str] = []
    buf: List[str] = []
    buf_len = 0

    for token in text.split():
        buf.append(token)
        buf_len += len(token) + (1 if len(buf) > 1 else 0)

        if not token.endswith(TERMINATORS):
            continue
        if _is_abbreviation(token, abbr) or buf_len < min_length:
            continue

        sentences.append(" ".join(buf))
        buf = []
        buf_len = 0

    if buf:
        sentences.append(" ".join(buf))

    return [s for s in sentences if len(s) >= min_length]
