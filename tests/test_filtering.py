from __future__ import annotations

from supportkb.config import PipelineConfig
from supportkb.rag.filtering import filter_chunks, is_punctuation_or_digits, is_repetitive, is_valid_chunk

from conftest import FATURA_DOC, STOK_DOC


def test_short_chunk_is_rejected(config):
    assert not is_valid_chunk("Kısa metin.", config)
    assert not is_valid_chunk("", config)
    assert is_valid_chunk("Kısa metin.", PipelineConfig(min_chunk_size=5))


def test_length_is_measured_after_trim(config):
    padded = "   " + "a" * 60 + " " * 80
    assert not is_valid_chunk(padded, config)


def test_repetitive_chunk_is_rejected(config):
    assert is_repetitive("stok stok stok stok")
    assert is_repetitive("Stok stok STOK " * 20)
    assert not is_repetitive("iki kelime")
    assert not is_valid_chunk("fatura " * 40, config)


def test_punctuation_and_digit_chunks_are_rejected(config):
    junk = " ".join(f"{i}.{i * 3}" for i in range(40))

    assert is_punctuation_or_digits(junk)
    assert is_punctuation_or_digits("... --- !!! ¿¡ «»")
    assert not is_punctuation_or_digits("abc 123")
    assert not is_valid_chunk(junk, config)


def test_real_text_passes(config):
    assert is_valid_chunk(FATURA_DOC, config)
    assert is_valid_chunk(STOK_DOC, config)


def test_filter_keeps_order_and_is_idempotent(config):
    texts = [STOK_DOC, "kısa", "x " * 100, FATURA_DOC, "1234 5678 " * 20]

    once = filter_chunks(texts, config)

    assert once == [STOK_DOC, FATURA_DOC]
    assert filter_chunks(once, config) == once
