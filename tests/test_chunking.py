from __future__ import annotations

from supportkb.config import PipelineConfig
from supportkb.rag.chunking import (
    build_chunks,
    clean_text,
    ingest,
    smart_overlap,
    split_large_paragraph,
    split_paragraphs,
    word_boundary_overlap,
)

from conftest import FATURA_DOC, LONG_PARAGRAPH, SENTENCES, STOK_DOC


MIKRO_TEXT = (
    "Mikro RUN bir ERP sistemidir. "
    "Kullanıcılar fatura ve stok işlemlerini bu sistem üzerinden yönetir."
)


def _shared_overlap(a: str, b: str) -> int:
    for n in range(min(len(a), len(b)), 0, -1):
        if a.endswith(b[:n]):
            return n
    return 0


def test_clean_text_normalizes_whitespace():
    assert clean_text("a  b\t\tc   \r\nd\r\n\r\n\r\n\r\ne") == "a b c\nd\n\ne"
    assert clean_text("") == ""


def test_split_paragraphs_on_blank_lines():
    text = "Birinci paragraf.\n\n\nİkinci paragraf.\r\n\r\nÜçüncü\n  \nDördüncü\nsatır"

    assert split_paragraphs(text) == [
        "Birinci paragraf.",
        "İkinci paragraf.",
        "Üçüncü",
        "Dördüncü\nsatır",
    ]
    assert split_paragraphs("  \n\n  ") == []


def test_in_range_paragraphs_become_chunks(config):
    assert build_chunks([FATURA_DOC, STOK_DOC], config) == [FATURA_DOC, STOK_DOC]


def test_short_paragraph_merges_into_previous(config):
    note = "Kısa ek not."

    assert build_chunks([FATURA_DOC, note], config) == [f"{FATURA_DOC}\n\n{note}"]


def test_short_leading_paragraph_is_carried_forward(config):
    assert build_chunks(["Başlık", FATURA_DOC], config) == [f"Başlık\n\n{FATURA_DOC}"]


def test_short_paragraph_without_room_is_carried_forward():
    cfg = PipelineConfig(min_chunk_size=100, default_chunk_size=180, max_chunk_size=200, max_overlap=100)
    first = "x" * 190
    note = "Kısa ek not."
    last = "y" * 150

    assert build_chunks([first, note, last], cfg) == [first, f"{note}\n\n{last}"]


def test_lone_short_paragraph_is_tail_only(config):
    assert build_chunks(["Kısa ek not."], config) == ["Kısa ek not."]
    assert ingest("Kısa ek not.", config) == []


def test_chunk_bounds_hold_for_mixed_document(config):
    paragraphs = ["Kullanım Kılavuzu", LONG_PARAGRAPH, FATURA_DOC, "Not: destek ekibine yazın.", STOK_DOC]

    chunks = build_chunks(paragraphs, config)

    assert all(len(c) <= config.max_chunk_size for c in chunks)
    assert all(len(c) >= config.min_chunk_size for c in chunks[:-1])


def test_large_paragraph_splits_with_overlap(config):
    assert len(LONG_PARAGRAPH) > 2000

    chunks = split_large_paragraph(LONG_PARAGRAPH, config)

    assert len(chunks) >= 2
    assert all(config.min_chunk_size <= len(c) <= config.max_chunk_size for c in chunks)
    for prev, nxt in zip(chunks, chunks[1:]):
        shared = _shared_overlap(prev, nxt)
        assert 60 <= shared <= config.overlap_size * 1.5
        # overlap is made of whole sentences
        assert any(nxt.startswith(s) for s in SENTENCES)


def test_ingest_long_paragraph_keeps_overlap(config):
    out = ingest(LONG_PARAGRAPH, config)

    assert len(out) >= 2
    assert out[1].text[:50] in out[0].text


def test_single_long_sentence_is_wrapped(config):
    text = " ".join(f"kelime{i}" for i in range(400))  # no terminators

    chunks = build_chunks([text], config)

    assert len(chunks) >= 2
    assert all(len(c) <= config.max_chunk_size for c in chunks)


def test_token_without_whitespace_is_hard_cut(config):
    chunks = build_chunks(["x" * 3000], config)

    assert len(chunks) >= 3
    assert all(len(c) <= config.max_chunk_size for c in chunks)


def test_word_boundary_overlap():
    text = " ".join(f"kelime{i}" for i in range(100))

    ov = word_boundary_overlap(text, 50)

    assert text.endswith(ov)
    assert ov.split()[0] in text.split()
    assert 50 <= len(ov) <= 59
    assert word_boundary_overlap("kısa", 50) == "kısa"
    assert word_boundary_overlap("x" * 100, 10) == "x" * 10


def test_word_boundary_overlap_walks_back_to_preceding_space():
    text = "aaaa " + "b" * 30 + " " + "c" * 30

    assert word_boundary_overlap(text, 40) == "b" * 30 + " " + "c" * 30


def test_smart_overlap_prefers_whole_sentences(config):
    text = " ".join(SENTENCES[:5])

    ov = smart_overlap(text, 120, config)

    assert text.endswith(ov)
    assert ov.startswith(tuple(SENTENCES[:5]))
    assert len(ov) <= 180


def test_mikro_text_below_min_chunk_size_is_dropped():
    assert len(MIKRO_TEXT) < 100

    assert ingest(MIKRO_TEXT, PipelineConfig(min_chunk_size=100)) == []

    out = ingest(MIKRO_TEXT, PipelineConfig(min_chunk_size=90))
    assert len(out) == 1
    assert out[0].text == MIKRO_TEXT


def test_ingest_offsets_and_scores(config):
    out = ingest("\n\n".join([LONG_PARAGRAPH, FATURA_DOC, STOK_DOC]), config)

    assert [c.index for c in out] == list(range(len(out)))
    for c in out:
        assert c.start_char == c.index * config.default_chunk_size
        assert c.end_char == c.start_char + len(c.text)
        assert 0.0 <= c.quality_score <= 100.0


def test_ingest_drops_degenerate_chunks(config):
    junk = " ".join(f"{i}.{i * 3}" for i in range(40))
    spam = "stok " * 60

    out = ingest("\n\n".join([junk, FATURA_DOC, spam]), config)

    assert [c.text for c in out] == [FATURA_DOC]


def test_ingest_empty():
    assert ingest("") == []
    assert ingest("   \n\n  ") == []
