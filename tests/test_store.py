from __future__ import annotations

import json
from pathlib import Path

import pytest

from supportkb.rag.store import CHUNKS_JSONL, InMemoryDocumentStore, JsonlDocumentStore
from supportkb.rag.types import ChunkRecord, Document


def _chunk(doc_id: str, idx: int, emb: list[float] | None = None) -> ChunkRecord:
    text = f"chunk {idx}"
    return ChunkRecord(
        document_id=doc_id,
        text=text,
        chunk_index=idx,
        start_char=idx * 800,
        end_char=idx * 800 + len(text),
        embedding=emb or [],
    )


def test_delete_cascades_to_chunks():
    store = InMemoryDocumentStore()
    doc = store.add_document(Document(title="Fatura", content="..."))
    store.replace_chunks(doc.id, [_chunk(doc.id, 0, [1.0]), _chunk(doc.id, 1, [0.5])])

    assert store.delete_document(doc.id) is True
    assert store.get_document(doc.id) is None
    assert store.get_chunks(doc.id) == []
    assert list(store.iter_candidates()) == []
    assert store.delete_document(doc.id) is False


def test_add_duplicate_and_unknown_ids():
    store = InMemoryDocumentStore()
    doc = store.add_document(Document(title="Fatura", content="..."))

    with pytest.raises(ValueError):
        store.add_document(doc)
    with pytest.raises(KeyError):
        store.replace_chunks("missing", [])
    with pytest.raises(KeyError):
        store.update_document(Document(title="Yok", content=""))
    with pytest.raises(ValueError):
        store.replace_chunks(doc.id, [_chunk("other", 0)])


def test_chunks_sorted_and_copies_returned():
    store = InMemoryDocumentStore()
    doc = store.add_document(Document(title="Stok", content="..."))
    store.replace_chunks(doc.id, [_chunk(doc.id, 2), _chunk(doc.id, 0), _chunk(doc.id, 1)])

    chunks = store.get_chunks(doc.id)
    assert [c.chunk_index for c in chunks] == [0, 1, 2]

    chunks[0].text = "changed"
    assert store.get_chunks(doc.id)[0].text == "chunk 0"


def test_candidates_respect_active_and_category():
    store = InMemoryDocumentStore()
    a = store.add_document(Document(title="A", content="...", category="fatura"))
    b = store.add_document(Document(title="B", content="...", category="stok", is_active=False))
    store.replace_chunks(a.id, [_chunk(a.id, 0, [1.0])])
    store.replace_chunks(b.id, [_chunk(b.id, 0, [1.0])])

    assert [c.title for c in store.iter_candidates()] == ["A"]
    assert [c.title for c in store.iter_candidates("fatura")] == ["A"]
    assert list(store.iter_candidates("stok")) == []
    assert len(store.list_documents()) == 2
    assert len(store.list_documents(include_inactive=False)) == 1


def test_jsonl_round_trip(tmp_path: Path):
    store = JsonlDocumentStore(tmp_path)
    doc = store.add_document(Document(title="Fatura iptali", content="...", category="fatura", metadata={"k": 1}))
    store.replace_chunks(doc.id, [_chunk(doc.id, 0, [0.1234567, -0.5]), _chunk(doc.id, 1)])

    line = (tmp_path / CHUNKS_JSONL).read_text(encoding="utf-8").splitlines()[0]
    assert json.loads(line)["embedding"] == "0.123457,-0.500000"

    reopened = JsonlDocumentStore(tmp_path)
    loaded = reopened.get_document(doc.id)
    assert loaded is not None
    assert loaded.title == "Fatura iptali"
    assert loaded.metadata == {"k": 1}

    chunks = reopened.get_chunks(doc.id)
    assert [c.chunk_index for c in chunks] == [0, 1]
    assert chunks[0].embedding == pytest.approx([0.123457, -0.5])
    assert chunks[1].embedding == []


def test_jsonl_malformed_vector_loads_as_empty(tmp_path: Path):
    store = JsonlDocumentStore(tmp_path)
    doc = store.add_document(Document(title="Stok", content="..."))
    store.replace_chunks(doc.id, [_chunk(doc.id, 0, [1.0, 2.0])])

    path = tmp_path / CHUNKS_JSONL
    row = json.loads(path.read_text(encoding="utf-8"))
    row["embedding"] = "1.0,oops"
    path.write_text(json.dumps(row) + "\n", encoding="utf-8")

    chunks = JsonlDocumentStore(tmp_path).get_chunks(doc.id)
    assert chunks[0].embedding == []


def test_jsonl_skips_orphan_chunks_and_persists_delete(tmp_path: Path):
    store = JsonlDocumentStore(tmp_path)
    doc = store.add_document(Document(title="Bordro", content="..."))
    store.replace_chunks(doc.id, [_chunk(doc.id, 0, [1.0])])

    with (tmp_path / CHUNKS_JSONL).open("a", encoding="utf-8") as f:
        f.write(json.dumps({**_chunk("ghost", 0).model_dump(mode="json"), "embedding": ""}) + "\n")

    reopened = JsonlDocumentStore(tmp_path)
    assert len(list(reopened.iter_candidates())) == 1

    reopened.delete_document(doc.id)
    assert JsonlDocumentStore(tmp_path).list_documents() == []
    assert (tmp_path / CHUNKS_JSONL).read_text(encoding="utf-8") == ""
