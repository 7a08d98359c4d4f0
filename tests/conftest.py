from __future__ import annotations

from types import SimpleNamespace

import pytest

from supportkb.config import PipelineConfig
from supportkb.rag.service import DocumentService
from supportkb.rag.store import InMemoryDocumentStore


KEYWORDS = ["fatura", "stok", "bordro", "rapor", "entegrasyon"]

FATURA_DOC = (
    "Fatura iptali için önce ilgili fatura kaydı açılır ve iade faturası oluşturulur. "
    "Hatalı vergi oranı ile kesilen fatura doğrudan silinmez, bunun yerine yeni bir fatura düzenlenir."
)

STOK_DOC = (
    "Stok seviyesi kritik sınırın altına düştüğünde sistem otomatik satın alma önerisi üretir. "
    "Depo personeli stok hareketlerini barkod okuyucu ile kaydeder ve stok kartları anında güncellenir."
)

# 25 distinct sentences, 80-100 chars each; joined they form one ~2200 char paragraph
SENTENCES = [
    "The invoice module lets accountants create, approve and archive customer invoices in one place.",
    "Each approved invoice updates the general ledger and the customer balance within a few seconds.",
    "Warehouse staff record incoming goods with barcode scanners connected to the stock screen.",
    "When stock drops below the reorder level, the system proposes a purchase order automatically.",
    "Payroll runs at the end of every month and produces payslips for all active employees.",
    "Managers can compare sales figures across regions using the built-in reporting dashboard.",
    "Reports may be exported to spreadsheet files or scheduled to arrive by email every Monday.",
    "User permissions are assigned per role, so cashiers never see confidential salary data.",
    "The integration service synchronises orders from the online shop every fifteen minutes.",
    "If a synchronisation fails, an alert appears on the administrator home page with details.",
    "Backups of the database are taken nightly and kept for thirty days on separate storage.",
    "Customers often ask how to cancel an invoice that was issued with a wrong tax rate.",
    "The correct procedure is to create a credit note and then issue a fresh invoice instead.",
    "Support engineers answer tickets in the order they arrive unless a priority flag is set.",
    "Training videos for new employees are published on the community portal each quarter.",
    "Mobile users can approve expense claims from their phones while travelling abroad.",
    "Currency rates are downloaded from the central bank every morning before markets open.",
    "Year-end closing locks previous periods so that historical figures cannot be altered.",
    "Auditors receive read-only accounts that expire automatically after the audit period.",
    "Custom fields let each company capture extra information without changing the core.",
    "Printing templates for delivery notes can be edited with a simple drag and drop designer.",
    "Performance tuning guides explain which indexes speed up the largest transaction tables.",
    "The licence screen shows how many seats are in use and when the subscription renews.",
    "Upgrades are installed during a maintenance window announced two weeks in advance.",
    "After every upgrade, release notes summarise fixed issues and newly added features.",
]

LONG_PARAGRAPH = " ".join(SENTENCES)


class KeywordEmbedder:
    """Counts a handful of keywords; enough geometry for retrieval tests."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls = 0

    def _vec(self, text: str) -> list[float]:
        if self.fail:
            return []
        lower = (text or "").lower()
        return [float(lower.count(w)) for w in KEYWORDS]

    def embed(self, text: str) -> list[float]:
        self.calls += 1
        return self._vec(text)

    def embed_texts(self, texts: list[str]):
        self.calls += 1
        return SimpleNamespace(vectors=[self._vec(t) for t in texts])


@pytest.fixture
def config() -> PipelineConfig:
    return PipelineConfig()


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def embedder() -> KeywordEmbedder:
    return KeywordEmbedder()


@pytest.fixture
def service(store, embedder, config) -> DocumentService:
    return DocumentService(store=store, embedder=embedder, config=config)
