# supportkb/rag/ingest.py
from __future__ import annotations

from pathlib import Path
from typing import Iterator, Tuple

SUPPORTED_EXTS = (".pdf", ".txt", ".md")


def load_text_file(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="ignore")


def iter_pdf_pages(path: Path) -> Iterator[Tuple[int, str]]:
    from pypdf import PdfReader
    reader = PdfReader(str(path))
    for i, page in enumerate(reader.pages, start=1):
        text = page.extract_text() or ""

        text = (
            text.replace("\u00A0", " ")
                .replace("\u202F", " ")
                .replace("\x00", "")
        ).strip()
        yield i, text


def load_pdf(path: Path) -> str:
    # pages become paragraphs
    return "\n\n".join(text for _, text in iter_pdf_pages(path) if text)


def iter_documents(root: Path) -> Iterator[Tuple[Path, str, str]]:
    """Yield (path, title, text) for every supported file under ``root``."""
    for p in sorted(root.rglob("*")):
        if not p.is_file():
            continue

        title = p.stem
        ext = p.suffix.lower()
        if ext not in SUPPORTED_EXTS:
            continue

        if ext == ".pdf":
            yield p, title, load_pdf(p)

        else:
            yield p, title, load_text_file(p)
