"""
Plain-text extraction for research uploads.

Supports PDF, Word (.docx) and plain text, chosen by declared MIME type
first and filename extension second. Anything else yields "" so the
caller can decide whether that is an error.
"""

from __future__ import annotations

import logging
from pathlib import Path

import PyPDF2
from docx import Document

logger = logging.getLogger(__name__)


class ExtractionError(Exception):
    pass


def _extract_pdf(path: Path) -> str:
    parts: list[str] = []
    with open(path, "rb") as f:
        reader = PyPDF2.PdfReader(f)
        for page_num, page in enumerate(reader.pages):
            try:
                page_text = page.extract_text() or ""
            except Exception as e:
                logger.warning("Error extracting page %s of %s: %s", page_num, path.name, e)
                continue
            if page_text.strip():
                parts.append(page_text)
    return "\n\n".join(parts)


def _extract_docx(path: Path) -> str:
    doc = Document(str(path))
    parts = [p.text for p in doc.paragraphs if p.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [c.text.strip() for c in row.cells if c.text.strip()]
            if cells:
                parts.append(" | ".join(cells))
    return "\n".join(parts)


def _extract_plain(path: Path) -> str:
    raw = path.read_bytes()
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        logger.warning("UTF-8 decode failed for %s, trying latin-1", path.name)
        return raw.decode("latin-1", errors="ignore")


def extract_text_from_file(path: Path, mime: str | None, filename: str | None) -> str:
    mime = (mime or "").lower()
    lower = (filename or path.name).lower()

    try:
        if "pdf" in mime or lower.endswith(".pdf"):
            return _extract_pdf(path)
        if "word" in mime or lower.endswith(".docx"):
            return _extract_docx(path)
        if "text" in mime or lower.endswith(".txt"):
            return _extract_plain(path)
    except Exception as e:
        raise ExtractionError(f"Failed to extract text from {filename or path.name}: {e}") from e

    logger.info("No extractor for %s (mime=%s)", filename or path.name, mime or "-")
    return ""
