# backend/mcqpdf/core/text_source.py
# -*- coding: utf-8 -*-
"""
Text extraction for uploaded question papers (PDF).

- Prefer the native text layer (PyMuPDF).
- Fall back to OCR (EasyOCR) only when the native text is too short to be useful.
- OCR output is an upgrade only: it is adopted when it carries strictly more
  non-whitespace characters.
- clean_text() collapses whitespace before the text goes to the model.
"""

from __future__ import annotations

import re
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional

import fitz  # PyMuPDF

from .config import Settings
from .errors import InsufficientText, InvalidDocument
from .logging_utils import get_logger
from .ocr import get_ocr_engine, ocr_page_text
from .render import MUPDF_LOCK, pdf_to_png
from .staging import ScopedCleanup

logger = get_logger(__name__)

_WS_RE = re.compile(r"\s+")

Extractor = Callable[[Path], str]
Recognizer = Callable[[Path, Settings, ScopedCleanup], str]


class TextSource(NamedTuple):
    text: str
    used_fallback: bool


# =========================
# Normalization
# =========================
def signal_length(text: Optional[str]) -> int:
    """Length of the text once all whitespace is removed."""
    return len(_WS_RE.sub("", text or ""))


def clean_text(text: Optional[str]) -> str:
    """Collapse every whitespace run (newlines included) to one space, then trim."""
    return _WS_RE.sub(" ", text or "").strip()


# =========================
# Direct extraction
# =========================
def extract_text_layer(pdf_path: str | Path) -> str:
    """Return the embedded text of every page, joined by newlines."""
    with MUPDF_LOCK:
        try:
            doc = fitz.open(str(pdf_path))
        except (RuntimeError, ValueError) as e:  # FileDataError is a RuntimeError
            raise InvalidDocument(f"Could not read PDF: {e}") from e

        with doc:
            if not doc.is_pdf:
                raise InvalidDocument("Uploaded file is not a PDF document.")
            blocks = [page.get_text("text") for page in doc]
    return "\n".join(blocks)


# =========================
# OCR fallback
# =========================
def ocr_pdf(pdf_path: str | Path, settings: Settings, cleanup: ScopedCleanup) -> str:
    """
    Rasterize every page and OCR it.
    Pages are joined in ascending order as "Page N" blocks.
    The raster directory is tracked by `cleanup` before anything is written to it.
    """
    pdf_path = Path(pdf_path)
    raster_dir = cleanup.track(pdf_path.parent / f"{pdf_path.stem}_pages")
    pages = pdf_to_png(pdf_path, raster_dir, dpi=settings.ocr_dpi)

    reader = get_ocr_engine(settings.ocr_lang, force_cpu=settings.ocr_force_cpu)

    if settings.ocr_workers > 1 and len(pages) > 1:
        with ThreadPoolExecutor(max_workers=settings.ocr_workers) as pool:
            # map() yields in submission order, i.e. page order
            texts: List[str] = list(pool.map(lambda p: ocr_page_text(reader, p), pages))
    else:
        texts = [ocr_page_text(reader, p) for p in pages]

    blocks = []
    for page_no, text in enumerate(texts, 1):
        logger.debug("Page %d: OCR extracted %d chars", page_no, len(text))
        blocks.append(f"Page {page_no}\n{text}")
    return "\n\n".join(blocks).strip()


# =========================
# Public API
# =========================
def resolve_text(
    pdf_path: str | Path,
    settings: Settings,
    cleanup: ScopedCleanup,
    extract: Extractor = extract_text_layer,
    recognize: Optional[Recognizer] = None,
) -> TextSource:
    """
    Best-effort transcript of a PDF.

    The recognizer only runs when the direct text carries fewer than
    `settings.fallback_min_chars` non-whitespace characters. Recognizer errors
    mean "fallback unavailable" and never fail the request on their own.
    Raises InsufficientText when the adopted text is still below
    `settings.min_text_chars`.
    """
    recognize = recognize or ocr_pdf
    pdf_path = Path(pdf_path)

    text = extract(pdf_path) or ""
    used_fallback = False
    logger.info("Direct extraction: %d chars (signal %d)", len(text), signal_length(text))

    if signal_length(text) < settings.fallback_min_chars:
        try:
            ocr_text = recognize(pdf_path, settings, cleanup) or ""
        except Exception as e:
            logger.warning("OCR fallback unavailable: %s", e)
            ocr_text = ""

        if signal_length(ocr_text) > signal_length(text):
            logger.info("OCR fallback adopted: %d chars", len(ocr_text))
            text, used_fallback = ocr_text, True
        else:
            logger.info("OCR fallback not adopted (%d chars)", len(ocr_text))

    if signal_length(text) < settings.min_text_chars:
        raise InsufficientText(
            "Could not extract enough text from the document, even with OCR."
        )
    return TextSource(text=text, used_fallback=used_fallback)
