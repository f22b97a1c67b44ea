# backend/mcqpdf/core/render.py
# -*- coding: utf-8 -*-
"""
Rasterization for the OCR fallback.
- PDF → PNG per page (PyMuPDF), ascending page order
"""

from __future__ import annotations
from pathlib import Path
from typing import List
import threading

import fitz  # PyMuPDF

# MuPDF is not thread-safe; requests run in the server threadpool
MUPDF_LOCK = threading.RLock()


def pdf_to_png(pdf_path: str | Path, out_dir: str | Path, dpi: int = 220) -> List[Path]:
    """
    Rasterize a PDF to PNG pages using PyMuPDF at a target DPI.
    Files are named page_001.png, page_002.png, ... so name order is page order.
    """
    out = Path(out_dir)
    out.mkdir(parents=True, exist_ok=True)

    zoom = dpi / 72.0
    mat = fitz.Matrix(zoom, zoom)

    imgs: List[Path] = []
    with MUPDF_LOCK, fitz.open(str(pdf_path)) as doc:
        for i, page in enumerate(doc, 1):
            pix = page.get_pixmap(matrix=mat)
            p = out / f"page_{i:03d}.png"
            pix.save(str(p))
            imgs.append(p)

    if not imgs:
        raise RuntimeError("PDF rasterization produced no images.")
    return imgs
