# backend/mcqpdf/core/ocr.py
# -*- coding: utf-8 -*-
"""
OCR utilities for scanned question papers.
- EasyOCR reader, cached per (languages, gpu, storage dir)
- Preprocessing for sharper OCR
- Confidence filtering + reading-order sorting
"""

from __future__ import annotations
from typing import Any, Dict, List, Sequence, Tuple
from pathlib import Path
import os, re, tempfile, threading

import cv2
import numpy as np
from PIL import Image

from .logging_utils import get_logger

logger = get_logger(__name__)


# =========================
# Cache + GPU helpers
# =========================
def _choose_storage_dir() -> Path:
    """Choose where to store EasyOCR models (persistent or ephemeral)."""
    if os.getenv("MCQPDF_OCR_EPHEMERAL") == "1":
        return Path(tempfile.mkdtemp(prefix="easyocr_"))
    base = Path.home() / ".cache" / "easyocr_models"
    base.mkdir(parents=True, exist_ok=True)
    return base


def _gpu_allowed(force_cpu: bool) -> bool:
    """Check if GPU can be used for EasyOCR."""
    if force_cpu:
        return False
    import torch
    return bool(torch.cuda.is_available())


# =========================
# EasyOCR init
# =========================
_EASYOCR_CACHE: Dict[Tuple[Tuple[str, ...], bool, str], Any] = {}
_EASYOCR_LOCK = threading.Lock()


def init_easyocr_reader(lang_list: Sequence[str] = ("en",), force_cpu: bool = True):
    """Initialize and cache an EasyOCR Reader instance."""
    import easyocr

    storage_dir = _choose_storage_dir()
    use_gpu = _gpu_allowed(force_cpu=force_cpu)

    key = (tuple(lang_list), use_gpu, str(storage_dir))
    with _EASYOCR_LOCK:
        if key in _EASYOCR_CACHE:
            return _EASYOCR_CACHE[key]

        logger.info("Initializing EasyOCR reader langs=%s gpu=%s dir=%s", list(lang_list), use_gpu, storage_dir)
        reader = easyocr.Reader(
            list(lang_list),
            gpu=use_gpu,
            model_storage_directory=str(storage_dir),
            user_network_directory=str(storage_dir),
            download_enabled=True,
            verbose=False,
        )
        _EASYOCR_CACHE[key] = reader
        return reader


def get_ocr_engine(lang: str = "en", force_cpu: bool = True):
    """Return an EasyOCR reader for the given language."""
    return init_easyocr_reader([lang], force_cpu=force_cpu)


# =========================
# Preprocessing
# =========================
def _preprocess_for_ocr(img: Any) -> np.ndarray:
    """Convert to grayscale, binarize, and denoise for sharper OCR."""
    if isinstance(img, Image.Image):
        img = np.array(img.convert("RGB"))

    if img.ndim == 3 and img.shape[2] == 4:  # RGBA → RGB
        img = cv2.cvtColor(img, cv2.COLOR_RGBA2RGB)

    gray = cv2.cvtColor(img, cv2.COLOR_RGB2GRAY) if img.ndim == 3 else img
    th = cv2.adaptiveThreshold(
        gray, 255,
        cv2.ADAPTIVE_THRESH_GAUSSIAN_C,
        cv2.THRESH_BINARY, 35, 11
    )
    return cv2.fastNlMeansDenoising(th, h=15)


def _sort_by_coordinates(items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Sort OCR results top-to-bottom, left-to-right."""
    return sorted(items, key=lambda x: (x["bbox"][0][1], x["bbox"][0][0]))


# =========================
# OCR runner
# =========================
def ocr_image_easy(reader, image, conf_threshold: float = 0.3) -> List[Dict[str, Any]]:
    """
    Run OCR on an image using EasyOCR.
    Returns list of dicts with bbox, text, and conf.
    """
    if reader is None:
        raise RuntimeError("EasyOCR reader is None.")

    try:
        img = _preprocess_for_ocr(image)
        res = reader.readtext(
            img,
            detail=1,
            paragraph=False,
            contrast_ths=0.05,
            adjust_contrast=0.7,
            text_threshold=0.6,
            low_text=0.3,
            width_ths=0.7,
            slope_ths=0.2,
            ycenter_ths=0.5,
            height_ths=0.7,
            mag_ratio=1.5,
        )
    except Exception as e:
        raise RuntimeError(f"EasyOCR failed: {e}") from e

    out: List[Dict[str, Any]] = []
    for item in res:
        if len(item) != 3:
            continue
        bbox, text, conf = item
        text = re.sub(r"\s+", " ", text or "").strip()
        if text and conf >= conf_threshold:
            out.append({"bbox": bbox, "text": text, "conf": float(conf)})
    return _sort_by_coordinates(out)


def ocr_page_text(reader, image_path: str | Path, conf_threshold: float = 0.3) -> str:
    """OCR one rasterized page and return its plain text."""
    with Image.open(str(image_path)) as im:
        results = ocr_image_easy(reader, im, conf_threshold=conf_threshold)
    return "\n".join(r["text"] for r in results)
