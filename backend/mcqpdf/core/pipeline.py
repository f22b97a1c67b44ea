# backend/mcqpdf/core/pipeline.py
# -*- coding: utf-8 -*-
"""
End-to-end pipeline for one uploaded MCQ paper.
- Stage the upload under a request-unique name
- Extract text (native layer, OCR fallback), normalize it
- Ask the model for the questions JSON, parse it leniently
- Render the highlighted question PDF

Every transient file (upload, page rasters, and the output on failure) is
deleted when the request scope exits.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import NamedTuple, Optional

from openai import OpenAI

from .config import Settings
from .llm_mcq import build_extraction_prompt, configure_openai, request_mcq_json
from .logging_utils import get_logger
from .parsing import parse_model_reply
from .pdf_builder import build_question_pdf
from .staging import ScopedCleanup, download_name, new_request_stamp, staging_name
from .text_source import Recognizer, clean_text, resolve_text

logger = get_logger(__name__)


class RequestState(str, Enum):
    RECEIVED = "Received"
    TEXT_EXTRACTED = "TextExtracted"
    OCR_FALLBACK_APPLIED = "OCRFallbackApplied"
    NORMALIZED = "Normalized"
    MODEL_QUERIED = "ModelQueried"
    PARSED = "Parsed"
    RENDERED = "Rendered"
    DELIVERED = "Delivered"
    FAILED = "Failed"


class PipelineResult(NamedTuple):
    output_path: str
    download_name: str
    question_count: int
    used_fallback: bool
    strategy: str


def _enter(stamp: str, state: RequestState, detail: str = "") -> None:
    logger.info("[%s] %s%s", stamp, state.value, f" ({detail})" if detail else "")


def run_pipeline(
    content: bytes,
    filename: str,
    settings: Settings,
    client: Optional[OpenAI] = None,
    recognize: Optional[Recognizer] = None,
    stamp: Optional[str] = None,
) -> PipelineResult:
    """
    Process one uploaded PDF into a question PDF with the correct answers in green.

    Args:
        content: raw upload bytes
        filename: original client filename (only used for naming)
        settings: service settings
        client: OpenAI client; built from settings when None
        recognize: OCR fallback override (defaults to EasyOCR)
        stamp: request stamp; generated when None

    Returns:
        PipelineResult. The caller owns `output_path` and must delete it after sending.
    """
    stamp = stamp or new_request_stamp()
    _enter(stamp, RequestState.RECEIVED, f"{filename!r}, {len(content)} bytes")

    staging = Path(settings.staging_dir)
    staging.mkdir(parents=True, exist_ok=True)
    out_dir = Path(settings.output_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    with ScopedCleanup() as cleanup:
        try:
            upload_path = cleanup.track(staging / staging_name(stamp, filename))
            upload_path.write_bytes(content)

            source = resolve_text(upload_path, settings, cleanup, recognize=recognize)
            _enter(stamp, RequestState.TEXT_EXTRACTED, f"{len(source.text)} chars")
            if source.used_fallback:
                _enter(stamp, RequestState.OCR_FALLBACK_APPLIED)

            text = clean_text(source.text)
            _enter(stamp, RequestState.NORMALIZED, f"{len(text)} chars")

            if client is None:
                client = configure_openai(settings.openai_api_key)
            raw = request_mcq_json(
                client,
                build_extraction_prompt(text),
                model_name=settings.model_name,
                temperature=settings.model_temperature,
                retries=settings.model_retries,
            )
            _enter(stamp, RequestState.MODEL_QUERIED, f"{len(raw)} chars")

            batch = parse_model_reply(raw, require_answer=settings.require_answer)
            _enter(stamp, RequestState.PARSED, f"{len(batch)} questions via {batch.strategy}")

            output_path = cleanup.track(out_dir / staging_name(stamp, Path(filename or "questions").stem + ".pdf"))
            build_question_pdf(batch.questions, output_path)
            _enter(stamp, RequestState.RENDERED)
        except Exception as e:
            _enter(stamp, RequestState.FAILED, f"{type(e).__name__}: {e}")
            raise

        # hand the output over; everything still tracked is deleted on exit
        cleanup.release(output_path)

    return PipelineResult(
        output_path=str(output_path),
        download_name=download_name(filename, stamp),
        question_count=len(batch),
        used_fallback=source.used_fallback,
        strategy=batch.strategy,
    )
