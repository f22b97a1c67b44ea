# core/__init__.py

# ---- Configuration / logging ----
from .config import Settings
from .logging_utils import configure_logging, get_logger

# ---- Errors ----
from .errors import (
    PipelineError,
    NoFileProvided,
    UploadTooLarge,
    InvalidDocument,
    InsufficientText,
    ModelCallFailed,
    NoQuestionsFound,
    RenderFailure,
    CleanupFailure,
)

# ---- Text extraction (native layer + OCR fallback) ----
from .text_source import TextSource, clean_text, resolve_text, signal_length

# ---- LLM request ----
from .llm_mcq import build_extraction_prompt, configure_openai, request_mcq_json

# ---- Reply parsing ----
from .parsing import ExtractionBatch, QuestionRecord, parse_model_reply

# ---- PDF export ----
from .pdf_builder import build_question_pdf

# ---- Orchestration pipeline ----
from .pipeline import PipelineResult, RequestState, run_pipeline


__all__ = [
    # config / logging
    "Settings", "configure_logging", "get_logger",
    # errors
    "PipelineError", "NoFileProvided", "UploadTooLarge", "InvalidDocument",
    "InsufficientText", "ModelCallFailed", "NoQuestionsFound", "RenderFailure",
    "CleanupFailure",
    # text
    "TextSource", "clean_text", "resolve_text", "signal_length",
    # llm
    "build_extraction_prompt", "configure_openai", "request_mcq_json",
    # parsing
    "ExtractionBatch", "QuestionRecord", "parse_model_reply",
    # pdf export
    "build_question_pdf",
    # pipeline
    "PipelineResult", "RequestState", "run_pipeline",
]
