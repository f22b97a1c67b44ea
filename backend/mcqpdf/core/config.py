# backend/mcqpdf/core/config.py
# -*- coding: utf-8 -*-
"""
Service configuration.
- Loads .env from backend/.env or repo root (falls back to cwd)
- Freezes every knob into a Settings model, built once at startup
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

OPENAI_DEFAULT_MODEL = "gpt-4o-mini"

_TRUTHY = {"1", "true", "yes", "on"}


def load_env_files() -> Optional[Path]:
    """Load the first .env found; existing environment variables win."""
    candidates = [
        Path(__file__).resolve().parent.parent.parent / ".env",         # backend/.env
        Path(__file__).resolve().parent.parent.parent.parent / ".env",  # repo root .env
    ]
    for env_path in candidates:
        if env_path.exists():
            load_dotenv(dotenv_path=env_path, override=False)
            return env_path
    load_dotenv(override=False)  # fallback: current working dir
    return None


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in _TRUTHY


def _env_int(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip()
    return int(raw) if raw else default


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    return float(raw) if raw else default


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    # Generative model
    openai_api_key: str = ""
    model_name: str = OPENAI_DEFAULT_MODEL
    model_temperature: float = 0.0
    model_retries: int = 1

    # Text resolution policy
    fallback_min_chars: int = 15
    min_text_chars: int = 20

    # OCR
    ocr_lang: str = "en"
    ocr_dpi: int = 220
    ocr_workers: int = 1
    ocr_force_cpu: bool = True

    # Upload / staging
    max_upload_bytes: int = 10 * 1024 * 1024
    staging_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "mcqpdf" / "staging")
    output_dir: Path = Field(default_factory=lambda: Path(tempfile.gettempdir()) / "mcqpdf" / "output")

    # Parsing / diagnostics
    require_answer: bool = True
    debug: bool = False
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    @field_validator("model_retries")
    def _bound_retries(cls, v: int) -> int:
        # a single retry at most; the model call is slow
        return max(0, min(v, 1))

    @field_validator("fallback_min_chars")
    def _bound_fallback_threshold(cls, v: int) -> int:
        return max(15, min(v, 50))

    @field_validator("ocr_workers")
    def _at_least_one_worker(cls, v: int) -> int:
        return max(1, v)

    @field_validator("log_level")
    def _upper_level(cls, v: str) -> str:
        return (v or "INFO").strip().upper()

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment (after .env loading)."""
        load_env_files()

        values = {
            "openai_api_key": (os.getenv("OPENAI_API_KEY") or "").strip(),
            "model_name": (os.getenv("MCQPDF_MODEL") or OPENAI_DEFAULT_MODEL).strip(),
            "model_temperature": _env_float("MCQPDF_TEMPERATURE", 0.0),
            "model_retries": _env_int("MCQPDF_MODEL_RETRIES", 1),
            "fallback_min_chars": _env_int("MCQPDF_FALLBACK_MIN_CHARS", 15),
            "min_text_chars": _env_int("MCQPDF_MIN_TEXT_CHARS", 20),
            "ocr_lang": (os.getenv("MCQPDF_OCR_LANG") or "en").strip(),
            "ocr_dpi": _env_int("MCQPDF_OCR_DPI", 220),
            "ocr_workers": _env_int("MCQPDF_OCR_WORKERS", 1),
            "ocr_force_cpu": _env_bool("MCQPDF_OCR_FORCE_CPU", True),
            "max_upload_bytes": _env_int("MCQPDF_MAX_UPLOAD_MB", 10) * 1024 * 1024,
            "require_answer": _env_bool("MCQPDF_REQUIRE_ANSWER", True),
            "debug": _env_bool("MCQPDF_DEBUG", False),
            "log_level": os.getenv("MCQPDF_LOG_LEVEL") or "INFO",
        }
        if os.getenv("MCQPDF_STAGING_DIR"):
            values["staging_dir"] = Path(os.environ["MCQPDF_STAGING_DIR"])
        if os.getenv("MCQPDF_OUTPUT_DIR"):
            values["output_dir"] = Path(os.environ["MCQPDF_OUTPUT_DIR"])
        if os.getenv("MCQPDF_LOG_FILE"):
            values["log_file"] = Path(os.environ["MCQPDF_LOG_FILE"])
        return cls(**values)
