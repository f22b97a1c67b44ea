# backend/mcqpdf/core/errors.py
"""Pipeline failures, each with a machine-readable label and an HTTP status."""

from __future__ import annotations

from typing import Any, Dict, Optional


class PipelineError(Exception):
    label = "ProcessingFailed"
    status_code = 500

    def __init__(self, detail: str = ""):
        super().__init__(detail or self.label)
        self.detail = detail or self.label

    def to_payload(self, include_raw: bool = False) -> Dict[str, Any]:
        return {"error": self.label, "details": self.detail}


class NoFileProvided(PipelineError):
    label = "NoFileProvided"
    status_code = 400


class UploadTooLarge(PipelineError):
    label = "UploadTooLarge"
    status_code = 413


class InvalidDocument(PipelineError):
    label = "InvalidDocument"
    status_code = 400


class InsufficientText(PipelineError):
    label = "InsufficientText"
    status_code = 422


class ModelCallFailed(PipelineError):
    label = "ModelCallFailed"
    status_code = 502


class NoQuestionsFound(PipelineError):
    """No parsing strategy produced a usable question; keeps the raw reply."""

    label = "NoQuestionsFound"
    status_code = 422

    def __init__(self, detail: str = "", raw: Optional[str] = None):
        super().__init__(detail or "Invalid or incomplete JSON returned from the model.")
        self.raw = raw

    def to_payload(self, include_raw: bool = False) -> Dict[str, Any]:
        payload = super().to_payload(include_raw)
        if include_raw and self.raw is not None:
            payload["raw"] = self.raw
        return payload


class RenderFailure(PipelineError):
    label = "RenderFailure"
    status_code = 500


class CleanupFailure(PipelineError):
    # logged only, never raised to a caller
    label = "CleanupFailure"
