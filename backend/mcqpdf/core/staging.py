# backend/mcqpdf/core/staging.py
# -*- coding: utf-8 -*-
"""
Staging area helpers.
- Request-unique names for uploads, page rasters and output documents
- ScopedCleanup: every tracked path is deleted on exit, whatever the exit path
"""

from __future__ import annotations

import re
import shutil
import time
import uuid
from pathlib import Path
from typing import List, Union

from .errors import CleanupFailure
from .logging_utils import get_logger

logger = get_logger(__name__)

PathLike = Union[str, Path]

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def new_request_stamp() -> str:
    """Millisecond timestamp plus a short random suffix."""
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def _safe_basename(filename: str, default: str = "upload.pdf") -> str:
    # uploads may carry client paths ("C:\\x\\a.pdf", "../a.pdf")
    base = re.split(r"[\\/]", filename or "")[-1].strip()
    base = _UNSAFE_CHARS.sub("_", base).strip("._")
    return base or default


def staging_name(stamp: str, original_filename: str) -> str:
    """Staging filename as a pure function of request stamp + original name."""
    return f"{stamp}_{_safe_basename(original_filename)}"


def download_name(original_filename: str, stamp: str) -> str:
    stem = Path(_safe_basename(original_filename)).stem or "questions"
    return f"{stem}_{stamp}.pdf"


def remove_path(path: PathLike) -> bool:
    """Delete a file or directory tree. Failures are logged, never raised."""
    p = Path(path)
    try:
        if p.is_dir():
            shutil.rmtree(p)
        else:
            p.unlink(missing_ok=True)
        return True
    except OSError as e:
        err = CleanupFailure(f"Could not delete {p}: {e}")
        logger.warning("%s: %s", err.label, err.detail)
        return False


class ScopedCleanup:
    """Tracks transient files/dirs and deletes them when the scope exits."""

    def __init__(self) -> None:
        self._paths: List[Path] = []

    def track(self, path: PathLike) -> Path:
        p = Path(path)
        if p not in self._paths:
            self._paths.append(p)
        return p

    def release(self, path: PathLike) -> Path:
        """Stop tracking a path; the caller now owns its deletion."""
        p = Path(path)
        if p in self._paths:
            self._paths.remove(p)
        return p

    @property
    def tracked(self) -> List[Path]:
        return list(self._paths)

    def close(self) -> None:
        # newest first, so files go before the dirs holding them
        while self._paths:
            remove_path(self._paths.pop())

    def __enter__(self) -> "ScopedCleanup":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
