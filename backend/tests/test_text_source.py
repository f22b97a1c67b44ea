from pathlib import Path

import pytest

from mcqpdf.core import text_source
from mcqpdf.core.errors import InsufficientText, InvalidDocument
from mcqpdf.core.staging import ScopedCleanup
from mcqpdf.core.text_source import (
    clean_text,
    extract_text_layer,
    ocr_pdf,
    resolve_text,
    signal_length,
)

SAMPLES = [
    "",
    "   ",
    "plain",
    "  leading and trailing  ",
    "line one\nline two\r\n\tline three",
    "a  \n\n  b\t\tc",
    "Page 1\nWhat is 2 + 2?\n\nA. 3\nB. 4",
]

QUESTION_TEXT = "What is 2 + 2? A. 3 B. 4 C. 5 D. 22 Answer: B"


def test_clean_text_collapses_whitespace():
    assert clean_text("  a  \n\n  b\t\tc  ") == "a b c"
    assert clean_text("line one\r\nline two") == "line one line two"
    assert clean_text(None) == ""


@pytest.mark.parametrize("text", SAMPLES)
def test_clean_text_is_idempotent_and_never_grows(text):
    once = clean_text(text)
    assert clean_text(once) == once
    assert len(once) <= len(text)


def test_signal_length_ignores_whitespace():
    assert signal_length(" a b\n c\t") == 3
    assert signal_length("") == 0
    assert signal_length(None) == 0


def _upload(tmp_path, data: bytes) -> Path:
    p = tmp_path / "upload.pdf"
    p.write_bytes(data)
    return p


def test_extract_text_layer_reads_embedded_text(tmp_path, mcq_pdf):
    text = extract_text_layer(_upload(tmp_path, mcq_pdf))
    assert "What is 2 + 2?" in text
    assert "Capital of France?" in text


def test_extract_text_layer_rejects_non_pdf(tmp_path):
    with pytest.raises(InvalidDocument):
        extract_text_layer(_upload(tmp_path, b"this is not a pdf at all"))


def test_empty_direct_text_uses_fallback(tmp_path, settings):
    ocr_text = "Page 1\n" + QUESTION_TEXT

    with ScopedCleanup() as cleanup:
        source = resolve_text(
            tmp_path / "x.pdf",
            settings,
            cleanup,
            extract=lambda p: "",
            recognize=lambda p, s, c: ocr_text,
        )

    assert source.used_fallback is True
    assert source.text == ocr_text


def test_long_direct_text_skips_fallback(tmp_path, settings):
    calls = []

    def recognize(p, s, c):
        calls.append(p)
        return "never used"

    with ScopedCleanup() as cleanup:
        source = resolve_text(tmp_path / "x.pdf", settings, cleanup, extract=lambda p: QUESTION_TEXT, recognize=recognize)

    assert calls == []
    assert source == (QUESTION_TEXT, False)


def test_shorter_fallback_never_replaces_direct_text(tmp_path, settings):
    settings = settings.model_copy(update={"fallback_min_chars": 50})
    direct = "Q1 Which is even? A 1 B 2 C 3 D 5"  # signal < 50, >= 20

    with ScopedCleanup() as cleanup:
        source = resolve_text(tmp_path / "x.pdf", settings, cleanup, extract=lambda p: direct, recognize=lambda p, s, c: "Q1")

    assert source == (direct, False)


def test_fallback_errors_are_absorbed(tmp_path, settings):
    settings = settings.model_copy(update={"fallback_min_chars": 50})
    direct = "Q1 Which is even? A 1 B 2 C 3 D 5"

    def broken(p, s, c):
        raise RuntimeError("tesseract exploded")

    with ScopedCleanup() as cleanup:
        source = resolve_text(tmp_path / "x.pdf", settings, cleanup, extract=lambda p: direct, recognize=broken)

    assert source == (direct, False)


def test_no_usable_text_raises_insufficient_text(tmp_path, settings):
    with ScopedCleanup() as cleanup:
        with pytest.raises(InsufficientText):
            resolve_text(tmp_path / "x.pdf", settings, cleanup, extract=lambda p: "  \n ", recognize=lambda p, s, c: "")


def test_short_fallback_still_insufficient(tmp_path, settings):
    with ScopedCleanup() as cleanup:
        with pytest.raises(InsufficientText):
            resolve_text(tmp_path / "x.pdf", settings, cleanup, extract=lambda p: "", recognize=lambda p, s, c: "Page 1\nabc")


@pytest.mark.parametrize("workers", [1, 3])
def test_ocr_pdf_keeps_page_order_and_cleans_rasters(tmp_path, settings, make_pdf, monkeypatch, workers):
    settings = settings.model_copy(update={"ocr_workers": workers})
    pdf_path = _upload(tmp_path, make_pdf([], pages=3))

    monkeypatch.setattr(text_source, "get_ocr_engine", lambda *a, **k: object())
    monkeypatch.setattr(text_source, "ocr_page_text", lambda reader, p: f"text of {Path(p).stem}")

    with ScopedCleanup() as cleanup:
        text = ocr_pdf(pdf_path, settings, cleanup)
        raster_dir = tmp_path / "upload_pages"
        assert sorted(f.name for f in raster_dir.iterdir()) == ["page_001.png", "page_002.png", "page_003.png"]

    assert text == (
        "Page 1\ntext of page_001\n\n"
        "Page 2\ntext of page_002\n\n"
        "Page 3\ntext of page_003"
    )
    assert not raster_dir.exists()


def test_rasters_are_cleaned_when_ocr_fails_midway(tmp_path, settings, make_pdf, monkeypatch):
    pdf_path = _upload(tmp_path, make_pdf([], pages=2))
    monkeypatch.setattr(text_source, "get_ocr_engine", lambda *a, **k: object())

    def flaky(reader, p):
        raise RuntimeError("EasyOCR failed")

    monkeypatch.setattr(text_source, "ocr_page_text", flaky)

    with ScopedCleanup() as cleanup:
        with pytest.raises(InsufficientText):
            resolve_text(pdf_path, settings, cleanup)

    assert not (tmp_path / "upload_pages").exists()


def test_fallback_is_judged_on_signal_not_whitespace(tmp_path, settings):
    direct = "1.\n" + " \n" * 200  # long, but almost all whitespace
    ocr_text = "Page 1\nQ1 Which is even? A 1 B 2 C 3 D 5"
    assert len(ocr_text) < len(direct)

    with ScopedCleanup() as cleanup:
        source = resolve_text(tmp_path / "x.pdf", settings, cleanup, extract=lambda p: direct, recognize=lambda p, s, c: ocr_text)

    assert source == (ocr_text, True)
