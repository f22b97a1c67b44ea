import fitz
import pytest

from mcqpdf.core import pdf_builder
from mcqpdf.core.errors import RenderFailure
from mcqpdf.core.parsing import QuestionRecord
from mcqpdf.core.pdf_builder import build_question_pdf


def _record(index, prompt, options, correct):
    return QuestionRecord(index=index, prompt=prompt, options=dict(zip("ABCD", options)), correct_label=correct)


QUESTIONS = [
    _record(1, "What is 2 + 2?", ["3", "4", "5", "22"], "B"),
    _record(2, "Salt & pepper <spice>?", ["Yes", "No", "Maybe", "Never"], "A"),
]


def _spans(path):
    with fitz.open(str(path)) as doc:
        for page in doc:
            for block in page.get_text("dict")["blocks"]:
                for line in block.get("lines", []):
                    for span in line["spans"]:
                        if span["text"].strip():
                            yield span["text"].strip(), span["color"]


def _is_green(color: int) -> bool:
    r, g, b = (color >> 16) & 0xFF, (color >> 8) & 0xFF, color & 0xFF
    return g > 100 and g > r + 40 and g > b + 20


def test_rendered_text_round_trips(tmp_path):
    out = build_question_pdf(QUESTIONS, tmp_path / "out.pdf")

    with fitz.open(out) as doc:
        text = "\n".join(page.get_text() for page in doc)

    assert "Question Paper" in text
    assert "1. What is 2 + 2?" in text
    assert "2. Salt & pepper <spice>?" in text
    for line in ("A. 3", "B. 4", "C. 5", "D. 22", "A. Yes", "D. Never"):
        assert line in text


def test_only_the_correct_option_is_green(tmp_path):
    out = build_question_pdf(QUESTIONS, tmp_path / "out.pdf")

    green = {text for text, color in _spans(out) if _is_green(color)}

    assert green == {"B. 4", "A. Yes"}


def test_unanswered_question_has_no_highlight(tmp_path):
    q = _record(1, "Pick one", ["w", "x", "y", "z"], None)

    out = build_question_pdf([q], tmp_path / "out.pdf")

    assert not any(_is_green(color) for _, color in _spans(out))


def test_unwritable_destination_raises_render_failure(tmp_path):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")

    with pytest.raises(RenderFailure):
        build_question_pdf(QUESTIONS, blocker / "out.pdf")


def test_partial_output_is_deleted_on_failure(tmp_path, monkeypatch):
    target = tmp_path / "out.pdf"

    class ExplodingDoc:
        def __init__(self, filename, **kwargs):
            self.filename = filename

        def build(self, story, **kwargs):
            with open(self.filename, "wb") as fh:
                fh.write(b"%PDF-1.4 partial")
            raise OSError("disk full")

    monkeypatch.setattr(pdf_builder, "SimpleDocTemplate", ExplodingDoc)

    with pytest.raises(RenderFailure) as exc:
        build_question_pdf(QUESTIONS, target)

    assert "disk full" in exc.value.detail
    assert not target.exists()


def test_east_asian_text_round_trips(tmp_path):
    questions = [
        _record(1, "哪一门是科学?", ["语文", "历史", "音乐", "数学"], "D"),
        _record(2, "수도는 어디입니까?", ["서울", "부산", "대구", "인천"], "A"),
    ]

    out = build_question_pdf(questions, tmp_path / "out.pdf")

    with fitz.open(out) as doc:
        text = "\n".join(page.get_text() for page in doc)

    assert "1. 哪一门是科学?" in text
    assert "D. 数学" in text
    assert "A. 서울" in text
    green = {t for t, color in _spans(out) if _is_green(color)}
    assert green == {"D. 数学", "A. 서울"}
