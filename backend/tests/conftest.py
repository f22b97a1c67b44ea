import json
from types import SimpleNamespace

import fitz
import pytest

from mcqpdf.core.config import Settings


GOOD_QUESTIONS = [
    {
        "q1.": "What is 2 + 2?",
        "A.": "3",
        "B.": "4",
        "C.": "5",
        "D.": "22",
        "correct": "B. 4",
    },
    {
        "q2.": "Capital of France?",
        "A.": "Berlin",
        "B.": "Madrid",
        "C.": "Paris",
        "D.": "Rome",
        "correct": "C. Paris",
    },
]

MCQ_LINES = [
    "1. What is 2 + 2?",
    "A. 3   B. 4   C. 5   D. 22",
    "Answer: B",
    "2. Capital of France?",
    "A. Berlin   B. Madrid   C. Paris   D. Rome",
    "Answer: C",
]


class FakeCompletions:
    """Stands in for client.chat.completions; replies (or raises) in order."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        message = SimpleNamespace(content=reply)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


class FakeClient:
    def __init__(self, *replies):
        self.completions = FakeCompletions(replies)
        self.chat = SimpleNamespace(completions=self.completions)


@pytest.fixture
def good_reply():
    return json.dumps({"questions": GOOD_QUESTIONS}, indent=2)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        openai_api_key="sk-test-1234",
        staging_dir=tmp_path / "staging",
        output_dir=tmp_path / "output",
    )


@pytest.fixture
def make_pdf():
    """make_pdf(["line", ...], pages=1) -> PDF bytes with a real text layer."""

    def _make(lines=(), pages=1):
        doc = fitz.open()
        for _ in range(pages):
            page = doc.new_page()
            y = 72
            for line in lines:
                page.insert_text((72, y), line, fontsize=11)
                y += 16
        data = doc.tobytes()
        doc.close()
        return data

    return _make


@pytest.fixture
def mcq_pdf(make_pdf):
    return make_pdf(MCQ_LINES)


@pytest.fixture
def blank_pdf(make_pdf):
    return make_pdf([])


@pytest.fixture
def fake_client():
    return FakeClient
