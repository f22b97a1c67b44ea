# backend/mcqpdf/core/llm_mcq.py
# -*- coding: utf-8 -*-
"""
OpenAI-driven MCQ normalizer.

- Prompt asks for a strict {"questions": [...]} JSON document.
- Prompt building is deterministic: same text in, same bytes out.
- Single-shot chat completion, at most one retry on API errors.
- The reply is returned raw; parsing lives in core.parsing.
"""

from __future__ import annotations

from typing import Any, Optional

import openai
from openai import OpenAI

from .config import OPENAI_DEFAULT_MODEL
from .errors import ModelCallFailed
from .logging_utils import get_logger, safe_key_fingerprint

logger = get_logger(__name__)

MAX_QUESTIONS = 100


# ============================================================
# OpenAI configuration
# ============================================================
def configure_openai(api_key: Optional[str] = None) -> OpenAI:
    key = (api_key or "").strip()
    if not key:
        raise ModelCallFailed(
            "OpenAI API key not found. Set OPENAI_API_KEY in the environment or .env."
        )
    logger.info("OpenAI client configured (key %s)", safe_key_fingerprint(key))
    return OpenAI(api_key=key)


# ============================================================
# Prompting
# ============================================================
MCQ_SYSTEM = (
    "You are a JSON MCQ fixer for a PDF parser. "
    "You output STRICT JSON only. "
    "Never include commentary, code fences, or explanations."
)

_SCHEMA_EXAMPLE = """{
  "questions": [
    {
      "q1.": "Question text",
      "A.": "Option A",
      "B.": "Option B",
      "C.": "Option C",
      "D.": "Option D",
      "correct": "C. Correct Answer"
    },
    {
      "q2.": "Second question...",
      "A.": "...",
      "B.": "...",
      "C.": "...",
      "D.": "...",
      "correct": "A. ..."
    }
  ]
}"""


def build_extraction_prompt(paper_text: str) -> str:
    """
    Instruction for turning raw MCQ text into the questions schema.
    The source text is embedded verbatim between triple quotes.
    """
    return f"""
Your task is to take raw multiple-choice questions (MCQs) and convert them ONLY into the following JSON format:

{_SCHEMA_EXAMPLE}

Hard requirements:
- Only include MCQs. Skip headings, instructions and non-MCQ content.
- Each question must have exactly 4 options: "A.", "B.", "C.", "D.".
- Include the correct option as "correct": "X. Answer" where X is A, B, C or D.
- Answer every question.
- Question keys must be "q1.", "q2.", ... in order.
- Keys in each question must appear in this order: "qN.", "A.", "B.", "C.", "D.", "correct".
- Use the exact spacing and punctuation shown above.
- Give at most {MAX_QUESTIONS} questions.
- Do NOT include explanations, notes or code fences (no ```). JSON ONLY.

Now convert the following MCQs to JSON:

\"\"\"
{paper_text}
\"\"\"
""".strip()


# ============================================================
# Model call
# ============================================================
def _reply_text(resp: Any) -> str:
    if not getattr(resp, "choices", None):
        return ""
    content = resp.choices[0].message.content
    return (content or "").strip()


def request_mcq_json(
    client: OpenAI,
    prompt: str,
    model_name: str = OPENAI_DEFAULT_MODEL,
    temperature: float = 0.0,
    retries: int = 1,
) -> str:
    """
    Send the prompt once (plus at most one retry on API errors).
    Returns the raw reply text; raises ModelCallFailed when every attempt errors.
    """
    attempts = 1 + max(0, min(retries, 1))
    last_error: Optional[Exception] = None

    for attempt in range(1, attempts + 1):
        try:
            resp = client.chat.completions.create(
                model=model_name,
                messages=[
                    {"role": "system", "content": MCQ_SYSTEM},
                    {"role": "user", "content": prompt},
                ],
                temperature=temperature,
            )
        except openai.OpenAIError as e:
            last_error = e
            logger.warning("Model call failed (attempt %d/%d): %s", attempt, attempts, e)
            continue

        raw = _reply_text(resp)
        logger.info("Model replied with %d chars (attempt %d)", len(raw), attempt)
        return raw

    raise ModelCallFailed(f"Model call failed after {attempts} attempt(s): {last_error}")
