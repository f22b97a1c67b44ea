# backend/mcqpdf/core/parsing.py
# -*- coding: utf-8 -*-
"""
Model reply → validated question records.

The model is asked for {"questions": [{"q1.": ..., "A.": ..., "correct": "C. ..."}]}
but does not reliably produce it: replies come wrapped in code fences, with bare
keys, trailing commas, or cut off mid-array. Parsing is a cascade of strategies,
each a plain function (raw) -> ExtractionBatch | None, tried in order:

1. strict_parse    whole reply as JSON with a top-level "questions" list
2. segmented_parse split the "questions" array into object chunks, parse each
                   leniently (json_repair)
3. pattern_scan    regex-scan the reply for single question objects

The first strategy yielding at least one valid record wins. Malformed entries
are dropped one by one; only "nothing usable at all" is an error.
"""

from __future__ import annotations

import json
import re
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Literal, Mapping, Optional, Tuple

import json_repair
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, field_validator

from .errors import NoQuestionsFound
from .logging_utils import get_logger, truncate_for_log

logger = get_logger(__name__)

LABELS: Tuple[str, ...] = ("A", "B", "C", "D")
Label = Literal["A", "B", "C", "D"]


# ============================================================
# Records
# ============================================================
class QuestionRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = Field(ge=1)
    prompt: str
    options: Mapping[str, str]  # read-only view, A..D
    correct_label: Optional[Label] = None

    @field_validator("prompt")
    def _non_empty_prompt(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("question prompt is empty")
        return v

    @field_validator("options")
    def _four_options(cls, v: Mapping[str, str]) -> Mapping[str, str]:
        if set(v) != set(LABELS):
            raise ValueError(f"options must be exactly {LABELS}, got {sorted(v)}")
        out = {}
        for label in LABELS:
            text = (v[label] or "").strip()
            if not text:
                raise ValueError(f"option {label} is empty")
            out[label] = text
        return MappingProxyType(out)

    @field_serializer("options")
    def _options_as_dict(self, v: Mapping[str, str]) -> Dict[str, str]:
        return dict(v)

    def option_lines(self) -> List[Tuple[str, str, bool]]:
        """(label, text, is_correct) for A..D in order."""
        return [(lab, self.options[lab], lab == self.correct_label) for lab in LABELS]


class ExtractionBatch(BaseModel):
    model_config = ConfigDict(frozen=True)

    questions: List[QuestionRecord] = Field(default_factory=list)
    strategy: str = ""

    def __len__(self) -> int:
        return len(self.questions)


# ============================================================
# Mapping → record
# ============================================================
_OPTION_KEY_RE = re.compile(r"^\(?([A-Da-d])\)?\s*[.):]?$")
_CORRECT_PREFIX_RE = re.compile(r"^\(?([A-Da-d])\s*(?:[.):]|$)")


def _as_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip()
    return None


_PROMPT_KEY_RE = re.compile(r"^q\d*\.?$", re.I)


def _is_prompt_key(key: str) -> bool:
    return key.strip().lower().startswith("q")


def _is_correct_key(key: str) -> bool:
    k = key.strip().lower()
    return k.startswith("correct") or k == "answer"


def _option_label(key: str) -> Optional[str]:
    m = _OPTION_KEY_RE.match(key.strip())
    return m.group(1).upper() if m else None


def recognize_correct_label(correct: Any, options: Mapping[str, str]) -> Optional[str]:
    """
    Map the model's "correct" value onto A..D.
    "C. Some answer", "C", "(C)", "c)" → "C"; 1..4 → A..D;
    a value equal to one option's text → that option. Anything else → None.
    """
    if correct is None or isinstance(correct, bool):
        return None
    if isinstance(correct, int):
        return LABELS[correct - 1] if 1 <= correct <= 4 else None

    c = str(correct).strip()
    if not c:
        return None
    m = _CORRECT_PREFIX_RE.match(c)
    if m:
        return m.group(1).upper()
    if c.isdigit() and 1 <= int(c) <= 4:
        return LABELS[int(c) - 1]

    folded = c.casefold()
    for label, text in options.items():
        if text and text.casefold() == folded:
            return label
    return None


def record_from_mapping(obj: Any, index: int, require_answer: bool = True) -> Optional[QuestionRecord]:
    """Coerce one parsed question object; None when it is unusable."""
    if not isinstance(obj, Mapping):
        return None

    prompt: Optional[str] = None
    loose_prompt: Optional[str] = None
    options: Dict[str, str] = {}
    correct: Any = None

    for raw_key, value in obj.items():
        key = str(raw_key)
        if _is_correct_key(key):
            if correct is None:
                correct = value
            continue
        label = _option_label(key)
        if label is not None:
            text = _as_text(value)
            if label not in options and text is not None:
                options[label] = text
            continue
        if prompt is None and _PROMPT_KEY_RE.match(key.strip()):
            prompt = _as_text(value)
        elif loose_prompt is None and _is_prompt_key(key):
            loose_prompt = _as_text(value)

    # "q1." style keys win over stray ones such as "question_no"
    if prompt is None:
        prompt = loose_prompt
    if prompt is None or len(options) != len(LABELS):
        return None

    correct_label = recognize_correct_label(correct, options)
    if correct_label is None and require_answer:
        return None

    try:
        return QuestionRecord(index=index, prompt=prompt, options=options, correct_label=correct_label)
    except ValidationError as e:
        logger.debug("Dropping question candidate: %s", e.errors()[0].get("msg"))
        return None


def _batch(items: Iterable[Any], strategy: str, require_answer: bool) -> Optional[ExtractionBatch]:
    records: List[QuestionRecord] = []
    for obj in items:
        rec = record_from_mapping(obj, index=len(records) + 1, require_answer=require_answer)
        if rec is not None:
            records.append(rec)
    if not records:
        return None
    return ExtractionBatch(questions=records, strategy=strategy)


# ============================================================
# Helpers for JSON extraction
# ============================================================
_FENCE_RE = re.compile(r"```[A-Za-z0-9_+-]*")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_BARE_KEY_RE = re.compile(r"([{,]\s*)([A-Za-z_][\w.]*)\s*:")


def strip_code_fences(s: str) -> str:
    return _FENCE_RE.sub("", s or "").strip()


# deeply nested input overflows the decoder
_JSON_ERRORS = (ValueError, RecursionError)


def _json_loads_safe(s: str) -> Any:
    try:
        return json.loads(s)
    except _JSON_ERRORS:
        return json.loads(_TRAILING_COMMA_RE.sub(r"\1", s))


def quote_bare_keys(s: str) -> str:
    """{q1.: "x", correct: "A"} → {"q1.": "x", "correct": "A"}"""
    return _BARE_KEY_RE.sub(r'\1"\2":', s)


# ============================================================
# Strategies
# ============================================================
def strict_parse(raw: str, require_answer: bool = True) -> Optional[ExtractionBatch]:
    text = strip_code_fences(raw)
    try:
        payload = _json_loads_safe(text)
    except _JSON_ERRORS:
        return None
    if not isinstance(payload, dict):
        return None
    items = payload.get("questions")
    if not isinstance(items, list) or not items:
        return None
    return _batch(items, "strict", require_answer)


_QUESTIONS_ARRAY_RE = re.compile(r"[\"']?questions[\"']?\s*:\s*\[(.*)\]", re.S)
_OBJECT_BOUNDARY_RE = re.compile(r"\}\s*,\s*\{")


def _lenient_object(chunk: str) -> Optional[Any]:
    body = chunk.strip().rstrip(",").strip()
    if body.startswith("{"):
        body = body[1:]
    if body.endswith("}"):
        body = body[:-1]
    wrapped = "{" + body + "}"
    try:
        return _json_loads_safe(wrapped)
    except _JSON_ERRORS:
        pass
    try:
        return json_repair.loads(wrapped)
    except (ValueError, TypeError, IndexError, RecursionError):
        return None


def segmented_parse(raw: str, require_answer: bool = True) -> Optional[ExtractionBatch]:
    m = _QUESTIONS_ARRAY_RE.search(strip_code_fences(raw))
    if not m:
        return None
    chunks = _OBJECT_BOUNDARY_RE.split(m.group(1))
    objects = [obj for obj in map(_lenient_object, chunks) if isinstance(obj, dict)]
    return _batch(objects, "segmented", require_answer)


_QUESTION_OBJECT_RE = re.compile(
    r"\{[^{}]*?[\"']?q\d+\.?[\"']?\s*:[^{}]*?[\"']?correct[\"']?\s*:\s*\"[^\"]*\"[^{}]*?\}",
    re.S | re.I,
)


def pattern_scan(raw: str, require_answer: bool = True) -> Optional[ExtractionBatch]:
    objects = []
    for match in _QUESTION_OBJECT_RE.finditer(raw or ""):
        candidate = match.group(0)
        for attempt in (candidate, quote_bare_keys(candidate)):
            try:
                objects.append(_json_loads_safe(attempt))
                break
            except _JSON_ERRORS:
                continue
    return _batch(objects, "pattern_scan", require_answer)


Strategy = Callable[..., Optional[ExtractionBatch]]
STRATEGIES: Tuple[Strategy, ...] = (strict_parse, segmented_parse, pattern_scan)


# ============================================================
# Public API
# ============================================================
def parse_model_reply(
    raw: Optional[str],
    require_answer: bool = True,
    strategies: Iterable[Strategy] = STRATEGIES,
) -> ExtractionBatch:
    """
    Run the strategy cascade; first non-empty batch wins.
    Raises NoQuestionsFound (carrying the raw reply) when every strategy comes up empty.
    """
    raw = raw or ""
    for strategy in strategies:
        batch = strategy(raw, require_answer=require_answer)
        if batch is not None and batch.questions:
            logger.info("Parsed %d question(s) via %s", len(batch), batch.strategy)
            return batch
        logger.debug("Strategy %s found no usable questions", strategy.__name__)

    logger.warning("No questions found in model reply: %s", truncate_for_log(raw))
    raise NoQuestionsFound(raw=raw)
