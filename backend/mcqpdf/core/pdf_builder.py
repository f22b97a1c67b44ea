# backend/mcqpdf/core/pdf_builder.py
# -*- coding: utf-8 -*-
"""
ReportLab PDF builder for extracted question papers.

- One numbered paragraph per question, then its four options A.–D.
- The correct option is printed in green; everything else in black.
- Text is markup-escaped (ReportLab paragraphs parse <b>, &amp; ...).
- Chinese, Japanese and Korean text is set in ReportLab's built-in CID fonts.
- A failed build never leaves a partial file behind.
"""

import re
from typing import Dict, Iterable, List, Optional, Union
from pathlib import Path
from xml.sax.saxutils import escape

from reportlab.lib.pagesizes import A4
from reportlab.platypus import SimpleDocTemplate, Paragraph, Spacer, Flowable, KeepTogether
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER
from reportlab.lib import colors
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfbase.ttfonts import TTFont

from .errors import RenderFailure
from .logging_utils import get_logger
from .parsing import QuestionRecord
from .staging import remove_path

logger = get_logger(__name__)

# ---------------- Register Unicode font ----------------
FONT_PATH = Path(__file__).resolve().parent.parent / "assets" / "fonts" / "DejaVuSans.ttf"
if FONT_PATH.exists():
    pdfmetrics.registerFont(TTFont("DejaVuSans", str(FONT_PATH)))
    DEFAULT_FONT = "DejaVuSans"
else:
    DEFAULT_FONT = "Helvetica"  # fallback

# Built-in CID fonts for scripts neither font above covers
HANGUL_FONT = "HYSMyeongJo-Medium"
CJK_FONT    = "STSong-Light"
pdfmetrics.registerFont(UnicodeCIDFont(HANGUL_FONT))
pdfmetrics.registerFont(UnicodeCIDFont(CJK_FONT))

_HANGUL_RE = re.compile(r"[\u1100-\u11FF\u3130-\u318F\uAC00-\uD7AF]")
_CJK_RE    = re.compile(r"[\u2E80-\u9FFF\uF900-\uFAFF\uFF00-\uFFEF]")

# ---------------- Layout constants ----------------
LEFT_MARGIN  = 50
RIGHT_MARGIN = 50
TOP_MARGIN   = 64
BOTTOM_MARGIN= 64
BASE_FONTSIZE = 12
BASE_LEADING  = 16

# ---------------- Palette ----------------
TITLE_GREY  = colors.HexColor("#333333")
OK_GREEN    = colors.HexColor("#1e9e62")
HAIRLINE    = colors.HexColor("#DDDDDD")
ACCENT      = colors.HexColor("#1a3d7c")

# ---------------- Styles ----------------
styles = getSampleStyleSheet()

style_title = ParagraphStyle(
    "PaperTitle",
    parent=styles["Title"],
    fontName=DEFAULT_FONT,
    fontSize=20,
    leading=26,
    alignment=TA_CENTER,
    textColor=TITLE_GREY,
    spaceAfter=14,
)

style_question = ParagraphStyle(
    "Question",
    parent=styles["Normal"],
    fontName=DEFAULT_FONT,
    fontSize=14,
    leading=18,
    textColor=colors.black,
    spaceBefore=8,
    spaceAfter=4,
)

style_option = ParagraphStyle(
    "Option",
    parent=styles["Normal"],
    fontName=DEFAULT_FONT,
    fontSize=BASE_FONTSIZE,
    leading=BASE_LEADING,
    textColor=colors.black,
    leftIndent=18,
    spaceAfter=2,
)

style_option_correct = ParagraphStyle(
    "OptionCorrect",
    parent=style_option,
    textColor=OK_GREEN,
)

# ---------------- Footer & Header ----------------
def _footer(canvas, doc):
    canvas.saveState()
    canvas.setStrokeColor(HAIRLINE)
    canvas.setLineWidth(0.5)
    canvas.line(LEFT_MARGIN, 52, A4[0]-RIGHT_MARGIN, 52)
    canvas.setFont(DEFAULT_FONT, 9)
    canvas.setFillColor(colors.black)
    canvas.drawRightString(A4[0]-RIGHT_MARGIN, 40, f"Page {doc.page}")
    canvas.restoreState()

def _header(canvas, doc):
    canvas.saveState()
    canvas.setStrokeColor(ACCENT)
    canvas.setLineWidth(2)
    canvas.line(LEFT_MARGIN, A4[1]-46, A4[0]-RIGHT_MARGIN, A4[1]-46)
    canvas.restoreState()

def _on_page(canvas, doc):
    _header(canvas, doc)
    _footer(canvas, doc)


# ---------------- Story ----------------
_script_styles: Dict[tuple, ParagraphStyle] = {}


def _script_font(text: str) -> Optional[str]:
    if _HANGUL_RE.search(text):
        return HANGUL_FONT
    if _CJK_RE.search(text):
        return CJK_FONT
    return None


def _paragraph(text: str, style: ParagraphStyle) -> Paragraph:
    """Escaped paragraph; East Asian text switches to a CID font of the same style."""
    font = _script_font(text)
    if font:
        key = (style.name, font)
        if key not in _script_styles:
            _script_styles[key] = ParagraphStyle(f"{style.name}-{font}", parent=style, fontName=font)
        style = _script_styles[key]
    return Paragraph(escape(text), style)


def _question_block(number: int, q: QuestionRecord) -> Flowable:
    parts: List[Flowable] = [_paragraph(f"{number}. {q.prompt}", style_question)]
    for label, text, is_correct in q.option_lines():
        style = style_option_correct if is_correct else style_option
        parts.append(_paragraph(f"{label}. {text}", style))
    parts.append(Spacer(1, 10))
    return KeepTogether(parts)


def build_question_story(questions: Iterable[QuestionRecord], title: str) -> List[Flowable]:
    story: List[Union[Flowable, Paragraph]] = [_paragraph(title, style_title)]
    for number, q in enumerate(questions, start=1):
        story.append(_question_block(number, q))
    return story


# ---------------- Build ----------------
def build_question_pdf(
    questions: Iterable[QuestionRecord],
    out_path: Union[str, Path],
    title: str = "Question Paper",
) -> str:
    """
    Render the questions to `out_path`.
    Returns once ReportLab has written and closed the file; raises RenderFailure
    (after deleting any partial output) on error.
    """
    out = Path(out_path)
    try:
        out.parent.mkdir(parents=True, exist_ok=True)
        story = build_question_story(questions, title)
        doc = SimpleDocTemplate(
            str(out),
            pagesize=A4,
            title=title,
            topMargin=TOP_MARGIN, bottomMargin=BOTTOM_MARGIN,
            leftMargin=LEFT_MARGIN, rightMargin=RIGHT_MARGIN,
        )
        doc.build(story, onFirstPage=_on_page, onLaterPages=_on_page)
    except Exception as e:
        remove_path(out)
        logger.error("Rendering %s failed: %s", out.name, e)
        raise RenderFailure(f"Could not render question PDF: {e}") from e

    logger.info("Rendered %s (%d bytes)", out.name, out.stat().st_size)
    return str(out)
