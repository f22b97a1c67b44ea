"""MCQ PDF highlighter: PDF in, question paper with correct answers in green out."""

__version__ = "0.1.0"
