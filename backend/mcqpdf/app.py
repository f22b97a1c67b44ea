# backend/mcqpdf/app.py
# -*- coding: utf-8 -*-
"""
MCQ PDF Highlighter API
- Accepts a PDF of multiple-choice questions
- Extracts text (EasyOCR fallback for scanned PDFs)
- Normalizes the questions with an OpenAI model
- Returns a question paper PDF with the correct options in green
"""

from typing import Optional

from fastapi import FastAPI, File, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.concurrency import run_in_threadpool

from .core.config import Settings
from .core.errors import NoFileProvided, PipelineError, UploadTooLarge
from .core.llm_mcq import configure_openai
from .core.logging_utils import configure_logging, get_logger
from .core.pipeline import RequestState, run_pipeline
from .core.staging import new_request_stamp, remove_path

logger = get_logger(__name__)


class TransientFileResponse(FileResponse):
    """
    FileResponse whose file is deleted once the response is over,
    whether the body was fully sent or the client went away mid-stream.
    """

    def __init__(self, path: str, stamp: str, **kwargs):
        super().__init__(path, **kwargs)
        self.stamp = stamp

    async def __call__(self, scope, receive, send) -> None:
        delivered = False
        try:
            await super().__call__(scope, receive, send)
            delivered = True
        finally:
            remove_path(self.path)
            if delivered:
                logger.info("[%s] %s", self.stamp, RequestState.DELIVERED.value)
            else:
                logger.warning("[%s] Response aborted; output discarded", self.stamp)


def create_app(settings: Optional[Settings] = None, client=None) -> FastAPI:
    """Build the API. `client` overrides the OpenAI client (tests, custom proxies)."""
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level, settings.log_file)

    app = FastAPI(title="MCQ PDF Highlighter API")
    app.state.settings = settings
    app.state.client = client

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(PipelineError)
    async def pipeline_error_handler(request, exc: PipelineError):
        return JSONResponse(exc.to_payload(include_raw=settings.debug), status_code=exc.status_code)

    @app.get("/")
    def index():
        """Root endpoint with API info."""
        return {
            "message": "MCQ PDF Highlighter API is running",
            "endpoints": ["/process-pdf", "/healthz"],
        }

    @app.post("/process-pdf")
    async def process_pdf(pdf: Optional[UploadFile] = File(None)):
        """
        Upload an MCQ paper (PDF) as form field `pdf`.
        Returns the rendered question paper with correct answers highlighted.
        """
        if pdf is None or not pdf.filename:
            raise NoFileProvided("No file uploaded")

        content = await pdf.read(settings.max_upload_bytes + 1)
        if len(content) > settings.max_upload_bytes:
            raise UploadTooLarge(
                f"File exceeds the {settings.max_upload_bytes // (1024 * 1024)}MB upload limit"
            )
        if not content:
            raise NoFileProvided("Uploaded file is empty")

        if app.state.client is None:
            app.state.client = configure_openai(settings.openai_api_key)

        stamp = new_request_stamp()
        try:
            result = await run_in_threadpool(
                run_pipeline,
                content,
                pdf.filename,
                settings,
                client=app.state.client,
                stamp=stamp,
            )
        except PipelineError:
            raise
        except Exception as e:
            logger.exception("[%s] Processing failed", stamp)
            return JSONResponse({"error": "ProcessingFailed", "details": str(e)}, status_code=500)

        return TransientFileResponse(
            result.output_path,
            stamp,
            media_type="application/pdf",
            filename=result.download_name,
            headers={
                "X-Question-Count": str(result.question_count),
                "X-Used-OCR": "true" if result.used_fallback else "false",
            },
        )

    @app.get("/healthz")
    def healthz():
        """Health check endpoint."""
        return {"ok": True}

    return app


app = create_app()
