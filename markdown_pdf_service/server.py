"""
HTTP API around the converter.

POST /convert        JSON {"markdown": "...", "options": {...}, "filename": "out.pdf"}
POST /convert-text   raw markdown body
GET  /health         liveness and browser state
GET  /api            endpoint listing
"""

import re
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, StrictStr, ValidationError

from .config import Config
from .converter import MarkdownPdfConverter
from .errors import ConversionError, InputError
from .log import logger
from .options import PdfOptions
from .session import RenderSessionManager


SERVICE_NAME = "markdown-to-pdf"
SERVICE_VERSION = "1.0.0"


class ConvertRequest(BaseModel):
    markdown: Optional[StrictStr] = None
    options: Optional[Dict[str, Any]] = None
    filename: Optional[StrictStr] = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def safe_filename(filename: Optional[str]) -> str:
    """Sanitize a client supplied download name; fall back to a timestamped one."""
    if filename:
        cleaned = re.sub(r'[^\w.\- ]', '_', filename).strip()
        if cleaned and cleaned.strip('.'):
            return cleaned if cleaned.lower().endswith('.pdf') else f"{cleaned}.pdf"
    return f"document-{int(time.time() * 1000)}.pdf"


class _PayloadTooLarge(Exception):
    def __init__(self, limit: int):
        super().__init__(f"Request body exceeds {limit} bytes")
        self.limit = limit


async def _read_body(request: Request, limit: int) -> bytes:
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise _PayloadTooLarge(limit)
    body = await request.body()
    if len(body) > limit:
        raise _PayloadTooLarge(limit)
    return body


def _error_response(error: ConversionError) -> JSONResponse:
    if isinstance(error, InputError):
        return JSONResponse(status_code=400, content={"error": "Invalid request", "message": error.message})
    return JSONResponse(
        status_code=error.status_code,
        content={
            "error": "Internal server error",
            "category": error.category,
            "message": error.message,
            "timestamp": _timestamp(),
        },
    )


def create_app(config: Optional[Config] = None, converter: Optional[MarkdownPdfConverter] = None) -> FastAPI:
    """Build the FastAPI application.

    The browser is shut down when the application's lifespan ends.
    """
    config = config or Config()
    if converter is None:
        converter = MarkdownPdfConverter(RenderSessionManager(config), config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Markdown to PDF API ready on http://{config.get_host()}:{config.get_port()}")
        yield
        logger.info("Shutting down, closing browser...")
        await converter.sessions.shutdown()
        logger.success("Graceful shutdown completed")

    app = FastAPI(title="Markdown to PDF API", version=SERVICE_VERSION, lifespan=lifespan)
    app.state.converter = converter
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Length", "X-Generation-Time"],
    )

    @app.exception_handler(ConversionError)
    async def conversion_error_handler(request: Request, exc: ConversionError):
        if not isinstance(exc, InputError):
            logger.error(f"{request.url.path} failed [{exc.category}]: {exc.message}")
        return _error_response(exc)

    @app.exception_handler(_PayloadTooLarge)
    async def payload_too_large_handler(request: Request, exc: _PayloadTooLarge):
        return JSONResponse(status_code=413, content={"error": "Payload too large", "message": str(exc)})

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.error(f"{request.url.path} failed: {exc!r}")
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "category": "internal",
                "message": str(exc),
                "timestamp": _timestamp(),
            },
        )

    async def render_response(markdown: str, options: PdfOptions, filename: Optional[str]) -> Response:
        start = time.perf_counter()
        pdf_bytes = await converter.convert(markdown, options)
        duration_ms = int((time.perf_counter() - start) * 1000)

        output_filename = safe_filename(filename)
        logger.success(f"PDF sent: {output_filename} ({len(pdf_bytes)} bytes, {duration_ms}ms)")
        return Response(
            content=pdf_bytes,
            media_type="application/pdf",
            headers={
                "Content-Disposition": f'attachment; filename="{output_filename}"',
                "Content-Length": str(len(pdf_bytes)),
                "X-Generation-Time": f"{duration_ms}ms",
                "Cache-Control": "no-cache",
                "Access-Control-Expose-Headers": "Content-Length, X-Generation-Time",
            },
        )

    @app.get("/health")
    async def health():
        sessions = converter.sessions
        return {
            "status": "ok",
            "service": SERVICE_NAME,
            "timestamp": _timestamp(),
            "browser": "running" if sessions.is_running else "idle",
            "openContexts": sessions.open_contexts,
        }

    @app.get("/api")
    async def api_info():
        return {
            "service": "Markdown to PDF API",
            "version": SERVICE_VERSION,
            "endpoints": {
                "GET /api": "API information",
                "GET /health": "Health check",
                "POST /convert": "Convert markdown to PDF (JSON)",
                "POST /convert-text": "Convert markdown to PDF (plain text)",
            },
        }

    @app.post("/convert")
    async def convert(request: Request):
        body = await _read_body(request, config.get_max_body_bytes())
        try:
            payload = ConvertRequest.model_validate_json(body or b"{}")
        except ValidationError as e:
            fields = {str(err["loc"][0]) for err in e.errors() if err.get("loc")}
            if "markdown" in fields:
                raise InputError("markdown field is required and must be a string")
            raise InputError(f"Invalid request body: {e.errors()[0]['msg']}")

        if payload.markdown is None:
            raise InputError("markdown field is required and must be a string")
        options = PdfOptions.from_dict(payload.options)
        return await render_response(payload.markdown, options, payload.filename)

    @app.post("/convert-text")
    async def convert_text(request: Request):
        body = await _read_body(request, config.get_max_body_bytes())
        try:
            markdown = body.decode("utf-8")
        except UnicodeDecodeError:
            raise InputError("Request body must be UTF-8 encoded markdown")
        if not markdown.strip():
            raise InputError("Request body must be plain text markdown")
        return await render_response(markdown, PdfOptions(), None)

    return app


def run(config: Config) -> None:
    """Serve the API with uvicorn; SIGINT/SIGTERM trigger a graceful shutdown."""
    uvicorn.run(
        create_app(config),
        host=config.get_host(),
        port=config.get_port(),
        timeout_graceful_shutdown=config.get_shutdown_grace_seconds(),
        log_level="debug" if config.get_debug() else "info",
    )
