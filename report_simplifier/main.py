"""
Medical Report Simplifier - FastAPI Backend

Turns a lab report (text or image) into structured test results and a
patient-friendly summary.

Architecture:
  - Tesseract = OCR for uploaded report images
  - Gemini pro model = extraction and normalization of test results
  - Gemini flash model = plain-language summary
"""
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import time
import uuid

from .config import Settings, cors_origins, load_settings
from .input_resolver import resolve_raw_input
from .pipeline import ReportSimplifier, get_simplifier, init_simplifier, is_initialized
from .responses import error_response, log_failure, success_response
from .structured_logging import StructuredLogger, log_request, set_request_id, setup_logging

logger = StructuredLogger(__name__)

_settings: Optional[Settings] = None


def configure(settings: Settings) -> None:
    """Apply settings: logging, upload directory and the shared Gemini models."""
    global _settings
    _settings = settings
    setup_logging(level=settings.log_level, use_json=settings.log_json)
    Path(settings.upload_dir).mkdir(parents=True, exist_ok=True)
    init_simplifier(settings)


def get_settings() -> Settings:
    if _settings is None:
        raise RuntimeError("Settings not loaded. Start the app through its lifespan.")
    return _settings


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Resolve configuration and build both Gemini models on startup.

    A missing GEMINI_API_KEY raises here and aborts startup.
    """
    if _settings is None:
        configure(load_settings())
    settings = get_settings()
    logger.info(
        "Medical Report Simplifier ready",
        flash_model=settings.flash_model,
        pro_model=settings.pro_model,
        upload_dir=settings.upload_dir,
    )
    yield
    logger.info("Shutting down...")


app = FastAPI(
    title="Medical Report Simplifier",
    description="OCR + Gemini pipeline that explains lab reports in plain language",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_logging_middleware(request: Request, call_next):
    """Middleware for request ID tracking and logging."""
    start_time = time.time()
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4())[:8])
    set_request_id(request_id)

    response = await call_next(request)

    duration_ms = (time.time() - start_time) * 1000

    if request.url.path not in ["/health", "/docs", "/openapi.json"]:
        log_request(
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_ms=duration_ms,
            client_ip=request.client.host if request.client else None,
        )

    response.headers["X-Request-ID"] = request_id
    return response


# Health check
@app.get("/health")
async def health_check():
    ready = is_initialized()
    return {
        "status": "healthy",
        "pipeline_ready": ready,
        "flash_model": _settings.flash_model if _settings else None,
        "pro_model": _settings.pro_model if _settings else None,
    }


@app.post("/api/simplify-report")
async def simplify_report(
    request: Request,
    simplifier: ReportSimplifier = Depends(get_simplifier),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Simplify a medical report sent as JSON text, form text, or an image.

    Every failure is mapped to a status code and error payload here; see
    responses.py for the table.
    """
    logger.info("--- NEW REQUEST RECEIVED ---")
    try:
        raw_text = await resolve_raw_input(
            request,
            upload_dir=settings.upload_dir,
            ocr_timeout=settings.ocr_timeout_seconds,
        )
        payload = await simplifier.simplify(raw_text)
    except Exception as e:
        log_failure(e)
        return error_response(e)

    return success_response(payload)


def run() -> None:
    """Console entry point: load settings and serve with uvicorn."""
    import uvicorn

    settings = load_settings()
    configure(settings)
    logger.info("Medical Report Simplifier starting", host=settings.host, port=settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    run()
