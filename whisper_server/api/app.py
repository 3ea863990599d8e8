"""FastAPI application factory for the OpenAI-compatible transcription API."""

from __future__ import annotations

import threading

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from whisper_server import __version__
from whisper_server.api.routes import _build_error_response
from whisper_server.api.routes import router as api_router
from whisper_server.models.guard import get_model_guard
from whisper_server.utils.constant import (
    API_BEARER_TOKEN,
    API_CORS_ORIGINS,
    API_MODEL_WARMUP_ON_START,
    WHISPER_MODEL_NAME,
)
from whisper_server.utils.logging_config import get_logger

logger = get_logger(__name__)


def _log_model_change(model_id: str) -> None:
    logger.info("Active transcription model is now %s", model_id)


def _warmup_model() -> None:
    """Prepare the default model on startup; failures only get logged."""
    logger.info("API model warmup started for model=%s", WHISPER_MODEL_NAME)
    result = get_model_guard().prepare(WHISPER_MODEL_NAME, wait=False)
    if result.skipped:
        logger.info("API model warmup skipped, preparation already running")
    elif result.success:
        logger.info("API model warmup completed for model=%s", WHISPER_MODEL_NAME)
    else:
        logger.warning("API model warmup failed; continuing without warm cache: %s", result.error)


def _start_warmup_thread() -> threading.Thread:
    """Start non-blocking warmup so startup readiness is not delayed."""
    logger.info("Scheduling API model warmup thread for model=%s", WHISPER_MODEL_NAME)
    thread = threading.Thread(name="api-model-warmup", target=_warmup_model, daemon=True)
    thread.start()
    return thread


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = sorted(
        {str(part) for err in exc.errors() for part in err.get("loc", ()) if part != "body"}
    )
    logger.debug("Request validation failed: path=%s fields=%s", request.url.path, fields)
    return _build_error_response(
        status_code=400,
        message=f"Invalid request parameters: {', '.join(fields) or 'body'}",
        code="invalid_request",
    )


def create_app() -> FastAPI:
    """Create the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="whisper-server",
        version=__version__,
        docs_url="/docs",
        openapi_url="/openapi.json",
        redoc_url="/redoc",
    )
    app.add_exception_handler(RequestValidationError, _validation_error_handler)

    if not API_BEARER_TOKEN:
        logger.warning("API_BEARER_TOKEN is not set; API authentication is disabled.")
    app.include_router(api_router)

    origins = [origin.strip() for origin in API_CORS_ORIGINS.split(",") if origin.strip()]
    if origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    get_model_guard().add_observer(_log_model_change)

    @app.on_event("startup")
    async def _on_startup() -> None:
        """Start the optional background model warmup."""
        if API_MODEL_WARMUP_ON_START:
            _start_warmup_thread()

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Return a minimal health status payload."""
        guard = get_model_guard()
        return {
            "status": "ok",
            "model": WHISPER_MODEL_NAME,
            "model_ready": str(guard.is_prepared(WHISPER_MODEL_NAME)).lower(),
        }

    @app.get("/")
    async def root() -> dict[str, str]:
        """Return service metadata for root requests."""
        return {
            "service": "whisper-server",
            "docs": "/docs",
            "health": "/health",
        }

    return app
