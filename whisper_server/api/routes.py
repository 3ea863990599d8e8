"""OpenAI-compatible REST routes for audio transcription."""

from __future__ import annotations

import logging
import shutil
import tempfile
from pathlib import Path
from uuid import uuid4

from fastapi import APIRouter, File, Form, Request, UploadFile
from fastapi.responses import JSONResponse, Response, StreamingResponse
from pydantic import ValidationError
from starlette.background import BackgroundTask
from starlette.concurrency import run_in_threadpool

from whisper_server.api.auth import require_api_bearer_token
from whisper_server.api.mapping import WHISPER_ALIAS, infer_language_for_model
from whisper_server.api.schemas import (
    ErrorObject,
    ErrorResponse,
    ModelInfo,
    ModelList,
    TranscriptionRequest,
)
from whisper_server.config import EngineConfig, StreamConfig
from whisper_server.engines import DiarizationEngine, create_diarizer, create_engine
from whisper_server.exceptions import EngineFailure, InvalidFormatError
from whisper_server.formatting import parse_response_format
from whisper_server.models.guard import get_model_guard
from whisper_server.streaming import StreamCoordinator, StreamSession, negotiate_delivery_mode
from whisper_server.transcription import TranscriptionPipeline
from whisper_server.utils.constant import API_MODEL_OWNER, WHISPER_MODEL_NAME

logger = logging.getLogger(__name__)

router = APIRouter()


def _safe_cleanup(path: Path) -> None:
    """Delete temporary file or directory if it exists.

    Args:
        path: Path to remove.
    """
    try:
        if path.is_dir():
            shutil.rmtree(path, ignore_errors=True)
        elif path.exists():
            path.unlink(missing_ok=True)
    except OSError:
        logger.debug("Temporary path cleanup failed", exc_info=True)


def _build_error_response(
    *,
    status_code: int,
    message: str,
    error_type: str = "invalid_request_error",
    code: str,
) -> JSONResponse:
    """Create an OpenAI-style error response.

    Args:
        status_code: HTTP status code.
        message: Error message for clients.
        error_type: OpenAI-compatible error type.
        code: Short machine-readable error code.

    Returns:
        JSON response containing an OpenAI-style ``error`` object.
    """
    payload = ErrorResponse(
        error=ErrorObject(
            message=message,
            type=error_type,
            code=code,
        )
    ).model_dump()
    return JSONResponse(status_code=status_code, content=payload)


def _build_pipeline(engine_config: EngineConfig, audio_path: Path) -> TranscriptionPipeline:
    diarizer: DiarizationEngine | None = create_diarizer() if engine_config.diarize else None
    return TranscriptionPipeline(
        create_engine(engine_config.model_id, chunk_len_sec=engine_config.chunk_len_sec),
        audio_path,
        diarizer=diarizer,
        language=engine_config.language,
    )


async def _store_upload(file: UploadFile) -> Path:
    with tempfile.NamedTemporaryFile(
        suffix=Path(file.filename or "upload.wav").suffix or ".wav",
        prefix="whisper-server-",
        delete=False,
    ) as tmp_audio:
        tmp_audio.write(await file.read())
        return Path(tmp_audio.name)


@router.get("/v1/models")
async def list_models(request: Request) -> Response:
    """List the models served under the OpenAI ``/v1/models`` shape."""
    auth_error = require_api_bearer_token(request)
    if auth_error is not None:
        return auth_error
    payload = ModelList(
        data=[
            ModelInfo(id=WHISPER_ALIAS, owned_by=API_MODEL_OWNER),
            ModelInfo(id=WHISPER_MODEL_NAME, owned_by=API_MODEL_OWNER),
        ]
    )
    return JSONResponse(content=payload.model_dump())


@router.post("/v1/audio/transcriptions")
async def create_transcription(
    request: Request,
    file: UploadFile | None = File(default=None),
    model: str = Form(default=WHISPER_ALIAS),
    language: str | None = Form(default=None),
    prompt: str | None = Form(default=None),
    temperature: float | None = Form(default=None),
    response_format: str = Form(default="json"),
    stream: bool = Form(default=False),
    diarize: bool = Form(default=False),
    timestamp_granularities: list[str] | None = Form(default=None),
) -> Response:
    """Handle OpenAI-compatible transcription requests.

    Args:
        request: Incoming HTTP request metadata.
        file: Uploaded input file.
        model: Model identifier.
        language: Optional ISO-639-1 language code.
        prompt: Optional prompt (accepted, ignored).
        temperature: Optional temperature (accepted, ignored).
        response_format: Response format selector.
        stream: Deliver partial results while transcribing.
        diarize: Attribute utterances to speakers when diarization is enabled.
        timestamp_granularities: Accepted for compatibility.

    Returns:
        The transcription as a single response, an SSE stream or a chunked body.
    """
    request_id = uuid4().hex[:8]
    logger.debug(
        "API transcription request received: id=%s file=%s model=%s format=%s stream=%s "
        "diarize=%s",
        request_id,
        file.filename if file is not None else None,
        model,
        response_format,
        stream,
        diarize,
    )

    auth_error = require_api_bearer_token(request)
    if auth_error is not None:
        return auth_error

    try:
        fmt = parse_response_format(response_format)
    except InvalidFormatError as exc:
        logger.debug(
            "API request rejected: id=%s reason=unsupported_format input=%s",
            request_id,
            response_format,
        )
        return _build_error_response(status_code=400, message=str(exc), code="unsupported_format")

    if file is None:
        logger.debug("API request rejected: id=%s reason=missing_file", request_id)
        return _build_error_response(
            status_code=400,
            message="No audio file provided in the 'file' field.",
            code="missing_file",
        )

    try:
        transcription_request = TranscriptionRequest(
            file=file,
            model=model,
            language=language,
            prompt=prompt,
            temperature=temperature,
            response_format=fmt,
            stream=stream,
            diarize=diarize,
            timestamp_granularities=timestamp_granularities,
        )
    except ValidationError as exc:
        fields_with_errors = {
            str(part) for err in exc.errors() for part in err.get("loc", ()) if isinstance(part, str)
        }
        if "model" in fields_with_errors:
            logger.debug("API request validation failed: id=%s field=model", request_id)
            return _build_error_response(
                status_code=400,
                message="Model must be 'whisper-1' or start with 'nvidia/'.",
                code="invalid_model",
            )
        logger.debug(
            "API request validation failed: id=%s fields=%s",
            request_id,
            sorted(fields_with_errors),
        )
        return _build_error_response(status_code=400, message=str(exc), code="invalid_request")

    model_id = transcription_request.model
    preparation = await run_in_threadpool(get_model_guard().prepare, model_id)
    if not preparation.success:
        return _build_error_response(
            status_code=503,
            message=f"Model '{model_id}' is not available: {preparation.error}",
            error_type="server_error",
            code="model_unavailable",
        )

    engine_config = EngineConfig.for_request(
        model_id,
        diarize=transcription_request.diarize,
        language=transcription_request.language or infer_language_for_model(model_id),
    )
    stream_config = StreamConfig(
        stream=transcription_request.stream,
        accept=request.headers.get("accept"),
    )
    if transcription_request.diarize and not engine_config.diarize:
        logger.debug("Diarization requested but disabled: id=%s", request_id)

    temp_audio_path = await _store_upload(file)
    try:
        pipeline = _build_pipeline(engine_config, temp_audio_path)
        session = StreamSession(
            response_format=fmt,
            delivery_mode=negotiate_delivery_mode(stream_config.stream, stream_config.accept),
            request_id=request_id,
        )
    except Exception:
        _safe_cleanup(temp_audio_path)
        raise
    coordinator = StreamCoordinator(
        pipeline,
        session,
        timeout_sec=stream_config.timeout_sec,
        cleanup=[lambda: _safe_cleanup(temp_audio_path)],
    )
    logger.debug(
        "API request prepared: id=%s model=%s format=%s delivery=%s",
        request_id,
        model_id,
        fmt.value,
        session.delivery_mode.value,
    )

    if session.is_streaming:
        return StreamingResponse(
            coordinator.stream(),
            headers=coordinator.headers,
            background=BackgroundTask(coordinator.release),
        )

    try:
        body, content_type = await coordinator.run_single()
    except EngineFailure as exc:
        logger.error("Transcription failed: id=%s error=%s", request_id, exc)
        return _build_error_response(
            status_code=500,
            message=str(exc),
            error_type="server_error",
            code="engine_failure",
        )
    return Response(content=body, headers={"Content-Type": content_type})
