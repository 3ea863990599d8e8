"""Exception hierarchy shared by the transcription pipeline and the REST API."""

from __future__ import annotations


class WhisperServerError(Exception):
    """Base class for all errors raised by ``whisper_server``."""


class InvalidFormatError(WhisperServerError, ValueError):
    """Raised for an unknown ``response_format`` value.

    Detected before any engine work starts and mapped to HTTP 400.
    """

    def __init__(self, value: str, supported: list[str] | None = None) -> None:
        self.value = value
        self.supported = supported or []
        message = f"Unsupported response format: '{value}'."
        if self.supported:
            message += f" Supported formats are: {', '.join(self.supported)}"
        super().__init__(message)


class AlignmentInputError(WhisperServerError, ValueError):
    """Raised when tokens or diarization segments cannot be aligned."""


class EngineFailure(WhisperServerError, RuntimeError):
    """Raised when the transcription or diarization engine reports an error."""


class StreamAborted(WhisperServerError):
    """Raised when the client went away or the stream was cancelled."""


class StreamStateError(WhisperServerError, RuntimeError):
    """Raised on an illegal stream session state transition."""


class ModelPreparationError(WhisperServerError, RuntimeError):
    """Raised when a model could not be prepared for inference."""

    def __init__(self, model_id: str, reason: str) -> None:
        self.model_id = model_id
        self.reason = reason
        super().__init__(f"Model '{model_id}' could not be prepared: {reason}")


__all__ = [
    "WhisperServerError",
    "InvalidFormatError",
    "AlignmentInputError",
    "EngineFailure",
    "StreamAborted",
    "StreamStateError",
    "ModelPreparationError",
]
