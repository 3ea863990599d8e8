"""OpenAI-compatible request and response schemas for the REST API."""

from __future__ import annotations

from typing import Literal

from fastapi import UploadFile
from pydantic import BaseModel, Field, field_validator

from whisper_server.api.mapping import map_model_name
from whisper_server.formatting import ResponseFormat

TimestampGranularity = Literal["word", "segment"]


class TranscriptionRequest(BaseModel):
    """Validate OpenAI-compatible transcription form parameters.

    Notes:
        ``prompt`` and ``temperature`` are accepted for compatibility but
        ignored: Parakeet decoding is deterministic and has no prompt
        conditioning.
    """

    model_config = {"arbitrary_types_allowed": True}

    file: UploadFile = Field(..., description="Audio file to transcribe.")
    model: str = Field(
        default="whisper-1",
        validate_default=True,
        description=(
            "Model identifier. Accepts the 'whisper-1' alias or explicit NVIDIA model "
            "names like 'nvidia/parakeet-tdt-0.6b-v3'."
        ),
    )
    language: str | None = Field(default=None, description="Optional ISO-639-1 language code.")
    prompt: str | None = Field(default=None, description="Accepted, ignored.")
    temperature: float | None = Field(default=None, description="Accepted, ignored.")
    response_format: ResponseFormat = Field(
        default=ResponseFormat.JSON,
        description="Output format: json, text, srt, vtt, or verbose_json.",
    )
    stream: bool = Field(default=False, description="Stream partial results as they are produced.")
    diarize: bool = Field(default=False, description="Attribute utterances to speakers.")
    timestamp_granularities: list[TimestampGranularity] | None = Field(
        default=None,
        description="Accepted for compatibility; segments are always produced.",
    )

    @field_validator("model")
    @classmethod
    def validate_and_map_model(cls, value: str) -> str:
        """Normalize accepted model aliases to engine model names.

        Raises:
            ValueError: If the provided model does not match accepted values.
        """
        mapped = map_model_name(value)
        if mapped is None:
            msg = "Model must be 'whisper-1' or start with 'nvidia/'."
            raise ValueError(msg)
        return mapped


class ModelInfo(BaseModel):
    """Entry of the OpenAI ``/v1/models`` listing."""

    id: str
    object: Literal["model"] = "model"
    created: int = 0
    owned_by: str


class ModelList(BaseModel):
    object: Literal["list"] = "list"
    data: list[ModelInfo]


class ErrorObject(BaseModel):
    """OpenAI-style error object."""

    message: str
    type: str
    code: str


class ErrorResponse(BaseModel):
    """OpenAI-style top-level error response wrapper."""

    error: ErrorObject
