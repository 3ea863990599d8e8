"""Configuration dataclasses for the transcription request pipeline.

This module groups related per-request settings so route handlers pass one
object instead of a long list of parameters.
"""

from __future__ import annotations

from dataclasses import dataclass

from whisper_server.utils.constant import (
    CHUNK_LEN_SEC,
    DIARIZATION_ENABLED,
    STREAM_TIMEOUT_SEC,
    WHISPER_MODEL_NAME,
)


@dataclass
class EngineConfig:
    """Groups engine selection settings.

    Attributes:
        model_id: Engine model identifier.
        chunk_len_sec: Audio window length handed to the engine per step.
        diarize: Run speaker diarization before transcription.
        language: Language hint, ``None`` for auto-detection.

    """

    model_id: str = WHISPER_MODEL_NAME
    chunk_len_sec: int = CHUNK_LEN_SEC
    diarize: bool = False
    language: str | None = None

    @classmethod
    def for_request(
        cls, model_id: str, *, diarize: bool, language: str | None = None
    ) -> EngineConfig:
        """Build the engine settings for one request.

        ``diarize`` is honoured only when ``DIARIZATION_ENABLED`` is set.
        """
        return cls(model_id=model_id, diarize=diarize and DIARIZATION_ENABLED, language=language)


@dataclass
class StreamConfig:
    """Groups response delivery settings.

    Attributes:
        stream: Deliver partial results while transcribing.
        accept: Raw ``Accept`` header used to pick SSE over chunked delivery.
        timeout_sec: Maximum wait for one engine step, ``0`` to disable.

    """

    stream: bool = False
    accept: str | None = None
    timeout_sec: float = STREAM_TIMEOUT_SEC
