"""Narrow interfaces the transcription pipeline consumes from ML engines."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from pathlib import Path
from typing import Protocol, runtime_checkable

from pydantic import BaseModel, Field

from whisper_server.transcript.models import DiarizationSegment, Token


class TranscriptionChunk(BaseModel):
    """Result of one engine step, typically one audio window.

    Attributes:
        tokens: Timed tokens of the window, in any order, absolute times.
        text: Plain text of the window, used when no tokens are available.
        start_time: Window start in seconds.
        end_time: Window end in seconds.
        language: Language detected for the window, if the engine reports it.
    """

    tokens: list[Token] = Field(default_factory=list)
    text: str | None = None
    start_time: float = 0.0
    end_time: float = 0.0
    language: str | None = None


@runtime_checkable
class TranscriptionEngine(Protocol):
    """Speech-to-text engine producing results window by window."""

    model_id: str

    def load(self) -> None:
        """Download and initialise the model; safe to call repeatedly."""

    def transcribe(
        self,
        audio_path: Path | str,
        *,
        language: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[TranscriptionChunk]:
        """Yield chunks in time order until the audio is consumed or cancelled."""


@runtime_checkable
class DiarizationEngine(Protocol):
    """Speaker diarization engine."""

    def diarize(self, audio_path: Path | str) -> list[DiarizationSegment]:
        """Return speaker segments sorted by start time."""
