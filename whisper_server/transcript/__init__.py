"""Transcript data model shared by alignment, formatting and streaming.

:class:`~whisper_server.transcript.builder.TranscriptBuilder` lives in its own
module because it depends on the alignment engine, which depends on these models.
"""

from __future__ import annotations

from whisper_server.transcript.models import (
    DiarizationSegment,
    Token,
    TranscriptModel,
    Utterance,
)

__all__ = [
    "DiarizationSegment",
    "Token",
    "TranscriptModel",
    "Utterance",
]
