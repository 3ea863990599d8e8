"""Renderer for Web Video Text Tracks format (.vtt)."""

from __future__ import annotations

from whisper_server.formatting._timecode import vtt_timestamp
from whisper_server.transcript.models import TranscriptModel

WEBVTT_HEADER = "WEBVTT\n\n"


def to_vtt(model: TranscriptModel, *, since_index: int = 0, incremental: bool = False) -> str:
    """Render utterances after ``since_index`` as WebVTT cues.

    The header is written only for the first render of a document
    (``since_index == 0``). Cues carry no numeric identifiers.
    """
    parts = [WEBVTT_HEADER] if since_index == 0 else []
    for utterance in model.since(since_index):
        start = vtt_timestamp(utterance.start_time)
        end = vtt_timestamp(utterance.end_time)
        parts.append(f"{start} --> {end}\n{utterance.text}\n\n")
    return "".join(parts)
