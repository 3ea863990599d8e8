"""Renderer for SubRip Subtitle format (.srt)."""

from __future__ import annotations

from whisper_server.formatting._timecode import srt_timestamp
from whisper_server.transcript.models import TranscriptModel


def to_srt(model: TranscriptModel, *, since_index: int = 0, incremental: bool = False) -> str:
    """Render utterances after ``since_index`` as SRT cues.

    Cue numbers are the utterances' global indices, so concatenated
    incremental output equals the single-shot document.

    Args:
        model: Transcript snapshot.
        since_index: Number of utterances already emitted.
        incremental: Unused, SRT output is the same in both modes.

    Returns:
        The SRT text.
    """
    cues = []
    for utterance in model.since(since_index):
        start = srt_timestamp(utterance.start_time)
        end = srt_timestamp(utterance.end_time)
        cues.append(f"{utterance.index}\n{start} --> {end}\n{utterance.text}\n\n")
    return "".join(cues)
