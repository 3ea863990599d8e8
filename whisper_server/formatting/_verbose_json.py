"""Renderer for the OpenAI ``verbose_json`` response format."""

from __future__ import annotations

from pydantic import BaseModel

from whisper_server.transcript.models import TranscriptModel, Utterance


class VerboseSegment(BaseModel):
    """One segment of a complete ``verbose_json`` document (0-based ``id``)."""

    id: int
    start: float
    end: float
    text: str
    speaker: str | None = None


class VerboseTranscription(BaseModel):
    """Complete ``verbose_json`` document."""

    task: str = "transcribe"
    language: str | None = None
    duration: float
    text: str
    segments: list[VerboseSegment]


class StreamedSegment(BaseModel):
    """Compact per-utterance object written while streaming."""

    start: float
    end: float
    text: str
    speaker: str | None = None


def _streamed(utterance: Utterance) -> str:
    segment = StreamedSegment(
        start=utterance.start_time,
        end=utterance.end_time,
        text=utterance.text,
        speaker=utterance.speaker_id,
    )
    return segment.model_dump_json(exclude_none=True) + "\n"


def to_verbose_json(
    model: TranscriptModel, *, since_index: int = 0, incremental: bool = False
) -> str:
    """Render a transcript as ``verbose_json``.

    Args:
        model: Transcript snapshot.
        since_index: Number of utterances already emitted.
        incremental: ``True`` for streamed sessions, which receive one
            newline-terminated object per new utterance. The final render of
            a streamed session appends the complete document as the last line.
            Otherwise the complete document is produced once the transcript is
            final.

    Returns:
        The rendered text, ``""`` when there is nothing to emit.
    """
    if incremental:
        lines = "".join(_streamed(u) for u in model.since(since_index))
        if model.is_final:
            lines += _document(model) + "\n"
        return lines
    if not model.is_final:
        return ""
    return _document(model)


def _document(model: TranscriptModel) -> str:
    document = VerboseTranscription(
        language=model.language,
        duration=model.duration_seconds,
        text=model.full_text,
        segments=[
            VerboseSegment(
                id=u.index - 1,
                start=u.start_time,
                end=u.end_time,
                text=u.text,
                speaker=u.speaker_id,
            )
            for u in model.utterances
        ],
    )
    return document.model_dump_json(exclude_none=True)
