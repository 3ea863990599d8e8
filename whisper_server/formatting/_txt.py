"""Renderer for plain text output."""

from __future__ import annotations

from whisper_server.transcript.models import TranscriptModel


def to_txt(model: TranscriptModel, *, since_index: int = 0, incremental: bool = False) -> str:
    """Render the text of utterances after ``since_index``.

    With ``since_index == 0`` this is ``full_text``. Deltas are prefixed with a
    space when the previously emitted utterance does not already end in
    whitespace, so appending every delta reproduces ``full_text``.
    """
    new = model.since(since_index)
    if not new:
        return ""
    text = " ".join(u.text for u in new)
    previous = model.utterance_at(since_index)
    if previous is not None and not previous.text[-1:].isspace():
        text = " " + text
    return text
