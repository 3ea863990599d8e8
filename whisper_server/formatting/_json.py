"""Renderer for the OpenAI ``json`` response format."""

from __future__ import annotations

import json

from whisper_server.transcript.models import TranscriptModel


def to_json(model: TranscriptModel, *, since_index: int = 0, incremental: bool = False) -> str:
    """Return ``{"text": full_text}`` for a final transcript, ``""`` otherwise.

    The object cannot be split, so it is produced exactly once, at
    finalization, in both delivery modes.
    """
    if not model.is_final:
        return ""
    return json.dumps({"text": model.full_text}, ensure_ascii=False)
