"""Alignment of token timelines with speaker diarization intervals."""

from __future__ import annotations

from whisper_server.alignment.align import (
    align,
    align_or_fallback,
    split_runs,
    validate_segments,
)

__all__ = ["align", "align_or_fallback", "split_runs", "validate_segments"]
