"""Transcription pipeline driving engines into transcript snapshots."""

from __future__ import annotations

from whisper_server.transcription.pipeline import TranscriptionPipeline

__all__ = ["TranscriptionPipeline"]
