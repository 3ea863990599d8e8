"""Engine adapters and factories."""

from __future__ import annotations

from whisper_server.engines.base import DiarizationEngine, TranscriptionChunk, TranscriptionEngine
from whisper_server.utils.constant import CHUNK_LEN_SEC, DIARIZATION_MODEL_NAME, HF_TOKEN


def create_engine(model_id: str, chunk_len_sec: int = CHUNK_LEN_SEC) -> TranscriptionEngine:
    """Return the transcription engine serving ``model_id``."""
    from whisper_server.engines.parakeet import ParakeetEngine

    return ParakeetEngine(model_id, chunk_len_sec=chunk_len_sec)


def create_diarizer(
    model_name: str = DIARIZATION_MODEL_NAME, token: str = HF_TOKEN
) -> DiarizationEngine:
    """Return the diarization engine used for ``diarize=true`` requests."""
    from whisper_server.engines.pyannote import PyannoteDiarizationEngine

    return PyannoteDiarizationEngine(model_name, token=token)


__all__ = [
    "DiarizationEngine",
    "TranscriptionChunk",
    "TranscriptionEngine",
    "create_diarizer",
    "create_engine",
]
