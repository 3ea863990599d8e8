"""Speaker diarization with a pyannote.audio pipeline."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from typing import Any

from whisper_server.exceptions import EngineFailure
from whisper_server.transcript.models import DiarizationSegment
from whisper_server.utils.constant import DIARIZATION_MODEL_NAME, HF_TOKEN

logger = logging.getLogger(__name__)

__all__ = ["PyannoteDiarizationEngine", "flatten_turns"]


@lru_cache(maxsize=2)
def _get_pipeline(model_name: str, token: str) -> Any:
    import torch  # pylint: disable=import-outside-toplevel
    from pyannote.audio import Pipeline  # pylint: disable=import-outside-toplevel

    pipeline = Pipeline.from_pretrained(model_name, use_auth_token=token or None)
    if pipeline is None:
        raise EngineFailure(f"Diarization model '{model_name}' could not be loaded")
    device = "cuda" if torch.cuda.is_available() else "cpu"
    pipeline.to(torch.device(device))
    logger.info("Diarization pipeline %s initialised on %s", model_name, device)
    return pipeline


def flatten_turns(turns: list[tuple[float, float, str]]) -> list[DiarizationSegment]:
    """Turn possibly overlapping speaker turns into disjoint segments.

    Overlapping speech is attributed to the speaker who started first: a turn
    is trimmed to begin where the previous one ended and dropped when nothing
    is left.

    Args:
        turns: ``(start, end, speaker)`` triples in any order.

    Returns:
        Non-overlapping segments sorted by start time.
    """
    segments: list[DiarizationSegment] = []
    last_end = 0.0
    for start, end, speaker in sorted(turns, key=lambda turn: (turn[0], turn[1])):
        start = max(start, last_end, 0.0)
        if end <= start:
            continue
        segments.append(DiarizationSegment(speaker_id=speaker, start_time=start, end_time=end))
        last_end = end
    return segments


class PyannoteDiarizationEngine:
    """Diarize files with ``pyannote/speaker-diarization-3.1`` (or another pipeline)."""

    def __init__(self, model_name: str = DIARIZATION_MODEL_NAME, token: str = HF_TOKEN):
        self.model_name = model_name
        self._token = token

    def diarize(self, audio_path: Path | str) -> list[DiarizationSegment]:
        pipeline = _get_pipeline(self.model_name, self._token)
        annotation = pipeline(str(audio_path))
        turns = [
            (float(turn.start), float(turn.end), str(speaker))
            for turn, _, speaker in annotation.itertracks(yield_label=True)
        ]
        segments = flatten_turns(turns)
        logger.debug("Diarization found %d segments in %s", len(segments), audio_path)
        return segments
