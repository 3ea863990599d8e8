"""NVIDIA Parakeet (NeMo) transcription engine with a lazy model cache.

NeMo and torch are imported lazily so the server and its tests run without
the ``asr`` extra installed.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Any

from whisper_server.engines.base import TranscriptionChunk
from whisper_server.transcript.models import Token
from whisper_server.utils.audio_io import DEFAULT_SAMPLE_RATE, iter_audio_windows, load_audio
from whisper_server.utils.cancel import raise_if_cancelled
from whisper_server.utils.constant import CHUNK_LEN_SEC, WHISPER_MODEL_NAME

if TYPE_CHECKING:  # Import for type hints only to avoid heavy runtime import
    from nemo.collections.asr.models import ASRModel

logger = logging.getLogger(__name__)

__all__ = ["ParakeetEngine", "clear_model_cache", "get_model"]


def _best_device() -> str:
    import torch  # pylint: disable=import-outside-toplevel

    return "cuda" if torch.cuda.is_available() else "cpu"


@lru_cache(maxsize=4)
def _get_cached_model(model_name: str) -> ASRModel:
    """Load a pretrained NeMo ASR model once per name, in eval mode."""
    import nemo.collections.asr as nemo_asr  # pylint: disable=import-outside-toplevel

    logger.info("Loading ASR model %s", model_name)
    model = nemo_asr.models.ASRModel.from_pretrained(model_name).eval()
    model.to(_best_device())
    return model


def get_model(model_name: str = WHISPER_MODEL_NAME) -> ASRModel:
    """Return the cached model for ``model_name``, loading it on first use."""
    return _get_cached_model(model_name)


def clear_model_cache() -> None:
    """Drop every cached model instance."""
    _get_cached_model.cache_clear()


def hypothesis_to_tokens(hypothesis: Any, offset: float, first_id: int = 0) -> list[Token]:
    """Convert NeMo word timestamps of one hypothesis into tokens.

    Args:
        hypothesis: NeMo ``Hypothesis`` produced with ``timestamps=True``.
            Word entries are dicts with ``word``, ``start`` and ``end`` in
            seconds relative to the window.
        offset: Window start in seconds, added to every time.
        first_id: Id given to the first token.

    Returns:
        Tokens whose text carries a leading space as word separator.
    """
    timestamp = getattr(hypothesis, "timestamp", None) or {}
    words = timestamp.get("word", []) if isinstance(timestamp, dict) else []
    tokens: list[Token] = []
    for entry in words:
        word = str(entry.get("word", "")).strip()
        if not word:
            continue
        start = max(float(entry.get("start", 0.0)) + offset, 0.0)
        end = max(float(entry.get("end", entry.get("start", 0.0))) + offset, start)
        tokens.append(
            Token(text=f" {word}", id=first_id + len(tokens), start_time=start, end_time=end)
        )
    return tokens


class ParakeetEngine:
    """Transcribe audio window by window with a Parakeet TDT/CTC model.

    Args:
        model_id: Hugging Face / NGC identifier of the NeMo model.
        chunk_len_sec: Window length handed to the model per step.
    """

    def __init__(self, model_id: str = WHISPER_MODEL_NAME, chunk_len_sec: int = CHUNK_LEN_SEC):
        self.model_id = model_id
        self.chunk_len_sec = chunk_len_sec

    def load(self) -> None:
        get_model(self.model_id)

    def transcribe(
        self,
        audio_path: Path | str,
        *,
        language: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[TranscriptionChunk]:
        import torch  # pylint: disable=import-outside-toplevel

        model = get_model(self.model_id)
        wav, sr = load_audio(audio_path, DEFAULT_SAMPLE_RATE)
        next_id = 0
        for window, offset in iter_audio_windows(wav, sr, self.chunk_len_sec):
            raise_if_cancelled(cancel_event, where=f"window at {offset:.1f}s")
            with torch.inference_mode():
                results = model.transcribe(
                    audio=[window],
                    batch_size=1,
                    timestamps=True,
                    verbose=False,
                )
            end = offset + len(window) / sr
            if not results:
                continue
            hypothesis = results[0]
            tokens = hypothesis_to_tokens(hypothesis, offset, next_id)
            next_id += len(tokens)
            logger.debug("Window %.1f-%.1fs produced %d tokens", offset, end, len(tokens))
            yield TranscriptionChunk(
                tokens=tokens,
                text=getattr(hypothesis, "text", None) or None,
                start_time=offset,
                end_time=end,
                language=language,
            )
