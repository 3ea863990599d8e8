"""Drive a transcription engine (and optional diarizer) for one uploaded file.

The pipeline is the engine handle consumed by the streaming coordinator: a
lazy iterator of :class:`TranscriptModel` snapshots whose last element is the
final transcript.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from pathlib import Path

from whisper_server.engines.base import DiarizationEngine, TranscriptionEngine
from whisper_server.exceptions import EngineFailure, StreamAborted
from whisper_server.transcript.builder import TranscriptBuilder
from whisper_server.transcript.models import DiarizationSegment, TranscriptModel
from whisper_server.utils.audio_io import get_audio_duration
from whisper_server.utils.cancel import is_cancelled

logger = logging.getLogger(__name__)


class TranscriptionPipeline:
    """Transcribe one audio file into successive transcript snapshots.

    Args:
        engine: Transcription engine producing chunks in time order.
        audio_path: Path of the decoded upload.
        diarizer: Optional diarization engine; failures degrade to plain
            transcription.
        language: Language requested by the client, if any.
        duration: Audio duration in seconds. Probed from the file when
            ``None``.
    """

    def __init__(
        self,
        engine: TranscriptionEngine,
        audio_path: Path | str,
        diarizer: DiarizationEngine | None = None,
        language: str | None = None,
        duration: float | None = None,
    ) -> None:
        self.engine = engine
        self.audio_path = Path(audio_path)
        self.diarizer = diarizer
        self.language = language
        self._duration = duration
        self._builder: TranscriptBuilder | None = None
        self._started = False

    def _diarize(self) -> list[DiarizationSegment]:
        if self.diarizer is None:
            return []
        try:
            return list(self.diarizer.diarize(self.audio_path))
        except Exception as exc:
            logger.warning(
                "Diarization failed for %s, continuing without speakers: %s",
                self.audio_path.name,
                exc,
            )
            return []

    def updates(self, cancel_event: threading.Event | None = None) -> Iterator[TranscriptModel]:
        """Yield partial snapshots, then the final transcript.

        Iteration stops early, without a final snapshot, once
        ``cancel_event`` is set.

        Args:
            cancel_event: Per-request cancellation event.

        Yields:
            One snapshot per engine chunk, then the final transcript.

        Raises:
            EngineFailure: If the engine raises while producing chunks.
            RuntimeError: If iteration is started twice.
        """
        if self._started:
            raise RuntimeError("TranscriptionPipeline.updates() can only be consumed once")
        self._started = True

        duration = self._duration
        if duration is None:
            duration = get_audio_duration(self.audio_path)
        segments = self._diarize()
        builder = TranscriptBuilder(segments, language=self.language, duration=duration)
        self._builder = builder

        try:
            chunks = iter(
                self.engine.transcribe(
                    self.audio_path, language=self.language, cancel_event=cancel_event
                )
            )
        except Exception as exc:
            raise EngineFailure(f"Transcription failed: {exc}") from exc

        while True:
            if is_cancelled(cancel_event):
                logger.debug("Transcription of %s cancelled", self.audio_path.name)
                return
            try:
                chunk = next(chunks)
            except StopIteration:
                break
            except StreamAborted:
                logger.debug("Engine stopped on cancellation for %s", self.audio_path.name)
                return
            except EngineFailure:
                raise
            except Exception as exc:
                raise EngineFailure(f"Transcription failed: {exc}") from exc
            yield builder.add_chunk(
                chunk.tokens,
                text=chunk.text,
                start_time=chunk.start_time,
                end_time=chunk.end_time,
                language=chunk.language,
            )

        yield builder.finalize()

    def finalize(self) -> TranscriptModel:
        """Return the final transcript built from everything produced so far."""
        if self._builder is None:
            return TranscriptModel.from_utterances(
                [], language=self.language, duration_seconds=self._duration or 0.0, is_final=True
            )
        return self._builder.finalize()
