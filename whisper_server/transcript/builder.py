"""Incremental construction of transcript snapshots from engine chunks."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence

from whisper_server.alignment import align, align_or_fallback, split_runs, validate_segments
from whisper_server.exceptions import AlignmentInputError
from whisper_server.transcript.models import DiarizationSegment, Token, TranscriptModel, Utterance

logger = logging.getLogger(__name__)

__all__ = ["TranscriptBuilder"]


class TranscriptBuilder:
    """Accumulate engine chunks and publish append-only transcript snapshots.

    Without diarization each chunk becomes one utterance as soon as it
    arrives. With diarization the tokens not yet published are re-aligned
    after each chunk; every run but the last is published, the last one only
    on :meth:`finalize`. Published utterances are never rewritten or
    renumbered, so a token arriving after its segment was published becomes
    a new utterance of that segment instead of being dropped.
    """

    def __init__(
        self,
        segments: Sequence[DiarizationSegment] | None = None,
        *,
        language: str | None = None,
        duration: float = 0.0,
    ) -> None:
        self._segments = list(segments or [])
        self._language = language
        self._duration = max(duration, 0.0)
        self._pending: list[Token] = []
        self._segments_usable = self._check_segments()
        self._published: list[Utterance] = []
        self._final: TranscriptModel | None = None

    @property
    def diarized(self) -> bool:
        return bool(self._segments)

    @property
    def language(self) -> str | None:
        return self._language

    @property
    def is_finalized(self) -> bool:
        return self._final is not None

    def add_chunk(
        self,
        tokens: Iterable[Token],
        *,
        text: str | None = None,
        start_time: float = 0.0,
        end_time: float = 0.0,
        language: str | None = None,
    ) -> TranscriptModel:
        """Add one engine chunk and return the resulting partial snapshot.

        Args:
            tokens: Timed tokens of the chunk.
            text: Plain chunk text, used when the engine returned no tokens.
            start_time: Chunk start in seconds.
            end_time: Chunk end in seconds.
            language: Language detected by the engine for this chunk.

        Returns:
            A non-final :class:`TranscriptModel` with every published utterance.

        Raises:
            RuntimeError: If the builder was already finalized.
        """
        if self._final is not None:
            raise RuntimeError("TranscriptBuilder already finalized")
        if self._language is None and language:
            self._language = language

        chunk_tokens = list(tokens)
        if self.diarized:
            self._pending.extend(chunk_tokens)
            self._publish_settled_runs()
        else:
            self._append(self._chunk_utterances(chunk_tokens, text, start_time, end_time))
        return self.snapshot()

    def snapshot(self) -> TranscriptModel:
        """Return the current transcript, final once :meth:`finalize` ran."""
        if self._final is not None:
            return self._final
        return self._build(is_final=False)

    def finalize(self) -> TranscriptModel:
        """Publish the remaining utterances and return the final transcript.

        Idempotent: later calls return the same model.
        """
        if self._final is None:
            if self.diarized:
                self._append(align_or_fallback(self._pending, self._segments, self._duration))
                self._pending = []
            self._final = self._build(is_final=True)
        return self._final

    def _check_segments(self) -> bool:
        if not self._segments:
            return False
        try:
            validate_segments(self._segments)
        except AlignmentInputError as exc:
            # finalize() falls back to a single speaker-less run
            logger.debug("Holding all tokens until finalize, segments unusable: %s", exc)
            return False
        return True

    def _publish_settled_runs(self) -> None:
        """Publish every pending run except the last one."""
        if not self._segments_usable:
            return
        runs = split_runs(self._pending, self._segments)
        if len(runs) < 2:
            return
        settled = [token for _, run_tokens in runs[:-1] for token in run_tokens]
        self._append(align(settled, self._segments, 0.0))
        self._pending = runs[-1][1]

    def _chunk_utterances(
        self,
        tokens: list[Token],
        text: str | None,
        start_time: float,
        end_time: float,
    ) -> list[Utterance]:
        if tokens:
            return align(tokens, [], self._duration)
        stripped = (text or "").strip()
        if not stripped:
            return []
        end = min(end_time, self._duration) if self._duration > 0 else end_time
        return [
            Utterance(
                text=stripped,
                start_time=start_time,
                end_time=max(end, start_time),
                index=1,
            )
        ]

    def _append(self, utterances: Sequence[Utterance]) -> None:
        for utterance in utterances:
            previous = self._published[-1] if self._published else None
            update: dict[str, object] = {"index": len(self._published) + 1}
            if previous is not None and utterance.start_time < previous.start_time:
                logger.debug(
                    "Out-of-order utterance at %.3fs clamped to %.3fs",
                    utterance.start_time,
                    previous.start_time,
                )
                update["start_time"] = previous.start_time
                update["end_time"] = max(utterance.end_time, previous.start_time)
            self._published.append(utterance.model_copy(update=update))

    def _build(self, *, is_final: bool) -> TranscriptModel:
        return TranscriptModel.from_utterances(
            self._published,
            language=self._language,
            duration_seconds=self._duration,
            is_final=is_final,
        )
