"""Common data models for timed transcription results.

This module defines pydantic models that are shared across alignment,
formatting and streaming: engine outputs (:class:`Token`,
:class:`DiarizationSegment`) and the intermediate representation every
renderer consumes (:class:`Utterance`, :class:`TranscriptModel`).
"""

from __future__ import annotations

from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "Token",
    "DiarizationSegment",
    "Utterance",
    "TranscriptModel",
]


class Token(BaseModel):
    """Smallest timed unit of recognized text emitted by the transcription engine."""

    model_config = ConfigDict(frozen=True)

    text: str = Field(..., description="Token text, including any leading separator.")
    id: int = Field(..., description="Engine token id.")
    start_time: float = Field(..., ge=0.0, description="Start time in seconds.")
    end_time: float = Field(..., ge=0.0, description="End time in seconds.")
    confidence: float = Field(1.0, ge=0.0, le=1.0, description="Engine confidence.")

    @model_validator(mode="after")
    def _check_order(self) -> Token:
        if self.end_time < self.start_time:
            raise ValueError("end_time must be >= start_time")
        return self


class DiarizationSegment(BaseModel):
    """Speaker-labelled time interval produced by the diarization engine.

    Validation of the interval itself is left to the alignment engine so that
    unusable diarization output degrades instead of failing the request.
    """

    model_config = ConfigDict(frozen=True)

    speaker_id: str
    start_time: float
    end_time: float
    quality_score: float = 0.0
    embedding: list[float] | None = Field(
        None, description="Speaker embedding, accepted but unused."
    )


class Utterance(BaseModel):
    """Contiguous, speaker-attributed span of transcript text."""

    model_config = ConfigDict(frozen=True)

    speaker_id: str | None = None
    text: str
    start_time: float
    end_time: float
    index: int = Field(..., ge=1, description="1-based emission order.")


class TranscriptModel(BaseModel):
    """Full text plus ordered utterances, partial while streaming."""

    full_text: str = ""
    utterances: list[Utterance] = Field(default_factory=list)
    language: str | None = None
    duration_seconds: float = 0.0
    is_final: bool = False

    @model_validator(mode="after")
    def _check_ordering(self) -> TranscriptModel:
        previous_start = float("-inf")
        for expected, utterance in enumerate(self.utterances, start=1):
            if utterance.index != expected:
                raise ValueError(
                    f"utterance indices must run 1..N without gaps (got {utterance.index}, "
                    f"expected {expected})"
                )
            if utterance.start_time < previous_start:
                raise ValueError("utterance start times must be non-decreasing")
            previous_start = utterance.start_time
        return self

    @classmethod
    def from_utterances(
        cls,
        utterances: Sequence[Utterance],
        *,
        language: str | None = None,
        duration_seconds: float = 0.0,
        is_final: bool = False,
    ) -> TranscriptModel:
        """Build a model whose ``full_text`` is derived from ``utterances``.

        Args:
            utterances: Ordered utterances, indices 1..N.
            language: Optional language code.
            duration_seconds: Total audio duration, 0.0 when unknown.
            is_final: ``False`` for partial views during streaming.

        Returns:
            The transcript model.
        """
        return cls(
            full_text=" ".join(u.text for u in utterances),
            utterances=list(utterances),
            language=language,
            duration_seconds=duration_seconds,
            is_final=is_final,
        )

    @property
    def last_index(self) -> int:
        """Index of the last utterance, 0 when empty."""
        return self.utterances[-1].index if self.utterances else 0

    def since(self, since_index: int) -> list[Utterance]:
        """Return utterances with ``index > since_index``."""
        return [u for u in self.utterances if u.index > since_index]

    def utterance_at(self, index: int) -> Utterance | None:
        """Return the utterance with the given 1-based index, if any."""
        if 1 <= index <= len(self.utterances):
            return self.utterances[index - 1]
        return None
