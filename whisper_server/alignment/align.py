"""Map word/token timing onto diarization intervals to build speaker utterances.

The logic is free of any engine imports so it can be tested offline. Tokens
are treated as an unordered set; diarization segments are trusted to be
sorted and non-overlapping, and are validated before use.

Segment ownership uses half-open intervals ``[start, end)``: a token starting
exactly on a segment's end belongs to the following segment.
"""

from __future__ import annotations

import bisect
import logging
from collections.abc import Iterable, Sequence

from whisper_server.exceptions import AlignmentInputError
from whisper_server.transcript.models import DiarizationSegment, Token, Utterance

logger = logging.getLogger(__name__)

__all__ = [
    "align",
    "align_or_fallback",
    "split_runs",
    "validate_segments",
]


def validate_segments(segments: Sequence[DiarizationSegment]) -> None:
    """Check that diarization segments are well-formed, sorted and disjoint.

    Args:
        segments: Diarization output in time order.

    Raises:
        AlignmentInputError: On negative start, empty/inverted interval or
            overlap with the previous segment.
    """
    previous: DiarizationSegment | None = None
    for position, segment in enumerate(segments):
        if segment.start_time < 0:
            raise AlignmentInputError(
                f"segment {position} ({segment.speaker_id}) starts before 0: {segment.start_time}"
            )
        if segment.end_time <= segment.start_time:
            raise AlignmentInputError(
                f"segment {position} ({segment.speaker_id}) has end <= start: "
                f"{segment.start_time}..{segment.end_time}"
            )
        if previous is not None and segment.start_time < previous.end_time:
            raise AlignmentInputError(
                f"segment {position} ({segment.speaker_id}) overlaps the previous segment"
            )
        previous = segment


def _sorted_tokens(tokens: Iterable[Token]) -> list[Token]:
    # sorted() is stable, so equal start times keep emission order
    return sorted(tokens, key=lambda token: token.start_time)


def _owner(time: float, starts: list[float], segments: Sequence[DiarizationSegment]) -> int:
    """Return the position of the segment owning ``time``.

    The covering segment wins; otherwise the segment whose nearest boundary
    is closest, ties going to the earlier segment.
    """
    position = bisect.bisect_right(starts, time) - 1
    if position < 0:
        return 0
    current = segments[position]
    if time < current.end_time:
        return position
    if position + 1 >= len(segments):
        return position
    gap_before = time - current.end_time
    gap_after = segments[position + 1].start_time - time
    return position if gap_before <= gap_after else position + 1


def _join(tokens: Iterable[Token]) -> str:
    return "".join(token.text for token in tokens).strip()


def _single_run(tokens: list[Token], duration: float) -> list[Utterance]:
    text = _join(tokens)
    if not text:
        return []
    end_time = max(token.end_time for token in tokens)
    if duration > 0:
        end_time = min(end_time, duration)
    start_time = min(tokens[0].start_time, end_time)
    return [Utterance(speaker_id=None, text=text, start_time=start_time, end_time=end_time, index=1)]


def split_runs(
    tokens: Iterable[Token],
    segments: Sequence[DiarizationSegment],
) -> list[tuple[int, list[Token]]]:
    """Group time-ordered tokens into runs owned by the same segment.

    ``segments`` must be non-empty and already validated.

    Returns:
        ``(segment position, tokens)`` pairs in time order.
    """
    starts = [segment.start_time for segment in segments]
    runs: list[tuple[int, list[Token]]] = []
    for token in _sorted_tokens(tokens):
        owner = _owner(token.start_time, starts, segments)
        if runs and runs[-1][0] == owner:
            runs[-1][1].append(token)
        else:
            runs.append((owner, [token]))
    return runs


def align(
    tokens: Iterable[Token],
    segments: Sequence[DiarizationSegment],
    duration: float,
) -> list[Utterance]:
    """Assign tokens to diarization segments and build one utterance per run.

    Args:
        tokens: Timed tokens in any order.
        segments: Non-overlapping diarization segments in time order. Empty
            means diarization is disabled.
        duration: Total audio length in seconds, ``0`` when unknown. Only
            used to clamp the end of the final utterance.

    Returns:
        Utterances in run order, indices ``1..N``. Start/end times are the
        owning segment's own times, never token extrema.

    Raises:
        AlignmentInputError: If ``duration`` is negative or ``segments`` are
            malformed.
    """
    if duration < 0:
        raise AlignmentInputError(f"duration must be >= 0, got {duration}")

    ordered = _sorted_tokens(tokens)
    if not ordered:
        return []
    if not segments:
        return _single_run(ordered, duration)

    validate_segments(segments)

    utterances: list[Utterance] = []
    for owner, run_tokens in split_runs(ordered, segments):
        text = _join(run_tokens)
        if not text:
            continue
        segment = segments[owner]
        utterances.append(
            Utterance(
                speaker_id=segment.speaker_id,
                text=text,
                start_time=segment.start_time,
                end_time=segment.end_time,
                index=len(utterances) + 1,
            )
        )

    if utterances and duration > 0 and utterances[-1].end_time > duration:
        last = utterances[-1]
        utterances[-1] = last.model_copy(update={"end_time": max(duration, last.start_time)})
    return utterances


def align_or_fallback(
    tokens: Iterable[Token],
    segments: Sequence[DiarizationSegment],
    duration: float,
) -> list[Utterance]:
    """Like :func:`align`, but degrade to a speaker-less single run on bad segments.

    Args:
        tokens: Timed tokens in any order.
        segments: Diarization output, possibly unusable.
        duration: Total audio length in seconds, ``0`` when unknown.

    Returns:
        Utterances built with diarization when possible, otherwise one
        utterance without speaker attribution.
    """
    token_list = list(tokens)
    try:
        return align(token_list, segments, duration)
    except AlignmentInputError as exc:
        logger.warning("Diarization segments unusable, falling back to a single run: %s", exc)
        return align(token_list, [], max(duration, 0.0))
