"""Subtitle timestamp helpers shared by the SRT and WebVTT renderers."""

from __future__ import annotations


def _split_millis(seconds: float) -> tuple[int, int, int, int]:
    # round to 1µs first so 2.9 does not become 2.899 in binary floating point
    total_ms = int(round(max(seconds, 0.0) * 1000, 3))
    hours, rest = divmod(total_ms, 3_600_000)
    minutes, rest = divmod(rest, 60_000)
    secs, millis = divmod(rest, 1000)
    return hours, minutes, secs, millis


def format_timestamp(seconds: float, separator: str = ",") -> str:
    """Format seconds as ``HH:MM:SS<sep>mmm`` with milliseconds truncated.

    Args:
        seconds: Time offset in seconds; negative values are clamped to zero.
        separator: ``","`` for SRT, ``"."`` for WebVTT.

    Returns:
        The zero-padded timestamp.
    """
    hours, minutes, secs, millis = _split_millis(seconds)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{separator}{millis:03d}"


def srt_timestamp(seconds: float) -> str:
    return format_timestamp(seconds, ",")


def vtt_timestamp(seconds: float) -> str:
    return format_timestamp(seconds, ".")
