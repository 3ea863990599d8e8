"""Registry of response format renderers.

Each format registers a render function and its HTTP content type in
``FORMATTERS``. :func:`render` is the single dispatch point used by both the
single-response and the streaming delivery paths, so incremental output
concatenates to exactly what a single-shot render produces.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from whisper_server.exceptions import InvalidFormatError
from whisper_server.transcript.models import TranscriptModel

from ._json import to_json
from ._srt import to_srt
from ._txt import to_txt
from ._verbose_json import to_verbose_json
from ._vtt import to_vtt


class ResponseFormat(str, Enum):
    """Response formats accepted by ``/v1/audio/transcriptions``."""

    JSON = "json"
    TEXT = "text"
    SRT = "srt"
    VTT = "vtt"
    VERBOSE_JSON = "verbose_json"


RenderFunc = Callable[..., str]


@dataclass(frozen=True)
class FormatterSpec:
    """Metadata and render function for a response format.

    Attributes:
        render_func: Renders a :class:`TranscriptModel` from ``since_index``.
        content_type: HTTP ``Content-Type`` for single and chunked delivery.
        streams_incrementally: Whether partial transcripts produce output.
            Formats that cannot be split are emitted once at finalization.
    """

    render_func: RenderFunc
    content_type: str
    streams_incrementally: bool


FORMATTERS: dict[ResponseFormat, FormatterSpec] = {
    ResponseFormat.JSON: FormatterSpec(
        render_func=to_json,
        content_type="application/json",
        streams_incrementally=False,
    ),
    ResponseFormat.TEXT: FormatterSpec(
        render_func=to_txt,
        content_type="text/plain; charset=utf-8",
        streams_incrementally=True,
    ),
    ResponseFormat.SRT: FormatterSpec(
        render_func=to_srt,
        content_type="application/x-subrip",
        streams_incrementally=True,
    ),
    ResponseFormat.VTT: FormatterSpec(
        render_func=to_vtt,
        content_type="text/vtt",
        streams_incrementally=True,
    ),
    ResponseFormat.VERBOSE_JSON: FormatterSpec(
        render_func=to_verbose_json,
        content_type="application/json",
        streams_incrementally=True,
    ),
}


def supported_formats() -> list[str]:
    return [fmt.value for fmt in ResponseFormat]


def parse_response_format(value: str | ResponseFormat | None) -> ResponseFormat:
    """Parse a client supplied ``response_format``.

    Args:
        value: Raw form value. ``None`` or an empty string selects ``json``.

    Returns:
        The matching :class:`ResponseFormat`.

    Raises:
        InvalidFormatError: If ``value`` names no supported format.
    """
    if isinstance(value, ResponseFormat):
        return value
    if value is None or value == "":
        return ResponseFormat.JSON
    try:
        return ResponseFormat(value.strip().lower())
    except ValueError as exc:
        raise InvalidFormatError(value, supported_formats()) from exc


def get_formatter_spec(fmt: str | ResponseFormat) -> FormatterSpec:
    """Return the :class:`FormatterSpec` registered for ``fmt``.

    Raises:
        InvalidFormatError: If ``fmt`` is not supported.
    """
    return FORMATTERS[parse_response_format(fmt)]


def render(
    fmt: str | ResponseFormat,
    model: TranscriptModel,
    since_index: int = 0,
    *,
    incremental: bool = False,
) -> tuple[bytes, str]:
    """Render ``model`` in ``fmt``, emitting only utterances after ``since_index``.

    Args:
        fmt: Target response format.
        model: Partial or final transcript.
        since_index: Index of the last utterance already sent, 0 for none.
        incremental: ``True`` when the session streams its output.

    Returns:
        Tuple of UTF-8 encoded payload and content type.

    Raises:
        InvalidFormatError: If ``fmt`` is not supported.
    """
    spec = get_formatter_spec(fmt)
    text = spec.render_func(model, since_index=since_index, incremental=incremental)
    return text.encode("utf-8"), spec.content_type


__all__ = [
    "FORMATTERS",
    "FormatterSpec",
    "ResponseFormat",
    "get_formatter_spec",
    "parse_response_format",
    "render",
    "supported_formats",
]
