"""Server-Sent Events framing."""

from __future__ import annotations

SSE_PRELUDE = b":ok\n\n"
SSE_END_EVENT = b"event: end\ndata: \n\n"

SSE_HEADERS: dict[str, str] = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}
SSE_MEDIA_TYPE = "text/event-stream"


def format_sse_data(payload: str | bytes) -> bytes:
    """Frame ``payload`` as one SSE message.

    Every payload line becomes its own ``data:`` line so that consumers
    rebuild the payload by joining data lines with ``\\n``. Trailing newlines
    of the payload are preserved as empty ``data:`` lines.

    Args:
        payload: Rendered text or its UTF-8 encoding.

    Returns:
        The encoded frame, terminated by a blank line.
    """
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    lines = text.split("\n")
    return ("".join(f"data: {line}\n" for line in lines) + "\n").encode("utf-8")


def parse_sse_data(frame: str) -> str:
    """Inverse of :func:`format_sse_data` for a single frame."""
    lines = [line[len("data: ") :] for line in frame.split("\n") if line.startswith("data: ")]
    return "\n".join(lines)
