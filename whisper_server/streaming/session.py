"""Per-request stream session state and delivery mode negotiation."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from enum import Enum

from whisper_server.exceptions import StreamStateError
from whisper_server.formatting import ResponseFormat


class DeliveryMode(str, Enum):
    """How the transcript reaches the client."""

    SINGLE = "single"
    SSE = "sse"
    CHUNKED = "chunked"


class StreamState(str, Enum):
    NEGOTIATING = "negotiating"
    STREAMING = "streaming"
    FINALIZING = "finalizing"
    SINGLE_RESPONSE = "single_response"
    CLOSED = "closed"


# Any live state may also jump straight to CLOSED (disconnect, cancellation).
_TRANSITIONS: dict[StreamState, frozenset[StreamState]] = {
    StreamState.NEGOTIATING: frozenset(
        {StreamState.STREAMING, StreamState.SINGLE_RESPONSE, StreamState.CLOSED}
    ),
    StreamState.STREAMING: frozenset({StreamState.FINALIZING, StreamState.CLOSED}),
    StreamState.FINALIZING: frozenset({StreamState.CLOSED}),
    StreamState.SINGLE_RESPONSE: frozenset({StreamState.CLOSED}),
    StreamState.CLOSED: frozenset(),
}


def negotiate_delivery_mode(stream_requested: bool, accept_header: str | None) -> DeliveryMode:
    """Pick the delivery mode from the ``stream`` flag and ``Accept`` header.

    Args:
        stream_requested: Value of the ``stream`` form field.
        accept_header: Raw ``Accept`` header, if any.

    Returns:
        ``SSE`` when streaming and the client accepts ``text/event-stream``,
        ``CHUNKED`` when streaming otherwise, ``SINGLE`` when not streaming.
    """
    if not stream_requested:
        return DeliveryMode.SINGLE
    if accept_header and "text/event-stream" in accept_header.lower():
        return DeliveryMode.SSE
    return DeliveryMode.CHUNKED


@dataclass
class StreamSession:
    """Bookkeeping for one transcription response.

    Attributes:
        response_format: Negotiated output format.
        delivery_mode: Negotiated delivery mode.
        request_id: Identifier used in log lines.
        emitted_count: Index of the last utterance delivered to the client.
        state: Current lifecycle state.
    """

    response_format: ResponseFormat
    delivery_mode: DeliveryMode
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    emitted_count: int = 0
    state: StreamState = StreamState.NEGOTIATING

    @property
    def is_closed(self) -> bool:
        return self.state is StreamState.CLOSED

    @property
    def is_streaming(self) -> bool:
        return self.delivery_mode is not DeliveryMode.SINGLE

    def transition(self, target: StreamState) -> None:
        """Move to ``target``.

        Raises:
            StreamStateError: If the transition is not allowed from the
                current state.
        """
        if target not in _TRANSITIONS[self.state]:
            raise StreamStateError(
                f"[{self.request_id}] illegal stream transition {self.state.value} -> {target.value}"
            )
        self.state = target

    def close(self) -> None:
        """Close the session; closing twice is a no-op."""
        if not self.is_closed:
            self.transition(StreamState.CLOSED)

    def record_emitted(self, last_index: int) -> None:
        """Record that utterances up to ``last_index`` were delivered.

        Raises:
            StreamStateError: If the session is closed or ``last_index`` moves
                backwards.
        """
        if self.is_closed:
            raise StreamStateError(f"[{self.request_id}] cannot emit on a closed stream")
        if last_index < self.emitted_count:
            raise StreamStateError(
                f"[{self.request_id}] emitted index went backwards "
                f"({self.emitted_count} -> {last_index})"
            )
        self.emitted_count = last_index
