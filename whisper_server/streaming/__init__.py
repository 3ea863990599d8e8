"""Delivery of transcripts as single responses, SSE streams or chunked bodies."""

from __future__ import annotations

from whisper_server.streaming.coordinator import StreamCoordinator
from whisper_server.streaming.session import (
    DeliveryMode,
    StreamSession,
    StreamState,
    negotiate_delivery_mode,
)
from whisper_server.streaming.sse import SSE_END_EVENT, SSE_PRELUDE, format_sse_data

__all__ = [
    "SSE_END_EVENT",
    "SSE_PRELUDE",
    "DeliveryMode",
    "StreamCoordinator",
    "StreamSession",
    "StreamState",
    "format_sse_data",
    "negotiate_delivery_mode",
]
