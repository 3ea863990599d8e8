"""Cooperative cancellation helpers for engine work running in worker threads.

Each request owns one ``threading.Event``. The streaming coordinator sets it
when the client disconnects or the stream times out; engine loops check it
between chunks and stop early.
"""

from __future__ import annotations

import logging
import threading

from whisper_server.exceptions import StreamAborted

logger = logging.getLogger(__name__)


def new_cancel_event() -> threading.Event:
    """Create a fresh, unset cancellation event for one request.

    Returns:
        A threading.Event that will be set when cancellation is requested.
    """
    return threading.Event()


def is_cancelled(cancel_event: threading.Event | None) -> bool:
    """Check if cancellation has been requested.

    Args:
        cancel_event: Event to check. ``None`` means "never cancelled".

    Returns:
        True if cancellation has been requested, False otherwise.
    """
    return cancel_event is not None and cancel_event.is_set()


def raise_if_cancelled(cancel_event: threading.Event | None, *, where: str = "") -> None:
    """Raise :class:`StreamAborted` when the event has been set.

    Args:
        cancel_event: Event to check.
        where: Short description of the checkpoint, used for logging.

    Raises:
        StreamAborted: If cancellation has been requested.
    """
    if is_cancelled(cancel_event):
        logger.debug("Cancellation observed at %s", where or "checkpoint")
        raise StreamAborted(f"Cancelled at {where or 'checkpoint'}")
