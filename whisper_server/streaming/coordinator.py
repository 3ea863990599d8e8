"""Deliver a transcription as one response, an SSE stream or a chunked body.

The coordinator pulls transcript snapshots from a
:class:`~whisper_server.transcription.pipeline.TranscriptionPipeline` in the
threadpool, renders only what is new since the last frame and guarantees the
terminal frame, cancellation and cleanup semantics of each delivery mode.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import AsyncIterator, Callable, Iterator

from starlette.concurrency import run_in_threadpool

from whisper_server.exceptions import EngineFailure
from whisper_server.formatting import get_formatter_spec, render
from whisper_server.streaming.session import DeliveryMode, StreamSession, StreamState
from whisper_server.streaming.sse import (
    SSE_END_EVENT,
    SSE_HEADERS,
    SSE_MEDIA_TYPE,
    SSE_PRELUDE,
    format_sse_data,
)
from whisper_server.transcript.models import TranscriptModel
from whisper_server.transcription.pipeline import TranscriptionPipeline
from whisper_server.utils.cancel import new_cancel_event
from whisper_server.utils.constant import STREAM_TIMEOUT_SEC

logger = logging.getLogger(__name__)

CleanupCallback = Callable[[], None]

_DONE = object()


def _next_update(updates: Iterator[TranscriptModel]) -> object:
    # StopIteration cannot cross the threadpool boundary
    return next(updates, _DONE)


def _log_abandoned_step(step: asyncio.Future) -> None:
    if step.cancelled():
        return
    exc = step.exception()
    if exc is not None:
        logger.debug("Abandoned engine step ended with %r", exc)


class StreamCoordinator:
    """Drive one transcription request to the client.

    Args:
        pipeline: Source of transcript snapshots.
        session: Negotiated session for this request.
        timeout_sec: Maximum wait for one engine step; ``<= 0`` disables it.
        cancel_event: Shared cancellation event; a new one is created when
            omitted.
        cleanup: Callbacks run exactly once when delivery ends, on every path.
    """

    def __init__(
        self,
        pipeline: TranscriptionPipeline,
        session: StreamSession,
        *,
        timeout_sec: float = STREAM_TIMEOUT_SEC,
        cancel_event: threading.Event | None = None,
        cleanup: list[CleanupCallback] | None = None,
    ) -> None:
        self.pipeline = pipeline
        self.session = session
        self.timeout_sec = timeout_sec
        self.cancel_event = cancel_event or new_cancel_event()
        self._cleanup: list[CleanupCallback] = list(cleanup or [])
        self._spec = get_formatter_spec(session.response_format)

    @property
    def is_sse(self) -> bool:
        return self.session.delivery_mode is DeliveryMode.SSE

    @property
    def content_type(self) -> str:
        """``Content-Type`` of the response body."""
        return SSE_MEDIA_TYPE if self.is_sse else self._spec.content_type

    @property
    def headers(self) -> dict[str, str]:
        """Response headers, ``Content-Type`` included."""
        headers = {"Content-Type": self.content_type}
        if self.is_sse:
            headers.update(SSE_HEADERS)
        return headers

    def add_cleanup(self, callback: CleanupCallback) -> None:
        self._cleanup.append(callback)

    def cancel(self) -> None:
        """Ask the engine to stop at its next checkpoint."""
        self.cancel_event.set()

    def release(self) -> None:
        """Cancel the engine and run any cleanup not yet run.

        Used after the response finished. It covers a stream that was never
        iterated, which happens when the client leaves before the first byte.
        """
        self.cancel()
        self._run_cleanup()

    async def _next(self, updates: Iterator[TranscriptModel]) -> object:
        """Fetch the next snapshot in the threadpool.

        The worker thread cannot be interrupted, so on timeout or cancellation
        the step is left to finish on its own while the cancel event makes the
        engine stop at its next checkpoint.

        Raises:
            asyncio.TimeoutError: If no snapshot arrived within ``timeout_sec``.
        """
        step = asyncio.ensure_future(run_in_threadpool(_next_update, updates))
        timeout = self.timeout_sec if self.timeout_sec > 0 else None
        try:
            done, _ = await asyncio.wait({step}, timeout=timeout)
        except asyncio.CancelledError:
            step.add_done_callback(_log_abandoned_step)
            raise
        if not done:
            step.add_done_callback(_log_abandoned_step)
            raise asyncio.TimeoutError
        return step.result()

    def _frame(self, snapshot: TranscriptModel) -> bytes | None:
        # A partial with nothing new must not render: vtt would repeat its header.
        if not snapshot.is_final and snapshot.last_index <= self.session.emitted_count:
            return None
        body, _ = render(
            self.session.response_format,
            snapshot,
            self.session.emitted_count,
            incremental=True,
        )
        self.session.record_emitted(snapshot.last_index)
        if not body:
            return None
        return format_sse_data(body) if self.is_sse else body

    def _run_cleanup(self) -> None:
        callbacks, self._cleanup = self._cleanup, []
        for callback in callbacks:
            try:
                callback()
            except Exception:
                logger.warning(
                    "[%s] Cleanup callback failed", self.session.request_id, exc_info=True
                )

    def _close_updates(self, updates: Iterator[TranscriptModel]) -> None:
        close = getattr(updates, "close", None)
        if close is None:
            return
        try:
            close()
        except ValueError:
            # still running in a worker thread; the cancel event stops it
            logger.debug("[%s] Engine iterator busy at close", self.session.request_id)

    async def stream(self) -> AsyncIterator[bytes]:
        """Yield response body frames for SSE or chunked delivery.

        The SSE terminal ``end`` event is sent exactly once when the stream
        completes, after an engine failure and on timeout. A client
        disconnect stops the engine and emits nothing further.
        """
        session = self.session
        session.transition(StreamState.STREAMING)
        logger.debug(
            "[%s] Streaming %s via %s",
            session.request_id,
            session.response_format.value,
            session.delivery_mode.value,
        )
        updates = self.pipeline.updates(self.cancel_event)
        completed = False
        try:
            if self.is_sse:
                yield SSE_PRELUDE

            final: TranscriptModel | None = None
            while True:
                try:
                    snapshot = await self._next(updates)
                except asyncio.TimeoutError:
                    logger.warning(
                        "[%s] No engine output within %.1fs, ending stream",
                        session.request_id,
                        self.timeout_sec,
                    )
                    self.cancel()
                    if self.is_sse:
                        yield SSE_END_EVENT
                    completed = True
                    return
                except EngineFailure as exc:
                    logger.error("[%s] Engine failure during stream: %s", session.request_id, exc)
                    final = self.pipeline.finalize()
                    break
                if snapshot is _DONE:
                    break
                assert isinstance(snapshot, TranscriptModel)
                if snapshot.is_final:
                    final = snapshot
                    break
                if self._spec.streams_incrementally:
                    frame = self._frame(snapshot)
                    if frame:
                        yield frame

            if final is None:
                final = self.pipeline.finalize()
            session.transition(StreamState.FINALIZING)
            frame = self._frame(final)
            if frame:
                yield frame
            if self.is_sse:
                yield SSE_END_EVENT
            completed = True
            logger.debug(
                "[%s] Stream finished after %d utterances",
                session.request_id,
                session.emitted_count,
            )
        finally:
            if not completed:
                logger.info("[%s] Client went away, cancelling transcription", session.request_id)
                self.cancel()
            self._close_updates(updates)
            session.close()
            self._run_cleanup()

    async def run_single(self) -> tuple[bytes, str]:
        """Gather the whole transcript and render it once.

        Returns:
            Tuple of response body and content type.

        Raises:
            EngineFailure: If the engine fails or times out.
        """
        session = self.session
        session.transition(StreamState.SINGLE_RESPONSE)
        updates = self.pipeline.updates(self.cancel_event)
        completed = False
        try:
            final: TranscriptModel | None = None
            while True:
                try:
                    snapshot = await self._next(updates)
                except asyncio.TimeoutError as exc:
                    self.cancel()
                    raise EngineFailure(
                        f"Transcription timed out after {self.timeout_sec:.1f}s"
                    ) from exc
                if snapshot is _DONE:
                    break
                assert isinstance(snapshot, TranscriptModel)
                final = snapshot
            if final is None or not final.is_final:
                final = self.pipeline.finalize()
            body, content_type = render(session.response_format, final, 0)
            session.record_emitted(final.last_index)
            logger.debug(
                "[%s] Single response with %d utterances", session.request_id, final.last_index
            )
            completed = True
            return body, content_type
        finally:
            if not completed:
                self.cancel()
            self._close_updates(updates)
            session.close()
            self._run_cleanup()
