"""Unit tests for the streaming protocol coordinator."""

from __future__ import annotations

import asyncio
import json
import threading
from collections.abc import Iterator
from pathlib import Path

import pytest

from whisper_server.engines.base import TranscriptionChunk
from whisper_server.exceptions import EngineFailure
from whisper_server.formatting import ResponseFormat, render
from whisper_server.streaming import (
    SSE_END_EVENT,
    SSE_PRELUDE,
    DeliveryMode,
    StreamCoordinator,
    StreamSession,
    StreamState,
)
from whisper_server.streaming.sse import parse_sse_data
from whisper_server.transcript.models import Token
from whisper_server.transcription import TranscriptionPipeline


def _coordinator(
    engine: object,
    fmt: ResponseFormat,
    mode: DeliveryMode,
    cleanups: list[str] | None = None,
    diarizer: object | None = None,
    **kwargs: object,
) -> StreamCoordinator:
    pipeline = TranscriptionPipeline(engine, Path("audio.wav"), diarizer=diarizer, duration=0.0)
    session = StreamSession(response_format=fmt, delivery_mode=mode, request_id="test")
    cleanup = [lambda: cleanups.append("done")] if cleanups is not None else []
    return StreamCoordinator(pipeline, session, cleanup=cleanup, **kwargs)


async def _collect(coordinator: StreamCoordinator) -> list[bytes]:
    return [frame async for frame in coordinator.stream()]


def _payloads(frames: list[bytes]) -> list[str]:
    return [
        parse_sse_data(frame.decode())
        for frame in frames
        if frame not in (SSE_PRELUDE, SSE_END_EVENT)
    ]


def test_stream_sse__prelude_content_and_single_end(fake_engine) -> None:
    cleanups: list[str] = []
    coordinator = _coordinator(fake_engine, ResponseFormat.SRT, DeliveryMode.SSE, cleanups)

    frames = asyncio.run(_collect(coordinator))

    assert frames[0] == SSE_PRELUDE
    assert frames[-1] == SSE_END_EVENT
    assert frames.count(SSE_END_EVENT) == 1
    assert "".join(_payloads(frames)) == (
        "1\n00:00:00,000 --> 00:00:01,000\nhello world\n\n"
        "2\n00:00:01,200 --> 00:00:01,900\nagain\n\n"
    )
    assert coordinator.session.is_closed
    assert cleanups == ["done"]
    assert coordinator.headers["Content-Type"] == "text/event-stream"
    assert coordinator.headers["Cache-Control"] == "no-cache"


def test_stream_sse__json_sent_once_at_end(fake_engine) -> None:
    coordinator = _coordinator(fake_engine, ResponseFormat.JSON, DeliveryMode.SSE)

    frames = asyncio.run(_collect(coordinator))

    assert _payloads(frames) == ['{"text": "hello world again"}']
    assert frames[-1] == SSE_END_EVENT


def test_stream_chunked__raw_output_matches_single_render(fake_engine, engine_factory, two_chunks) -> None:
    coordinator = _coordinator(fake_engine, ResponseFormat.VTT, DeliveryMode.CHUNKED)
    frames = asyncio.run(_collect(coordinator))

    single = _coordinator(engine_factory(two_chunks), ResponseFormat.VTT, DeliveryMode.SINGLE)
    body, content_type = asyncio.run(single.run_single())

    assert b"".join(frames) == body
    assert SSE_END_EVENT not in frames
    assert coordinator.content_type == content_type == "text/vtt"
    assert "Cache-Control" not in coordinator.headers


def test_stream_chunked__verbose_json_lines(fake_engine) -> None:
    coordinator = _coordinator(fake_engine, ResponseFormat.VERBOSE_JSON, DeliveryMode.CHUNKED)

    frames = asyncio.run(_collect(coordinator))

    lines = b"".join(frames).decode().splitlines()

    assert lines[:2] == [
        '{"start":0.0,"end":1.0,"text":"hello world"}',
        '{"start":1.2,"end":1.9,"text":"again"}',
    ]
    assert len(lines) == 3
    document = json.loads(lines[2])
    assert document["task"] == "transcribe"
    assert document["text"] == "hello world again"
    assert [s["id"] for s in document["segments"]] == [0, 1]


def test_stream_sse__engine_failure_ends_stream(engine_factory, two_chunks) -> None:
    cleanups: list[str] = []
    engine = engine_factory(two_chunks, fail_after=1)
    coordinator = _coordinator(engine, ResponseFormat.TEXT, DeliveryMode.SSE, cleanups)

    frames = asyncio.run(_collect(coordinator))

    assert "".join(_payloads(frames)) == "hello world"
    assert frames[-1] == SSE_END_EVENT
    assert frames.count(SSE_END_EVENT) == 1
    assert cleanups == ["done"]


def test_stream__client_disconnect_cancels_and_cleans_up(fake_engine) -> None:
    cleanups: list[str] = []
    coordinator = _coordinator(fake_engine, ResponseFormat.TEXT, DeliveryMode.SSE, cleanups)

    async def _first_frame_then_disconnect() -> bytes:
        stream = coordinator.stream()
        first = await stream.__anext__()
        await stream.aclose()
        return first

    first = asyncio.run(_first_frame_then_disconnect())

    assert first == SSE_PRELUDE
    assert coordinator.cancel_event.is_set()
    assert coordinator.session.is_closed
    assert cleanups == ["done"]


class _StallingEngine:
    """Engine that stalls until cancelled."""

    model_id = "nvidia/stall"

    def load(self) -> None:
        return None

    def transcribe(
        self,
        audio_path: Path | str,
        *,
        language: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[TranscriptionChunk]:
        assert cancel_event is not None
        cancel_event.wait(5.0)
        return
        yield  # pragma: no cover


def test_stream_sse__timeout_sends_end(caplog: pytest.LogCaptureFixture) -> None:
    cleanups: list[str] = []
    coordinator = _coordinator(
        _StallingEngine(), ResponseFormat.TEXT, DeliveryMode.SSE, cleanups, timeout_sec=0.05
    )

    frames = asyncio.run(_collect(coordinator))

    assert frames == [SSE_PRELUDE, SSE_END_EVENT]
    assert coordinator.cancel_event.is_set()
    assert cleanups == ["done"]
    assert "No engine output" in caplog.text


def test_run_single__renders_once(fake_engine) -> None:
    cleanups: list[str] = []
    coordinator = _coordinator(fake_engine, ResponseFormat.TEXT, DeliveryMode.SINGLE, cleanups)

    body, content_type = asyncio.run(coordinator.run_single())

    assert body == b"hello world again"
    assert content_type == "text/plain; charset=utf-8"
    assert coordinator.session.emitted_count == 2
    assert coordinator.session.state is StreamState.CLOSED
    assert cleanups == ["done"]


def test_run_single__engine_failure_propagates(engine_factory, two_chunks) -> None:
    cleanups: list[str] = []
    coordinator = _coordinator(
        engine_factory(two_chunks, fail_after=0), ResponseFormat.JSON, DeliveryMode.SINGLE, cleanups
    )

    with pytest.raises(EngineFailure):
        asyncio.run(coordinator.run_single())
    assert cleanups == ["done"]
    assert coordinator.cancel_event.is_set()


def test_stream__frames_match_render_of_final_model(fake_engine, engine_factory, two_chunks) -> None:
    """SSE payloads joined equal the single-shot render for incremental formats."""
    for fmt in (ResponseFormat.TEXT, ResponseFormat.SRT, ResponseFormat.VTT):
        coordinator = _coordinator(engine_factory(two_chunks), fmt, DeliveryMode.SSE)
        frames = asyncio.run(_collect(coordinator))
        final = coordinator.pipeline.finalize()
        assert "".join(_payloads(frames)) == render(fmt, final)[0].decode()


def _silent_then_speech() -> list[TranscriptionChunk]:
    return [
        TranscriptionChunk(tokens=[], text="", start_time=0.0, end_time=1.0),
        TranscriptionChunk(
            tokens=[Token(text=" hi", id=0, start_time=1.0, end_time=1.5)],
            start_time=1.0,
            end_time=2.0,
        ),
    ]


def test_stream_chunked__vtt_header_once_after_silent_window(engine_factory) -> None:
    coordinator = _coordinator(
        engine_factory(_silent_then_speech()), ResponseFormat.VTT, DeliveryMode.CHUNKED
    )

    body = b"".join(asyncio.run(_collect(coordinator)))

    assert body == b"WEBVTT\n\n00:00:01.000 --> 00:00:01.500\nhi\n\n"
    assert body == render(ResponseFormat.VTT, coordinator.pipeline.finalize())[0]


def test_stream_sse__vtt_empty_transcript_has_single_header(engine_factory) -> None:
    silent = [TranscriptionChunk(tokens=[], text=" ", start_time=0.0, end_time=1.0)] * 2
    coordinator = _coordinator(engine_factory(silent), ResponseFormat.VTT, DeliveryMode.SSE)

    frames = asyncio.run(_collect(coordinator))

    assert _payloads(frames) == ["WEBVTT\n\n"]
    assert frames[-1] == SSE_END_EVENT


def _diarized_chunks() -> list[TranscriptionChunk]:
    """Speaker A, then B, then a late token that belongs to A."""
    return [
        TranscriptionChunk(tokens=[Token(text=" hi", id=0, start_time=0.1, end_time=0.4)]),
        TranscriptionChunk(tokens=[Token(text=" there", id=1, start_time=1.1, end_time=1.4)]),
        TranscriptionChunk(tokens=[Token(text=" late", id=2, start_time=0.5, end_time=0.8)]),
    ]


@pytest.mark.parametrize(
    ("fmt", "mode"),
    [
        (ResponseFormat.VTT, DeliveryMode.CHUNKED),
        (ResponseFormat.VTT, DeliveryMode.SSE),
        (ResponseFormat.SRT, DeliveryMode.SSE),
        (ResponseFormat.TEXT, DeliveryMode.CHUNKED),
    ],
)
def test_stream__diarized_held_back_runs(
    engine_factory, diarizer_factory, make_segments, fmt: ResponseFormat, mode: DeliveryMode
) -> None:
    diarizer = diarizer_factory(make_segments(("A", 0.0, 1.0), ("B", 1.0, 2.0)))
    coordinator = _coordinator(
        engine_factory(_diarized_chunks()), fmt, mode, diarizer=diarizer
    )

    frames = asyncio.run(_collect(coordinator))
    body = "".join(_payloads(frames)) if mode is DeliveryMode.SSE else b"".join(frames).decode()
    final = coordinator.pipeline.finalize()

    assert body == render(fmt, final)[0].decode()
    assert body.count("WEBVTT") == (1 if fmt is ResponseFormat.VTT else 0)
    for word in ("hi", "there", "late"):
        assert word in final.full_text
    assert [u.speaker_id for u in final.utterances] == ["A", "A", "B"]


def test_release__runs_cleanup_for_unstarted_stream(fake_engine) -> None:
    cleanups: list[str] = []
    coordinator = _coordinator(fake_engine, ResponseFormat.TEXT, DeliveryMode.SSE, cleanups)
    coordinator.stream()

    coordinator.release()
    coordinator.release()

    assert cleanups == ["done"]
    assert coordinator.cancel_event.is_set()
