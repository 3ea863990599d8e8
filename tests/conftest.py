"""Shared test fixtures for the whisper_server test suite."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from whisper_server.engines.base import TranscriptionChunk
from whisper_server.models.guard import ModelPreparationGuard
from whisper_server.transcript.models import DiarizationSegment, Token


def _tokens(*triples: tuple[str, float, float]) -> list[Token]:
    """Build tokens from ``(text, start, end)`` triples, ids in given order."""
    return [
        Token(text=text, id=position, start_time=start, end_time=end)
        for position, (text, start, end) in enumerate(triples)
    ]


def _segments(*triples: tuple[str, float, float]) -> list[DiarizationSegment]:
    """Build diarization segments from ``(speaker, start, end)`` triples."""
    return [
        DiarizationSegment(speaker_id=speaker, start_time=start, end_time=end)
        for speaker, start, end in triples
    ]


class FakeEngine:
    """Transcription engine replaying prepared chunks.

    Args:
        chunks: Chunks to yield in order.
        fail_after: Raise ``RuntimeError`` after yielding this many chunks.
    """

    def __init__(
        self,
        chunks: Sequence[TranscriptionChunk],
        *,
        fail_after: int | None = None,
        model_id: str = "nvidia/fake",
    ) -> None:
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.model_id = model_id
        self.loaded = False
        self.calls: list[dict[str, object]] = []

    def load(self) -> None:
        self.loaded = True

    def transcribe(
        self,
        audio_path: Path | str,
        *,
        language: str | None = None,
        cancel_event: threading.Event | None = None,
    ) -> Iterator[TranscriptionChunk]:
        self.calls.append({"audio_path": Path(audio_path), "language": language})
        for position, chunk in enumerate(self.chunks):
            if self.fail_after is not None and position >= self.fail_after:
                raise RuntimeError("decoder exploded")
            yield chunk
        if self.fail_after is not None and self.fail_after >= len(self.chunks):
            raise RuntimeError("decoder exploded")


class FakeDiarizer:
    def __init__(self, segments: Sequence[DiarizationSegment] = (), error: Exception | None = None):
        self.segments = list(segments)
        self.error = error

    def diarize(self, audio_path: Path | str) -> list[DiarizationSegment]:
        if self.error is not None:
            raise self.error
        return list(self.segments)


def _two_chunks() -> list[TranscriptionChunk]:
    """Two windows: ``hello world`` then ``again``."""
    return [
        TranscriptionChunk(
            tokens=_tokens((" hello", 0.0, 0.4), (" world", 0.5, 1.0)),
            start_time=0.0,
            end_time=1.0,
        ),
        TranscriptionChunk(
            tokens=[Token(text=" again", id=2, start_time=1.2, end_time=1.9)],
            start_time=1.0,
            end_time=2.0,
        ),
    ]


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine(_two_chunks())


@pytest.fixture
def prepared_models() -> list[str]:
    """Model ids passed to the test guard's preparer."""
    return []


@pytest.fixture
def model_guard(prepared_models: list[str]) -> ModelPreparationGuard:
    return ModelPreparationGuard(prepared_models.append)


@pytest.fixture
def api_client(
    monkeypatch: pytest.MonkeyPatch,
    fake_engine: FakeEngine,
    model_guard: ModelPreparationGuard,
) -> TestClient:
    """Test client for the full app with the engine and model guard replaced."""
    from whisper_server.api import app as app_module
    from whisper_server.api import routes

    monkeypatch.setattr(routes, "create_engine", lambda model_id, chunk_len_sec=30: fake_engine)
    monkeypatch.setattr(routes, "get_model_guard", lambda: model_guard)
    monkeypatch.setattr(app_module, "get_model_guard", lambda: model_guard)
    return TestClient(app_module.create_app())


@pytest.fixture
def make_tokens():
    """Factory building tokens from ``(text, start, end)`` triples."""
    return _tokens


@pytest.fixture
def make_segments():
    """Factory building diarization segments from ``(speaker, start, end)`` triples."""
    return _segments


@pytest.fixture
def two_chunks() -> list[TranscriptionChunk]:
    return _two_chunks()


@pytest.fixture
def engine_factory():
    """Return the :class:`FakeEngine` class for tests needing custom chunks."""
    return FakeEngine


@pytest.fixture
def diarizer_factory():
    return FakeDiarizer
