"""Unit tests for engine adapters that run without NeMo or pyannote installed."""

from __future__ import annotations

import sys
import types

import numpy as np
import pytest

from whisper_server.engines import create_diarizer, create_engine
from whisper_server.engines.base import DiarizationEngine, TranscriptionEngine
from whisper_server.engines.parakeet import ParakeetEngine, hypothesis_to_tokens
from whisper_server.engines.pyannote import PyannoteDiarizationEngine, flatten_turns
from whisper_server.utils.audio_io import iter_audio_windows


def test_factories_return_protocol_implementations() -> None:
    engine = create_engine("nvidia/parakeet-tdt-0.6b-v3", chunk_len_sec=10)
    diarizer = create_diarizer("pyannote/speaker-diarization-3.1", token="hf")

    assert isinstance(engine, ParakeetEngine)
    assert isinstance(engine, TranscriptionEngine)
    assert engine.chunk_len_sec == 10
    assert isinstance(diarizer, PyannoteDiarizationEngine)
    assert isinstance(diarizer, DiarizationEngine)


def test_hypothesis_to_tokens__offsets_and_ids() -> None:
    hypothesis = types.SimpleNamespace(
        text="hello world",
        timestamp={
            "word": [
                {"word": "hello", "start": 0.1, "end": 0.4},
                {"word": " ", "start": 0.4, "end": 0.5},
                {"word": "world", "start": 0.5, "end": 0.9},
            ]
        },
    )

    tokens = hypothesis_to_tokens(hypothesis, offset=30.0, first_id=5)

    assert [t.text for t in tokens] == [" hello", " world"]
    assert [t.id for t in tokens] == [5, 6]
    assert tokens[0].start_time == pytest.approx(30.1)
    assert tokens[1].end_time == pytest.approx(30.9)


def test_hypothesis_to_tokens__without_timestamps() -> None:
    assert hypothesis_to_tokens(types.SimpleNamespace(text="hi"), offset=0.0) == []


def test_parakeet_engine__yields_one_chunk_per_window(monkeypatch: pytest.MonkeyPatch) -> None:
    from whisper_server.engines import parakeet

    class _FakeModel:
        def __init__(self) -> None:
            self.windows: list[int] = []

        def transcribe(self, *, audio, batch_size, timestamps, verbose):
            self.windows.append(len(audio[0]))
            return [
                types.SimpleNamespace(
                    text="hi",
                    timestamp={"word": [{"word": "hi", "start": 0.0, "end": 0.2}]},
                )
            ]

    class _InferenceMode:
        def __enter__(self) -> None:
            return None

        def __exit__(self, *exc: object) -> None:
            return None

    fake_torch = types.ModuleType("torch")
    fake_torch.inference_mode = _InferenceMode
    monkeypatch.setitem(sys.modules, "torch", fake_torch)
    model = _FakeModel()
    monkeypatch.setattr(parakeet, "get_model", lambda _name: model)
    monkeypatch.setattr(
        parakeet, "load_audio", lambda _path, sr: (np.zeros(int(2.5 * sr), dtype=np.float32), sr)
    )

    chunks = list(ParakeetEngine("nvidia/x", chunk_len_sec=1).transcribe("a.wav", language="en"))

    assert [c.start_time for c in chunks] == [0.0, 1.0, 2.0]
    assert chunks[-1].end_time == pytest.approx(2.5)
    assert [c.tokens[0].start_time for c in chunks] == [0.0, 1.0, 2.0]
    assert [c.tokens[0].id for c in chunks] == [0, 1, 2]
    assert chunks[0].language == "en"
    assert model.windows == [16000, 16000, 8000]


def test_flatten_turns__trims_overlaps() -> None:
    segments = flatten_turns(
        [
            (2.0, 3.0, "B"),
            (0.0, 1.5, "A"),
            (1.0, 1.4, "C"),
            (1.2, 2.5, "C"),
        ]
    )

    assert [(s.speaker_id, s.start_time, s.end_time) for s in segments] == [
        ("A", 0.0, 1.5),
        ("C", 1.5, 2.5),
        ("B", 2.5, 3.0),
    ]


def test_iter_audio_windows() -> None:
    wav = np.arange(10, dtype=np.float32)

    windows = list(iter_audio_windows(wav, sr=4, window_sec=1.0))

    assert [offset for _, offset in windows] == [0.0, 1.0, 2.0]
    assert [len(w) for w, _ in windows] == [4, 4, 2]
    assert len(list(iter_audio_windows(wav, sr=4, window_sec=0))) == 1
