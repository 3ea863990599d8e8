"""Audio I/O helpers used by the bundled engine adapters.

Decodes uploads to a float32 mono waveform with FFmpeg or *soundfile*,
resamples with *librosa* and slices the waveform into fixed windows so the
engine can emit results window by window.
"""

from __future__ import annotations

import shutil
import subprocess
from collections.abc import Iterator
from pathlib import Path

import librosa  # type: ignore
import numpy as np
import soundfile as sf  # type: ignore

from whisper_server.utils.constant import FORCE_FFMPEG

__all__ = ["DEFAULT_SAMPLE_RATE", "get_audio_duration", "iter_audio_windows", "load_audio"]

DEFAULT_SAMPLE_RATE = 16000


def _load_with_ffmpeg(path: Path | str, target_sr: int) -> tuple[np.ndarray, int]:
    """Decode an audio file to a mono float32 waveform at ``target_sr`` using FFmpeg.

    Args:
        path: Path to the source audio file.
        target_sr: Desired sample rate in Hz.

    Returns:
        Tuple ``(waveform, sample_rate)``.

    Raises:
        RuntimeError: If FFmpeg is missing or fails to decode the file.
    """
    if shutil.which("ffmpeg") is None:
        raise RuntimeError("FFmpeg is not installed or not in PATH.")

    cmd = [
        "ffmpeg",
        "-nostdin",
        "-i",
        str(path),
        "-threads",
        "0",
        "-f",
        "s16le",
        "-ac",
        "1",
        "-acodec",
        "pcm_s16le",
        "-ar",
        str(target_sr),
        "-",
    ]
    try:
        pcm = subprocess.run(cmd, capture_output=True, check=True).stdout
    except subprocess.CalledProcessError as exc:
        raise RuntimeError(f"FFmpeg decoding failed: {exc.stderr.decode(errors='ignore')}") from exc

    data = np.frombuffer(pcm, np.int16).astype(np.float32) / (1 << 15)
    return data, target_sr


def load_audio(path: Path | str, target_sr: int = DEFAULT_SAMPLE_RATE) -> tuple[np.ndarray, int]:
    """Load an audio file as mono float32 and resample to ``target_sr``.

    Args:
        path: The path to the audio file.
        target_sr: The target sample rate. Defaults to ``DEFAULT_SAMPLE_RATE``.

    Returns:
        Tuple ``(waveform, sample_rate)`` with ``sample_rate == target_sr``.

    Raises:
        RuntimeError: If neither FFmpeg nor soundfile can decode the file.
    """
    if FORCE_FFMPEG and shutil.which("ffmpeg") is not None:
        return _load_with_ffmpeg(path, target_sr)

    try:
        data, sr = sf.read(str(path), always_2d=False, dtype="float32")
    except (RuntimeError, sf.LibsndfileError) as exc:
        if shutil.which("ffmpeg") is None:
            raise RuntimeError(f"Invalid audio format: {exc}") from exc
        return _load_with_ffmpeg(path, target_sr)

    if data.ndim > 1:
        data = np.mean(data, axis=-1)
    if sr != target_sr:
        data = librosa.resample(data, orig_sr=sr, target_sr=target_sr)
    return data.astype(np.float32, copy=False), target_sr


def iter_audio_windows(
    wav: np.ndarray,
    sr: int,
    window_sec: float,
) -> Iterator[tuple[np.ndarray, float]]:
    """Yield consecutive, non-overlapping windows of a mono waveform.

    Args:
        wav: 1-D float32 waveform.
        sr: Sample rate in Hz.
        window_sec: Window length in seconds; ``<= 0`` yields the whole signal.

    Yields:
        ``(window, offset_sec)`` pairs in time order.
    """
    if window_sec <= 0 or wav.size == 0:
        yield wav, 0.0
        return

    step = max(int(window_sec * sr), 1)
    for start in range(0, len(wav), step):
        yield wav[start : start + step], start / sr


def get_audio_duration(audio_path: Path | str) -> float:
    """Get audio duration in seconds from a media file.

    Args:
        audio_path: Path to the input audio file.

    Returns:
        Duration in seconds, or 0.0 when probing fails.
    """
    try:
        info = sf.info(str(audio_path))
    except (RuntimeError, OSError, ValueError):
        return 0.0
    return float(info.duration)
