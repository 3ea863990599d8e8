"""Project-wide constants for convenient reuse."""

# pylint: disable=line-too-long

from __future__ import annotations

import os
import sys
from typing import Final

from whisper_server.utils.env_loader import load_project_env

# Ensure .env is loaded exactly once at import time for the whole project
if "pytest" not in sys.modules:
    load_project_env()

# Model served for the OpenAI ``whisper-1`` alias (override via env)
WHISPER_MODEL_NAME: Final[str] = os.getenv("WHISPER_MODEL_NAME", "nvidia/parakeet-tdt-0.6b-v3")

# Audio window length (seconds) handed to the engine per streamed chunk.
CHUNK_LEN_SEC: Final[int] = int(os.getenv("CHUNK_LEN_SEC", "30"))

# Prefer FFmpeg for audio decoding (1 = yes, 0 = try soundfile first)
FORCE_FFMPEG: Final[bool] = os.getenv("FORCE_FFMPEG", "1") == "1"

# Upper bound (seconds) a stream may wait on the engine before it is ended.
# 0 disables the timeout.
STREAM_TIMEOUT_SEC: Final[float] = float(os.getenv("STREAM_TIMEOUT_SEC", "0"))

# Speaker diarization (pyannote). Requests opt in with ``diarize=true``.
DIARIZATION_ENABLED: Final[bool] = os.getenv("DIARIZATION_ENABLED", "False").lower() == "true"
DIARIZATION_MODEL_NAME: Final[str] = os.getenv(
    "DIARIZATION_MODEL_NAME", "pyannote/speaker-diarization-3.1"
)
HF_TOKEN: Final[str] = os.getenv("HF_TOKEN") or os.getenv("HUGGINGFACE_ACCESS_TOKEN") or ""

# Logging configuration
LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO").upper()

# OpenAI-compatible REST API configuration
API_BEARER_TOKEN: Final[str] = os.getenv("API_BEARER_TOKEN", "")
API_CORS_ORIGINS: Final[str] = os.getenv("API_CORS_ORIGINS", "")
API_SERVER_NAME: Final[str] = os.getenv("API_SERVER_NAME", "127.0.0.1")
API_SERVER_PORT: Final[int] = int(os.getenv("API_SERVER_PORT", "12017"))
API_MODEL_WARMUP_ON_START: Final[bool] = (
    os.getenv("API_MODEL_WARMUP_ON_START", "False").lower() == "true"
)
API_MODEL_OWNER: Final[str] = os.getenv("API_MODEL_OWNER", "nvidia")
