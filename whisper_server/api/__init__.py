"""OpenAI-compatible REST API."""

from __future__ import annotations

from whisper_server.api.app import create_app

__all__ = ["create_app"]
