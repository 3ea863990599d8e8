"""Mapping between OpenAI API parameters and engine model identifiers."""

from __future__ import annotations

from whisper_server.utils.constant import WHISPER_MODEL_NAME

WHISPER_ALIAS = "whisper-1"


def map_model_name(model_name: str | None) -> str | None:
    """Map an OpenAI-compatible model name to an engine model identifier.

    Args:
        model_name: Requested model name from API clients. Empty selects the
            ``whisper-1`` alias.

    Returns:
        The mapped model identifier when recognized, otherwise ``None``.
    """
    if not model_name or model_name == WHISPER_ALIAS:
        return WHISPER_MODEL_NAME
    if model_name.startswith("nvidia/"):
        return model_name
    return None


def infer_language_for_model(model_name: str) -> str:
    """Infer the response language code based on model capabilities.

    Returns:
        ``en`` for English-only models, ``und`` (undetermined) for
        multilingual models that do not report the detected language.
    """
    if model_name.endswith("-v2"):
        return "en"
    return "und"
