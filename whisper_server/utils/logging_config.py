"""Centralized logging configuration for the Whisper-compatible server.

This module provides consistent logging setup for the CLI and the API
process. Configuration respects environment variables and provides sensible
defaults for production and development.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Literal

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def _configure_third_party_log_levels() -> None:
    """Set explicit levels for noisy third-party loggers."""
    # Keep multipart parser internals from flooding --debug output.
    logging.getLogger("python_multipart").setLevel(logging.WARNING)
    logging.getLogger("python_multipart.multipart").setLevel(logging.WARNING)
    logging.getLogger("multipart").setLevel(logging.WARNING)
    # Diarization stack
    for name in ("speechbrain", "pyannote", "lightning", "pytorch_lightning"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _apply_engine_verbosity(*, nemo_level: str) -> None:
    """Apply NeMo verbosity to the environment and, when imported, the live module.

    Args:
        nemo_level: Desired NeMo verbosity level name.
    """
    os.environ["NEMO_LOG_LEVEL"] = nemo_level

    try:
        from nemo.utils import logging as nemo_logging
    except ImportError:
        return
    nemo_logging.set_verbosity(getattr(logging, nemo_level, logging.ERROR))


def configure_logging(
    *,
    level: LogLevel | None = None,
    verbose: bool = False,
    quiet: bool = False,
    format_string: str | None = None,
) -> None:
    """Configure centralized logging for the application.

    Should be called once at application startup (CLI entry or server launch).

    Args:
        level: Explicit log level (overrides verbose/quiet).
        verbose: Enable verbose logging (DEBUG level + engine logs).
        quiet: Suppress all non-critical logs.
        format_string: Custom log format (uses default if None).

    Examples:
        >>> configure_logging(verbose=True)
        >>> configure_logging(level="DEBUG")
    """
    if level is not None:
        log_level = getattr(logging, level.upper())
    elif verbose:
        log_level = logging.DEBUG
    elif quiet:
        log_level = logging.CRITICAL
    else:
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=format_string or DEFAULT_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stdout,
        force=True,
    )
    _configure_third_party_log_levels()

    if verbose:
        _apply_engine_verbosity(nemo_level="INFO")
    elif quiet:
        _apply_engine_verbosity(nemo_level="ERROR")
    else:
        _apply_engine_verbosity(nemo_level=os.getenv("NEMO_LOG_LEVEL", "ERROR").upper())

    if not quiet:
        logging.getLogger(__name__).debug(
            "Logging configured: level=%s", logging.getLevelName(log_level)
        )


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance with the given name.

    Args:
        name: Logger name (typically __name__ of calling module).

    Returns:
        Configured logger instance.
    """
    return logging.getLogger(name)
