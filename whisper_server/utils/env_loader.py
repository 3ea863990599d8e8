"""Loading of project-level environment variables.

A ``.env`` file sitting at the repository root is read with ``python-dotenv``
*early* in the process lifecycle so that ``utils.constant`` and any engine
imports (NeMo, pyannote) see the overrides.

Usage (call as soon as possible in an entry-point):

    from whisper_server.utils.env_loader import load_project_env
    load_project_env()

Re-invocation is a no-op, so callers can safely call multiple times.
"""

from __future__ import annotations

import functools
import os
import pathlib
from collections.abc import Callable
from typing import Any, Final

from dotenv import load_dotenv

_REPO_ROOT: Final[pathlib.Path] = pathlib.Path(__file__).resolve().parents[2]
_ENV_FILE: Final[pathlib.Path] = _REPO_ROOT / ".env"
LOAD_DOTENV: Final[Callable[..., Any]] = load_dotenv

# Points at an alternative dotenv file, e.g. a mounted secret in a container.
ENV_FILE_OVERRIDE_VAR: Final[str] = "WHISPER_SERVER_ENV_FILE"


def resolve_env_file() -> pathlib.Path:
    """Return the dotenv path, honouring ``WHISPER_SERVER_ENV_FILE``."""
    override = os.getenv(ENV_FILE_OVERRIDE_VAR, "").strip()
    return pathlib.Path(override).expanduser() if override else _ENV_FILE


def load_project_env(force: bool = False) -> bool:
    """Load the project-level ``.env`` file into the process environment.

    Variables already present in the environment win over the file.

    Args:
        force: If True, bypasses the cache and forces a reload of the
            environment file. Defaults to False.

    Returns:
        ``True`` when a file was found and loaded.
    """
    if force:
        _load_once.cache_clear()
    return _load_once()


@functools.lru_cache(maxsize=1)
def _load_once() -> bool:
    env_file = resolve_env_file()
    if not env_file.is_file():
        return False

    LOAD_DOTENV(dotenv_path=env_file, override=False)
    return True


__all__ = [
    "ENV_FILE_OVERRIDE_VAR",
    "load_project_env",
    "resolve_env_file",
]
