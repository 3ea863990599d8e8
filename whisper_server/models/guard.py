"""Serialise model preparation so a model is never prepared twice at once.

Preparation (download, load, warmup) runs outside any lock; only the
check-and-set of the per-model ``in_progress`` flag happens under the table
lock. Concurrent callers for the same model share the in-flight outcome.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from functools import lru_cache

from whisper_server.engines import create_engine

logger = logging.getLogger(__name__)

__all__ = [
    "ModelPreparationGuard",
    "ModelPreparationState",
    "PreparationResult",
    "get_model_guard",
]

Preparer = Callable[[str], None]
ModelObserver = Callable[[str], None]


@dataclass(frozen=True)
class PreparationResult:
    """Outcome of :meth:`ModelPreparationGuard.prepare`.

    Attributes:
        model_id: Model that was requested.
        success: ``True`` when the model is usable.
        skipped: ``True`` when this caller did not run the preparer itself.
        error: Failure description when ``success`` is ``False``.
    """

    model_id: str
    success: bool
    skipped: bool = False
    error: str | None = None


@dataclass(frozen=True)
class ModelPreparationState:
    in_progress: bool
    last_applied_id: str | None


@dataclass
class _Run:
    done: threading.Event = field(default_factory=threading.Event)
    result: PreparationResult | None = None


class ModelPreparationGuard:
    """Run ``preparer(model_id)`` at most once concurrently per model id.

    Args:
        preparer: Blocking callable that makes a model ready; raises on failure.
    """

    def __init__(self, preparer: Preparer) -> None:
        self._preparer = preparer
        self._lock = threading.Lock()
        self._running: dict[str, _Run] = {}
        self._prepared: set[str] = set()
        self._last_applied: str | None = None
        self._observers: list[ModelObserver] = []

    def prepare(self, model_id: str, *, wait: bool = True) -> PreparationResult:
        """Prepare ``model_id`` unless a preparation for it is already running.

        Args:
            model_id: Model identifier.
            wait: When another caller is preparing the same model, block until
                it finishes and share its outcome (``True``), or return a
                skipped success immediately (``False``).

        Returns:
            The preparation outcome.
        """
        with self._lock:
            run = self._running.get(model_id)
            owner = run is None
            if owner:
                run = _Run()
                self._running[model_id] = run

        if not owner:
            logger.debug("Preparation of %s already in progress", model_id)
            if not wait:
                return PreparationResult(model_id=model_id, success=True, skipped=True)
            run.done.wait()
            assert run.result is not None
            return replace(run.result, skipped=True)

        result = self._run_preparer(model_id)
        changed = False
        with self._lock:
            if result.success:
                self._prepared.add(model_id)
                changed = self._last_applied != model_id
                self._last_applied = model_id
            del self._running[model_id]
            run.result = result
        run.done.set()
        if changed:
            self._notify(model_id)
        return result

    def _run_preparer(self, model_id: str) -> PreparationResult:
        logger.info("Preparing model %s", model_id)
        try:
            self._preparer(model_id)
        except Exception as exc:
            logger.error("Model preparation failed for %s: %s", model_id, exc)
            return PreparationResult(model_id=model_id, success=False, error=str(exc))
        logger.info("Model %s ready", model_id)
        return PreparationResult(model_id=model_id, success=True)

    def _notify(self, model_id: str) -> None:
        with self._lock:
            observers = list(self._observers)
        for observer in observers:
            try:
                observer(model_id)
            except Exception:
                logger.warning("Model observer failed for %s", model_id, exc_info=True)

    def add_observer(self, callback: ModelObserver) -> None:
        """Register ``callback(model_id)``, called when the applied model changes.

        Registering the same callback twice has no effect.
        """
        with self._lock:
            if callback not in self._observers:
                self._observers.append(callback)

    def last_applied(self) -> str | None:
        with self._lock:
            return self._last_applied

    def is_prepared(self, model_id: str) -> bool:
        with self._lock:
            return model_id in self._prepared

    def state(self, model_id: str) -> ModelPreparationState:
        """Return a snapshot of the preparation state for ``model_id``."""
        with self._lock:
            return ModelPreparationState(
                in_progress=model_id in self._running,
                last_applied_id=self._last_applied,
            )


def _load_engine_model(model_id: str) -> None:
    create_engine(model_id).load()


@lru_cache(maxsize=1)
def get_model_guard() -> ModelPreparationGuard:
    """Return the process-wide guard backed by the configured engine."""
    return ModelPreparationGuard(_load_engine_model)
