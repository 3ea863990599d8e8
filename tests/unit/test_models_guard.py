"""Unit tests for the model preparation guard."""

from __future__ import annotations

import threading

from whisper_server.models.guard import ModelPreparationGuard, get_model_guard


def test_prepare__runs_preparer_and_records_model(model_guard, prepared_models) -> None:
    result = model_guard.prepare("nvidia/a")

    assert result.success
    assert not result.skipped
    assert prepared_models == ["nvidia/a"]
    assert model_guard.last_applied() == "nvidia/a"
    assert model_guard.is_prepared("nvidia/a")
    assert not model_guard.is_prepared("nvidia/b")


def test_prepare__concurrent_calls_run_once() -> None:
    started = threading.Event()
    release = threading.Event()
    calls: list[str] = []

    def slow_preparer(model_id: str) -> None:
        calls.append(model_id)
        started.set()
        release.wait(5.0)

    guard = ModelPreparationGuard(slow_preparer)
    results = []
    first = threading.Thread(target=lambda: results.append(guard.prepare("modelX")))
    first.start()
    assert started.wait(5.0)
    assert guard.state("modelX").in_progress

    waiting = threading.Event()

    class _ObservedEvent(threading.Event):
        def wait(self, timeout: float | None = None) -> bool:
            waiting.set()
            return super().wait(timeout)

    guard._running["modelX"].done = _ObservedEvent()
    second = threading.Thread(target=lambda: results.append(guard.prepare("modelX")))
    second.start()
    assert waiting.wait(5.0)
    release.set()
    first.join(5.0)
    second.join(5.0)

    assert calls == ["modelX"]
    assert len(results) == 2
    assert all(r.success for r in results)
    assert sorted(r.skipped for r in results) == [False, True]
    assert not guard.state("modelX").in_progress


def test_prepare__no_wait_returns_skipped_immediately() -> None:
    started = threading.Event()
    release = threading.Event()
    guard = ModelPreparationGuard(lambda _m: (started.set(), release.wait(5.0)))

    worker = threading.Thread(target=guard.prepare, args=("modelX",))
    worker.start()
    assert started.wait(5.0)

    result = guard.prepare("modelX", wait=False)
    release.set()
    worker.join(5.0)

    assert result.success
    assert result.skipped


def test_prepare__failure_clears_in_progress() -> None:
    attempts: list[str] = []

    def flaky(model_id: str) -> None:
        attempts.append(model_id)
        if len(attempts) == 1:
            raise OSError("download interrupted")

    guard = ModelPreparationGuard(flaky)

    failed = guard.prepare("nvidia/a")
    retried = guard.prepare("nvidia/a")

    assert not failed.success
    assert "download interrupted" in (failed.error or "")
    assert guard.last_applied() == "nvidia/a"
    assert retried.success
    assert attempts == ["nvidia/a", "nvidia/a"]


def test_prepare__failure_does_not_change_last_applied() -> None:
    def preparer(model_id: str) -> None:
        if model_id == "bad":
            raise RuntimeError("nope")

    guard = ModelPreparationGuard(preparer)
    guard.prepare("good")
    guard.prepare("bad")

    assert guard.last_applied() == "good"
    assert not guard.is_prepared("bad")


def test_observers__notified_only_on_change(model_guard) -> None:
    seen: list[str] = []
    model_guard.add_observer(seen.append)
    model_guard.add_observer(seen.append)

    model_guard.prepare("a")
    model_guard.prepare("a")
    model_guard.prepare("b")
    model_guard.prepare("a")

    assert seen == ["a", "b", "a"]


def test_get_model_guard__is_singleton() -> None:
    assert get_model_guard() is get_model_guard()
