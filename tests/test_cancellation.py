"""Tests for olama/core/cancellation.py: the per-exchange cancel flag."""

from __future__ import annotations

import threading
from unittest.mock import MagicMock

from olama.core.cancellation import CancellationToken


def test_starts_uncancelled():
    assert CancellationToken().is_cancelled is False


def test_cancel_sets_flag_once():
    token = CancellationToken()
    assert token.cancel() is True
    assert token.cancel() is False
    assert token.is_cancelled is True


def test_callbacks_run_once_on_cancel():
    token = CancellationToken()
    callback = MagicMock()
    token.add_callback(callback)
    token.cancel()
    token.cancel()
    callback.assert_called_once_with()


def test_callback_added_after_cancel_runs_immediately():
    token = CancellationToken()
    token.cancel()
    callback = MagicMock()
    token.add_callback(callback)
    callback.assert_called_once_with()


def test_removed_callback_is_not_run():
    token = CancellationToken()
    callback = MagicMock()
    token.add_callback(callback)
    token.remove_callback(callback)
    token.cancel()
    callback.assert_not_called()


def test_remove_unknown_callback_is_ignored():
    CancellationToken().remove_callback(lambda: None)


def test_failing_callback_does_not_break_cancel():
    token = CancellationToken()
    later = MagicMock()
    token.add_callback(MagicMock(side_effect=OSError("socket already closed")))
    token.add_callback(later)
    assert token.cancel() is True
    later.assert_called_once_with()


def test_cancel_from_many_threads_wins_exactly_once():
    token = CancellationToken()
    results: list[bool] = []
    lock = threading.Lock()
    barrier = threading.Barrier(8)

    def worker() -> None:
        barrier.wait()
        won = token.cancel()
        with lock:
            results.append(won)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert results.count(True) == 1


def test_wait_returns_when_cancelled():
    token = CancellationToken()
    threading.Timer(0.05, token.cancel).start()
    assert token.wait(timeout=5) is True
