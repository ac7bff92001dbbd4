"""
Unit tests for reposync.core.daemon.interrupt.

Covers two-stage shutdown (graceful, then forced), cooperative waiting, and
a forced exit unwinding through a held sync lock.
"""

from __future__ import annotations

import signal
import threading
import time
from pathlib import Path
from unittest.mock import call, patch

import pytest

from reposync.core.daemon.interrupt import FORCED_EXIT_CODE, InterruptHandler
from reposync.core.sync.lock import SyncLock

# ===========================================================================
# Registration
# ===========================================================================


def test_register_installs_sigint_and_sigterm():
    handler = InterruptHandler()

    with patch("signal.signal") as mock_signal:
        mock_signal.return_value = signal.SIG_DFL

        handler.register()

        assert mock_signal.call_args_list == [
            call(signal.SIGINT, handler._handle_signal),
            call(signal.SIGTERM, handler._handle_signal),
        ]


def test_unregister_restores_previous_handlers():
    handler = InterruptHandler()

    with patch("signal.signal") as mock_signal:
        mock_signal.side_effect = [signal.SIG_DFL, signal.SIG_IGN]
        handler.register()

        mock_signal.reset_mock()
        mock_signal.side_effect = None
        handler.unregister()

        assert mock_signal.call_args_list == [
            call(signal.SIGINT, signal.SIG_DFL),
            call(signal.SIGTERM, signal.SIG_IGN),
        ]


def test_unregister_without_register_is_noop():
    handler = InterruptHandler()

    with patch("signal.signal") as mock_signal:
        handler.unregister()

    mock_signal.assert_not_called()


# ===========================================================================
# Two-stage shutdown
# ===========================================================================


def test_first_signal_requests_graceful_shutdown():
    handler = InterruptHandler()

    with patch("sys.stderr.write") as mock_write, patch("sys.stderr.flush"):
        handler._handle_signal(signal.SIGTERM, None)

    assert handler.interrupted is True
    assert "Finishing current cycle" in mock_write.call_args[0][0]


def test_second_signal_forces_exit():
    handler = InterruptHandler()

    with patch("sys.stderr.write"), patch("sys.stderr.flush"):
        handler._handle_signal(signal.SIGINT, None)
        with pytest.raises(SystemExit) as exc_info:
            handler._handle_signal(signal.SIGINT, None)

    assert exc_info.value.code == FORCED_EXIT_CODE


def test_forced_exit_releases_held_lock(tmp_path: Path):
    """SystemExit from the handler unwinds through the lock's context manager."""
    handler = InterruptHandler()
    lock_path = tmp_path / ".reposync" / "sync.lock"

    with patch("sys.stderr.write"), patch("sys.stderr.flush"):
        handler._handle_signal(signal.SIGINT, None)
        with pytest.raises(SystemExit):
            with SyncLock(lock_path):
                assert lock_path.exists()
                handler._handle_signal(signal.SIGINT, None)

    assert not lock_path.exists()


def test_signal_after_request_shutdown_forces_exit():
    """stop() counts as the first stage; the next signal is the forced one."""
    handler = InterruptHandler()
    handler.request_shutdown()

    with patch("sys.stderr.write"), patch("sys.stderr.flush"):
        with pytest.raises(SystemExit) as exc_info:
            handler._handle_signal(signal.SIGTERM, None)

    assert handler.interrupted
    assert exc_info.value.code == FORCED_EXIT_CODE


# ===========================================================================
# Cooperative wait
# ===========================================================================


def test_wait_returns_true_after_full_interval():
    handler = InterruptHandler()

    start = time.monotonic()
    assert handler.wait(0.1) is True
    assert time.monotonic() - start >= 0.1


def test_wait_returns_immediately_when_already_interrupted():
    handler = InterruptHandler()
    handler.request_shutdown()

    start = time.monotonic()
    assert handler.wait(60) is False
    assert time.monotonic() - start < 1


@pytest.mark.timeout(10)
def test_wait_wakes_up_on_shutdown():
    handler = InterruptHandler()
    threading.Timer(0.1, handler.request_shutdown).start()

    start = time.monotonic()
    assert handler.wait(60) is False
    assert time.monotonic() - start < 60
