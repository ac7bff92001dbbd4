"""
Interrupt handling for clean shutdown of the sync loop.

Two-stage model over SIGINT/SIGTERM:
1. First signal: graceful. Sets the shutdown flag; the in-flight cycle
   completes, and lock polling and the inter-cycle sleep stop early.
2. Second signal: forced. Raises SystemExit(130) from the handler, which
   unwinds through the lock's context manager so the marker is still
   removed on the way out (best effort; a SIGKILL cannot be caught).

Usage:
    >>> handler = InterruptHandler()
    >>> handler.register()
    >>> while not handler.interrupted:
    ...     run_cycle()
    ...     handler.wait(30)
    >>> handler.unregister()
"""

from __future__ import annotations

import signal
import sys
import time
from typing import Any

FORCED_EXIT_CODE = 130


class InterruptHandler:
    """
    Handles SIGINT/SIGTERM for cooperative shutdown of the sync loop.

    Attributes:
        interrupted: True once a shutdown signal was received. The loop
                    checks this between cycles and while waiting for the lock.
    """

    # Longest uninterrupted sleep inside wait(); bounds shutdown latency.
    WAIT_SLICE_SECONDS = 0.5

    def __init__(self) -> None:
        self._interrupted = False
        self._original_sigint: Any = None
        self._original_sigterm: Any = None

    @property
    def interrupted(self) -> bool:
        return self._interrupted

    def request_shutdown(self) -> None:
        """Ask the loop to stop after the current cycle (same as a first signal)."""
        self._interrupted = True

    def register(self) -> None:
        """
        Register signal handlers for SIGINT and SIGTERM.

        Must be called from the main thread. Saves the original handlers so
        unregister() can restore them.
        """
        self._original_sigint = signal.signal(signal.SIGINT, self._handle_signal)
        self._original_sigterm = signal.signal(signal.SIGTERM, self._handle_signal)

    def unregister(self) -> None:
        """Restore original signal handlers."""
        if self._original_sigint is not None:
            signal.signal(signal.SIGINT, self._original_sigint)
            self._original_sigint = None

        if self._original_sigterm is not None:
            signal.signal(signal.SIGTERM, self._original_sigterm)
            self._original_sigterm = None

    def wait(self, seconds: float) -> bool:
        """
        Sleep cooperatively, returning early on shutdown.

        Returns:
            True if the full interval elapsed, False if interrupted.
        """
        deadline = time.monotonic() + seconds
        while not self._interrupted:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return True
            time.sleep(min(remaining, self.WAIT_SLICE_SECONDS))
        return False

    def _handle_signal(self, signum: int, frame: object) -> None:
        """
        Internal signal handler called by the signal module.

        Args:
            signum: Signal number (SIGINT=2, SIGTERM=15).
            frame: Current stack frame (unused).
        """
        if self._interrupted:
            # Raising (instead of os._exit) lets finally blocks release the lock
            self._write_to_stderr("\n[Force exiting...]\n")
            raise SystemExit(FORCED_EXIT_CODE)

        self._interrupted = True
        self._write_to_stderr(
            "\n[Shutdown requested. Finishing current cycle; signal again to force]\n"
        )

    @staticmethod
    def _write_to_stderr(message: str) -> None:
        """Write to stderr directly, bypassing the Rich console."""
        sys.stderr.write(message)
        sys.stderr.flush()
