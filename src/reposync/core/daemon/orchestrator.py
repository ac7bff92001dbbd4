"""
Sync cycle state machine.

One cycle: acquire lock → upload → fetch and download → release lock.
Between cycles the loop sleeps cooperatively. Phases:

    IDLE → LOCKING → UPLOADING → DOWNLOADING → UNLOCKING → SLEEPING → IDLE ...

Any error inside the lock jumps straight to UNLOCKING; the lock is released
on every exit path. Upload and download are independent: a failed upload
does not stop the download half of the same cycle. Per-flow SyncErrors are
recorded on the CycleResult; anything else is caught at the cycle boundary,
logged with its traceback, and the loop carries on.

Usage:
    >>> orchestrator = SyncOrchestrator(config=config, git=GitAdapter(config.repo_path))
    >>> for result in orchestrator.execute():
    ...     print(result.summary())
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Generator
from datetime import datetime

from reposync.core.config.models import SyncConfig
from reposync.core.daemon.interrupt import InterruptHandler
from reposync.core.exceptions import LockCancelledError, NetworkError, SyncError
from reposync.core.sync.detector import ChangeDetector
from reposync.core.sync.download import DownloadFlow
from reposync.core.sync.lock import SyncLock
from reposync.core.sync.models import CyclePhase, CycleResult, FlowOutcome, FlowResult
from reposync.core.sync.upload import UploadFlow
from reposync.core.vcs.git import GitAdapter

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    """
    Drives sync cycles for one repository.

    Attributes:
        config: Resolved configuration (immutable for the process lifetime).
        git: Adapter bound to config.repo_path.
        interrupt_handler: Shutdown flag source; checked between cycles and
            while polling for the lock.
    """

    def __init__(
        self,
        *,
        config: SyncConfig,
        git: GitAdapter,
        interrupt_handler: InterruptHandler | None = None,
    ) -> None:
        self.config = config
        self.git = git
        self.interrupt_handler = interrupt_handler or InterruptHandler()

        self.detector = ChangeDetector(
            git,
            remote=config.remote,
            upstream_branch=config.upstream_branch,
        )
        self.upload_flow = UploadFlow(
            git,
            self.detector,
            commit_message=config.commit_message(),
            remote=config.remote,
        )
        self.download_flow = DownloadFlow(git, self.detector)

        self._phase = CyclePhase.IDLE
        self._cycle = 0

    @property
    def phase(self) -> CyclePhase:
        return self._phase

    @property
    def cycles_run(self) -> int:
        return self._cycle

    def _enter(self, phase: CyclePhase) -> None:
        if phase != self._phase:
            logger.debug("Cycle %d: %s -> %s", self._cycle, self._phase.value, phase.value)
            self._phase = phase

    def make_lock(self) -> SyncLock:
        return SyncLock(
            self.config.lock_path,
            operation="sync",
            poll_seconds=self.config.lock_poll_seconds,
            max_wait_seconds=self.config.lock_max_wait_seconds,
            should_abort=lambda: self.interrupt_handler.interrupted,
        )

    # -----------------------------------------------------------------------
    # One cycle
    # -----------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        """
        Run one lock → upload → download → unlock cycle.

        Never raises for per-cycle failures (SystemExit and KeyboardInterrupt
        still propagate, after the lock is released).
        """
        self._cycle += 1
        result = CycleResult(cycle=self._cycle, started_at=datetime.now())

        self._enter(CyclePhase.LOCKING)
        try:
            with self.make_lock():
                try:
                    self._enter(CyclePhase.UPLOADING)
                    result.upload = self._attempt("upload", self.upload_flow.run)

                    self._enter(CyclePhase.DOWNLOADING)
                    result.download = self._attempt("download", self._download)
                finally:
                    self._enter(CyclePhase.UNLOCKING)
        except LockCancelledError:
            logger.info("Cycle %d cancelled while waiting for the lock", self._cycle)
            result.cancelled = True
        except Exception as e:
            logger.exception("Cycle %d failed unexpectedly", self._cycle)
            result.error = f"{type(e).__name__}: {e}"
        finally:
            self._enter(CyclePhase.IDLE)

        result.completed_at = datetime.now()
        self._report(result)
        return result

    def _download(self) -> FlowResult:
        try:
            divergence = self.detector.remote_divergence()
        except NetworkError as e:
            logger.warning("Skipping download: %s", e)
            return FlowResult(
                flow="download",
                outcome=FlowOutcome.SKIPPED,
                message=str(e),
                error_type=type(e).__name__,
            )
        return self.download_flow.run(divergence)

    @staticmethod
    def _attempt(flow: str, run: Callable[[], FlowResult]) -> FlowResult:
        try:
            return run()
        except SyncError as e:
            level = logging.ERROR if e.requires_attention else logging.WARNING
            logger.log(level, "%s failed (%s): %s", flow.capitalize(), type(e).__name__, e)
            return FlowResult(
                flow=flow,
                outcome=FlowOutcome.FAILED,
                message=str(e),
                error_type=type(e).__name__,
                requires_attention=e.requires_attention,
            )

    def _report(self, result: CycleResult) -> None:
        if result.success:
            quiet = all(
                flow is None or flow.is_noop for flow in (result.upload, result.download)
            )
            logger.log(logging.DEBUG if quiet else logging.INFO, "%s", result.summary())
        elif result.requires_attention:
            logger.error("%s (manual intervention required)", result.summary())
        else:
            logger.warning("%s", result.summary())

    # -----------------------------------------------------------------------
    # Loop
    # -----------------------------------------------------------------------

    def execute(self) -> Generator[CycleResult, None, None]:
        """
        Run cycles until shutdown, yielding each CycleResult.

        The first cycle starts immediately. Stops when the interrupt handler
        reports shutdown (checked after each cycle and during the sleep), when
        a cycle is cancelled while waiting for the lock, or after
        config.max_cycles cycles.
        """
        max_cycles = self.config.max_cycles

        while not self.interrupt_handler.interrupted:
            result = self.run_cycle()
            yield result

            if result.cancelled:
                break
            if max_cycles is not None and self._cycle >= max_cycles:
                break

            self._enter(CyclePhase.SLEEPING)
            if not self.interrupt_handler.wait(self.config.interval_seconds):
                break
            self._enter(CyclePhase.IDLE)

        self._enter(CyclePhase.STOPPED)
        logger.info("Sync loop stopped after %d cycle(s)", self._cycle)
