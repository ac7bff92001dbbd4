"""
Tests for the sync cycle orchestrator.

Tests cover:
- Quiet cycles and full upload/download cycles
- Independence of the upload and download halves
- Errors caught at the cycle boundary, lock always released
- Phase transitions
- The execute() loop: max cycles, shutdown, cancellation while locking
"""

from __future__ import annotations

import threading
from pathlib import Path
from unittest.mock import patch

import pytest

from reposync.core.daemon.interrupt import InterruptHandler
from reposync.core.daemon.orchestrator import SyncOrchestrator
from reposync.core.exceptions import NetworkError
from reposync.core.sync.lock import SyncLock
from reposync.core.sync.models import CyclePhase, FlowOutcome, FlowResult
from reposync.core.vcs.git import GitAdapter


@pytest.fixture
def make_orchestrator(make_config):
    def _make(repo: Path, **overrides) -> SyncOrchestrator:
        config = make_config(repo, **overrides)
        return SyncOrchestrator(
            config=config,
            git=GitAdapter(repo, network_timeout=config.network_timeout_seconds),
            interrupt_handler=InterruptHandler(),
        )

    return _make


class TestRunCycle:
    """Tests for a single cycle."""

    def test_quiet_cycle_is_noop(self, make_orchestrator, local_clone: Path, git) -> None:
        orchestrator = make_orchestrator(local_clone)
        head = git(local_clone, "rev-parse", "HEAD")

        result = orchestrator.run_cycle()

        assert result.success
        assert result.upload.outcome == FlowOutcome.NOOP
        assert result.download.outcome == FlowOutcome.NOOP
        assert git(local_clone, "rev-parse", "HEAD") == head
        assert not orchestrator.config.lock_path.exists()
        assert orchestrator.phase == CyclePhase.IDLE

    def test_new_file_is_uploaded(
        self, make_orchestrator, local_clone: Path, remote_repo: Path, git
    ) -> None:
        orchestrator = make_orchestrator(local_clone)
        (local_clone / "notes.md").write_text("hello\n")

        result = orchestrator.run_cycle()

        assert result.upload.outcome == FlowOutcome.COMMITTED
        assert result.download.outcome == FlowOutcome.NOOP
        assert git(remote_repo, "rev-parse", "main") == git(local_clone, "rev-parse", "HEAD")
        assert git(local_clone, "rev-list", "--count", "origin/main..HEAD") == "0"
        assert git(remote_repo, "show", "main:notes.md") == "hello"

    def test_lock_directory_never_committed(
        self, make_orchestrator, local_clone: Path, remote_repo: Path, git
    ) -> None:
        orchestrator = make_orchestrator(local_clone)
        (local_clone / "notes.md").write_text("hello\n")

        orchestrator.run_cycle()

        tracked = git(remote_repo, "ls-tree", "-r", "--name-only", "main").splitlines()
        assert not any(name.startswith(".reposync") for name in tracked)

    def test_project_env_file_never_committed(
        self, make_orchestrator, local_clone: Path, remote_repo: Path, git
    ) -> None:
        orchestrator = make_orchestrator(local_clone)
        (local_clone / ".reposync.env").write_text("GIT_SSH_COMMAND=ssh -i /secret/key\n")

        assert orchestrator.run_cycle().upload.outcome == FlowOutcome.NOOP

        (local_clone / "notes.md").write_text("hello\n")
        result = orchestrator.run_cycle()

        assert result.upload.outcome == FlowOutcome.COMMITTED
        tracked = git(remote_repo, "ls-tree", "-r", "--name-only", "main").splitlines()
        assert tracked == ["README.md", "notes.md"]

    def test_two_machines_converge(
        self, make_orchestrator, local_clone: Path, other_clone: Path, git
    ) -> None:
        """Edits on either side end up on both after a cycle each."""
        ours = make_orchestrator(local_clone)
        theirs = make_orchestrator(other_clone)
        (local_clone / "ours.md").write_text("ours\n")
        ours.run_cycle()

        theirs_result = theirs.run_cycle()
        (other_clone / "theirs.md").write_text("theirs\n")
        theirs.run_cycle()
        ours_result = ours.run_cycle()

        assert theirs_result.download.outcome == FlowOutcome.FAST_FORWARDED
        assert ours_result.download.outcome == FlowOutcome.FAST_FORWARDED
        assert (other_clone / "ours.md").exists()
        assert (local_clone / "theirs.md").exists()
        assert git(local_clone, "rev-parse", "HEAD") == git(other_clone, "rev-parse", "HEAD")

    def test_race_with_remote_needs_attention(
        self, make_orchestrator, local_clone: Path, git, push_from_other
    ) -> None:
        """Remote advanced before our push: rejected, then diverged, nothing rewritten."""
        orchestrator = make_orchestrator(local_clone)
        push_from_other("theirs.md", "theirs\n")
        (local_clone / "mine.md").write_text("mine\n")

        result = orchestrator.run_cycle()
        local_head = git(local_clone, "rev-parse", "HEAD")

        assert result.upload.error_type == "RejectedError"
        assert result.download.error_type == "DivergedHistoryError"
        assert result.requires_attention
        assert not result.success
        assert "[reposync]" in git(local_clone, "log", "-1", "--format=%s")
        assert git(local_clone, "rev-list", "--merges", "--count", "HEAD") == "0"

        again = orchestrator.run_cycle()
        assert again.requires_attention
        assert git(local_clone, "rev-parse", "HEAD") == local_head

    def test_upload_failure_still_downloads(
        self, make_orchestrator, local_clone: Path, git, push_from_other
    ) -> None:
        orchestrator = make_orchestrator(local_clone)
        remote_head = push_from_other("theirs.md", "theirs\n")

        with patch.object(
            orchestrator.upload_flow, "run", side_effect=NetworkError("push timed out")
        ):
            result = orchestrator.run_cycle()

        assert result.upload.outcome == FlowOutcome.FAILED
        assert result.upload.error_type == "NetworkError"
        assert not result.upload.requires_attention
        assert result.download.outcome == FlowOutcome.FAST_FORWARDED
        assert git(local_clone, "rev-parse", "HEAD") == remote_head

    def test_unreachable_remote_skips_download(
        self, make_orchestrator, local_clone: Path, tmp_path: Path, git
    ) -> None:
        git(local_clone, "remote", "set-url", "origin", str(tmp_path / "gone.git"))
        orchestrator = make_orchestrator(local_clone)

        result = orchestrator.run_cycle()

        assert result.upload.outcome == FlowOutcome.NOOP
        assert result.download.outcome == FlowOutcome.SKIPPED
        assert result.download.error_type == "NetworkError"
        assert not result.success
        assert not orchestrator.config.lock_path.exists()

    def test_unexpected_error_caught_and_lock_released(
        self, make_orchestrator, local_clone: Path
    ) -> None:
        orchestrator = make_orchestrator(local_clone)

        with patch.object(orchestrator.upload_flow, "run", side_effect=RuntimeError("kaboom")):
            result = orchestrator.run_cycle()

        assert result.error == "RuntimeError: kaboom"
        assert not result.success
        assert not orchestrator.config.lock_path.exists()
        assert orchestrator.phase == CyclePhase.IDLE

    def test_phases(self, make_orchestrator, local_clone: Path) -> None:
        orchestrator = make_orchestrator(local_clone)
        seen: list[CyclePhase] = []

        def record(flow: str):
            def _run(*args) -> FlowResult:
                seen.append(orchestrator.phase)
                assert orchestrator.config.lock_path.exists()
                return FlowResult(flow=flow, outcome=FlowOutcome.NOOP)

            return _run

        with (
            patch.object(orchestrator.upload_flow, "run", side_effect=record("upload")),
            patch.object(orchestrator.download_flow, "run", side_effect=record("download")),
        ):
            orchestrator.run_cycle()

        assert seen == [CyclePhase.UPLOADING, CyclePhase.DOWNLOADING]

    @pytest.mark.timeout(10)
    def test_lock_timeout_is_cycle_error(self, make_orchestrator, local_clone: Path) -> None:
        orchestrator = make_orchestrator(local_clone, lock_max_wait_seconds=0.1)

        with SyncLock(orchestrator.config.lock_path):
            result = orchestrator.run_cycle()

        assert result.error.startswith("LockTimeoutError")
        assert result.upload is None

    @pytest.mark.timeout(10)
    def test_shutdown_while_waiting_for_lock(self, make_orchestrator, local_clone: Path) -> None:
        orchestrator = make_orchestrator(local_clone)

        with SyncLock(orchestrator.config.lock_path) as holder:
            threading.Timer(0.1, orchestrator.interrupt_handler.request_shutdown).start()
            result = orchestrator.run_cycle()
            assert holder.acquired

        assert result.cancelled
        assert result.upload is None


class TestExecute:
    """Tests for the execute() loop."""

    @pytest.mark.timeout(20)
    def test_max_cycles(self, make_orchestrator, local_clone: Path) -> None:
        orchestrator = make_orchestrator(local_clone, max_cycles=3)

        results = list(orchestrator.execute())

        assert [r.cycle for r in results] == [1, 2, 3]
        assert orchestrator.phase == CyclePhase.STOPPED

    @pytest.mark.timeout(20)
    def test_first_cycle_runs_immediately(self, make_orchestrator, local_clone: Path) -> None:
        orchestrator = make_orchestrator(local_clone, interval_seconds=3600)

        with patch.object(orchestrator.interrupt_handler, "wait", return_value=False) as wait:
            results = list(orchestrator.execute())

        assert len(results) == 1
        wait.assert_called_once_with(3600)

    @pytest.mark.timeout(20)
    def test_shutdown_finishes_current_cycle(self, make_orchestrator, local_clone: Path) -> None:
        orchestrator = make_orchestrator(local_clone)
        results = []

        for result in orchestrator.execute():
            results.append(result)
            orchestrator.interrupt_handler.request_shutdown()

        assert len(results) == 1
        assert results[0].success
        assert orchestrator.phase == CyclePhase.STOPPED

    @pytest.mark.timeout(20)
    def test_errors_do_not_stop_the_loop(self, make_orchestrator, local_clone: Path) -> None:
        orchestrator = make_orchestrator(local_clone, max_cycles=2)

        with patch.object(orchestrator.upload_flow, "run", side_effect=RuntimeError("kaboom")):
            results = list(orchestrator.execute())

        assert len(results) == 2
        assert all(r.error for r in results)

    @pytest.mark.timeout(20)
    def test_no_cycle_after_shutdown_requested(
        self, make_orchestrator, local_clone: Path
    ) -> None:
        orchestrator = make_orchestrator(local_clone)
        orchestrator.interrupt_handler.request_shutdown()

        assert list(orchestrator.execute()) == []
        assert orchestrator.cycles_run == 0
