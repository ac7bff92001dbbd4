"""
Upload flow: stage → commit with the loop-prevention marker → push.

Creates at most one commit per run and none when nothing changed. A failed
push is not retried here; the commit stays local and the next cycle's run
pushes it (the "pending push" path) without committing again.
"""

from __future__ import annotations

import logging

from reposync.core.exceptions import NetworkError, RejectedError, VCSError
from reposync.core.sync.detector import ChangeDetector
from reposync.core.sync.models import FlowOutcome, FlowResult
from reposync.core.vcs.git import GitAdapter
from reposync.core.vcs.models import FailureKind

logger = logging.getLogger(__name__)


class UploadFlow:
    """
    Propagate local work to the remote.

    Precondition: the caller holds the SyncLock.
    """

    def __init__(
        self,
        git: GitAdapter,
        detector: ChangeDetector,
        *,
        commit_message: str,
        remote: str = "origin",
    ) -> None:
        self.git = git
        self.detector = detector
        self.commit_message = commit_message
        self.remote = remote

    def run(self) -> FlowResult:
        """
        Returns:
            FlowResult with outcome NOOP, COMMITTED (committed and pushed) or
            PUSHED (earlier commits pushed, nothing new committed).

        Raises:
            RejectedError: Remote has commits the local branch lacks.
            NetworkError: Remote unreachable during push.
            VCSError: Staging or committing failed.
        """
        if not self.detector.has_local_changes():
            pending = self.detector.local_divergence().ahead
            if pending == 0:
                logger.debug("Upload: no local changes")
                return FlowResult(flow="upload", outcome=FlowOutcome.NOOP)

            logger.info("Upload: no new changes, pushing %d pending commit(s)", pending)
            self._push()
            return FlowResult(
                flow="upload",
                outcome=FlowOutcome.PUSHED,
                commit_sha=self.git.head_sha(),
                pushed=True,
                message=f"{pending} pending commit(s) pushed",
            )

        result = self.git.commit(self.commit_message)
        if result.failure == FailureKind.NOTHING_TO_DO:
            # Index emptied between the check and the commit (external edit)
            logger.info("Upload: nothing to commit after all")
            return FlowResult(flow="upload", outcome=FlowOutcome.NOOP)
        if not result.success:
            raise VCSError(
                f"Commit failed: {result.describe()}",
                command=result.command,
                stderr=result.stderr,
                returncode=result.returncode,
            )

        commit_sha = self.git.head_sha()
        logger.info("Upload: committed %s", commit_sha[:8] if commit_sha else "?")

        self._push()
        return FlowResult(
            flow="upload",
            outcome=FlowOutcome.COMMITTED,
            commit_sha=commit_sha,
            pushed=True,
        )

    def _push(self) -> None:
        branch = self.detector.local_branch()
        upstream = self.detector.upstream_name()
        result = self.git.push(self.remote, branch, upstream)
        if result.success:
            logger.info("Upload: pushed %s to %s/%s", branch, self.remote, upstream)
            return

        if result.failure == FailureKind.REJECTED:
            raise RejectedError(
                f"Push of {branch} to {self.remote}/{upstream} rejected; "
                "remote has commits this branch lacks",
                command=result.command,
                stderr=result.output,
            )
        if result.failure == FailureKind.NETWORK:
            raise NetworkError(
                f"Push to {self.remote} could not reach the remote: {result.output}",
                command=result.command,
                stderr=result.stderr,
            )
        raise VCSError(
            f"Push failed: {result.describe()}",
            command=result.command,
            stderr=result.stderr,
            returncode=result.returncode,
        )
