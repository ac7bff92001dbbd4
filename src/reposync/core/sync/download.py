"""
Download flow: bring upstream commits in by fast-forward only.

Dirty tracked files are always stashed first and restored afterwards. The
flow never rewrites or discards local commits, never creates a merge commit,
and never resolves a conflict: if something cannot be done safely, the stash
is left in place and the error is raised for a human to handle.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from reposync.core.exceptions import DivergedHistoryError, RestoreConflictError, VCSError
from reposync.core.sync.detector import ChangeDetector
from reposync.core.sync.models import Divergence, FlowOutcome, FlowResult, StashRecord
from reposync.core.vcs.git import GitAdapter
from reposync.core.vcs.models import FailureKind

logger = logging.getLogger(__name__)

STASH_LABEL_PREFIX = "reposync-autostash"


def is_autostash(message: str) -> bool:
    """True for stash entries created by this flow."""
    return STASH_LABEL_PREFIX in message


class DownloadFlow:
    """
    Integrate upstream commits into the working copy.

    Preconditions: the caller holds the SyncLock, and the change detector
    fetched during this cycle (this flow never fetches).
    """

    def __init__(self, git: GitAdapter, detector: ChangeDetector) -> None:
        self.git = git
        self.detector = detector

    def run(self, divergence: Divergence) -> FlowResult:
        """
        Args:
            divergence: Ahead/behind counts computed after this cycle's fetch.

        Raises:
            DivergedHistoryError: Local HEAD is not an ancestor of upstream.
            RestoreConflictError: Upstream integrated but the stash would not
                reapply cleanly; the stash entry is kept.
            VCSError: Stashing or fast-forwarding failed for another reason.
        """
        if divergence.behind == 0:
            logger.debug("Download: upstream has nothing new")
            return FlowResult(flow="download", outcome=FlowOutcome.NOOP)

        upstream_ref = divergence.upstream_ref

        # Checked before stashing; a diverged branch leaves the tree untouched.
        if self.git.head_sha() is not None and not self.git.is_ancestor("HEAD", upstream_ref):
            raise DivergedHistoryError(
                f"Local branch and {upstream_ref} have diverged "
                f"({divergence.ahead} local, {divergence.behind} upstream commits); "
                "fast-forward impossible, resolve manually"
            )

        stash = None
        if self.detector.is_working_tree_dirty():
            stash = self._stash()

        result = self.git.merge_ff_only(upstream_ref)
        if not result.success:
            left = f"; autostash '{stash.label}' ({stash.sha[:8]}) left in place" if stash else ""
            if result.failure == FailureKind.NOT_FAST_FORWARD:
                raise DivergedHistoryError(
                    f"Fast-forward to {upstream_ref} impossible{left}",
                    stash=stash,
                    command=result.command,
                    stderr=result.output,
                )
            raise VCSError(
                f"Fast-forward to {upstream_ref} failed{left}: {result.output}",
                command=result.command,
                stderr=result.stderr,
                returncode=result.returncode,
            )

        new_head = self.git.head_sha()
        logger.info(
            "Download: fast-forwarded %d commit(s) to %s",
            divergence.behind,
            new_head[:8] if new_head else "?",
        )

        message = ""
        restored = False
        if stash is not None:
            restored = self._restore(stash)
            if not restored:
                message = f"autostash '{stash.label}' missing, local edits NOT restored"

        return FlowResult(
            flow="download",
            outcome=FlowOutcome.FAST_FORWARDED,
            commit_sha=new_head,
            commits_integrated=divergence.behind,
            stash_label=stash.label if restored else None,
            message=message,
            requires_attention=stash is not None and not restored,
        )

    def _stash(self) -> StashRecord | None:
        created_at = datetime.now(timezone.utc)
        label = f"{STASH_LABEL_PREFIX} {created_at.isoformat(timespec='seconds')}"

        result = self.git.stash_push(label)
        if result.failure == FailureKind.NOTHING_TO_DO:
            logger.debug("Download: tree became clean before stashing")
            return None
        if not result.success:
            raise VCSError(
                f"Autostash failed: {result.describe()}",
                command=result.command,
                stderr=result.stderr,
                returncode=result.returncode,
            )

        for entry in self.git.stash_list():
            if entry.message.endswith(label):
                logger.info("Download: stashed local edits as %s (%s)", label, entry.sha[:8])
                return StashRecord(label=label, sha=entry.sha, created_at=created_at)

        raise VCSError(f"Autostash '{label}' was created but cannot be found in the stash list")

    def _restore(self, stash: StashRecord) -> bool:
        """
        Reapply the stash, then drop it. On any failure the entry is kept.

        Returns:
            False if the stash entry was gone before it could be applied.
        """
        entry = next((e for e in self.git.stash_list() if e.sha == stash.sha), None)
        if entry is None:
            logger.error(
                "Autostash %s disappeared before restore; local edits were not restored",
                stash.label,
            )
            return False

        result = self.git.stash_apply(entry.ref)
        if not result.success:
            raise RestoreConflictError(
                f"Autostash '{stash.label}' ({stash.sha[:8]}) did not reapply cleanly; "
                "it has been kept. Resolve the working tree, then drop it manually",
                stash=stash,
                command=result.command,
                stderr=result.output,
            )

        drop = self.git.stash_drop(entry.ref)
        if not drop.success:
            # Edits are back in the tree; only the stash entry lingers
            logger.warning(
                "Restored autostash %s but could not drop it: %s", stash.label, drop.output
            )
            return True
        logger.info("Download: restored local edits from %s", stash.label)
        return True
