"""
Version-control adapter.

A narrow surface over the git CLI: each primitive (stage, commit, push,
fetch, fast-forward, stash push/apply/drop, dirty and ahead/behind checks)
is one call returning a GitResult.
"""

from reposync.core.vcs.git import GitAdapter, classify_failure
from reposync.core.vcs.models import Divergence, FailureKind, GitResult, StashEntry

__all__ = [
    "Divergence",
    "FailureKind",
    "GitAdapter",
    "GitResult",
    "StashEntry",
    "classify_failure",
]
