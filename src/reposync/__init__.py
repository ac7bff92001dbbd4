"""
reposync - unattended two-way sync daemon for a git working copy.

Keeps a local clone and its upstream branch consistent: local edits are
committed and pushed, remote commits are fast-forwarded in, and no two
sync cycles ever touch the same working directory at once.
"""

__version__ = "0.3.0"

from reposync.core.config.models import SyncConfig
from reposync.core.sync.models import CycleResult, FlowOutcome, FlowResult

__all__ = ["CycleResult", "FlowOutcome", "FlowResult", "SyncConfig", "__version__"]
