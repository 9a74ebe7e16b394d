"""Git worktree list entries."""

import os
from dataclasses import dataclass


@dataclass
class GitWorktree:
    """One entry of ``git worktree list --porcelain``."""

    path: str
    branch: str  # Empty when HEAD is detached
    head: str
    is_main: bool  # First entry is the main working tree
    is_bare: bool = False

    @property
    def is_orphaned(self) -> bool:
        """Directory missing on disk."""
        return not os.path.exists(self.path)

    def __str__(self) -> str:
        status = "orphaned" if self.is_orphaned else "active"
        main_marker = " (main)" if self.is_main else ""
        return f"{self.branch or '(detached)'} @ {self.path}{main_marker} [{status}]"
