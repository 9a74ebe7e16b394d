"""Git-related services for worktree-manager."""

from .operations import GitOperations
from .worktrees import parse_worktree_list

__all__ = [
    "GitOperations",
    "parse_worktree_list",
]
