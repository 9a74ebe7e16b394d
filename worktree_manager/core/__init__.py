"""Controllers for repository and workspace worktree operations."""

from .manager import WorktreeManager
from .mode import Mode, detect_mode
from .repository import RepositoryController
from .workspace import WorkspaceController, WorkspaceState

__all__ = [
    "WorktreeManager",
    "Mode",
    "detect_mode",
    "RepositoryController",
    "WorkspaceController",
    "WorkspaceState",
]
