"""Shared constants for worktree-manager."""

from dataclasses import dataclass
from typing import Dict, List

# Remote whose URL identifies a repository and whose default branch is tracked
DEFAULT_REMOTE = "origin"

WORKSPACE_SUFFIX = ".code-workspace"

# IDE name -> executable
IDE_COMMANDS: Dict[str, str] = {
    "vscode": "code",
    "cursor": "cursor",
}
SUPPORTED_IDES: List[str] = list(IDE_COMMANDS)


@dataclass
class ColumnDefinition:
    """Definition of a table column."""

    key: str
    label: str
    width: int = 0  # 0 means auto-width


COLUMNS: List[ColumnDefinition] = [
    ColumnDefinition("repository", "Repository", 30),
    ColumnDefinition("remote", "Remote", 10),
    ColumnDefinition("branch", "Branch", 30),
    ColumnDefinition("path", "Path"),
    ColumnDefinition("issue", "Issue", 8),
]

# Symbol constants
SYMBOL_OK = "✓"
SYMBOL_FAILED = "✗"
SYMBOL_MISSING = "⚠"

# Rich styles for list rows
STYLE_MISSING = "yellow"
