"""Detect whether a directory is a repository or a workspace context."""

import os
from enum import Enum
from typing import Optional

from worktree_manager.constants import WORKSPACE_SUFFIX
from worktree_manager.services.fs_service import FileSystemService
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


class Mode(Enum):
    REPOSITORY = "repository"
    WORKSPACE = "workspace"
    NONE = "none"


def is_git_repository(path: str, fs: FileSystemService) -> bool:
    """True if ``path`` has a ``.git`` directory, or a ``.git`` file whose
    ``gitdir:`` points at an existing directory (a linked worktree)."""
    git_path = os.path.join(path, ".git")
    if fs.is_dir(git_path):
        return True
    if not fs.exists(git_path):
        return False

    try:
        content = fs.read_file(git_path).strip()
    except OSError as e:
        logger.debug(f"Could not read {git_path}: {e}")
        return False
    if not content.startswith("gitdir:"):
        return False
    gitdir = content[len("gitdir:"):].strip()
    if not os.path.isabs(gitdir):
        gitdir = os.path.join(path, gitdir)
    return fs.is_dir(gitdir)


def find_workspace_files(path: str, fs: FileSystemService):
    return fs.glob(os.path.join(path, f"*{WORKSPACE_SUFFIX}"))


def detect_mode(path: str, fs: Optional[FileSystemService] = None,
                workspace_file: Optional[str] = None) -> Mode:
    """Pick the controller for a command.

    An explicit workspace file wins; then a git repository in ``path``; then
    any ``*.code-workspace`` file in ``path``.
    """
    fs = fs or FileSystemService()
    if workspace_file:
        mode = Mode.WORKSPACE
    elif is_git_repository(path, fs):
        mode = Mode.REPOSITORY
    elif find_workspace_files(path, fs):
        mode = Mode.WORKSPACE
    else:
        mode = Mode.NONE
    logger.debug(f"Detected {mode.value} mode for {path}")
    return mode
