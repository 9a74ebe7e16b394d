"""Parsing of ``git worktree list --porcelain`` output."""

from typing import Any, Dict, List

from worktree_manager.models.worktree import GitWorktree
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


def _build_entry(data: Dict[str, Any], is_main: bool) -> GitWorktree:
    return GitWorktree(
        path=data["path"],
        branch=data.get("branch", ""),
        head=data.get("HEAD", ""),
        is_main=is_main,
        is_bare=data.get("bare", False),
    )


def parse_worktree_list(output: str) -> List[GitWorktree]:
    """Parse porcelain worktree output.

    Format:
        worktree /path/to/worktree
        HEAD commit_sha
        branch refs/heads/branch-name
        (blank line between worktrees)

    The first entry is always the main working tree.
    """
    worktrees: List[GitWorktree] = []
    current: Dict[str, Any] = {}

    for line in output.split("\n"):
        line = line.strip()

        if not line:
            # Empty line marks end of worktree entry
            if current.get("path"):
                worktrees.append(_build_entry(current, is_main=not worktrees))
            current = {}
            continue

        if line.startswith("worktree "):
            current["path"] = line.split(" ", 1)[1]
        elif line.startswith("HEAD "):
            current["HEAD"] = line.split(" ", 1)[1]
        elif line.startswith("branch "):
            branch_ref = line.split(" ", 1)[1]
            if branch_ref.startswith("refs/heads/"):
                current["branch"] = branch_ref[len("refs/heads/"):]
            else:
                current["branch"] = ""
        elif line == "detached":
            current["branch"] = ""
        elif line == "bare":
            current["bare"] = True

    # Handle last entry if no trailing blank line
    if current.get("path"):
        worktrees.append(_build_entry(current, is_main=not worktrees))

    logger.debug(f"Found {len(worktrees)} worktrees")
    for wt in worktrees:
        logger.debug(f"  {wt}")
    return worktrees
