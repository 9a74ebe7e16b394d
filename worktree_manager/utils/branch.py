"""Branch name sanitization."""

import re

from worktree_manager.exceptions import BranchNameErrorReason, InvalidBranchNameError

MAX_BRANCH_NAME_LENGTH = 255

# Control characters, space, and characters git rejects in ref names
_INVALID_CHARS = re.compile(r"[\x00-\x1f\x7f ~^:?*\[\]#]")
_DOT_RUNS = re.compile(r"\.\.+")
_SLASH_RUNS = re.compile(r"/+")
_EDGE_CHARS = "/._"


def sanitize_branch_name(name: str) -> str:
    """Turn user input into a valid git branch name.

    Invalid characters become ``_``, ``..`` sequences collapse to ``_`` and
    repeated slashes collapse to one. Leading/trailing ``/``, ``.`` and ``_``
    are stripped, then a single leading ``-``.

    Raises:
        InvalidBranchNameError: For names that cannot be repaired
    """
    if not name:
        raise InvalidBranchNameError(name, BranchNameErrorReason.EMPTY)
    if name == "@":
        raise InvalidBranchNameError(name, BranchNameErrorReason.SINGLE_AT)
    if "@{" in name:
        raise InvalidBranchNameError(name, BranchNameErrorReason.AT_BRACE)
    if "\\" in name:
        raise InvalidBranchNameError(name, BranchNameErrorReason.BACKSLASH)

    result = _INVALID_CHARS.sub("_", name)
    result = _DOT_RUNS.sub("_", result)
    result = _SLASH_RUNS.sub("/", result)
    result = result.strip(_EDGE_CHARS)
    if result.startswith("-"):
        result = result[1:]

    if len(result) > MAX_BRANCH_NAME_LENGTH:
        result = result[:MAX_BRANCH_NAME_LENGTH].rstrip(_EDGE_CHARS)

    if not result:
        raise InvalidBranchNameError(name, BranchNameErrorReason.EMPTY_AFTER_SANITIZATION)
    return result


def sanitize_for_filename(branch: str) -> str:
    """Flatten a branch name into a single path component."""
    return branch.replace("/", "-")
