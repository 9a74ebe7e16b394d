"""Utility functions for worktree-manager.

This package provides utility modules:
- branch: Branch name sanitization
- rollback: Ordered compensating actions for multi-step operations
- urls: Remote URL normalization
"""

from .branch import sanitize_branch_name, sanitize_for_filename
from .rollback import Rollback
from .urls import normalize_repository_url, extract_host, build_remote_url

__all__ = [
    # Branch names
    "sanitize_branch_name",
    "sanitize_for_filename",
    # Rollback
    "Rollback",
    # URLs
    "normalize_repository_url",
    "extract_host",
    "build_remote_url",
]
