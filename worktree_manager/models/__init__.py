"""Data models for worktree-manager."""
