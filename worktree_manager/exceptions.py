"""Custom exceptions for worktree-manager"""

from enum import Enum
from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from worktree_manager.models.outcome import RepositoryOutcome


class WorktreeManagerError(Exception):
    """Base exception for all worktree-manager errors."""
    pass


class NotInitializedError(WorktreeManagerError):
    """Raised when the config or status file has not been created yet."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        error_msg = "worktree-manager is not initialized"
        if path:
            error_msg += f" ({path} not found)"
        error_msg += ", run 'wtm init' first"
        super().__init__(error_msg)


class ConfigError(WorktreeManagerError):
    """Raised when the config file cannot be parsed or is invalid."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Invalid config file {path}: {message}")


class NotAGitRepositoryError(WorktreeManagerError):
    """Raised when a directory is not a git repository."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Not a git repository: {path}")


class RepositoryNotCleanError(WorktreeManagerError):
    """Raised when an operation needs a clean working tree."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Repository has uncommitted changes: {path}")


class GitCommandFailedError(WorktreeManagerError):
    """Raised when a git command exits with an error."""

    def __init__(self, command: str, status: Optional[int] = None, stderr: Optional[str] = None):
        self.command = command
        self.status = status
        self.stderr = (stderr or "").strip()

        error_msg = f"'{command}' failed"
        if status is not None:
            error_msg += f" (exit {status})"
        if self.stderr:
            error_msg += f": {self.stderr}"

        super().__init__(error_msg)


class WorktreeAlreadyExistsError(WorktreeManagerError):
    """Raised when a worktree for the branch is already tracked."""

    def __init__(self, repo_url: str, branch: str, remote: Optional[str] = None):
        self.repo_url = repo_url
        self.branch = branch
        self.remote = remote
        label = f"{remote}:{branch}" if remote else branch
        super().__init__(f"Worktree '{label}' already exists for repository {repo_url}")


class WorktreeNotInStatusError(WorktreeManagerError):
    """Raised when deleting a worktree the status file does not know about."""

    def __init__(self, repo_url: str, branch: str):
        self.repo_url = repo_url
        self.branch = branch
        super().__init__(f"Worktree for branch '{branch}' is not tracked for repository {repo_url}")


class WorktreeNotFoundError(WorktreeManagerError):
    """Raised by the status store when a worktree key is absent."""

    def __init__(self, repo_url: str, key: str):
        self.repo_url = repo_url
        self.key = key
        super().__init__(f"Worktree '{key}' not found in repository {repo_url}")


class MainWorktreeError(WorktreeManagerError):
    """Raised when asked to remove the repository's main working tree."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Refusing to delete the main working tree at {path}")


class DirectoryExistsError(WorktreeManagerError):
    """Raised when the target worktree directory is already occupied."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Directory already exists: {path}")


class BranchNotFoundOnRemoteError(WorktreeManagerError):
    """Raised when a branch is missing from a remote."""

    def __init__(self, remote: str, branch: str):
        self.remote = remote
        self.branch = branch
        super().__init__(f"Branch '{branch}' not found on remote '{remote}'")


class ReferenceConflictError(WorktreeManagerError):
    """Raised when a branch name collides with an existing ref hierarchy."""

    def __init__(self, branch: str, conflicting_ref: str):
        self.branch = branch
        self.conflicting_ref = conflicting_ref
        super().__init__(
            f"Cannot create branch '{branch}': it conflicts with existing reference '{conflicting_ref}'"
        )


class OriginRemoteError(WorktreeManagerError):
    """Raised when the origin remote is missing or not a hosting URL."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"Origin remote error: {message}")


class StoreCorruptError(WorktreeManagerError):
    """Raised when the status file exists but cannot be parsed."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"Status file {path} is corrupt: {message}")


class BusyError(WorktreeManagerError):
    """Raised when another process holds the status file lock."""

    def __init__(self, lock_path: str, holder_pid: Optional[int] = None):
        self.lock_path = lock_path
        self.holder_pid = holder_pid
        error_msg = "Status file is locked by another wtm process"
        if holder_pid:
            error_msg += f" (pid {holder_pid})"
        error_msg += f"; lock file: {lock_path}"
        super().__init__(error_msg)


class StaleLockError(BusyError):
    """Raised when the lock is held but its recorded owner is no longer running."""

    def __init__(self, lock_path: str, holder_pid: Optional[int] = None):
        super().__init__(lock_path, holder_pid)
        owner = f"pid {holder_pid}" if holder_pid else "an unknown process"
        self.args = (
            f"Status file lock appears stale (held by {owner}, which is not running); "
            f"remove {lock_path} if no other wtm command is running",
        )


class RepositoryNotFoundError(WorktreeManagerError):
    """Raised when a repository URL is not tracked."""

    def __init__(self, repo_url: str):
        self.repo_url = repo_url
        super().__init__(f"Repository not found in status: {repo_url}")


class RepositoryAlreadyExistsError(WorktreeManagerError):
    """Raised when adding a repository URL that is already tracked."""

    def __init__(self, repo_url: str):
        self.repo_url = repo_url
        super().__init__(f"Repository already exists in status: {repo_url}")


class RepositoryInUseError(WorktreeManagerError):
    """Raised when deleting a repository that workspaces still reference."""

    def __init__(self, repo_url: str, workspaces: List[str]):
        self.repo_url = repo_url
        self.workspaces = workspaces
        super().__init__(
            f"Repository {repo_url} is used by workspace(s): {', '.join(workspaces)}; "
            f"remove it from them first"
        )


class WorkspaceNotFoundError(WorktreeManagerError):
    """Raised when a workspace path is not tracked."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Workspace not found in status: {path}")


class WorkspaceAlreadyExistsError(WorktreeManagerError):
    """Raised when adding a workspace path that is already tracked."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Workspace already exists in status: {path}")


class WorkspaceFileError(WorktreeManagerError):
    """Raised when a workspace definition file cannot be found or read."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        self.message = message
        error_msg = f"Workspace file error: {message}"
        if path:
            error_msg += f" ({path})"
        super().__init__(error_msg)


class WorkspaceBatchError(WorktreeManagerError):
    """Raised when every repository of a workspace operation failed."""

    def __init__(self, operation: str, outcomes: List["RepositoryOutcome"]):
        self.operation = operation
        self.outcomes = outcomes
        details = "; ".join(f"{o.repo_url}: {o.error}" for o in outcomes)
        super().__init__(f"Workspace {operation} failed for all repositories: {details}")


class DeletionCancelledError(WorktreeManagerError):
    """Raised when the user declines a deletion prompt."""

    def __init__(self):
        super().__init__("Deletion cancelled by user")


class BranchNameErrorReason(Enum):
    """Why a branch name was rejected."""

    EMPTY = "branch name cannot be empty"
    SINGLE_AT = "branch name cannot be '@'"
    AT_BRACE = "branch name cannot contain '@{'"
    BACKSLASH = "branch name cannot contain a backslash"
    EMPTY_AFTER_SANITIZATION = "branch name is empty after sanitization"


class InvalidBranchNameError(WorktreeManagerError):
    """Raised when a branch name cannot be turned into a valid git ref."""

    def __init__(self, name: str, reason: BranchNameErrorReason):
        self.name = name
        self.reason = reason
        super().__init__(f"Invalid branch name '{name}': {reason.value}")


class IssueReferenceError(WorktreeManagerError):
    """Raised for unparseable or unusable issue references."""

    def __init__(self, reference: str, message: str):
        self.reference = reference
        self.message = message
        super().__init__(f"Issue reference '{reference}': {message}")


class GitHubAPIError(WorktreeManagerError):
    """Exception raised for errors in GitHub API operations."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        self.message = message

        error_msg = f"GitHub API operation '{operation}' failed"
        if message:
            error_msg += f": {message}"

        super().__init__(error_msg)


class IDEError(WorktreeManagerError):
    """Raised when an IDE is unknown, missing, or fails to launch."""

    def __init__(self, ide: str, message: str):
        self.ide = ide
        self.message = message
        super().__init__(f"IDE '{ide}': {message}")
