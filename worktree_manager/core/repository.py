"""Worktree lifecycle for a single repository."""

import dataclasses
import os
from typing import Callable, List, Optional, Tuple

from rich.prompt import Confirm

from worktree_manager.config import Config
from worktree_manager.constants import DEFAULT_REMOTE
from worktree_manager.core.mode import is_git_repository
from worktree_manager.exceptions import (
    BranchNotFoundOnRemoteError,
    DeletionCancelledError,
    DirectoryExistsError,
    GitCommandFailedError,
    MainWorktreeError,
    NotAGitRepositoryError,
    OriginRemoteError,
    ReferenceConflictError,
    RepositoryAlreadyExistsError,
    RepositoryNotCleanError,
    WorktreeAlreadyExistsError,
    WorktreeManagerError,
    WorktreeNotInStatusError,
)
from worktree_manager.models.status import IssueInfo, RemoteInfo, RepositoryRecord, WorktreeInfo
from worktree_manager.services.fs_service import FileSystemService
from worktree_manager.services.git import GitOperations
from worktree_manager.services.status_store import StatusStore
from worktree_manager.utils.rollback import Rollback
from worktree_manager.utils.urls import build_remote_url, extract_host
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


def ask_confirmation(message: str) -> bool:
    """Interactive yes/no prompt (defaults to no)."""
    return Confirm.ask(message, default=False)


def same_path(a: str, b: str) -> bool:
    return os.path.realpath(a) == os.path.realpath(b)


class RepositoryController:
    """Creates, deletes, loads and lists worktrees of one repository.

    Status writes and git mutations are paired so the status file never
    claims a worktree git does not have: creation records the worktree
    first and undoes the record if git fails; deletion removes the git
    worktree and directory first and the record last.
    """

    def __init__(self, repo_path: str, config: Config,
                 git_ops: Optional[GitOperations] = None,
                 fs: Optional[FileSystemService] = None,
                 store: Optional[StatusStore] = None,
                 confirm: Optional[Callable[[str], bool]] = None):
        """Initialize the controller.

        Args:
            repo_path: Path to the repository (or one of its worktrees)
            config: Configuration
            git_ops: Git adapter
            fs: Filesystem adapter
            store: Status store
            confirm: Yes/no prompt used before deletions
        """
        self.repo_path = os.path.abspath(repo_path)
        self.config = config
        self.git = git_ops or GitOperations()
        self.fs = fs or FileSystemService()
        self.store = store or StatusStore(config.status_file, self.fs, config.lock_timeout)
        self.confirm = confirm or ask_confirmation

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def is_git_repository(self) -> bool:
        return is_git_repository(self.repo_path, self.fs)

    def repository_url(self) -> str:
        """Validate the directory and derive its status key.

        Raises:
            NotAGitRepositoryError: If the directory is not a git repository
        """
        if not self.is_git_repository():
            raise NotAGitRepositoryError(self.repo_path)
        return self.git.get_repository_name(self.repo_path)

    def main_path(self) -> str:
        """Path of the main working tree, even when run from a linked worktree."""
        worktrees = self.git.list_worktrees(self.repo_path)
        return worktrees[0].path if worktrees else self.repo_path

    def worktree_path(self, repo_url: str, remote: str, branch: str) -> str:
        """Deterministic location: ``<repositories_dir>/<repo_url>/<remote>/<branch>``."""
        return os.path.join(self.config.repositories_dir, repo_url, remote, branch)

    def ensure_repository(self, repo_url: str) -> RepositoryRecord:
        """Return the status record for the repository, registering it if needed."""
        if self.store.has_repository(repo_url):
            return self.store.get_repository(repo_url)

        remotes = {}
        current = self.git.get_current_branch(self.repo_path)
        for remote in self.git.list_remotes(self.repo_path):
            default_branch = self.git.get_local_default_branch(self.repo_path, remote) or current
            if default_branch:
                remotes[remote] = RemoteInfo(default_branch=default_branch)

        try:
            record = self.store.add_repository(repo_url, self.main_path(), remotes)
            logger.info(f"Registered repository {repo_url}")
            return record
        except RepositoryAlreadyExistsError:
            # Registered by a concurrent invocation
            return self.store.get_repository(repo_url)

    def ensure_default_branch_worktree(self, repo_url: str) -> Optional[str]:
        """Make sure the default branch of origin has a tracked worktree.

        When the default branch is checked out somewhere already (usually the
        main working tree) that location is recorded; otherwise a worktree is
        created for it.

        Returns:
            Path of the default-branch worktree
        """
        record = self.ensure_repository(repo_url)
        default_branch = record.default_branch(DEFAULT_REMOTE) or self.git.get_current_branch(self.repo_path)
        if not default_branch:
            logger.warning(f"Cannot determine default branch of {repo_url}")
            return None

        existing = self.store.find_worktree(repo_url, default_branch)
        if existing:
            return existing.path

        checked_out = self.git.get_worktree_path(self.repo_path, default_branch)
        if checked_out:
            self.store.add_worktree(repo_url, DEFAULT_REMOTE, default_branch, checked_out)
            return checked_out

        logger.info(f"Creating default branch worktree '{default_branch}' for {repo_url}")
        return self.create_worktree(default_branch)

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def preflight_create(self, branch: str, remote: str = DEFAULT_REMOTE) -> Tuple[str, str]:
        """Check that a worktree for ``branch`` can be created.

        Registers the repository in the status file if it is not tracked yet.

        Returns:
            Tuple of (repo_url, worktree_path)
        """
        repo_url = self.repository_url()

        if self.config.require_clean and not self.git.is_clean(self.repo_path):
            raise RepositoryNotCleanError(self.repo_path)

        self.ensure_repository(repo_url)

        existing = self.store.find_worktree(repo_url, branch)
        if existing:
            raise WorktreeAlreadyExistsError(repo_url, branch, existing.remote)

        path = self.worktree_path(repo_url, remote, branch)
        if self.fs.exists(path):
            raise DirectoryExistsError(path)

        conflict = self.git.check_reference_conflict(self.repo_path, branch)
        if conflict:
            raise ReferenceConflictError(branch, conflict)

        return repo_url, path

    def create_worktree(self, branch: str, issue_info: Optional[IssueInfo] = None,
                        remote: str = DEFAULT_REMOTE) -> str:
        """Create and track a worktree for ``branch``.

        The branch is created if it does not exist locally: from
        ``<remote>/<branch>`` when that remote-tracking branch exists,
        otherwise from the current HEAD.

        Returns:
            Path of the new worktree
        """
        repo_url, path = self.preflight_create(branch, remote)

        with Rollback() as rollback:
            self.store.add_worktree(repo_url, remote, branch, path, issue_info)
            rollback.push(
                f"remove status entry {remote}:{branch}",
                lambda: self.store.remove_worktree(repo_url, remote, branch, missing_ok=True),
            )
            parent = os.path.dirname(path)
            new_parents = self.fs.missing_dirs(parent)
            rollback.push(f"remove empty parents of {path}", lambda: self.fs.remove_empty_dirs(new_parents))
            rollback.push("prune worktree metadata", lambda: self.git.prune_worktrees(self.repo_path))
            rollback.push(f"remove directory {path}", lambda: self.fs.remove_all(path))

            self.fs.mkdir_all(parent)

            has_remote_branch = self.git.remote_branch_exists(self.repo_path, remote, branch)
            if not self.git.branch_exists(self.repo_path, branch):
                if has_remote_branch:
                    self.git.create_branch_from(self.repo_path, branch, f"{remote}/{branch}")
                else:
                    self.git.create_branch(self.repo_path, branch)
                rollback.push(f"delete branch {branch}", lambda: self.git.delete_branch(self.repo_path, branch))

            self.git.create_worktree(self.repo_path, path, branch)
            rollback.push(
                f"remove git worktree {path}",
                lambda: self.git.remove_worktree(self.repo_path, path, force=True),
            )
            rollback.commit()

        if has_remote_branch:
            try:
                self.git.set_upstream_branch(path, remote, branch)
            except GitCommandFailedError as e:
                logger.warning(f"Could not set upstream of '{branch}' to {remote}/{branch}: {e}")

        logger.info(f"Created worktree for '{branch}' at {path}")
        return path

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_worktree(self, branch: str, force: bool = False, confirm: bool = True) -> str:
        """Delete a tracked worktree.

        Args:
            branch: Branch of the worktree
            force: Skip the prompt and force ``git worktree remove``
            confirm: Ask before deleting (ignored with force)

        Returns:
            Path of the removed worktree
        """
        repo_url = self.repository_url()
        worktree = self.store.find_worktree(repo_url, branch)
        if worktree is None:
            raise WorktreeNotInStatusError(repo_url, branch)

        git_worktrees = self.git.list_worktrees(self.repo_path)
        main_path = git_worktrees[0].path if git_worktrees else self.repo_path
        git_path = next((wt.path for wt in git_worktrees if wt.branch == branch), None)
        path = git_path or worktree.path

        if same_path(path, main_path):
            raise MainWorktreeError(path)

        if confirm and not force:
            if not self.confirm(f"Delete worktree for branch '{branch}' at {path}?"):
                raise DeletionCancelledError()

        if git_path:
            self.git.remove_worktree(self.repo_path, git_path, force=force)
        else:
            logger.warning(f"Worktree for '{branch}' is not registered with git, cleaning up directory and status only")

        self.fs.remove_all(path)
        self.store.remove_worktree(repo_url, worktree.remote, branch, missing_ok=True)
        logger.info(f"Deleted worktree for '{branch}' at {path}")
        return path

    def delete_all_worktrees(self, force: bool = False) -> List[str]:
        """Delete every tracked worktree except the main working tree.

        Returns:
            Branches that were deleted
        """
        repo_url = self.repository_url()
        main_path = self.main_path()
        worktrees = [wt for wt in self.store.list_worktrees(repo_url) if not same_path(wt.path, main_path)]
        if not worktrees:
            logger.info(f"No worktrees to delete for {repo_url}")
            return []

        if not force:
            if not self.confirm(f"Delete {len(worktrees)} worktree(s) of {repo_url}?"):
                raise DeletionCancelledError()

        deleted = []
        failures = []
        for worktree in worktrees:
            try:
                self.delete_worktree(worktree.branch, force=force, confirm=False)
                deleted.append(worktree.branch)
            except WorktreeManagerError as e:
                logger.error(f"Failed to delete worktree '{worktree.branch}': {e}")
                failures.append(f"{worktree.branch}: {e}")

        if failures:
            prefix = "Failed to delete all worktrees" if not deleted else "Some worktrees could not be deleted"
            raise WorktreeManagerError(f"{prefix}: " + "; ".join(failures))
        return deleted

    # ------------------------------------------------------------------
    # Load and list
    # ------------------------------------------------------------------

    def load_worktree(self, remote_source: Optional[str], branch: str,
                      issue_info: Optional[IssueInfo] = None) -> str:
        """Create a worktree for a branch that exists on a remote.

        A ``remote_source`` other than origin that is not yet a remote is
        added with a URL on origin's host: ``<host>/<remote_source>/<repo>``.

        Returns:
            Path of the new worktree
        """
        repo_url = self.repository_url()
        remote = remote_source or DEFAULT_REMOTE

        origin_url = self.git.get_remote_url(self.repo_path, DEFAULT_REMOTE)
        if not origin_url:
            raise OriginRemoteError("no 'origin' remote configured")
        if not extract_host(origin_url):
            raise OriginRemoteError(f"'{origin_url}' is not a recognized hosting URL")

        if remote != DEFAULT_REMOTE and not self.git.remote_exists(self.repo_path, remote):
            repo_name = repo_url.rsplit("/", 1)[-1]
            remote_url = build_remote_url(origin_url, remote, repo_name)
            logger.info(f"Adding remote '{remote}' ({remote_url})")
            self.git.add_remote(self.repo_path, remote, remote_url)

        self.git.fetch_remote(self.repo_path, remote)

        if not self.git.remote_branch_exists(self.repo_path, remote, branch):
            raise BranchNotFoundOnRemoteError(remote, branch)

        return self.create_worktree(branch, issue_info=issue_info, remote=remote)

    def list_worktrees(self) -> List[WorktreeInfo]:
        """Tracked worktrees sorted by branch, with their remote resolved from git.

        Returns an empty list when the repository is not tracked.
        """
        repo_url = self.repository_url()
        result = []
        for worktree in self.store.list_worktrees(repo_url):
            remote = self.git.get_branch_remote(self.repo_path, worktree.branch) or DEFAULT_REMOTE
            result.append(dataclasses.replace(worktree, remote=remote))
        return result
