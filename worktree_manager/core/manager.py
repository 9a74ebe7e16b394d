"""Core functionality for worktree-manager"""

import os
from typing import Callable, List, Optional, Tuple, Union

from worktree_manager.config import Config, default_config_path, expand_path, save_config
from worktree_manager.constants import DEFAULT_REMOTE
from worktree_manager.core.mode import Mode, detect_mode, is_git_repository
from worktree_manager.core.repository import RepositoryController, ask_confirmation, same_path
from worktree_manager.core.workspace import WorkspaceController
from worktree_manager.exceptions import (
    DeletionCancelledError,
    DirectoryExistsError,
    IDEError,
    NotAGitRepositoryError,
    RepositoryAlreadyExistsError,
    RepositoryInUseError,
    WorktreeManagerError,
    WorktreeNotInStatusError,
)
from worktree_manager.models.outcome import BatchResult
from worktree_manager.models.status import IssueInfo, RemoteInfo, RepositoryRecord, WorkspaceRecord, WorktreeInfo
from worktree_manager.services.fs_service import FileSystemService
from worktree_manager.services.git import GitOperations
from worktree_manager.services.github_service import GitHubService, generate_branch_name, parse_issue_reference
from worktree_manager.services.ide_service import IDEService
from worktree_manager.services.status_store import StatusStore
from worktree_manager.utils.branch import sanitize_branch_name
from worktree_manager.utils.rollback import Rollback
from worktree_manager.utils.urls import normalize_repository_url
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


def parse_load_reference(reference: str) -> Tuple[Optional[str], str]:
    """Split ``[remote:]branch``. Branch names cannot contain ``:``."""
    remote, sep, branch = reference.rpartition(":")
    if not branch:
        raise WorktreeManagerError(f"Invalid branch reference '{reference}'")
    return (remote or None) if sep else None, branch


def is_inside(path: str, root: str) -> bool:
    """True when ``path`` lies strictly below ``root``."""
    path, root = os.path.realpath(path), os.path.realpath(root)
    return path != root and os.path.commonpath([path, root]) == root


class WorktreeManager:
    """Entry point for every command; picks the repository or workspace controller."""

    def __init__(self, config: Config, cwd: Optional[str] = None,
                 git_ops: Optional[GitOperations] = None,
                 fs: Optional[FileSystemService] = None,
                 store: Optional[StatusStore] = None,
                 ide: Optional[IDEService] = None,
                 github: Optional[GitHubService] = None,
                 confirm: Optional[Callable[[str], bool]] = None,
                 select: Optional[Callable[[List[str]], str]] = None):
        self.config = config
        self.cwd = os.path.abspath(cwd or os.getcwd())
        self.git = git_ops or GitOperations()
        self.fs = fs or FileSystemService()
        self.store = store or StatusStore(config.status_file, self.fs, config.lock_timeout)
        self.ide = ide or IDEService()
        self.github = github or GitHubService(config)
        self.confirm = confirm
        self.select = select

    @classmethod
    def initialize(cls, config: Config, config_path: Optional[str] = None, force: bool = False,
                   fs: Optional[FileSystemService] = None) -> Tuple[str, bool]:
        """Write the config file, create directories and an empty status file.

        An existing status file is never overwritten.

        Returns:
            Tuple of (config_path, status_file_created)
        """
        fs = fs or FileSystemService()
        path = expand_path(config_path) if config_path else default_config_path()
        if fs.exists(path) and not force:
            raise WorktreeManagerError(f"Already initialized ({path}); use --force to overwrite the config")

        fs.mkdir_all(config.repositories_dir)
        fs.mkdir_all(config.workspaces_dir)
        save_config(config, path)
        store = StatusStore(config.status_file, fs, config.lock_timeout, allow_missing=True)
        created = store.create_initial()
        return path, created

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def mode(self, workspace_file: Optional[str] = None) -> Mode:
        mode = detect_mode(self.cwd, self.fs, workspace_file)
        if mode is Mode.NONE:
            raise NotAGitRepositoryError(f"{self.cwd} (and no workspace file found)")
        return mode

    def repository_controller(self) -> RepositoryController:
        return RepositoryController(self.cwd, self.config, git_ops=self.git, fs=self.fs,
                                    store=self.store, confirm=self.confirm)

    def workspace_controller(self, workspace_file: Optional[str] = None) -> WorkspaceController:
        return WorkspaceController(self.config, directory=self.cwd, workspace_file=workspace_file,
                                   git_ops=self.git, fs=self.fs, store=self.store,
                                   confirm=self.confirm, select=self.select)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def resolve_issue(self, reference: str) -> IssueInfo:
        origin_url = None
        if is_git_repository(self.cwd, self.fs):
            origin_url = self.git.get_remote_url(self.cwd, DEFAULT_REMOTE)
        return self.github.get_issue(parse_issue_reference(reference, origin_url))

    def create(self, branch: Optional[str] = None, issue_reference: Optional[str] = None,
               workspace_file: Optional[str] = None) -> Union[str, BatchResult]:
        """Create a worktree in the current repository or workspace.

        Returns:
            The worktree path (repository mode) or the batch result (workspace mode)
        """
        issue_info = None
        if issue_reference:
            issue_info = self.resolve_issue(issue_reference)
            branch = branch or generate_branch_name(issue_info)

        sanitized = sanitize_branch_name(branch or "")
        if sanitized != branch:
            logger.warning(f"Branch name '{branch}' sanitized to '{sanitized}'")

        if self.mode(workspace_file) is Mode.WORKSPACE:
            return self.workspace_controller(workspace_file).create_worktree(sanitized, issue_info)
        return self.repository_controller().create_worktree(sanitized, issue_info)

    def delete(self, branch: str, force: bool = False,
               workspace_file: Optional[str] = None) -> Union[str, BatchResult]:
        if self.mode(workspace_file) is Mode.WORKSPACE:
            return self.workspace_controller(workspace_file).delete_worktree(branch, force=force)
        return self.repository_controller().delete_worktree(branch, force=force)

    def delete_all(self, force: bool = False) -> List[str]:
        if self.mode() is not Mode.REPOSITORY:
            raise WorktreeManagerError("'delete --all' is only supported inside a repository")
        return self.repository_controller().delete_all_worktrees(force=force)

    def list(self, workspace_file: Optional[str] = None) -> List[Tuple[str, WorktreeInfo]]:
        if self.mode(workspace_file) is Mode.WORKSPACE:
            return self.workspace_controller(workspace_file).list_worktrees()
        controller = self.repository_controller()
        repo_url = controller.repository_url()
        return [(repo_url, worktree) for worktree in controller.list_worktrees()]

    def load(self, reference: str, issue_reference: Optional[str] = None) -> str:
        """Create a worktree for ``[remote:]branch`` fetched from a remote."""
        if self.mode() is not Mode.REPOSITORY:
            raise WorktreeManagerError("'load' is only supported inside a repository")
        remote, branch = parse_load_reference(reference)
        issue_info = self.resolve_issue(issue_reference) if issue_reference else None
        return self.repository_controller().load_worktree(remote, branch, issue_info=issue_info)

    def clone(self, url: str, shallow: bool = False, recursive: bool = True) -> str:
        """Clone a repository into ``<repositories_dir>/<repo_url>/origin/<default branch>``."""
        repo_url = normalize_repository_url(url)
        if not repo_url:
            raise WorktreeManagerError(f"Unsupported repository URL: {url}")
        if self.store.has_repository(repo_url):
            raise RepositoryAlreadyExistsError(repo_url)

        default_branch = self.git.get_default_branch(url)
        target = os.path.join(self.config.repositories_dir, repo_url, DEFAULT_REMOTE, default_branch)
        if self.fs.exists(target):
            raise DirectoryExistsError(target)

        with Rollback() as rollback:
            self.fs.mkdir_all(os.path.dirname(target))
            rollback.push(f"remove clone {target}", lambda: self.fs.remove_all(target))
            self.git.clone(url, target, shallow=shallow, recursive=recursive)

            self.store.add_repository(repo_url, target, {DEFAULT_REMOTE: RemoteInfo(default_branch)})
            rollback.push(f"remove repository {repo_url}", lambda: self.store.remove_repository(repo_url))
            self.store.add_worktree(repo_url, DEFAULT_REMOTE, default_branch, target)
            rollback.commit()

        logger.info(f"Cloned {url} to {target}")
        return target

    def list_repositories(self) -> List[Tuple[str, RepositoryRecord, bool]]:
        """Tracked repositories sorted by URL.

        Returns:
            List of (repo_url, record, managed) where ``managed`` tells whether
            the repository lives under repositories_dir
        """
        repositories = self.store.list_repositories()
        return [
            (url, record, is_inside(record.path, self.config.repositories_dir))
            for url, record in sorted(repositories.items())
        ]

    def list_workspaces(self) -> List[Tuple[str, WorkspaceRecord]]:
        return sorted(self.store.list_workspaces().items())

    def delete_repository(self, repo_url: str, force: bool = False) -> str:
        """Delete a repository's worktrees and stop tracking it.

        The repository directory itself is only removed when it lives under
        repositories_dir; repositories tracked from elsewhere stay on disk.

        Raises:
            RepositoryNotFoundError: If the repository is not tracked
            RepositoryInUseError: If a workspace still lists the repository
            DeletionCancelledError: If the user declines the prompt

        Returns:
            Path of the repository
        """
        record = self.store.get_repository(repo_url)
        workspaces = [path for path, ws in self.list_workspaces() if repo_url in ws.repositories]
        if workspaces:
            raise RepositoryInUseError(repo_url, workspaces)

        worktrees = [wt for wt in self.store.list_worktrees(repo_url) if not same_path(wt.path, record.path)]
        if not force:
            confirm = self.confirm or ask_confirmation
            if not confirm(f"Delete repository {repo_url} at {record.path} and {len(worktrees)} worktree(s)?"):
                raise DeletionCancelledError()

        if worktrees and is_git_repository(record.path, self.fs):
            controller = RepositoryController(record.path, self.config, git_ops=self.git, fs=self.fs,
                                              store=self.store, confirm=self.confirm)
            for worktree in worktrees:
                controller.delete_worktree(worktree.branch, force=force, confirm=False)
        else:
            for worktree in worktrees:
                logger.warning(f"Repository {record.path} is gone, removing worktree directory {worktree.path}")
                self.fs.remove_all(worktree.path)
                self.store.remove_worktree(repo_url, worktree.remote, worktree.branch, missing_ok=True)

        self.store.remove_repository(repo_url)

        root = self.config.repositories_dir
        if is_inside(record.path, root):
            try:
                self.fs.remove_all(record.path)
            except OSError as e:
                logger.warning(f"Could not remove repository directory {record.path}: {e}")
            else:
                parents = []
                parent = os.path.dirname(record.path)
                while is_inside(parent, root):
                    parents.append(parent)
                    parent = os.path.dirname(parent)
                self.fs.remove_empty_dirs(parents)
        else:
            logger.info(f"Left {record.path} on disk (outside {root})")

        logger.info(f"Deleted repository {repo_url}")
        return record.path

    def find_worktree_path(self, branch: str) -> str:
        """Locate a tracked worktree by branch, preferring the current repository."""
        matches = [(url, wt) for url, wt in self.store.list_all_worktrees() if wt.branch == branch]
        if not matches:
            raise WorktreeNotInStatusError("any repository", branch)
        if len(matches) == 1:
            return matches[0][1].path

        if is_git_repository(self.cwd, self.fs):
            current = self.git.get_repository_name(self.cwd)
            for url, worktree in matches:
                if url == current:
                    return worktree.path
        candidates = ", ".join(url for url, _ in matches)
        raise WorktreeManagerError(f"Branch '{branch}' has worktrees in several repositories: {candidates}")

    def open(self, branch: str, ide: Optional[str] = None) -> str:
        """Open the worktree of ``branch`` in an IDE."""
        ide = ide or self.config.default_ide
        if not ide:
            raise IDEError("(none)", "no IDE given and no default_ide configured")
        path = self.find_worktree_path(branch)
        self.ide.open(ide, path)
        return path

    def open_path(self, path: str, ide: str) -> None:
        self.ide.open(ide, path)
