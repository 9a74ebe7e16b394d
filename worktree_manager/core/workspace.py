"""Worktree lifecycle across the repositories of a workspace file."""

import json
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Set, Tuple

from worktree_manager.config import Config
from worktree_manager.constants import WORKSPACE_SUFFIX
from worktree_manager.core.mode import find_workspace_files
from worktree_manager.core.repository import RepositoryController, ask_confirmation, same_path
from worktree_manager.exceptions import (
    DeletionCancelledError,
    NotAGitRepositoryError,
    WorkspaceBatchError,
    WorkspaceFileError,
    WorktreeManagerError,
    WorktreeNotInStatusError,
)
from worktree_manager.models.outcome import BatchResult, RepositoryOutcome
from worktree_manager.models.status import IssueInfo, WorktreeInfo
from worktree_manager.services.fs_service import FileSystemService
from worktree_manager.services.git import GitOperations
from worktree_manager.services.status_store import StatusStore
from worktree_manager.utils.branch import sanitize_for_filename
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


class WorkspaceState(Enum):
    UNLOADED = "unloaded"
    LOADED = "loaded"
    VALIDATED = "validated"
    PER_REPO_VALIDATED = "per_repo_validated"
    CREATED = "created"
    FAILED = "failed"


@dataclass
class WorkspaceFolder:
    path: str  # Absolute
    name: Optional[str] = None


@dataclass
class WorkspaceDefinition:
    """Parsed ``.code-workspace`` file."""

    file_path: str
    name: str
    folders: List[WorkspaceFolder] = field(default_factory=list)


@dataclass
class WorkspaceMember:
    repo_url: str
    folder: WorkspaceFolder
    controller: RepositoryController


def parse_workspace_file(path: str, content: str) -> WorkspaceDefinition:
    """Parse workspace JSON. Folder paths are relative to the file's directory."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        raise WorkspaceFileError(f"invalid JSON: {e}", path) from e
    if not isinstance(data, dict):
        raise WorkspaceFileError("expected a JSON object", path)

    raw_folders = data.get("folders")
    if not isinstance(raw_folders, list) or not raw_folders:
        raise WorkspaceFileError("no folders defined", path)

    base_dir = os.path.dirname(path)
    folders = []
    for entry in raw_folders:
        if not isinstance(entry, dict) or not entry.get("path"):
            raise WorkspaceFileError(f"folder entry without a path: {entry!r}", path)
        folder_path = os.path.expanduser(str(entry["path"]))
        if not os.path.isabs(folder_path):
            folder_path = os.path.join(base_dir, folder_path)
        folders.append(WorkspaceFolder(path=os.path.normpath(folder_path), name=entry.get("name")))

    name = data.get("name") or os.path.basename(path)[: -len(WORKSPACE_SUFFIX)]
    return WorkspaceDefinition(file_path=path, name=str(name), folders=folders)


class WorkspaceController:
    """Fans worktree operations out over every repository of a workspace.

    ``create_worktree`` walks UNLOADED -> LOADED -> VALIDATED ->
    PER_REPO_VALIDATED -> CREATED, and any error moves it to FAILED.
    Repositories succeed or fail independently; worktrees already created in
    some repositories are kept when another fails, and the per-repository
    outcomes are returned.
    """

    def __init__(self, config: Config, directory: Optional[str] = None,
                 workspace_file: Optional[str] = None,
                 git_ops: Optional[GitOperations] = None,
                 fs: Optional[FileSystemService] = None,
                 store: Optional[StatusStore] = None,
                 confirm: Optional[Callable[[str], bool]] = None,
                 select: Optional[Callable[[List[str]], str]] = None):
        """Initialize the controller.

        Args:
            config: Configuration
            directory: Directory searched for a workspace file
            workspace_file: Explicit workspace file (skips the search)
            git_ops: Git adapter
            fs: Filesystem adapter
            store: Status store
            confirm: Yes/no prompt used before deletions
            select: Picks one of several workspace files; without it,
                several files are an error unless ``config.force`` is set
        """
        self.config = config
        self.directory = os.path.abspath(directory or os.getcwd())
        self.workspace_file = os.path.abspath(workspace_file) if workspace_file else None
        self.git = git_ops or GitOperations()
        self.fs = fs or FileSystemService()
        self.store = store or StatusStore(config.status_file, self.fs, config.lock_timeout)
        self.confirm = confirm or ask_confirmation
        self.select = select

        self.state = WorkspaceState.UNLOADED
        self.definition: Optional[WorkspaceDefinition] = None
        self.members: List[WorkspaceMember] = []

    # ------------------------------------------------------------------
    # Loading and validation
    # ------------------------------------------------------------------

    def _find_workspace_file(self) -> str:
        files = find_workspace_files(self.directory, self.fs)
        if not files:
            raise WorkspaceFileError("no workspace file found", self.directory)
        if len(files) == 1:
            return files[0]
        if self.config.force:
            logger.info(f"Multiple workspace files found, using {files[0]}")
            return files[0]
        if self.select:
            return self.select(files)
        names = ", ".join(os.path.basename(f) for f in files)
        raise WorkspaceFileError(
            f"multiple workspace files found ({names}); choose one with --workspace or use --force",
            self.directory,
        )

    def load(self) -> WorkspaceDefinition:
        """Find and parse the workspace file."""
        try:
            path = self.workspace_file or self._find_workspace_file()
            if not self.fs.exists(path):
                raise WorkspaceFileError("file not found", path)
            try:
                content = self.fs.read_file(path)
            except OSError as e:
                raise WorkspaceFileError(f"cannot read file: {e}", path) from e
            self.definition = parse_workspace_file(path, content)
        except WorktreeManagerError:
            self.state = WorkspaceState.FAILED
            raise

        self.state = WorkspaceState.LOADED
        logger.debug(f"Loaded workspace '{self.definition.name}' with {len(self.definition.folders)} folders")
        return self.definition

    def _ensure_loaded(self) -> WorkspaceDefinition:
        if self.definition is None:
            return self.load()
        return self.definition

    def _repository_controller(self, path: str) -> RepositoryController:
        return RepositoryController(path, self.config, git_ops=self.git, fs=self.fs,
                                    store=self.store, confirm=self.confirm)

    def resolve_members(self) -> List[WorkspaceMember]:
        """Check every folder is a git repository and derive its URL.

        A folder listed twice is kept once. Two different folders resolving to
        the same repository URL (for example two origin-less clones sharing a
        directory name) are rejected.
        """
        definition = self._ensure_loaded()
        members = []
        seen: Dict[str, str] = {}
        for folder in definition.folders:
            controller = self._repository_controller(folder.path)
            if not controller.is_git_repository():
                raise NotAGitRepositoryError(folder.path)
            repo_url = controller.repository_url()
            if repo_url in seen:
                if not same_path(seen[repo_url], folder.path):
                    self.state = WorkspaceState.FAILED
                    raise WorkspaceFileError(
                        f"folders {seen[repo_url]} and {folder.path} both resolve to repository {repo_url}",
                        definition.file_path,
                    )
                logger.warning(f"Folder {folder.path} is listed twice in {definition.file_path}, ignoring the repeat")
                continue
            seen[repo_url] = folder.path
            members.append(WorkspaceMember(repo_url=repo_url, folder=folder, controller=controller))
        self.members = members
        return members

    def validate(self) -> List[WorkspaceMember]:
        """Register every member and its default-branch worktree, then the workspace."""
        definition = self._ensure_loaded()
        try:
            members = self.resolve_members()
            for member in members:
                member.controller.ensure_repository(member.repo_url)
                member.controller.ensure_default_branch_worktree(member.repo_url)

            urls = [m.repo_url for m in members]
            with self.store.locked():
                if self.store.has_workspace(definition.file_path):
                    self.store.update_workspace(definition.file_path, repositories=urls)
                else:
                    self.store.add_workspace(definition.file_path, urls)
        except WorktreeManagerError:
            self.state = WorkspaceState.FAILED
            raise

        self.state = WorkspaceState.VALIDATED
        return members

    # ------------------------------------------------------------------
    # Create
    # ------------------------------------------------------------------

    def create_worktree(self, branch: str, issue_info: Optional[IssueInfo] = None) -> BatchResult:
        """Create a worktree for ``branch`` in every member repository.

        Every repository is pre-flighted before any is changed; repositories
        that fail the pre-flight are reported and skipped.

        Raises:
            WorkspaceBatchError: If no repository succeeded
        """
        if self.state is not WorkspaceState.VALIDATED:
            self.validate()

        outcomes = {}
        eligible = []
        for member in self.members:
            try:
                member.controller.preflight_create(branch)
                eligible.append(member)
            except WorktreeManagerError as e:
                logger.warning(f"Skipping {member.repo_url}: {e}")
                outcomes[member.repo_url] = RepositoryOutcome(member.repo_url, member.folder.path, error=e)
        self.state = WorkspaceState.PER_REPO_VALIDATED

        for member in eligible:
            try:
                path = member.controller.create_worktree(branch, issue_info=issue_info)
                outcomes[member.repo_url] = RepositoryOutcome(member.repo_url, member.folder.path, path=path)
            except (WorktreeManagerError, OSError) as e:
                logger.error(f"Failed to create worktree '{branch}' in {member.repo_url}: {e}")
                outcomes[member.repo_url] = RepositoryOutcome(member.repo_url, member.folder.path, error=e)

        result = BatchResult(branch=branch, outcomes=[outcomes[m.repo_url] for m in self.members])
        if not result.succeeded:
            self.state = WorkspaceState.FAILED
            raise WorkspaceBatchError("create", result.outcomes)

        try:
            result.workspace_file = self._write_branch_workspace_file(branch, result.succeeded)
        except OSError as e:
            logger.error(f"Could not write workspace file {self.branch_workspace_file(branch)}: {e}")
        if not result.failed:
            self.store.update_workspace(self.definition.file_path, worktree=branch)

        self.state = WorkspaceState.CREATED
        return result

    def branch_workspace_file(self, branch: str) -> str:
        """``<workspaces_dir>/<workspace name>/<branch>.code-workspace``."""
        definition = self._ensure_loaded()
        filename = f"{sanitize_for_filename(branch)}{WORKSPACE_SUFFIX}"
        return os.path.join(self.config.workspaces_dir, definition.name, filename)

    def _write_branch_workspace_file(self, branch: str, outcomes: List[RepositoryOutcome]) -> str:
        path = self.branch_workspace_file(branch)
        content = {
            "name": f"{self.definition.name} ({branch})",
            "folders": [
                {"name": outcome.repo_url.rsplit("/", 1)[-1], "path": outcome.path}
                for outcome in outcomes
            ],
            "settings": {},
            "extensions": {"recommendations": []},
        }
        self.fs.write_file_atomic(path, json.dumps(content, indent=2) + "\n", mode=0o644)
        logger.info(f"Wrote workspace file {path}")
        return path

    # ------------------------------------------------------------------
    # Delete
    # ------------------------------------------------------------------

    def delete_worktree(self, branch: str, force: bool = False) -> BatchResult:
        """Delete the worktrees of ``branch`` in every member repository.

        Without force the first failure stops the batch (completed deletions
        are kept). With force failures are logged and skipped.
        """
        definition = self._ensure_loaded()
        members = self.resolve_members()

        targets: List[Tuple[WorkspaceMember, WorktreeInfo]] = []
        for member in members:
            worktree = self.store.find_worktree(member.repo_url, branch)
            if worktree is not None:
                targets.append((member, worktree))
        if not targets:
            raise WorktreeNotInStatusError(definition.name, branch)

        if not force:
            if not self.confirm(f"Delete worktrees for '{branch}' in {len(targets)} repositories?"):
                raise DeletionCancelledError()

        result = BatchResult(branch=branch)
        for member, worktree in targets:
            try:
                path = member.controller.delete_worktree(branch, force=force, confirm=False)
                result.outcomes.append(RepositoryOutcome(member.repo_url, member.folder.path, path=path))
            except (WorktreeManagerError, OSError) as e:
                result.outcomes.append(RepositoryOutcome(member.repo_url, member.folder.path, error=e))
                if not force:
                    logger.error(f"Failed to delete worktree '{branch}' in {member.repo_url}, stopping: {e}")
                    self.state = WorkspaceState.FAILED
                    raise
                logger.warning(f"Failed to delete worktree '{branch}' in {member.repo_url}, continuing: {e}")

        workspace_file = self.branch_workspace_file(branch)
        if self.fs.exists(workspace_file):
            try:
                self.fs.remove_all(workspace_file)
            except OSError as e:
                if not force:
                    raise WorkspaceFileError(f"cannot remove: {e}", workspace_file) from e
                logger.warning(f"Could not remove workspace file {workspace_file}: {e}")

        if self.store.has_workspace(definition.file_path):
            if self.store.get_workspace(definition.file_path).worktree == branch:
                self.store.update_workspace(definition.file_path, worktree=None)

        if not result.succeeded:
            raise WorkspaceBatchError("delete", result.outcomes)
        return result

    # ------------------------------------------------------------------
    # List
    # ------------------------------------------------------------------

    def list_worktrees(self) -> List[Tuple[str, WorktreeInfo]]:
        """Worktrees of all member repositories, without duplicates."""
        definition = self._ensure_loaded()
        if self.store.has_workspace(definition.file_path):
            urls = self.store.get_workspace(definition.file_path).repositories
        else:
            urls = [m.repo_url for m in self.resolve_members()]

        seen: Set[Tuple[str, str, str]] = set()
        result = []
        for url in urls:
            for worktree in self.store.list_worktrees(url):
                key = (url, worktree.remote, worktree.branch)
                if key in seen:
                    continue
                seen.add(key)
                result.append((url, worktree))
        return result
