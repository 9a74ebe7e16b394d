"""Status store: the persisted record of repositories, workspaces and worktrees."""
from contextlib import contextmanager
from typing import Dict, Iterator, List, Optional, Tuple

import yaml

from worktree_manager.exceptions import (
    NotInitializedError,
    RepositoryAlreadyExistsError,
    RepositoryNotFoundError,
    StoreCorruptError,
    WorkspaceAlreadyExistsError,
    WorkspaceNotFoundError,
    WorktreeAlreadyExistsError,
    WorktreeNotFoundError,
)
from worktree_manager.models.status import (
    IssueInfo,
    RemoteInfo,
    RepositoryRecord,
    StatusDocument,
    WorkspaceRecord,
    WorktreeInfo,
    WorktreeKey,
)
from worktree_manager.services.fs_service import FileSystemService
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)

_UNSET = object()


class StatusStore:
    """Owns the status file.

    Every mutation is a read-modify-write of the whole document under an
    exclusive lock on ``<status_file>.lock``: acquire the lock, load the
    latest document, apply one change, write it atomically, release. Reads
    take no lock since writes replace the file atomically.
    """

    def __init__(self, status_file: str, fs: Optional[FileSystemService] = None,
                 lock_timeout: float = 1.0, allow_missing: bool = False):
        """Initialize the store.

        Args:
            status_file: Path to the YAML status file
            fs: Filesystem service (a default one is created if omitted)
            lock_timeout: Seconds to wait for the lock before raising BusyError
            allow_missing: Treat a missing file as an empty document instead
                of raising NotInitializedError
        """
        self.status_file = status_file
        self.lock_file = f"{status_file}.lock"
        self.fs = fs or FileSystemService()
        self.lock_timeout = lock_timeout
        self.allow_missing = allow_missing
        self._lock_depth = 0

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the store lock; nested use within one process is allowed."""
        if self._lock_depth:
            self._lock_depth += 1
            try:
                yield
            finally:
                self._lock_depth -= 1
            return

        with self.fs.lock(self.lock_file, self.lock_timeout):
            self._lock_depth = 1
            try:
                yield
            finally:
                self._lock_depth = 0

    def exists(self) -> bool:
        return self.fs.exists(self.status_file)

    def load(self) -> StatusDocument:
        """Read and validate the status file.

        Raises:
            NotInitializedError: If the file is missing and allow_missing is off
            StoreCorruptError: If the file cannot be parsed
        """
        if not self.fs.exists(self.status_file):
            if self.allow_missing:
                logger.debug(f"No status file at {self.status_file}, using empty document")
                return StatusDocument()
            raise NotInitializedError(self.status_file)

        try:
            data = yaml.safe_load(self.fs.read_file(self.status_file))
        except yaml.YAMLError as e:
            raise StoreCorruptError(self.status_file, f"invalid YAML: {e}") from e

        if data is None:
            return StatusDocument()

        try:
            document = StatusDocument.from_dict(data)
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise StoreCorruptError(self.status_file, f"invalid structure: {e}") from e

        logger.debug(
            f"Loaded status with {len(document.repositories)} repositories "
            f"and {len(document.workspaces)} workspaces"
        )
        return document

    def save(self, document: StatusDocument) -> None:
        """Replace the whole document."""
        with self.locked():
            self._write(document)

    def create_initial(self) -> bool:
        """Write an empty document unless one already exists.

        Returns:
            True if a new file was created
        """
        with self.locked():
            if self.exists():
                logger.debug(f"Status file {self.status_file} already exists")
                return False
            self._write(StatusDocument())
            logger.info(f"Created status file {self.status_file}")
            return True

    def _write(self, document: StatusDocument) -> None:
        text = yaml.safe_dump(document.to_dict(), default_flow_style=False, sort_keys=False)
        self.fs.write_file_atomic(self.status_file, text, mode=0o600)

    @contextmanager
    def _mutate(self) -> Iterator[StatusDocument]:
        """Yield the latest document and persist it if the block succeeds."""
        with self.locked():
            document = self.load()
            yield document
            self._write(document)

    # ------------------------------------------------------------------
    # Repositories
    # ------------------------------------------------------------------

    def add_repository(self, url: str, path: str,
                       remotes: Optional[Dict[str, RemoteInfo]] = None) -> RepositoryRecord:
        with self._mutate() as document:
            if url in document.repositories:
                raise RepositoryAlreadyExistsError(url)
            record = RepositoryRecord(path=path, remotes=dict(remotes or {}))
            document.repositories[url] = record
        logger.info(f"Added repository {url} at {path}")
        return record

    def get_repository(self, url: str) -> RepositoryRecord:
        document = self.load()
        if url not in document.repositories:
            raise RepositoryNotFoundError(url)
        return document.repositories[url]

    def has_repository(self, url: str) -> bool:
        return url in self.load().repositories

    def list_repositories(self) -> Dict[str, RepositoryRecord]:
        return self.load().repositories

    def remove_repository(self, url: str) -> None:
        with self._mutate() as document:
            if url not in document.repositories:
                raise RepositoryNotFoundError(url)
            del document.repositories[url]
        logger.info(f"Removed repository {url}")

    def set_remote(self, url: str, remote: str, default_branch: str) -> None:
        """Record (or update) a remote of a tracked repository."""
        with self._mutate() as document:
            if url not in document.repositories:
                raise RepositoryNotFoundError(url)
            document.repositories[url].remotes[remote] = RemoteInfo(default_branch=default_branch)

    # ------------------------------------------------------------------
    # Worktrees
    # ------------------------------------------------------------------

    def add_worktree(self, url: str, remote: str, branch: str, path: str,
                     issue_info: Optional[IssueInfo] = None) -> WorktreeInfo:
        """Track a worktree.

        Raises:
            RepositoryNotFoundError: If the repository is not tracked
            WorktreeAlreadyExistsError: If ``remote:branch`` is already tracked
        """
        key = WorktreeKey(remote, branch)
        with self._mutate() as document:
            repository = document.repositories.get(url)
            if repository is None:
                raise RepositoryNotFoundError(url)
            if key in repository.worktrees:
                raise WorktreeAlreadyExistsError(url, branch, remote)
            worktree = WorktreeInfo(remote=remote, branch=branch, path=path, issue_info=issue_info)
            repository.worktrees[key] = worktree
        logger.info(f"Added worktree {key} for {url}")
        return worktree

    def get_worktree(self, url: str, remote: str, branch: str) -> WorktreeInfo:
        key = WorktreeKey(remote, branch)
        worktree = self.get_repository(url).worktrees.get(key)
        if worktree is None:
            raise WorktreeNotFoundError(url, str(key))
        return worktree

    def find_worktree(self, url: str, branch: str, remote: Optional[str] = None) -> Optional[WorktreeInfo]:
        """Worktree for a branch, on any remote unless one is given."""
        repository = self.load().repositories.get(url)
        if repository is None:
            return None
        if remote is not None:
            return repository.worktrees.get(WorktreeKey(remote, branch))
        matches = repository.find_worktrees(branch)
        return matches[0] if matches else None

    def remove_worktree(self, url: str, remote: str, branch: str, missing_ok: bool = False) -> bool:
        """Stop tracking a worktree.

        Args:
            missing_ok: Return False instead of raising when the entry is
                already gone (used by cleanup paths)

        Returns:
            True if an entry was removed

        Raises:
            RepositoryNotFoundError, WorktreeNotFoundError: Unless missing_ok
        """
        key = WorktreeKey(remote, branch)
        with self.locked():
            document = self.load()
            repository = document.repositories.get(url)
            if repository is None or key not in repository.worktrees:
                if missing_ok:
                    logger.debug(f"Worktree {key} for {url} already absent from status")
                    return False
                if repository is None:
                    raise RepositoryNotFoundError(url)
                raise WorktreeNotFoundError(url, str(key))
            del repository.worktrees[key]
            self._write(document)
        logger.info(f"Removed worktree {key} for {url}")
        return True

    def list_worktrees(self, url: str) -> List[WorktreeInfo]:
        """Worktrees of one repository sorted by branch; empty if untracked."""
        repository = self.load().repositories.get(url)
        if repository is None:
            return []
        return sorted(repository.worktrees.values(), key=lambda wt: (wt.branch, wt.remote))

    def list_all_worktrees(self) -> List[Tuple[str, WorktreeInfo]]:
        """Every tracked worktree as ``(repo_url, worktree)`` pairs."""
        result = []
        for url, repository in sorted(self.load().repositories.items()):
            for worktree in sorted(repository.worktrees.values(), key=lambda wt: (wt.branch, wt.remote)):
                result.append((url, worktree))
        return result

    # ------------------------------------------------------------------
    # Workspaces
    # ------------------------------------------------------------------

    def add_workspace(self, path: str, repositories: List[str],
                      worktree: Optional[str] = None) -> WorkspaceRecord:
        with self._mutate() as document:
            if path in document.workspaces:
                raise WorkspaceAlreadyExistsError(path)
            record = WorkspaceRecord(repositories=list(repositories), worktree=worktree)
            document.workspaces[path] = record
        logger.info(f"Added workspace {path}")
        return record

    def get_workspace(self, path: str) -> WorkspaceRecord:
        document = self.load()
        if path not in document.workspaces:
            raise WorkspaceNotFoundError(path)
        return document.workspaces[path]

    def has_workspace(self, path: str) -> bool:
        return path in self.load().workspaces

    def list_workspaces(self) -> Dict[str, WorkspaceRecord]:
        return self.load().workspaces

    def update_workspace(self, path: str, repositories: Optional[List[str]] = None,
                         worktree=_UNSET) -> WorkspaceRecord:
        """Change a workspace's members and/or its worktree back-reference.

        Pass ``worktree=None`` to clear the back-reference.
        """
        with self._mutate() as document:
            record = document.workspaces.get(path)
            if record is None:
                raise WorkspaceNotFoundError(path)
            if repositories is not None:
                record.repositories = list(repositories)
            if worktree is not _UNSET:
                record.worktree = worktree
        return record

    def remove_workspace(self, path: str) -> None:
        with self._mutate() as document:
            if path not in document.workspaces:
                raise WorkspaceNotFoundError(path)
            del document.workspaces[path]
        logger.info(f"Removed workspace {path}")
