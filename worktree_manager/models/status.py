"""Status document data models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from worktree_manager.constants import DEFAULT_REMOTE


def _require_mapping(data: Any, what: str) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a mapping, got {type(data).__name__}")
    return data


@dataclass(frozen=True)
class WorktreeKey:
    """Identity of a worktree inside a repository record.

    Serialised as ``remote:branch``. Git forbids ``:`` in branch names, so
    parsing splits on the last colon and the remote keeps any colons it has.
    """

    remote: str
    branch: str

    def __str__(self) -> str:
        return f"{self.remote}:{self.branch}"

    @classmethod
    def parse(cls, value: str) -> "WorktreeKey":
        remote, sep, branch = value.rpartition(":")
        if not sep or not remote or not branch:
            raise ValueError(f"invalid worktree key '{value}', expected 'remote:branch'")
        return cls(remote=remote, branch=branch)


@dataclass
class IssueInfo:
    """Forge issue a worktree was created from."""

    number: int
    title: str
    owner: str
    repository: str
    url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "number": self.number,
            "title": self.title,
            "owner": self.owner,
            "repository": self.repository,
        }
        if self.url:
            data["url"] = self.url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueInfo":
        data = _require_mapping(data, "issue_info")
        return cls(
            number=int(data["number"]),
            title=str(data.get("title", "")),
            owner=str(data.get("owner", "")),
            repository=str(data.get("repository", "")),
            url=data.get("url"),
        )


@dataclass
class WorktreeInfo:
    """A tracked worktree."""

    remote: str
    branch: str
    path: str
    issue_info: Optional[IssueInfo] = None

    @property
    def key(self) -> WorktreeKey:
        return WorktreeKey(self.remote, self.branch)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "remote": self.remote,
            "branch": self.branch,
            "path": self.path,
        }
        if self.issue_info is not None:
            data["issue_info"] = self.issue_info.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorktreeInfo":
        data = _require_mapping(data, "worktree entry")
        issue = data.get("issue_info")
        return cls(
            remote=str(data["remote"]),
            branch=str(data["branch"]),
            path=str(data["path"]),
            issue_info=IssueInfo.from_dict(issue) if issue else None,
        )


@dataclass
class RemoteInfo:
    """A remote of a tracked repository."""

    default_branch: str

    def to_dict(self) -> Dict[str, Any]:
        return {"default_branch": self.default_branch}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RemoteInfo":
        data = _require_mapping(data, "remote entry")
        return cls(default_branch=str(data["default_branch"]))


@dataclass
class RepositoryRecord:
    """A tracked repository and its worktrees."""

    path: str
    remotes: Dict[str, RemoteInfo] = field(default_factory=dict)
    worktrees: Dict[WorktreeKey, WorktreeInfo] = field(default_factory=dict)

    def default_branch(self, remote: str = DEFAULT_REMOTE) -> Optional[str]:
        """Default branch of a remote, if recorded."""
        info = self.remotes.get(remote)
        return info.default_branch if info else None

    def find_worktrees(self, branch: str) -> List[WorktreeInfo]:
        """All worktrees for a branch, whatever their remote."""
        return [wt for key, wt in self.worktrees.items() if key.branch == branch]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.path,
            "remotes": {name: info.to_dict() for name, info in self.remotes.items()},
            "worktrees": {str(key): wt.to_dict() for key, wt in self.worktrees.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RepositoryRecord":
        data = _require_mapping(data, "repository entry")
        remotes_data = _require_mapping(data.get("remotes") or {}, "remotes")
        worktrees_data = _require_mapping(data.get("worktrees") or {}, "worktrees")
        remotes = {
            str(name): RemoteInfo.from_dict(info)
            for name, info in remotes_data.items()
        }
        worktrees = {}
        for raw_key, wt_data in worktrees_data.items():
            worktree = WorktreeInfo.from_dict(wt_data)
            key = WorktreeKey.parse(str(raw_key))
            if key != worktree.key:
                raise ValueError(
                    f"worktree key '{raw_key}' does not match entry '{worktree.key}'"
                )
            worktrees[key] = worktree
        return cls(path=str(data["path"]), remotes=remotes, worktrees=worktrees)


@dataclass
class WorkspaceRecord:
    """A tracked workspace file and its member repositories."""

    repositories: List[str] = field(default_factory=list)
    # Branch whose worktrees exist in every member repository
    worktree: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"repositories": list(self.repositories)}
        if self.worktree:
            data["worktree"] = self.worktree
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkspaceRecord":
        data = _require_mapping(data, "workspace entry")
        repositories = data.get("repositories") or []
        if not isinstance(repositories, list):
            raise ValueError("workspace repositories must be a list")
        return cls(
            repositories=[str(url) for url in repositories],
            worktree=data.get("worktree"),
        )


@dataclass
class StatusDocument:
    """Root of the persisted status file."""

    repositories: Dict[str, RepositoryRecord] = field(default_factory=dict)
    workspaces: Dict[str, WorkspaceRecord] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "repositories": {url: repo.to_dict() for url, repo in self.repositories.items()},
            "workspaces": {path: ws.to_dict() for path, ws in self.workspaces.items()},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StatusDocument":
        """Build a document from parsed YAML.

        Raises:
            ValueError, KeyError, TypeError: If the structure is malformed
        """
        if not isinstance(data, dict):
            raise ValueError("status document must be a mapping")
        repositories = data.get("repositories") or {}
        workspaces = data.get("workspaces") or {}
        if not isinstance(repositories, dict):
            raise ValueError("'repositories' must be a mapping")
        if not isinstance(workspaces, dict):
            raise ValueError("'workspaces' must be a mapping")
        return cls(
            repositories={
                str(url): RepositoryRecord.from_dict(repo) for url, repo in repositories.items()
            },
            workspaces={
                str(path): WorkspaceRecord.from_dict(ws or {}) for path, ws in workspaces.items()
            },
        )
