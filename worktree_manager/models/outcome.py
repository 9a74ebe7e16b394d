"""Per-repository results of workspace batch operations."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class RepositoryOutcome:
    """Result of one repository in a workspace batch."""

    repo_url: str
    repo_path: str
    path: Optional[str] = None  # Worktree path on success
    error: Optional[Exception] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass
class BatchResult:
    """Aggregate result of a workspace batch operation."""

    branch: str
    outcomes: List[RepositoryOutcome] = field(default_factory=list)
    workspace_file: Optional[str] = None

    @property
    def succeeded(self) -> List[RepositoryOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[RepositoryOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def is_partial(self) -> bool:
        return bool(self.succeeded) and bool(self.failed)
