"""GitHub issue lookup for naming worktree branches"""
import os
import re
from dataclasses import dataclass
from typing import Optional, Union, TYPE_CHECKING

from github import Github, GithubException

from worktree_manager.exceptions import GitHubAPIError, IssueReferenceError
from worktree_manager.models.status import IssueInfo
from worktree_manager.utils.urls import normalize_repository_url
from worktree_manager.logging_config import get_logger

if TYPE_CHECKING:
    from worktree_manager.config import Config

logger = get_logger(__name__)

MAX_BRANCH_SLUG_LENGTH = 80

_ISSUE_URL = re.compile(r"^https?://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)/issues/(?P<number>\d+)/?$")
_SHORT_REF = re.compile(r"^(?P<owner>[\w.\-]+)/(?P<repo>[\w.\-]+)#(?P<number>\d+)$")
_NUMBER_ONLY = re.compile(r"^#?(?P<number>\d+)$")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass
class IssueReference:
    owner: str
    repository: str
    number: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repository}"


def parse_issue_reference(reference: str, origin_url: Optional[str] = None) -> IssueReference:
    """Parse an issue URL, ``owner/repo#N`` or a bare number.

    A bare number refers to the repository behind ``origin_url``.
    """
    reference = (reference or "").strip()

    match = _ISSUE_URL.match(reference) or _SHORT_REF.match(reference)
    if match:
        return IssueReference(match.group("owner"), match.group("repo"), int(match.group("number")))

    match = _NUMBER_ONLY.match(reference)
    if match:
        if not origin_url:
            raise IssueReferenceError(reference, "a bare issue number needs an 'origin' remote")
        normalized = normalize_repository_url(origin_url)
        if not normalized or not normalized.startswith("github.com/"):
            raise IssueReferenceError(reference, f"origin '{origin_url}' is not a GitHub repository")
        parts = normalized.split("/")
        if len(parts) != 3:
            raise IssueReferenceError(reference, f"cannot find owner/repo in '{origin_url}'")
        return IssueReference(parts[1], parts[2], int(match.group("number")))

    raise IssueReferenceError(reference, "expected an issue URL, owner/repo#number, or a number")


def generate_branch_name(issue: IssueInfo) -> str:
    """``<number>-<title slug>``, e.g. ``42-fix-login-redirect``."""
    slug = _NON_ALNUM.sub("-", issue.title.lower()).strip("-")
    slug = slug[:MAX_BRANCH_SLUG_LENGTH].strip("-")
    return f"{issue.number}-{slug}" if slug else str(issue.number)


class GitHubService:
    def __init__(self, config: Union['Config', dict]):
        """Initialize the service."""
        self.config = config
        self.github_token = config.get("github_token") or os.environ.get("GITHUB_TOKEN")
        self._github: Optional[Github] = None

    @property
    def github(self) -> Github:
        if self._github is None:
            if not self.github_token:
                logger.debug("[GitHub] No GitHub token found, using unauthenticated access")
            self._github = Github(self.github_token) if self.github_token else Github()
        return self._github

    def get_issue(self, reference: IssueReference) -> IssueInfo:
        """Fetch an open issue.

        Raises:
            IssueReferenceError: If the issue is closed or is a pull request
            GitHubAPIError: For API failures (not found, auth, rate limit)
        """
        label = f"{reference.full_name}#{reference.number}"
        try:
            gh_repo = self.github.get_repo(reference.full_name)
            issue = gh_repo.get_issue(reference.number)
        except GithubException as e:
            message = e.data.get("message") if isinstance(e.data, dict) else None
            if e.status == 404:
                raise GitHubAPIError("get_issue", f"issue {label} not found") from e
            if e.status in (401, 403):
                raise GitHubAPIError("get_issue", f"access denied for {label}: {message or e.status}") from e
            raise GitHubAPIError("get_issue", f"{label}: {message or e}") from e

        if issue.pull_request is not None:
            raise IssueReferenceError(label, "is a pull request, not an issue")
        if issue.state != "open":
            raise IssueReferenceError(label, f"issue is {issue.state}")

        logger.debug(f"[GitHub] Found issue {label}: {issue.title}")
        return IssueInfo(
            number=issue.number,
            title=issue.title,
            owner=reference.owner,
            repository=reference.repository,
            url=issue.html_url,
        )
