"""Git operations service"""

import os
import re
from typing import List, Optional, Tuple

import git

from worktree_manager.constants import DEFAULT_REMOTE
from worktree_manager.exceptions import GitCommandFailedError
from worktree_manager.models.worktree import GitWorktree
from worktree_manager.services.git.worktrees import parse_worktree_list
from worktree_manager.utils.urls import normalize_repository_url
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)

# GitPython wraps stderr as "\n  stderr: '<text>'"
_STDERR_WRAPPER = re.compile(r"^\s*stderr:\s*'(.*)'\s*$", re.DOTALL)


def _clean_stderr(error: git.exc.GitCommandError) -> str:
    stderr = (error.stderr if hasattr(error, "stderr") else str(error)) or ""
    match = _STDERR_WRAPPER.match(stderr)
    return (match.group(1) if match else stderr).strip()


class GitOperations:
    """Runs the git binary through GitPython.

    Every command is logged at INFO (shown with ``--verbose``) together with
    its output. Failures raise ``GitCommandFailedError`` carrying the command
    line, exit status and stderr.
    """

    def _git(self, cwd: Optional[str], *args: str) -> str:
        """Run a git command and return its stdout."""
        command = ["git", *args]
        display = " ".join(command)
        logger.info(f"Running: {display}" + (f"  (in {cwd})" if cwd else ""))
        try:
            output = git.cmd.Git(cwd).execute(command)
        except git.exc.GitCommandError as e:
            stderr = _clean_stderr(e)
            status = e.status if isinstance(e.status, int) else None
            logger.info(f"Failed (exit {status}): {stderr}")
            raise GitCommandFailedError(display, status, stderr) from e
        if output:
            logger.info(output)
        return output

    def _run_status(self, cwd: Optional[str], *args: str) -> Tuple[int, str]:
        """Run a git command whose non-zero exit is an answer, not an error."""
        command = ["git", *args]
        logger.info(f"Running: {' '.join(command)}" + (f"  (in {cwd})" if cwd else ""))
        status, stdout, stderr = git.cmd.Git(cwd).execute(
            command, with_extended_output=True, with_exceptions=False
        )
        if stdout:
            logger.info(stdout)
        if stderr:
            logger.debug(stderr)
        return status, stdout

    # ------------------------------------------------------------------
    # Repository state
    # ------------------------------------------------------------------

    def status(self, repo_path: str) -> str:
        """Porcelain status of a working tree."""
        return self._git(repo_path, "status", "--porcelain")

    def is_clean(self, repo_path: str) -> bool:
        return not self.status(repo_path).strip()

    def config_get(self, repo_path: str, key: str) -> Optional[str]:
        """Value of a git config key, or None if unset."""
        status, stdout = self._run_status(repo_path, "config", "--get", key)
        if status != 0:
            return None
        return stdout.strip() or None

    def get_current_branch(self, repo_path: str) -> Optional[str]:
        """Checked-out branch, or None when HEAD is detached."""
        branch = self._git(repo_path, "rev-parse", "--abbrev-ref", "HEAD").strip()
        return None if branch == "HEAD" else branch

    def get_repository_name(self, repo_path: str) -> str:
        """Identity of a repository: ``host/owner/repo`` from origin.

        Falls back to the directory name when there is no usable origin.
        """
        origin_url = self.config_get(repo_path, "remote.origin.url")
        if origin_url:
            normalized = normalize_repository_url(origin_url)
            if normalized:
                return normalized
            logger.debug(f"Origin URL '{origin_url}' is not a hosting URL, using directory name")
        name = os.path.basename(os.path.abspath(repo_path))
        return name[: -len(".git")] if name.endswith(".git") else name

    # ------------------------------------------------------------------
    # Branches
    # ------------------------------------------------------------------

    def ref_exists(self, repo_path: str, ref: str) -> bool:
        status, _ = self._run_status(repo_path, "show-ref", "--verify", "--quiet", ref)
        return status == 0

    def branch_exists(self, repo_path: str, branch: str) -> bool:
        return self.ref_exists(repo_path, f"refs/heads/{branch}")

    def remote_branch_exists(self, repo_path: str, remote: str, branch: str) -> bool:
        """Check the local remote-tracking ref (no network)."""
        return self.ref_exists(repo_path, f"refs/remotes/{remote}/{branch}")

    def branch_exists_on_remote(self, repo_path: str, remote: str, branch: str) -> bool:
        """Ask the remote itself whether it has the branch."""
        status, _ = self._run_status(repo_path, "ls-remote", "--exit-code", "--heads", remote, branch)
        return status == 0

    def create_branch(self, repo_path: str, branch: str) -> None:
        """Create a branch from the current HEAD."""
        self._git(repo_path, "branch", branch)

    def create_branch_from(self, repo_path: str, branch: str, start_point: str) -> None:
        self._git(repo_path, "branch", branch, start_point)

    def delete_branch(self, repo_path: str, branch: str) -> None:
        self._git(repo_path, "branch", "-D", branch)

    def set_upstream_branch(self, repo_path: str, remote: str, branch: str) -> None:
        self._git(repo_path, "branch", f"--set-upstream-to={remote}/{branch}", branch)

    def check_reference_conflict(self, repo_path: str, branch: str) -> Optional[str]:
        """Find a ref that would make ``branch`` impossible to create.

        Git stores refs as paths, so ``feat/x`` cannot exist alongside a
        ``feat`` branch, and ``feat`` cannot exist alongside ``feat/x``.

        Returns:
            The conflicting ref name, or None
        """
        parts = branch.split("/")
        for i in range(1, len(parts)):
            prefix = "/".join(parts[:i])
            for namespace in ("refs/heads", "refs/tags"):
                ref = f"{namespace}/{prefix}"
                if self.ref_exists(repo_path, ref):
                    return ref

        for namespace in ("refs/heads", "refs/tags"):
            prefix = f"{namespace}/{branch}/"
            output = self._git(repo_path, "for-each-ref", "--format=%(refname)", f"{namespace}/{branch}")
            for ref in output.splitlines():
                if ref.strip().startswith(prefix):
                    return ref.strip()
        return None

    def get_branch_remote(self, repo_path: str, branch: str) -> Optional[str]:
        """Remote a branch belongs to.

        Uses the configured upstream, then looks for a remote-tracking branch
        of the same name on each remote.
        """
        remote = self.config_get(repo_path, f"branch.{branch}.remote")
        if remote and remote != ".":
            return remote
        for name in self.list_remotes(repo_path):
            if self.remote_branch_exists(repo_path, name, branch):
                return name
        return None

    # ------------------------------------------------------------------
    # Worktrees
    # ------------------------------------------------------------------

    def create_worktree(self, repo_path: str, worktree_path: str, branch: str) -> None:
        self._git(repo_path, "worktree", "add", worktree_path, branch)

    def create_worktree_no_checkout(self, repo_path: str, worktree_path: str, branch: str) -> None:
        self._git(repo_path, "worktree", "add", "--no-checkout", worktree_path, branch)

    def checkout_branch(self, worktree_path: str, branch: str) -> None:
        self._git(worktree_path, "checkout", branch)

    def remove_worktree(self, repo_path: str, worktree_path: str, force: bool = False) -> None:
        args = ["worktree", "remove", worktree_path]
        if force:
            args.append("--force")
        self._git(repo_path, *args)
        logger.info(f"Removed worktree at {worktree_path}")

    def prune_worktrees(self, repo_path: str) -> None:
        self._git(repo_path, "worktree", "prune")

    def list_worktrees(self, repo_path: str) -> List[GitWorktree]:
        return parse_worktree_list(self._git(repo_path, "worktree", "list", "--porcelain"))

    def get_worktree_path(self, repo_path: str, branch: str) -> Optional[str]:
        """Path of the worktree that has ``branch`` checked out."""
        for worktree in self.list_worktrees(repo_path):
            if worktree.branch == branch:
                return worktree.path
        return None

    # ------------------------------------------------------------------
    # Remotes
    # ------------------------------------------------------------------

    def list_remotes(self, repo_path: str) -> List[str]:
        return [line.strip() for line in self._git(repo_path, "remote").splitlines() if line.strip()]

    def remote_exists(self, repo_path: str, remote: str) -> bool:
        return remote in self.list_remotes(repo_path)

    def get_remote_url(self, repo_path: str, remote: str) -> Optional[str]:
        return self.config_get(repo_path, f"remote.{remote}.url")

    def add_remote(self, repo_path: str, remote: str, url: str) -> None:
        self._git(repo_path, "remote", "add", remote, url)

    def fetch_remote(self, repo_path: str, remote: str) -> None:
        self._git(repo_path, "fetch", remote)

    def get_local_default_branch(self, repo_path: str, remote: str = DEFAULT_REMOTE) -> Optional[str]:
        """Default branch recorded in ``refs/remotes/<remote>/HEAD``, if any."""
        status, stdout = self._run_status(repo_path, "symbolic-ref", "--quiet", f"refs/remotes/{remote}/HEAD")
        if status != 0 or not stdout.strip():
            return None
        prefix = f"refs/remotes/{remote}/"
        ref = stdout.strip()
        return ref[len(prefix):] if ref.startswith(prefix) else None

    # ------------------------------------------------------------------
    # Network operations outside a repository
    # ------------------------------------------------------------------

    def get_default_branch(self, remote_url: str) -> str:
        """Default branch of a remote repository via ``ls-remote --symref``."""
        output = self._git(None, "ls-remote", "--symref", remote_url, "HEAD")
        for line in output.splitlines():
            # ref: refs/heads/main	HEAD
            if line.startswith("ref:") and line.rstrip().endswith("HEAD"):
                ref = line[len("ref:"):].split("\t")[0].strip()
                if ref.startswith("refs/heads/"):
                    return ref[len("refs/heads/"):]
        raise GitCommandFailedError(
            f"git ls-remote --symref {remote_url} HEAD", None, "could not determine default branch"
        )

    def clone(self, url: str, target_path: str, shallow: bool = False, recursive: bool = True) -> None:
        args = ["clone"]
        if shallow:
            args += ["--depth", "1"]
        if recursive:
            args.append("--recurse-submodules")
        args += [url, target_path]
        self._git(None, *args)
