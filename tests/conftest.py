"""Pytest fixtures for worktree-manager tests"""
import json
import tempfile
from pathlib import Path

import pytest
import git

from worktree_manager.config import Config
from worktree_manager.core.repository import RepositoryController
from worktree_manager.services.status_store import StatusStore

ORIGIN_URL = "git@github.com:test/test-repo.git"
REPO_URL = "github.com/test/test-repo"


def init_repo(path: Path, origin_url=None) -> git.Repo:
    """Create a repository with one commit on main."""
    path.mkdir(parents=True)
    repo = git.Repo.init(path)

    # Configure git user for commits
    repo.config_writer().set_value("user", "name", "Test User").release()
    repo.config_writer().set_value("user", "email", "test@example.com").release()

    (path / "README.md").write_text("# Test Repository\n")
    repo.index.add(["README.md"])
    repo.index.commit("Initial commit")

    # Rename master to main if needed
    repo.git.branch("-M", "main")

    if origin_url:
        repo.create_remote("origin", origin_url)
    return repo


@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir).resolve()


@pytest.fixture
def config(temp_dir):
    """Config pointing every location into the temp directory."""
    return Config(
        repositories_dir=str(temp_dir / "src"),
        workspaces_dir=str(temp_dir / "workspaces"),
        status_file=str(temp_dir / "wtm" / "status.yaml"),
        lock_timeout=0,
    )


@pytest.fixture
def store(config):
    """An initialized status store."""
    status_store = StatusStore(config.status_file, lock_timeout=config.lock_timeout)
    status_store.create_initial()
    return status_store


@pytest.fixture
def git_repo(temp_dir):
    """Create a real Git repository with a fake GitHub origin."""
    repo = init_repo(temp_dir / "test_repo", ORIGIN_URL)
    yield repo
    repo.close()


@pytest.fixture
def controller(git_repo, config, store):
    """Repository controller for git_repo that auto-confirms prompts."""
    return RepositoryController(git_repo.working_dir, config, store=store, confirm=lambda message: True)


@pytest.fixture
def bare_origin(temp_dir, git_repo):
    """A local bare repository standing in for origin.

    git_repo keeps its GitHub origin URL; ``url.<path>.insteadOf`` makes
    git fetch from the bare repository instead.
    """
    bare_path = temp_dir / "origin.git"
    bare = git.Repo.init(bare_path, bare=True)
    bare.git.symbolic_ref("HEAD", "refs/heads/main")
    git_repo.git.push(str(bare_path), "main:main")

    # A branch that only exists on the remote
    git_repo.git.checkout("-b", "feature/remote-only")
    (Path(git_repo.working_dir) / "remote.txt").write_text("remote\n")
    git_repo.index.add(["remote.txt"])
    git_repo.index.commit("Remote work")
    git_repo.git.push(str(bare_path), "feature/remote-only:feature/remote-only")
    git_repo.git.checkout("main")
    git_repo.git.branch("-D", "feature/remote-only")

    git_repo.git.config(f"url.{bare_path.as_uri()}.insteadOf", ORIGIN_URL)
    yield bare
    bare.close()


@pytest.fixture
def make_repo(temp_dir):
    """Factory for extra repositories under temp_dir/projects."""
    created = []

    def _make(name: str, origin_url=None) -> git.Repo:
        repo = init_repo(temp_dir / "projects" / name, origin_url)
        created.append(repo)
        return repo

    yield _make
    for repo in created:
        repo.close()


@pytest.fixture
def workspace_file(temp_dir, make_repo):
    """A workspace file listing three repositories by relative path."""
    for name in ("repo-a", "repo-b", "repo-c"):
        make_repo(name, f"git@github.com:org/{name}.git")

    ws_dir = temp_dir / "projects"
    path = ws_dir / "team.code-workspace"
    path.write_text(json.dumps({
        "folders": [
            {"path": "repo-a"},
            {"path": "repo-b"},
            {"name": "C", "path": "./repo-c"},
        ]
    }))
    return path
