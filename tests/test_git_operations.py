"""Tests for GitOperations against real repositories"""
import os
import shutil

import pytest

from worktree_manager.exceptions import GitCommandFailedError
from worktree_manager.services.git import GitOperations, parse_worktree_list


@pytest.fixture
def ops():
    return GitOperations()


class TestRepositoryState:
    """Test repository inspection."""

    def test_repository_name_from_origin(self, ops, git_repo):
        assert ops.get_repository_name(git_repo.working_dir) == "github.com/test/test-repo"

    def test_repository_name_without_origin(self, ops, make_repo):
        repo = make_repo("plain-project")
        assert ops.get_repository_name(repo.working_dir) == "plain-project"

    def test_current_branch(self, ops, git_repo):
        assert ops.get_current_branch(git_repo.working_dir) == "main"

    def test_detached_head(self, ops, git_repo):
        git_repo.git.checkout(git_repo.head.commit.hexsha)
        assert ops.get_current_branch(git_repo.working_dir) is None

    def test_is_clean(self, ops, git_repo):
        assert ops.is_clean(git_repo.working_dir)
        with open(os.path.join(git_repo.working_dir, "README.md"), "a") as f:
            f.write("change\n")
        assert not ops.is_clean(git_repo.working_dir)

    def test_config_get_unset(self, ops, git_repo):
        assert ops.config_get(git_repo.working_dir, "branch.main.remote") is None


class TestBranches:
    """Test branch queries and mutations."""

    def test_branch_lifecycle(self, ops, git_repo):
        path = git_repo.working_dir
        assert not ops.branch_exists(path, "topic")
        ops.create_branch(path, "topic")
        assert ops.branch_exists(path, "topic")
        ops.delete_branch(path, "topic")
        assert not ops.branch_exists(path, "topic")

    def test_conflict_with_parent_branch(self, ops, git_repo):
        git_repo.git.branch("feat")
        assert ops.check_reference_conflict(git_repo.working_dir, "feat/login") == "refs/heads/feat"

    def test_conflict_with_nested_branch(self, ops, git_repo):
        git_repo.git.branch("feat/login")
        assert ops.check_reference_conflict(git_repo.working_dir, "feat") == "refs/heads/feat/login"

    def test_conflict_with_tag(self, ops, git_repo):
        git_repo.git.tag("release")
        assert ops.check_reference_conflict(git_repo.working_dir, "release/1.0") == "refs/tags/release"

    def test_no_conflict(self, ops, git_repo):
        git_repo.git.branch("feature")
        git_repo.git.branch("featured/x")
        assert ops.check_reference_conflict(git_repo.working_dir, "feature") is None
        assert ops.check_reference_conflict(git_repo.working_dir, "feature-two/x") is None

    def test_failed_command_carries_details(self, ops, git_repo):
        with pytest.raises(GitCommandFailedError) as exc_info:
            ops.delete_branch(git_repo.working_dir, "does-not-exist")
        error = exc_info.value
        assert error.command == "git branch -D does-not-exist"
        assert error.status == 1
        assert "does-not-exist" in error.stderr


class TestWorktrees:
    """Test worktree commands."""

    def test_create_list_remove(self, ops, git_repo, temp_dir):
        repo_path = git_repo.working_dir
        wt_path = str(temp_dir / "wt" / "topic")
        os.makedirs(os.path.dirname(wt_path))
        ops.create_branch(repo_path, "topic")
        ops.create_worktree(repo_path, wt_path, "topic")

        worktrees = ops.list_worktrees(repo_path)
        assert [wt.branch for wt in worktrees] == ["main", "topic"]
        assert worktrees[0].is_main
        assert ops.get_worktree_path(repo_path, "topic") == wt_path

        ops.remove_worktree(repo_path, wt_path)
        assert ops.get_worktree_path(repo_path, "topic") is None
        assert not os.path.exists(wt_path)

    def test_create_without_checkout(self, ops, git_repo, temp_dir):
        repo_path = git_repo.working_dir
        wt_path = str(temp_dir / "wt" / "empty")
        os.makedirs(os.path.dirname(wt_path))
        ops.create_branch(repo_path, "empty")
        ops.create_worktree_no_checkout(repo_path, wt_path, "empty")

        assert ops.get_worktree_path(repo_path, "empty") == wt_path
        assert not os.path.exists(os.path.join(wt_path, "README.md"))

    def test_checkout_branch_in_worktree(self, ops, git_repo, temp_dir):
        repo_path = git_repo.working_dir
        wt_path = str(temp_dir / "wt" / "first")
        os.makedirs(os.path.dirname(wt_path))
        ops.create_branch(repo_path, "first")
        ops.create_branch(repo_path, "second")
        ops.create_worktree(repo_path, wt_path, "first")

        ops.checkout_branch(wt_path, "second")

        assert ops.get_current_branch(wt_path) == "second"
        assert ops.get_worktree_path(repo_path, "second") == wt_path

    def test_prune_forgets_deleted_worktree(self, ops, git_repo, temp_dir):
        repo_path = git_repo.working_dir
        wt_path = str(temp_dir / "wt" / "gone")
        os.makedirs(os.path.dirname(wt_path))
        ops.create_branch(repo_path, "gone")
        ops.create_worktree(repo_path, wt_path, "gone")
        shutil.rmtree(wt_path)

        ops.prune_worktrees(repo_path)
        assert ops.get_worktree_path(repo_path, "gone") is None

    def test_remove_dirty_needs_force(self, ops, git_repo, temp_dir):
        repo_path = git_repo.working_dir
        wt_path = str(temp_dir / "wt" / "dirty")
        os.makedirs(os.path.dirname(wt_path))
        ops.create_branch(repo_path, "dirty")
        ops.create_worktree(repo_path, wt_path, "dirty")
        with open(os.path.join(wt_path, "untracked.txt"), "w") as f:
            f.write("x")

        with pytest.raises(GitCommandFailedError):
            ops.remove_worktree(repo_path, wt_path)
        ops.remove_worktree(repo_path, wt_path, force=True)
        assert not os.path.exists(wt_path)

    def test_parse_porcelain(self):
        output = (
            "worktree /src/repo\n"
            "HEAD 1111111111111111111111111111111111111111\n"
            "branch refs/heads/main\n"
            "\n"
            "worktree /src/wt/feature\n"
            "HEAD 2222222222222222222222222222222222222222\n"
            "branch refs/heads/feature/x\n"
            "\n"
            "worktree /src/wt/detached\n"
            "HEAD 3333333333333333333333333333333333333333\n"
            "detached\n"
        )
        worktrees = parse_worktree_list(output)
        assert [(wt.path, wt.branch, wt.is_main) for wt in worktrees] == [
            ("/src/repo", "main", True),
            ("/src/wt/feature", "feature/x", False),
            ("/src/wt/detached", "", False),
        ]


class TestRemotes:
    """Test remote handling against a local bare origin."""

    def test_fetch_and_remote_branches(self, ops, git_repo, bare_origin):
        path = git_repo.working_dir
        assert not ops.remote_branch_exists(path, "origin", "feature/remote-only")
        ops.fetch_remote(path, "origin")
        assert ops.remote_branch_exists(path, "origin", "feature/remote-only")
        assert ops.get_branch_remote(path, "feature/remote-only") == "origin"

    def test_branch_exists_on_remote(self, ops, git_repo, bare_origin):
        path = git_repo.working_dir
        assert ops.branch_exists_on_remote(path, "origin", "feature/remote-only")
        assert not ops.branch_exists_on_remote(path, "origin", "nothing-here")

    def test_add_remote(self, ops, git_repo):
        path = git_repo.working_dir
        ops.add_remote(path, "alice", "git@github.com:alice/test-repo.git")
        assert ops.remote_exists(path, "alice")
        assert ops.get_remote_url(path, "alice") == "git@github.com:alice/test-repo.git"

    def test_local_default_branch(self, ops, git_repo, bare_origin):
        path = git_repo.working_dir
        assert ops.get_local_default_branch(path) is None
        ops.fetch_remote(path, "origin")
        git_repo.git.remote("set-head", "origin", "main")
        assert ops.get_local_default_branch(path) == "main"

    def test_default_branch_and_clone(self, ops, bare_origin, temp_dir):
        url = bare_origin.git_dir
        assert ops.get_default_branch(url) == "main"

        target = str(temp_dir / "clone")
        ops.clone(url, target, shallow=True, recursive=False)
        assert os.path.exists(os.path.join(target, "README.md"))
        assert ops.get_current_branch(target) == "main"
