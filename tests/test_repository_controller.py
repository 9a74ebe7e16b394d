"""Tests for RepositoryController"""
import logging
import os
from unittest.mock import patch

import pytest

from worktree_manager.core.repository import RepositoryController
from worktree_manager.exceptions import (
    BranchNotFoundOnRemoteError,
    DeletionCancelledError,
    DirectoryExistsError,
    GitCommandFailedError,
    MainWorktreeError,
    NotAGitRepositoryError,
    OriginRemoteError,
    ReferenceConflictError,
    RepositoryNotCleanError,
    WorktreeAlreadyExistsError,
    WorktreeManagerError,
    WorktreeNotInStatusError,
)
from worktree_manager.models.status import IssueInfo

REPO_URL = "github.com/test/test-repo"


def expected_path(config, branch, remote="origin"):
    return os.path.join(config.repositories_dir, REPO_URL, remote, branch)


class TestCreateWorktree:
    """Test worktree creation."""

    def test_create(self, controller, config, store, git_repo):
        path = controller.create_worktree("feature/login")

        assert path == expected_path(config, "feature/login")
        assert os.path.isfile(os.path.join(path, "README.md"))
        assert store.get_worktree(REPO_URL, "origin", "feature/login").path == path
        assert controller.git.get_worktree_path(git_repo.working_dir, "feature/login") == path

    def test_registers_repository(self, controller, store, git_repo):
        controller.create_worktree("feature")
        record = store.get_repository(REPO_URL)
        assert record.path == git_repo.working_dir
        assert record.default_branch("origin") == "main"

    def test_issue_info_recorded(self, controller, store):
        issue = IssueInfo(number=12, title="Broken link", owner="test", repository="test-repo",
                          url="https://github.com/test/test-repo/issues/12")
        controller.create_worktree("12-broken-link", issue_info=issue)
        assert store.get_worktree(REPO_URL, "origin", "12-broken-link").issue_info == issue

    def test_existing_branch_checked_out(self, controller, git_repo):
        git_repo.git.branch("existing")
        path = controller.create_worktree("existing")
        assert controller.git.get_current_branch(path) == "existing"

    def test_duplicate_leaves_state_unchanged(self, controller, store):
        controller.create_worktree("feature")
        with open(store.status_file) as f:
            before = f.read()

        with pytest.raises(WorktreeAlreadyExistsError):
            controller.create_worktree("feature")

        with open(store.status_file) as f:
            assert f.read() == before

    def test_directory_exists(self, controller, config, store):
        os.makedirs(expected_path(config, "taken"))
        with pytest.raises(DirectoryExistsError):
            controller.create_worktree("taken")
        assert store.find_worktree(REPO_URL, "taken") is None

    def test_dirty_repository(self, controller, git_repo):
        with open(os.path.join(git_repo.working_dir, "scratch.txt"), "w") as f:
            f.write("wip\n")
        with pytest.raises(RepositoryNotCleanError):
            controller.create_worktree("feature")

    def test_dirty_repository_allowed_when_configured(self, controller, git_repo):
        controller.config.require_clean = False
        with open(os.path.join(git_repo.working_dir, "scratch.txt"), "w") as f:
            f.write("wip\n")
        assert os.path.isdir(controller.create_worktree("feature"))

    def test_reference_conflict(self, controller, store, git_repo):
        git_repo.git.branch("feat")
        with pytest.raises(ReferenceConflictError) as exc_info:
            controller.create_worktree("feat/login")
        assert exc_info.value.conflicting_ref == "refs/heads/feat"
        assert store.find_worktree(REPO_URL, "feat/login") is None

    def test_not_a_git_repository(self, temp_dir, config, store):
        plain = temp_dir / "plain"
        plain.mkdir()
        controller = RepositoryController(str(plain), config, store=store)
        with pytest.raises(NotAGitRepositoryError):
            controller.create_worktree("feature")

    def test_git_failure_rolls_back(self, controller, config, store, git_repo):
        """A failing 'git worktree add' leaves no status entry, directory or branch."""
        failure = GitCommandFailedError("git worktree add", 128, "fatal: simulated")
        with patch.object(controller.git, "create_worktree", side_effect=failure):
            with pytest.raises(GitCommandFailedError, match="simulated"):
                controller.create_worktree("doomed")

        assert store.find_worktree(REPO_URL, "doomed") is None
        assert not os.path.exists(expected_path(config, "doomed"))
        assert not controller.git.branch_exists(git_repo.working_dir, "doomed")

    def test_rollback_removes_created_parent_directories(self, controller, config, git_repo):
        """After a failed 'feat/x' the name 'feat' is free again."""
        failure = GitCommandFailedError("git worktree add", 128, "fatal: simulated")
        with patch.object(controller.git, "create_worktree", side_effect=failure):
            with pytest.raises(GitCommandFailedError):
                controller.create_worktree("feat/x")

        assert not os.path.exists(expected_path(config, "feat"))
        assert controller.create_worktree("feat") == expected_path(config, "feat")

    def test_rollback_keeps_shared_parent_directories(self, controller, config):
        controller.create_worktree("feat/a")
        failure = GitCommandFailedError("git worktree add", 128, "fatal: simulated")
        with patch.object(controller.git, "create_worktree", side_effect=failure):
            with pytest.raises(GitCommandFailedError):
                controller.create_worktree("feat/b")

        assert os.path.isdir(expected_path(config, "feat/a"))
        assert not os.path.exists(expected_path(config, "feat/b"))

    def test_rollback_prunes_worktree_metadata(self, controller, git_repo):
        """A worktree git registered before failing is unregistered again."""
        real_create = controller.git.create_worktree

        def create_then_fail(repo_path, worktree_path, branch):
            real_create(repo_path, worktree_path, branch)
            raise GitCommandFailedError("git worktree add", 1, "fatal: simulated")

        with patch.object(controller.git, "create_worktree", side_effect=create_then_fail):
            with pytest.raises(GitCommandFailedError, match="simulated"):
                controller.create_worktree("half-made")

        assert controller.git.get_worktree_path(git_repo.working_dir, "half-made") is None

    def test_rollback_keeps_preexisting_branch(self, controller, git_repo):
        git_repo.git.branch("keep-me")
        failure = GitCommandFailedError("git worktree add", 128, "fatal: simulated")
        with patch.object(controller.git, "create_worktree", side_effect=failure):
            with pytest.raises(GitCommandFailedError):
                controller.create_worktree("keep-me")
        assert controller.git.branch_exists(git_repo.working_dir, "keep-me")


class TestDeleteWorktree:
    """Test worktree deletion."""

    def test_delete(self, controller, store, git_repo):
        path = controller.create_worktree("feature")
        assert controller.delete_worktree("feature") == path

        assert not os.path.exists(path)
        assert store.find_worktree(REPO_URL, "feature") is None
        assert controller.git.get_worktree_path(git_repo.working_dir, "feature") is None

    def test_delete_twice(self, controller):
        controller.create_worktree("feature")
        controller.delete_worktree("feature")
        with pytest.raises(WorktreeNotInStatusError):
            controller.delete_worktree("feature")

    def test_delete_untracked(self, controller):
        with pytest.raises(WorktreeNotInStatusError):
            controller.delete_worktree("never-created")

    def test_cancelled(self, controller, store):
        path = controller.create_worktree("feature")
        controller.confirm = lambda message: False
        with pytest.raises(DeletionCancelledError):
            controller.delete_worktree("feature")
        assert os.path.isdir(path)
        assert store.find_worktree(REPO_URL, "feature") is not None

    def test_force_skips_prompt(self, controller):
        path = controller.create_worktree("feature")
        controller.confirm = lambda message: pytest.fail("prompted despite force")
        controller.delete_worktree("feature", force=True)
        assert not os.path.exists(path)

    def test_main_worktree_refused(self, controller, store, git_repo):
        controller.ensure_default_branch_worktree(REPO_URL)
        assert store.find_worktree(REPO_URL, "main").path == git_repo.working_dir
        with pytest.raises(MainWorktreeError):
            controller.delete_worktree("main", force=True)
        assert os.path.isdir(git_repo.working_dir)

    def test_dirty_worktree_needs_force(self, controller, store):
        path = controller.create_worktree("feature")
        with open(os.path.join(path, "wip.txt"), "w") as f:
            f.write("wip\n")

        with pytest.raises(GitCommandFailedError):
            controller.delete_worktree("feature")
        assert store.find_worktree(REPO_URL, "feature") is not None

        controller.delete_worktree("feature", force=True)
        assert store.find_worktree(REPO_URL, "feature") is None

    def test_worktree_unknown_to_git(self, controller, store, git_repo, caplog):
        """Status entries without a git worktree are still cleaned up."""
        path = controller.create_worktree("feature")
        git_repo.git.worktree("remove", path)

        with caplog.at_level(logging.WARNING):
            controller.delete_worktree("feature")
        assert "not registered with git" in caplog.text
        assert store.find_worktree(REPO_URL, "feature") is None

    def test_delete_all(self, controller, store, git_repo):
        controller.ensure_default_branch_worktree(REPO_URL)
        controller.create_worktree("a")
        controller.create_worktree("b")

        assert controller.delete_all_worktrees(force=True) == ["a", "b"]
        assert [wt.branch for wt in store.list_worktrees(REPO_URL)] == ["main"]

    def test_delete_all_reports_failures(self, controller):
        controller.create_worktree("a")
        controller.create_worktree("b")
        failure = GitCommandFailedError("git worktree remove", 1, "fatal: simulated")
        real_remove = controller.git.remove_worktree

        def remove(repo_path, worktree_path, force=False):
            if worktree_path.endswith(os.sep + "b"):
                raise failure
            real_remove(repo_path, worktree_path, force=force)

        with patch.object(controller.git, "remove_worktree", side_effect=remove):
            with pytest.raises(WorktreeManagerError, match="Some worktrees could not be deleted"):
                controller.delete_all_worktrees(force=True)
        assert [wt.branch for wt in controller.store.list_worktrees(REPO_URL)] == ["b"]


class TestLoadWorktree:
    """Test loading branches from remotes."""

    def test_load_from_origin(self, controller, config, store, git_repo, bare_origin):
        path = controller.load_worktree(None, "feature/remote-only")

        assert path == expected_path(config, "feature/remote-only")
        assert os.path.isfile(os.path.join(path, "remote.txt"))
        assert store.get_worktree(REPO_URL, "origin", "feature/remote-only").path == path
        assert git_repo.git.config("--get", "branch.feature/remote-only.remote") == "origin"

    def test_missing_branch(self, controller, store, bare_origin):
        with pytest.raises(BranchNotFoundOnRemoteError):
            controller.load_worktree("origin", "no-such-branch")
        assert store.find_worktree(REPO_URL, "no-such-branch") is None

    def test_fork_remote_added(self, controller, git_repo):
        """An unknown remote name is added as a fork on origin's host."""
        with patch.object(controller.git, "fetch_remote") as fetch, \
                patch.object(controller.git, "remote_branch_exists", return_value=False):
            with pytest.raises(BranchNotFoundOnRemoteError):
                controller.load_worktree("alice", "fix")

        fetch.assert_called_once_with(git_repo.working_dir, "alice")
        assert controller.git.get_remote_url(git_repo.working_dir, "alice") == "git@github.com:alice/test-repo.git"

    def test_origin_required(self, make_repo, config, store):
        repo = make_repo("no-origin")
        controller = RepositoryController(repo.working_dir, config, store=store)
        with pytest.raises(OriginRemoteError):
            controller.load_worktree(None, "feature")


class TestListWorktrees:
    """Test listing."""

    def test_list_sorted(self, controller):
        controller.create_worktree("zeta")
        controller.create_worktree("alpha")
        worktrees = controller.list_worktrees()
        assert [wt.branch for wt in worktrees] == ["alpha", "zeta"]
        assert {wt.remote for wt in worktrees} == {"origin"}

    def test_list_untracked_repository(self, controller):
        assert controller.list_worktrees() == []

    def test_remote_resolved_from_git(self, controller, git_repo, bare_origin):
        controller.load_worktree(None, "feature/remote-only")
        git_repo.git.config("branch.feature/remote-only.remote", "upstream")
        [worktree] = controller.list_worktrees()
        assert worktree.remote == "upstream"
