"""Tests for status document models"""
import pytest

from worktree_manager.models.outcome import BatchResult, RepositoryOutcome
from worktree_manager.models.status import (
    IssueInfo,
    RepositoryRecord,
    StatusDocument,
    WorktreeInfo,
    WorktreeKey,
)
from worktree_manager.models.worktree import GitWorktree


class TestWorktreeKey:
    """Test the remote:branch key."""

    def test_str(self):
        assert str(WorktreeKey("origin", "feature/x")) == "origin:feature/x"

    def test_parse(self):
        assert WorktreeKey.parse("alice:fix/bug") == WorktreeKey("alice", "fix/bug")

    @pytest.mark.parametrize("value", ["nocolon", ":branch", "origin:"])
    def test_parse_invalid(self, value):
        with pytest.raises(ValueError):
            WorktreeKey.parse(value)


class TestStatusDocument:
    """Test document (de)serialization."""

    def test_from_dict_with_worktrees(self):
        data = {
            "repositories": {
                "github.com/o/r": {
                    "path": "/src/r",
                    "remotes": {"origin": {"default_branch": "main"}},
                    "worktrees": {
                        "origin:feature": {
                            "remote": "origin",
                            "branch": "feature",
                            "path": "/src/github.com/o/r/origin/feature",
                            "issue_info": {"number": 7, "title": "Fix", "owner": "o", "repository": "r"},
                        }
                    },
                }
            },
            "workspaces": {"/ws/team.code-workspace": {"repositories": ["github.com/o/r"]}},
        }
        document = StatusDocument.from_dict(data)

        record = document.repositories["github.com/o/r"]
        assert record.default_branch("origin") == "main"
        assert record.default_branch("upstream") is None
        worktree = record.worktrees[WorktreeKey("origin", "feature")]
        assert worktree.issue_info.number == 7
        assert document.workspaces["/ws/team.code-workspace"].worktree is None
        assert StatusDocument.from_dict(document.to_dict()) == document

    def test_key_mismatch_rejected(self):
        data = {
            "repositories": {
                "github.com/o/r": {
                    "path": "/src/r",
                    "worktrees": {"origin:a": {"remote": "origin", "branch": "b", "path": "/x"}},
                }
            }
        }
        with pytest.raises(ValueError, match="does not match"):
            StatusDocument.from_dict(data)

    def test_missing_path_rejected(self):
        with pytest.raises(KeyError):
            StatusDocument.from_dict({"repositories": {"github.com/o/r": {"remotes": {}}}})

    def test_find_worktrees_across_remotes(self):
        record = RepositoryRecord(path="/src/r")
        for remote in ("origin", "alice"):
            info = WorktreeInfo(remote=remote, branch="fix", path=f"/wt/{remote}")
            record.worktrees[info.key] = info
        assert {wt.remote for wt in record.find_worktrees("fix")} == {"origin", "alice"}
        assert record.find_worktrees("other") == []

    def test_issue_info_url_optional(self):
        info = IssueInfo(number=1, title="t", owner="o", repository="r")
        assert "url" not in info.to_dict()


class TestBatchResult:
    """Test batch result aggregation."""

    def test_partial(self):
        result = BatchResult(branch="b", outcomes=[
            RepositoryOutcome("github.com/o/a", "/a", path="/wt/a"),
            RepositoryOutcome("github.com/o/b", "/b", error=RuntimeError("x")),
        ])
        assert result.is_partial
        assert [o.repo_url for o in result.succeeded] == ["github.com/o/a"]
        assert [o.repo_url for o in result.failed] == ["github.com/o/b"]

    def test_all_succeeded_is_not_partial(self):
        result = BatchResult(branch="b", outcomes=[RepositoryOutcome("u", "/p", path="/wt")])
        assert not result.is_partial


class TestGitWorktree:
    """Test the git worktree model."""

    def test_orphaned_when_directory_missing(self, temp_dir):
        present = GitWorktree(path=str(temp_dir), branch="main", head="abc", is_main=True)
        missing = GitWorktree(path=str(temp_dir / "gone"), branch="x", head="def", is_main=False)
        assert not present.is_orphaned
        assert missing.is_orphaned
