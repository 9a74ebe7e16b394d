"""Tests for IDEService"""
import subprocess
from unittest.mock import patch

import pytest

from worktree_manager.exceptions import IDEError
from worktree_manager.services.ide_service import IDEService


class TestIDEService:
    """Test launching IDEs."""

    def test_unsupported_ide(self):
        with pytest.raises(IDEError, match="unsupported"):
            IDEService().open("notepad", "/tmp/x")

    @patch('worktree_manager.services.ide_service.shutil.which', return_value=None)
    def test_not_installed(self, mock_which):
        service = IDEService()
        assert not service.is_installed("vscode")
        with pytest.raises(IDEError, match="not found on PATH"):
            service.open("vscode", "/tmp/x")

    @patch('worktree_manager.services.ide_service.subprocess.Popen')
    @patch('worktree_manager.services.ide_service.shutil.which', return_value="/usr/bin/cursor")
    def test_launches_detached(self, mock_which, mock_popen):
        IDEService().open("cursor", "/src/wt")

        mock_which.assert_called_with("cursor")
        args, kwargs = mock_popen.call_args
        assert args[0] == ["/usr/bin/cursor", "/src/wt"]
        assert kwargs["start_new_session"] is True
        assert kwargs["stdout"] is subprocess.DEVNULL

    @patch('worktree_manager.services.ide_service.subprocess.Popen', side_effect=OSError("exec format error"))
    @patch('worktree_manager.services.ide_service.shutil.which', return_value="/usr/bin/code")
    def test_launch_failure(self, mock_which, mock_popen):
        with pytest.raises(IDEError, match="failed to launch"):
            IDEService().open("vscode", "/src/wt")
