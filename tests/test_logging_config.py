"""Tests for logging setup"""
import logging

import pytest

from worktree_manager.logging_config import LOG_FILE_NAME, get_logger, setup_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Test log levels and handlers."""

    @pytest.mark.parametrize("flags,level", [
        ({}, logging.WARNING),
        ({"verbose": True}, logging.INFO),
        ({"quiet": True}, logging.ERROR),
        ({"debug": True, "verbose": True}, logging.DEBUG),
    ])
    def test_levels(self, flags, level, temp_dir):
        setup_logging(log_dir=temp_dir, **flags)
        assert logging.getLogger().level == level

    def test_debug_writes_log_file(self, temp_dir):
        setup_logging(debug=True, log_dir=temp_dir)
        get_logger("worktree_manager.core.manager").debug("hello from the log file")
        for handler in logging.getLogger().handlers:
            handler.flush()
        assert "hello from the log file" in (temp_dir / LOG_FILE_NAME).read_text()

    def test_verbose_shows_command_echo(self):
        """Our git adapter logs under 'git.*'; only GitPython's own logger is silenced."""
        setup_logging(verbose=True)
        assert get_logger("worktree_manager.services.git.operations").isEnabledFor(logging.INFO)
        assert not logging.getLogger("git.cmd").isEnabledFor(logging.INFO)


class TestGetLogger:
    """Test logger naming."""

    def test_prefixes_stripped(self):
        assert get_logger("worktree_manager.core.repository").name == "core.repository"
        assert get_logger("worktree_manager.services.status_store").name == "status_store"
