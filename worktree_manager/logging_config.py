"""Logging configuration for worktree-manager"""
import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FILE_NAME = 'wtm.log'
DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
CONSOLE_FORMAT = '[%(name)s] %(message)s'

# Module prefixes dropped from logger names
_NAME_PREFIXES = ('worktree_manager.', 'services.')


class ColoredFormatter(logging.Formatter):
    """Colors the level name when stderr is a terminal."""

    LEVEL_COLORS = {
        logging.DEBUG: '\033[36m',     # Cyan
        logging.INFO: '\033[32m',      # Green
        logging.WARNING: '\033[33m',   # Yellow
        logging.ERROR: '\033[31m',     # Red
        logging.CRITICAL: '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def format(self, record):
        color = self.LEVEL_COLORS.get(record.levelno)
        if color and sys.stderr.isatty():
            record = logging.makeLogRecord(record.__dict__)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
        return super().format(record)


def _console_level(verbose: bool, debug: bool, quiet: bool) -> int:
    if debug:
        return logging.DEBUG
    if verbose:
        return logging.INFO  # Every git command and its output
    if quiet:
        return logging.ERROR
    return logging.WARNING


def setup_logging(verbose: bool = False, debug: bool = False, quiet: bool = False,
                  log_dir: Optional[Path] = None) -> None:
    """
    Configure logging for the application.

    Args:
        verbose: Show INFO messages, which echo each git command and its output
        debug: Show DEBUG messages with timestamps and also write them to
            ``<log_dir>/wtm.log``
        quiet: Only show errors
        log_dir: Directory for the debug log file (defaults to ~/.wtm)
    """
    level = _console_level(verbose, debug, quiet)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # GitPython logs every Popen call at DEBUG; commands are echoed by GitOperations
    logging.getLogger('git.cmd').setLevel(logging.WARNING)

    if debug:
        log_dir = log_dir or Path.home() / '.wtm'
        log_dir.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_dir / LOG_FILE_NAME, mode='w')  # Overwrite each run
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(fmt=DETAILED_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    if debug:
        console_handler.setFormatter(ColoredFormatter(fmt=DETAILED_FORMAT, datefmt=DATE_FORMAT))
    else:
        console_handler.setFormatter(ColoredFormatter(fmt=CONSOLE_FORMAT))
    root_logger.addHandler(console_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance for the specified module.

    Args:
        name: Name of the module (typically __name__)

    Returns:
        Logger instance
    """
    for prefix in _NAME_PREFIXES:
        if name.startswith(prefix):
            name = name[len(prefix):]
    return logging.getLogger(name)
