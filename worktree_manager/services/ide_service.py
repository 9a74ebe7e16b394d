"""Open worktrees in an IDE."""
import shutil
import subprocess

from worktree_manager.constants import IDE_COMMANDS
from worktree_manager.exceptions import IDEError
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


class IDEService:
    """Launches an IDE process on a directory."""

    def is_installed(self, ide: str) -> bool:
        return ide in IDE_COMMANDS and shutil.which(IDE_COMMANDS[ide]) is not None

    def open(self, ide: str, path: str) -> None:
        """Start the IDE on ``path`` without waiting for it."""
        if ide not in IDE_COMMANDS:
            raise IDEError(ide, f"unsupported, choose one of {sorted(IDE_COMMANDS)}")
        executable = shutil.which(IDE_COMMANDS[ide])
        if executable is None:
            raise IDEError(ide, f"'{IDE_COMMANDS[ide]}' not found on PATH")

        logger.info(f"Opening {path} in {ide}")
        try:
            subprocess.Popen(
                [executable, path],
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise IDEError(ide, f"failed to launch: {e}") from e
