"""Filesystem operations used by the controllers and the status store."""
import glob as globlib
import os
import shutil
import tempfile
import time
from contextlib import contextmanager
from pathlib import Path
from typing import IO, List, Optional, Union

from worktree_manager.exceptions import BusyError, StaleLockError
from worktree_manager.logging_config import get_logger

# Import fcntl for POSIX file locking (Unix/Linux/macOS)
try:
    import fcntl
    HAS_FCNTL = True
except ImportError:
    HAS_FCNTL = False

logger = get_logger(__name__)

LOCK_POLL_INTERVAL = 0.05


def _pid_alive(pid: int) -> bool:
    """Check whether a process exists."""
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True  # Exists but owned by someone else
    return True


class FileSystemService:
    """Thin wrapper over the filesystem so controllers can be tested with fakes."""

    def exists(self, path: str) -> bool:
        return os.path.lexists(path)

    def is_dir(self, path: str) -> bool:
        return os.path.isdir(path)

    def read_file(self, path: str) -> str:
        with open(path, "r") as f:
            return f.read()

    def glob(self, pattern: str) -> List[str]:
        """Sorted paths matching a glob pattern."""
        return sorted(globlib.glob(pattern))

    def mkdir_all(self, path: str, mode: int = 0o755) -> None:
        os.makedirs(path, mode=mode, exist_ok=True)

    def missing_dirs(self, path: str) -> List[str]:
        """``path`` and its ancestors that do not exist yet, deepest first."""
        missing = []
        path = os.path.abspath(path)
        while not os.path.lexists(path):
            missing.append(path)
            parent = os.path.dirname(path)
            if parent == path:
                break
            path = parent
        return missing

    def remove_empty_dirs(self, paths: List[str]) -> None:
        """Remove directories in order, stopping at the first one that is not empty."""
        for path in paths:
            if not os.path.isdir(path) or os.listdir(path):
                break
            os.rmdir(path)
            logger.debug(f"Removed empty directory {path}")

    def remove_all(self, path: str) -> None:
        """Remove a file or directory tree; missing paths are ignored."""
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
            logger.debug(f"Removed directory {path}")
        elif os.path.lexists(path):
            os.unlink(path)
            logger.debug(f"Removed file {path}")

    def write_file_atomic(self, path: str, data: Union[str, bytes], mode: int = 0o600) -> None:
        """Write a file so readers see either the old or the new contents.

        Writes to a temp file in the same directory, fsyncs it and renames it
        over the target.
        """
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        payload = data.encode("utf-8") if isinstance(data, str) else data

        fd, temp_name = tempfile.mkstemp(dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp")
        temp_file = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())  # Ensure data is on disk before the rename
            os.chmod(temp_file, mode)

            # Atomic rename (POSIX systems guarantee atomicity)
            temp_file.replace(target)
            logger.debug(f"Wrote {len(payload)} bytes to {target}")
        finally:
            # Clean up temp file if the rename did not happen
            if temp_file.exists():
                temp_file.unlink()

    @contextmanager
    def lock(self, lock_path: str, timeout: float = 0.0):
        """Hold an exclusive advisory lock on ``lock_path``.

        The lock file records the holder's PID. It is truncated on release,
        so a PID left behind means the holder died while holding the lock.

        Args:
            lock_path: Path of the lock file (created if missing)
            timeout: Seconds to keep retrying before giving up

        Raises:
            BusyError: If another live process holds the lock
            StaleLockError: If the lock is held but the recorded PID is dead
        """
        if not HAS_FCNTL:
            logger.debug("File locking not available on this platform")
            yield
            return

        Path(lock_path).parent.mkdir(parents=True, exist_ok=True)
        with open(lock_path, "a+") as handle:
            self._acquire(handle, lock_path, timeout)
            logger.debug(f"Acquired lock {lock_path}")
            try:
                previous = self._read_holder(handle)
                if previous and previous != os.getpid() and not _pid_alive(previous):
                    logger.warning(
                        f"Recovered status lock left behind by process {previous}, which is no longer running"
                    )
                handle.seek(0)
                handle.truncate()
                handle.write(f"{os.getpid()}\n")
                handle.flush()
                yield
            finally:
                try:
                    handle.seek(0)
                    handle.truncate()
                    handle.flush()
                finally:
                    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
                    logger.debug(f"Released lock {lock_path}")

    def _acquire(self, handle: IO, lock_path: str, timeout: float) -> None:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                return
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    holder = self._read_holder(handle)
                    if holder and not _pid_alive(holder):
                        raise StaleLockError(lock_path, holder)
                    raise BusyError(lock_path, holder)
                time.sleep(LOCK_POLL_INTERVAL)

    @staticmethod
    def _read_holder(handle: IO) -> Optional[int]:
        handle.seek(0)
        content = handle.read().strip()
        try:
            return int(content) if content else None
        except ValueError:
            logger.debug(f"Unreadable lock holder '{content}'")
            return None
