"""Compensating actions for multi-step operations."""

from typing import Callable, List, Tuple

from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


class Rollback:
    """Ordered list of undo steps, run in reverse when an operation fails.

    Push a compensation after each step succeeds; call ``commit()`` once the
    whole operation has succeeded. Used as a context manager, any exception
    raised in the block runs the compensations and is then re-raised.

    Example:
        with Rollback() as rollback:
            store.add_worktree(...)
            rollback.push("remove status entry", lambda: store.remove_worktree(...))
            git.create_worktree(...)
            rollback.commit()
    """

    def __init__(self):
        self._actions: List[Tuple[str, Callable[[], object]]] = []
        self._committed = False

    def push(self, description: str, action: Callable[[], object]) -> None:
        """Register a compensation for a step that just succeeded."""
        self._actions.append((description, action))

    def commit(self) -> None:
        """Mark the operation as complete; compensations will not run."""
        self._committed = True
        self._actions.clear()

    def run(self) -> None:
        """Run compensations newest first.

        Compensation failures are logged as warnings; the original error is
        what the caller reports.
        """
        while self._actions:
            description, action = self._actions.pop()
            try:
                logger.debug(f"Rolling back: {description}")
                action()
            except Exception as e:
                logger.warning(f"Rollback step '{description}' failed: {e}")

    def __enter__(self) -> "Rollback":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is not None and not self._committed:
            logger.info(f"Operation failed ({exc}), rolling back {len(self._actions)} step(s)")
            self.run()
        return False
