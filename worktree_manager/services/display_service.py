"""Display and formatting service for worktree information"""
import os
from typing import List, Optional, Sequence, Tuple

from rich.console import Console
from rich.table import Table

from worktree_manager.constants import COLUMNS, STYLE_MISSING, SYMBOL_FAILED, SYMBOL_MISSING, SYMBOL_OK
from worktree_manager.models.outcome import BatchResult
from worktree_manager.models.status import RepositoryRecord, WorkspaceRecord, WorktreeInfo
from worktree_manager.logging_config import get_logger

logger = get_logger(__name__)


class DisplayService:
    def __init__(self, console: Optional[Console] = None, quiet: bool = False):
        self.console = console or Console()
        self.quiet = quiet

    def display_worktree_table(self, rows: Sequence[Tuple[str, WorktreeInfo]]) -> None:
        """Display a table of ``(repo_url, worktree)`` rows."""
        if not rows:
            self.console.print("[dim]No worktrees found[/dim]")
            return

        table = Table()
        for col in COLUMNS:
            if col.width:
                table.add_column(col.label, max_width=col.width, overflow="fold")
            else:
                table.add_column(col.label, overflow="fold")

        for repo_url, worktree in rows:
            missing = not os.path.exists(worktree.path)
            path = f"{worktree.path} {SYMBOL_MISSING}" if missing else worktree.path
            issue = f"#{worktree.issue_info.number}" if worktree.issue_info else ""
            table.add_row(
                repo_url,
                worktree.remote,
                worktree.branch,
                path,
                issue,
                style=STYLE_MISSING if missing else None,
            )

        self.console.print(table)
        if any(not os.path.exists(wt.path) for _, wt in rows):
            self.console.print(f"{SYMBOL_MISSING} = directory missing on disk")

    def display_repository_table(self, rows: Sequence[Tuple[str, RepositoryRecord, bool]]) -> None:
        """Display tracked repositories; ``*`` marks those outside repositories_dir."""
        if not rows:
            self.console.print("[dim]No repositories found[/dim]")
            return

        table = Table()
        table.add_column("Repository", overflow="fold")
        table.add_column("Path", overflow="fold")
        table.add_column("Worktrees", justify="right")
        for repo_url, record, managed in rows:
            name = repo_url if managed else f"* {repo_url}"
            table.add_row(name, record.path, str(len(record.worktrees)))

        self.console.print(table)
        if not all(managed for _, _, managed in rows):
            self.console.print("* = not inside repositories_dir")

    def display_workspace_table(self, rows: Sequence[Tuple[str, WorkspaceRecord]]) -> None:
        if not rows:
            self.console.print("[dim]No workspaces found[/dim]")
            return

        table = Table()
        table.add_column("Workspace", overflow="fold")
        table.add_column("Repositories", overflow="fold")
        table.add_column("Worktree", overflow="fold")
        for path, record in rows:
            table.add_row(path, "\n".join(record.repositories), record.worktree or "")

        self.console.print(table)

    def display_batch_result(self, result: BatchResult, action: str) -> None:
        """Per-repository summary of a workspace operation."""
        for outcome in result.outcomes:
            if outcome.succeeded:
                self.console.print(f"[green]{SYMBOL_OK}[/green] {outcome.repo_url}: {action} {outcome.path}")
            else:
                self.console.print(f"[red]{SYMBOL_FAILED}[/red] {outcome.repo_url}: {outcome.error}")

        if result.failed:
            failed: List[str] = [o.repo_url for o in result.failed]
            self.console.print(
                f"[yellow]Partial success: {len(result.succeeded)} succeeded, "
                f"{len(failed)} failed ({', '.join(failed)})[/yellow]"
            )
        if result.workspace_file:
            self.console.print(f"Workspace file: {result.workspace_file}")

    def success(self, message: str) -> None:
        if not self.quiet:
            self.console.print(f"[green]{message}[/green]")
