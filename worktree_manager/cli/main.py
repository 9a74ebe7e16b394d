"""Command-line interface for worktree-manager"""

import os
import sys
from typing import List, Optional

from rich.console import Console
from rich.prompt import Prompt

from worktree_manager.cli.args import parse_args
from worktree_manager.config import Config, load_config
from worktree_manager.core.manager import WorktreeManager
from worktree_manager.models.outcome import BatchResult
from worktree_manager.services.display_service import DisplayService
from worktree_manager.logging_config import setup_logging

console = Console()
error_console = Console(stderr=True)


def select_workspace_file(files: List[str]) -> str:
    """Let the user pick one of several workspace files."""
    for index, path in enumerate(files, start=1):
        console.print(f"  {index}. {os.path.basename(path)}")
    choice = Prompt.ask("Workspace file", choices=[str(i) for i in range(1, len(files) + 1)], default="1")
    return files[int(choice) - 1]


def build_init_config(args) -> Config:
    values = {}
    if args.repositories_dir:
        values["repositories_dir"] = args.repositories_dir
    if args.workspaces_dir:
        values["workspaces_dir"] = args.workspaces_dir
    if args.status_file:
        values["status_file"] = args.status_file
    return Config(**values)


def run_command(args, config: Config, display: DisplayService) -> int:
    """Dispatch a parsed command to the manager."""
    interactive = sys.stdin.isatty()
    manager = WorktreeManager(
        config,
        select=select_workspace_file if interactive else None,
    )

    if args.command == "clone":
        path = manager.clone(args.url, shallow=args.shallow, recursive=args.recursive)
        display.success(f"Cloned to {path}")

    elif args.command == "create":
        result = manager.create(args.branch, issue_reference=args.issue, workspace_file=args.workspace)
        _report(display, result, "created")
        if args.ide:
            paths = [result] if isinstance(result, str) else [result.workspace_file]
            for path in paths:
                manager.open_path(path, args.ide)

    elif args.command == "delete":
        if args.all:
            deleted = manager.delete_all(force=args.force)
            display.success(f"Deleted {len(deleted)} worktree(s)")
        else:
            result = manager.delete(args.branch, force=args.force, workspace_file=args.workspace)
            _report(display, result, "deleted")

    elif args.command in ("list", "ls"):
        if args.all:
            rows = manager.store.list_all_worktrees()
        else:
            rows = manager.list(workspace_file=args.workspace)
        display.display_worktree_table(rows)

    elif args.command == "load":
        path = manager.load(args.reference, issue_reference=args.issue)
        display.success(f"Worktree created at {path}")
        if args.ide:
            manager.open_path(path, args.ide)

    elif args.command == "open":
        path = manager.open(args.branch, ide=args.ide)
        display.success(f"Opened {path}")

    elif args.command in ("repository", "repo"):
        if args.repository_command == "delete":
            path = manager.delete_repository(args.url, force=args.force)
            display.success(f"Deleted repository {args.url} ({path})")
        else:
            display.display_repository_table(manager.list_repositories())

    elif args.command in ("workspace", "ws"):
        display.display_workspace_table(manager.list_workspaces())

    return 0


def _report(display: DisplayService, result, action: str) -> None:
    if isinstance(result, BatchResult):
        display.display_batch_result(result, action)
    else:
        display.success(f"Worktree {action}: {result}")


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the application."""
    debug = False
    try:
        parsed_args = parse_args(argv)
        debug = parsed_args.debug

        setup_logging(verbose=parsed_args.verbose, debug=parsed_args.debug, quiet=parsed_args.quiet)
        display = DisplayService(console, quiet=parsed_args.quiet)

        if parsed_args.command == "init":
            config = build_init_config(parsed_args)
            config_path, created = WorktreeManager.initialize(
                config, config_path=parsed_args.config, force=parsed_args.force
            )
            display.success(f"Initialized worktree-manager (config: {config_path})")
            if not created:
                console.print(f"[dim]Kept existing status file {config.status_file}[/dim]")
            return 0

        config = load_config(parsed_args.config)
        # Command-line flags override the config file
        config.verbose = parsed_args.verbose
        config.quiet = parsed_args.quiet
        config.debug = parsed_args.debug
        config.force = getattr(parsed_args, "force", False)

        if parsed_args.debug:
            console.print("[yellow]Debug mode enabled[/yellow]")
            console.print("[yellow]Configuration:[/yellow]")
            for key, value in config.to_dict().items():
                if key == "github_token" and value:
                    value = "***"
                console.print(f"  {key}: {value}")

        return run_command(parsed_args, config, display)
    except KeyboardInterrupt:
        error_console.print("\n[yellow]Operation cancelled by user[/yellow]")
        return 1
    except Exception as e:
        error_console.print(f"[red]Error: {e}[/red]")
        if debug:
            error_console.print_exception()
        return 1


if __name__ == "__main__":
    sys.exit(main())
