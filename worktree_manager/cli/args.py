"""Command-line argument parsing for worktree-manager."""

import argparse
from typing import List, Optional

from worktree_manager.__version__ import __version__
from worktree_manager.constants import SUPPORTED_IDES


def _add_common_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-v", "--verbose", action="store_true", default=argparse.SUPPRESS,
                        help="Show every git command and its output")
    parser.add_argument("-q", "--quiet", action="store_true", default=argparse.SUPPRESS,
                        help="Only print errors")
    parser.add_argument("--debug", action="store_true", default=argparse.SUPPRESS,
                        help="Show debug information for troubleshooting")
    parser.add_argument("--config", metavar="PATH", default=argparse.SUPPRESS,
                        help="Config file (default: $WTM_CONFIG or ~/.wtm/config.yaml)")


def _add_workspace_flag(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("-w", "--workspace", metavar="FILE",
                        help="Workspace file to use (forces workspace mode)")


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="wtm",
        description="Manage git worktrees across repositories and workspaces",
        epilog="Issue lookups use the GITHUB_TOKEN environment variable or 'github_token' in the config file.",
    )
    parser.add_argument("--version", action="version", version=f"worktree-manager {__version__}")
    parser.set_defaults(verbose=False, quiet=False, debug=False, config=None)
    _add_common_flags(parser)

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True

    # init
    init_parser = subparsers.add_parser("init", help="Create the config and status files")
    _add_common_flags(init_parser)
    init_parser.add_argument("--repositories-dir", metavar="DIR",
                             help="Where clones and worktrees are stored (default: ~/Code/src)")
    init_parser.add_argument("--workspaces-dir", metavar="DIR",
                             help="Where per-branch workspace files are written (default: ~/Code/workspaces)")
    init_parser.add_argument("--status-file", metavar="FILE",
                             help="Status file location (default: ~/.wtm/status.yaml)")
    init_parser.add_argument("--force", action="store_true", help="Overwrite an existing config")

    # clone
    clone_parser = subparsers.add_parser("clone", help="Clone a repository and track it")
    _add_common_flags(clone_parser)
    clone_parser.add_argument("url", help="Repository URL")
    clone_parser.add_argument("--shallow", action="store_true", help="Clone with --depth 1")
    clone_parser.add_argument("--no-recursive", dest="recursive", action="store_false",
                              help="Do not clone submodules")

    # create
    create_parser = subparsers.add_parser("create", help="Create a worktree for a branch")
    _add_common_flags(create_parser)
    create_parser.add_argument("branch", nargs="?", help="Branch name (optional with --from-issue)")
    create_parser.add_argument("--from-issue", metavar="REF", dest="issue",
                               help="GitHub issue (URL, owner/repo#N or N) to name the branch after")
    create_parser.add_argument("--ide", choices=SUPPORTED_IDES, help="Open the new worktree in an IDE")
    create_parser.add_argument("-f", "--force", action="store_true",
                               help="Pick the first workspace file when several exist")
    _add_workspace_flag(create_parser)

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete a worktree")
    _add_common_flags(delete_parser)
    delete_parser.add_argument("branch", nargs="?", help="Branch of the worktree to delete")
    delete_parser.add_argument("--all", action="store_true", help="Delete every worktree of the repository")
    delete_parser.add_argument("-f", "--force", action="store_true",
                               help="Skip confirmation and force removal of dirty worktrees")
    _add_workspace_flag(delete_parser)

    # list
    list_parser = subparsers.add_parser("list", aliases=["ls"], help="List tracked worktrees")
    _add_common_flags(list_parser)
    list_parser.add_argument("--all", action="store_true", help="List worktrees of every tracked repository")
    _add_workspace_flag(list_parser)

    # load
    load_parser = subparsers.add_parser("load", help="Create a worktree for a branch on a remote")
    _add_common_flags(load_parser)
    load_parser.add_argument("reference", metavar="[REMOTE:]BRANCH",
                             help="Branch to load, optionally prefixed by a remote or fork owner")
    load_parser.add_argument("--from-issue", metavar="REF", dest="issue",
                             help="GitHub issue to link to the worktree")
    load_parser.add_argument("--ide", choices=SUPPORTED_IDES, help="Open the worktree in an IDE")

    # open
    open_parser = subparsers.add_parser("open", help="Open a worktree in an IDE")
    _add_common_flags(open_parser)
    open_parser.add_argument("branch", help="Branch of the worktree to open")
    open_parser.add_argument("--ide", choices=SUPPORTED_IDES, help="IDE to use (default: default_ide)")

    # repository
    repository_parser = subparsers.add_parser("repository", aliases=["repo"], help="Manage tracked repositories")
    repository_commands = repository_parser.add_subparsers(dest="repository_command", metavar="ACTION")
    repository_commands.required = True
    repository_list = repository_commands.add_parser("list", aliases=["ls"], help="List tracked repositories")
    _add_common_flags(repository_list)
    repository_delete = repository_commands.add_parser("delete", help="Delete a repository and its worktrees")
    _add_common_flags(repository_delete)
    repository_delete.add_argument("url", metavar="REPOSITORY", help="Repository URL as shown by 'repository list'")
    repository_delete.add_argument("-f", "--force", action="store_true",
                                   help="Skip confirmation and force removal of dirty worktrees")

    # workspace
    workspace_parser = subparsers.add_parser("workspace", aliases=["ws"], help="Manage tracked workspaces")
    workspace_commands = workspace_parser.add_subparsers(dest="workspace_command", metavar="ACTION")
    workspace_commands.required = True
    workspace_list = workspace_commands.add_parser("list", aliases=["ls"], help="List tracked workspaces")
    _add_common_flags(workspace_list)

    return parser


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.command == "delete" and not args.branch and not args.all:
        parser.error("delete: a branch or --all is required")
    if args.command == "create" and not args.branch and not args.issue:
        parser.error("create: a branch or --from-issue is required")
    return args
