"""Command-line entry point for fuzemill."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from . import __version__
from .config import FuzemillSettings, get_settings
from .coordinator import LifecycleCoordinator
from .errors import FuzemillError, NotInRepoError

console = Console(highlight=False)
err_console = Console(stderr=True, highlight=False)


def configure_logging(level: str) -> None:
    """Configure root logging for the fuzemill CLI."""

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def build_coordinator(settings: FuzemillSettings) -> LifecycleCoordinator:
    return LifecycleCoordinator.from_settings(settings)


def cmd_scan(args: argparse.Namespace, coordinator: LifecycleCoordinator) -> int:
    cwd = Path.cwd()
    if args.verbose:
        console.print(f"Scanning from: {escape(str(cwd))}")
    try:
        repo = coordinator.scan(cwd)
    except NotInRepoError:
        console.print("[red]Not in a git repository[/red]")
        return 0

    console.print(f"[bold green]{escape(repo.name)}[/bold green]")
    if args.verbose:
        console.print(f"Git root found at: {escape(str(repo.root))}")
        if repo.is_worktree:
            console.print(f"Primary repository: {escape(str(repo.primary_root))}")
    return 0


def cmd_start(args: argparse.Namespace, coordinator: LifecycleCoordinator) -> int:
    result = coordinator.start(
        args.title,
        issue_id=args.issue_id,
        priority=args.priority,
        agent=args.agent,
        model=args.model,
    )
    if result.created_issue:
        console.print(f"Created issue [bold]{escape(result.issue.id)}[/bold] ({result.issue.backend})")
    console.print(f"Worktree: [green]{escape(str(result.worktree.path))}[/green]")
    console.print(
        f"Session [bold]{escape(result.session.name)}[/bold] started; "
        f"attach with: tmux attach -t {escape(result.session.name)}"
    )
    return 0


def cmd_unstart(args: argparse.Namespace, coordinator: LifecycleCoordinator) -> int:
    result = coordinator.unstart(args.issue_id)
    if result.removed:
        console.print(f"Removed worktree and branch for {escape(result.issue_id)}")
    else:
        console.print(f"No worktree for {escape(result.issue_id)}; nothing to remove")
    if result.relocated_to is not None and coordinator.settings.spawn_shell:
        console.print(f"Spawning subshell in [green]{escape(str(result.relocated_to))}[/green]")
        coordinator.open_shell(result.relocated_to)
    return 0


def cmd_merge(args: argparse.Namespace, coordinator: LifecycleCoordinator) -> int:
    result = coordinator.merge(args.issue_id)
    console.print(f"[green]Merged and closed {escape(result.issue_id)}[/green]")
    return 0


def cmd_done(args: argparse.Namespace, coordinator: LifecycleCoordinator) -> int:
    name = coordinator.done()
    console.print(f"Ended session {escape(name)}")
    return 0


def cmd_watch(args: argparse.Namespace, coordinator: LifecycleCoordinator) -> int:
    coordinator.watch(args.issue_id, Path(args.repo).resolve())
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "-v", "--verbose", action="store_true", default=argparse.SUPPRESS, help="Verbose output"
    )

    parser = argparse.ArgumentParser(prog="fuzemill", description="Git workflow helper")
    parser.add_argument("-v", "--verbose", action="store_true", help="Verbose output")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.set_defaults(func=cmd_scan)
    sub = parser.add_subparsers(dest="command", metavar="{start,unstart,merge,done}")

    start = sub.add_parser(
        "start",
        parents=[common],
        help="Start working on an issue (creates worktree, branch and session)",
    )
    start.add_argument("title", nargs="?", help="Task title; creates a new issue")
    start.add_argument("--id", dest="issue_id", help="Existing issue id to work on")
    start.add_argument("--agent", help="Assistant profile (native, alt, or a custom profile id)")
    start.add_argument("--model", help="Model passed to the assistant")
    start.add_argument("--priority", type=int, help="Priority for a newly created issue")
    start.set_defaults(func=cmd_start)

    unstart = sub.add_parser(
        "unstart", parents=[common], help="Stop working on an issue (removes worktree and branch)"
    )
    unstart.add_argument("issue_id", help="The issue id")
    unstart.set_defaults(func=cmd_unstart)

    merge = sub.add_parser(
        "merge", parents=[common], help="Merge the issue's pull request and close the issue"
    )
    merge.add_argument("issue_id", help="The issue id")
    merge.set_defaults(func=cmd_merge)

    done = sub.add_parser("done", parents=[common], help="End the current assistant session")
    done.set_defaults(func=cmd_done)

    watch = sub.add_parser("watch", parents=[common])
    watch.add_argument("issue_id")
    watch.add_argument("--repo", required=True)
    watch.set_defaults(func=cmd_watch)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the fuzemill CLI."""

    args = build_parser().parse_args(argv)
    try:
        settings = get_settings()
    except ValidationError as exc:
        err_console.print(f"[red]Invalid configuration:[/red] {escape(str(exc))}")
        return 2
    configure_logging("DEBUG" if args.verbose else settings.log_level)

    try:
        coordinator = build_coordinator(settings)
        return args.func(args, coordinator)
    except FuzemillError as exc:
        err_console.print(f"[red]Error:[/red] {escape(str(exc))}")
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
