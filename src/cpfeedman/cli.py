"""Command-line interface for cpfeedman.

cpfeedman listens on an SQS queue and, for every message naming a known
Check Point network feed, asks all gateways to refresh that feed.

COMMANDS:
---------
- run:      Start the service (catalog, inventory, queue loop).
- gateways: List gateway names known to the management server.
- feeds:    List network feed names.
- kick:     Kick one feed right now, optionally waiting for the tasks.
- task:     Show the status and output of script tasks.
- config:   Show the effective configuration.
"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import Awaitable, Callable
from typing import NoReturn, TypeVar

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from cpfeedman import __version__
from cpfeedman.checkpoint.directory import list_feed_names, list_gateway_names
from cpfeedman.checkpoint.feeds import kick_feed
from cpfeedman.checkpoint.poller import TaskPoller
from cpfeedman.checkpoint.scripts import show_tasks
from cpfeedman.checkpoint.session import CheckPointSession
from cpfeedman.config import Settings
from cpfeedman.errors import CheckPointError
from cpfeedman.service import FeedService

console = Console()

T = TypeVar("T")


def setup_logging(verbose: bool = False, level: int = logging.WARNING) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else level
    fmt = "%(name)s: %(message)s" if verbose else "%(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        handlers=[RichHandler(rich_tracebacks=True, console=console, show_path=verbose)],
    )
    # botocore is chatty at DEBUG
    logging.getLogger("botocore").setLevel(logging.WARNING)


def _load_settings(need_queue: bool = False) -> Settings:
    settings = Settings()
    missing = settings.missing_required(need_queue=need_queue)
    if missing:
        console.print(f"[red]Error:[/red] {', '.join(missing)} not set")
        sys.exit(1)
    return settings


def _run_api(settings: Settings, action: Callable[[CheckPointSession], Awaitable[T]]) -> T:
    """Run one API action in a fresh session, logging out afterwards."""

    async def _run() -> T:
        async with CheckPointSession.from_settings(settings) as session:
            try:
                return await action(session)
            finally:
                try:
                    await session.logout()
                except CheckPointError as e:
                    logging.getLogger(__name__).warning(f"Logout failed: {e}")

    try:
        return asyncio.run(_run())
    except CheckPointError as e:
        console.print(f"[red]Error:[/red] {e}")
        sys.exit(1)


def _print_names(title: str, names: list[str]) -> None:
    table = Table(title=title)
    table.add_column("#", style="dim", justify="right")
    table.add_column("Name", style="cyan")
    for i, name in enumerate(names, 1):
        table.add_row(str(i), name)
    console.print(table)
    if not names:
        console.print("[dim]None found.[/dim]")


def cmd_run(args: argparse.Namespace) -> None:
    """Start the feed service and listen on the queue."""
    setup_logging(args.verbose, level=logging.INFO)
    settings = _load_settings(need_queue=True)
    if args.no_inventory:
        settings.inventory_on_startup = False
    if args.wait:
        settings.wait_for_kick = True

    async def _serve() -> None:
        async with CheckPointSession.from_settings(settings) as session:
            service = FeedService(session, settings)
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGTERM, signal.SIGINT):
                loop.add_signal_handler(sig, service.stop)
            await service.run()

    console.print(f"[dim]Starting cpfeedman v{__version__} against {settings.checkpoint_server}...[/dim]")
    try:
        asyncio.run(_serve())
    except CheckPointError as e:
        console.print(f"[red]Startup failed:[/red] {e}")
        sys.exit(1)
    console.print("[dim]cpfeedman stopped.[/dim]")


def cmd_gateways(args: argparse.Namespace) -> None:
    """List gateway names."""
    setup_logging(args.verbose)
    settings = _load_settings()
    names = _run_api(settings, list_gateway_names)
    _print_names("Gateways", names)


def cmd_feeds(args: argparse.Namespace) -> None:
    """List network feed names."""
    setup_logging(args.verbose)
    settings = _load_settings()
    names = _run_api(settings, list_feed_names)
    _print_names("Network feeds", names)


def cmd_kick(args: argparse.Namespace) -> None:
    """Kick a feed on all (or the given) gateways."""
    setup_logging(args.verbose, level=logging.INFO)
    settings = _load_settings()

    async def _kick(session: CheckPointSession) -> None:
        targets = args.target or await list_gateway_names(session)
        response = await kick_feed(session, args.feed, targets)
        console.print(f"[green]Kicked '{args.feed}'[/green] on {', '.join(targets) or 'no gateways'}")
        if not args.wait:
            for task in response.tasks:
                console.print(f"  {task.target}: task {task.task_id}")
            return

        poller = TaskPoller(session, settings.task_poll_interval, settings.task_timeout)
        result = await poller.poll_until_done(response.task_ids())
        for task_id, text in result.messages().items():
            console.print(f"\n[bold]Task {task_id}[/bold]\n{text}")
        if result.timed_out:
            console.print(f"[yellow]Timed out waiting for:[/yellow] {', '.join(result.unfinished_ids)}")
        elif result.non_success_count:
            console.print(f"[yellow]Some tasks did not succeed:[/yellow] {result.status_counts}")
        else:
            console.print("[green]All tasks finished successfully.[/green]")

    _run_api(settings, _kick)


def cmd_task(args: argparse.Namespace) -> None:
    """Show script tasks by id."""
    setup_logging(args.verbose)
    settings = _load_settings()

    async def _show(session: CheckPointSession) -> None:
        response = await show_tasks(session, args.task_ids)
        table = Table(title="Tasks")
        table.add_column("Task ID", style="cyan")
        table.add_column("Name")
        table.add_column("Status")
        table.add_column("Progress", justify="right")
        for task in response.tasks:
            style = "green" if task.is_succeeded else "yellow" if task.is_in_progress else "red"
            table.add_row(
                task.task_id,
                task.task_name,
                f"[{style}]{task.status}[/{style}]",
                f"{task.progress_percentage}%",
            )
        console.print(table)
        for task in response.tasks:
            text = task.response_text()
            if text:
                console.print(f"\n[bold]{task.task_id}[/bold]\n{text}")

    _run_api(settings, _show)


def cmd_config(args: argparse.Namespace) -> None:
    """Show the effective configuration (API key masked)."""
    settings = Settings()
    table = Table(title="cpfeedman configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    key = settings.checkpoint_api_key
    rows = [
        ("API URL", settings.api_url if settings.checkpoint_server else "[red]not set[/red]"),
        ("API key", f"{key[:4]}..." if key else "[red]not set[/red]"),
        ("Verify TLS", str(settings.checkpoint_verify_tls) if settings.checkpoint_verify_tls
         else "[yellow]False (insecure)[/yellow]"),
        ("Queue", settings.sqs_endpoint or "[red]not set[/red]"),
        ("AWS region", settings.get_aws_region() or "[dim]boto3 default[/dim]"),
        ("Notified gateways", ", ".join(settings.notified_gateways) or "[dim]none[/dim]"),
        ("Task poll interval", f"{settings.task_poll_interval} s"),
        ("Task timeout", f"{settings.task_timeout} s"),
        ("Inventory on startup", str(settings.inventory_on_startup)),
        ("Wait for kick", str(settings.wait_for_kick)),
    ]
    for name, value in rows:
        table.add_row(name, value)
    console.print(table)


def cmd_version(args: argparse.Namespace) -> None:
    """Show version information."""
    console.print(f"cpfeedman v{__version__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cpfeedman",
        description="Kick Check Point network feeds from SQS events",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Show debug output")
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="Start the service")
    run_parser.add_argument("--no-inventory", action="store_true", help="Skip the startup inventory script")
    run_parser.add_argument("--wait", action="store_true", help="Wait for kick tasks before the next message")
    run_parser.set_defaults(func=cmd_run)

    gateways_parser = subparsers.add_parser("gateways", help="List gateways")
    gateways_parser.set_defaults(func=cmd_gateways)

    feeds_parser = subparsers.add_parser("feeds", help="List network feeds")
    feeds_parser.set_defaults(func=cmd_feeds)

    kick_parser = subparsers.add_parser("kick", help="Kick a feed now")
    kick_parser.add_argument("feed", help="Network feed name")
    kick_parser.add_argument(
        "-t", "--target", action="append", help="Gateway to kick (repeatable, default: all)"
    )
    kick_parser.add_argument("-w", "--wait", action="store_true", help="Wait for the tasks and show output")
    kick_parser.set_defaults(func=cmd_kick)

    task_parser = subparsers.add_parser("task", help="Show script tasks")
    task_parser.add_argument("task_ids", nargs="+", metavar="TASK_ID", help="Task id")
    task_parser.set_defaults(func=cmd_task)

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.set_defaults(func=cmd_config)

    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main() -> NoReturn:
    """Main entry point for the cpfeedman CLI."""
    parser = build_parser()
    args = parser.parse_args()

    if not getattr(args, "func", None):
        parser.print_help()
        sys.exit(0)

    args.func(args)
    sys.exit(0)


if __name__ == "__main__":
    main()
