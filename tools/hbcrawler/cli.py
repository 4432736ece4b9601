"""CLI entry-point for the crawler."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .config import BOARD_SOURCE_NAMES, CrawlConfig, CrawlerConfig, DumpConfig, SiteConfig
from .dumper import Dumper
from .errors import HBCError

console = Console()


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=console)],
    )
    # Suppress noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _print_stats(stats: dict) -> None:
    table = Table(title="Dump Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    for key, val in stats.items():
        table.add_row(key.capitalize(), str(val))
    console.print(table)


@click.group()
@click.option("-o", "--output", default=".", type=click.Path(file_okay=False), help="Directory to dump into")
@click.option("-g", "--gap", envvar="HBC_GAP", default=0, type=click.IntRange(min=0), help="Gap between requests in ms, to simulate human operations")
@click.option("-a", "--accuracy", envvar="HBC_ACCURACY", default=1.0, type=click.FloatRange(0, 1), help="Accuracy of the gap (1 = fixed, 0 = up to twice the gap)")
@click.option("-i", "--ignore-saved", is_flag=True, help="Skip pins whose image is already on disk")
@click.option("-m", "--save-meta", is_flag=True, help="Save each pin's metadata as <pin_id>.json")
@click.option("--board-source", envvar="HBC_BOARD_SOURCE", default="json", type=click.Choice(BOARD_SOURCE_NAMES), help="How board pages are read")
@click.option("--base-url", envvar="HBC_BASE_URL", default="http://huaban.com", help="Site root URL")
@click.option("--timeout", envvar="HBC_TIMEOUT", default=30.0, type=float, help="Per-request timeout in seconds")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, **kwargs: object) -> None:
    """Huaban crawler – dump boards and pins to disk.

    Walks the site's private JSON endpoints with a per-run cookie session
    and writes one directory per board.
    """
    _setup_logging(bool(kwargs.pop("verbose")))
    ctx.ensure_object(dict)
    ctx.obj["cfg"] = CrawlerConfig(
        site=SiteConfig(base_url=kwargs["base_url"], timeout=kwargs["timeout"]),  # type: ignore[arg-type]
        crawl=CrawlConfig(
            gap=kwargs["gap"],  # type: ignore[arg-type]
            accuracy=kwargs["accuracy"],  # type: ignore[arg-type]
            board_source=kwargs["board_source"],  # type: ignore[arg-type]
        ),
        dump=DumpConfig(
            output=kwargs["output"],  # type: ignore[arg-type]
            ignore_saved=bool(kwargs["ignore_saved"]),
            save_meta=bool(kwargs["save_meta"]),
        ),
    )


def _run(ctx: click.Context, action: Callable[[Dumper], object]) -> None:
    cfg: CrawlerConfig = ctx.obj["cfg"]
    with Dumper(cfg) as d:
        try:
            d.initialize()
            action(d)
        except HBCError as exc:
            console.print(f"[red]✗[/red] {exc.message}")
            _print_stats(d.stats)
            sys.exit(1)
        console.print("[green]✓[/green] Completed")
        _print_stats(d.stats)


user_options = [
    click.option("-u", "--user-id", default=0, type=int, help="Numeric ID of the user"),
    click.option("-U", "--user-name", default="", help="Name of the user, as it appears in URLs"),
]


def _with_user_options(f: Callable) -> Callable:
    for opt in reversed(user_options):
        f = opt(f)
    return f


# ─── Commands ────────────────────────────────────────────────────


@cli.command()
@click.argument("board_id", type=int)
@click.pass_context
def board(ctx: click.Context, board_id: int) -> None:
    """Dump a single board.

    Example: hbcrawler -o out board 12345678
    """
    out = ctx.obj["cfg"].dump.output
    console.print(f"[bold]Dumping board [cyan]{board_id}[/cyan]...[/bold]")
    _run(ctx, lambda d: d.dump_board(board_id, out))


@cli.command()
@_with_user_options
@click.pass_context
def user(ctx: click.Context, user_id: int, user_name: str) -> None:
    """Dump every board of a user.

    Example: hbcrawler -o out user -U someone
    """
    out = ctx.obj["cfg"].dump.output
    if not (user_id or user_name):
        raise click.UsageError("Must specify either --user-id or --user-name.")
    _run(ctx, lambda d: d.dump_user(d.resolve_username(user_id, user_name), out))


@cli.command(name="followed-boards")
@_with_user_options
@click.pass_context
def followed_boards(ctx: click.Context, user_id: int, user_name: str) -> None:
    """Dump every board a user follows."""
    out = ctx.obj["cfg"].dump.output
    if not (user_id or user_name):
        raise click.UsageError("Must specify either --user-id or --user-name.")
    _run(ctx, lambda d: d.dump_followed_boards(d.resolve_username(user_id, user_name), out))


@cli.command(name="followed-users")
@_with_user_options
@click.pass_context
def followed_users(ctx: click.Context, user_id: int, user_name: str) -> None:
    """Dump every board of every user a user follows."""
    out = ctx.obj["cfg"].dump.output
    if not (user_id or user_name):
        raise click.UsageError("Must specify either --user-id or --user-name.")
    _run(ctx, lambda d: d.dump_followed_users(d.resolve_username(user_id, user_name), out))


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
