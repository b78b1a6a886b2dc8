"""CLI entry-point for the blog archiver."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .api import FeedClient
from .archiver import Archiver
from .config import ArchiverConfig, TumblrConfig
from .exceptions import ArchiverError, StorageSetupError
from .extractor import MediaExtractor
from .jsontree import JsonTree
from .models import DownloadOutcome

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


_OUTCOME_STYLES = {
    DownloadOutcome.DOWNLOADED: "green",
    DownloadOutcome.EXISTS: "dim",
    DownloadOutcome.FAILED: "red",
    DownloadOutcome.INVALID: "yellow",
}


def _print_stats(stats: dict) -> None:
    table = Table(title="Archive Summary", show_header=True, header_style="bold cyan")
    table.add_column("Metric", style="bold")
    table.add_column("Count", justify="right")
    for key in ("collections", "aborted", "pages", "jobs"):
        table.add_row(key.capitalize(), str(stats[key]))
    table.add_section()
    for outcome, style in _OUTCOME_STYLES.items():
        table.add_row(f"Media {outcome.value}", str(stats[outcome.value]), style=style)
    console.print(table)


@click.group()
@click.option("--api-key", envvar="TUMBLR_API_KEY", default="", help="Tumblr API key")
@click.option("--api-base", envvar="TUMBLR_API_BASE", default="https://api-http2.tumblr.com/v2", help="API base URL")
@click.option("-o", "--output", type=click.Path(file_okay=False, path_type=Path), default=Path("."), help="Archive root directory")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, api_key: str, api_base: str, output: Path, verbose: bool) -> None:
    """Tumblr archiver – save blog metadata and media to disk.

    Each blog gets a directory holding one JSON file per page of 20 posts
    and a media/ directory with every photo, video and audio file found.
    """
    _setup_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["api_cfg"] = TumblrConfig(api_base=api_base, api_key=api_key)
    ctx.obj["output"] = output


# ─── Commands ────────────────────────────────────────────────────


@cli.command()
@click.argument("handles", nargs=-1, required=True)
@click.option("--conns", default=4, type=click.IntRange(min=0), help="Connections for media downloads")
@click.option("--queue-size", default=0, type=click.IntRange(min=0), help="Max queued media jobs (0 = unbounded)")
@click.option("--no-media", is_flag=True, help="Don't save media")
@click.option("--global-media", is_flag=True, help="Save all media in the same dir")
@click.option("--no-reblogs", is_flag=True, help="Don't save media of reblogs")
@click.option("--likes", is_flag=True, help="Save likes instead of posts")
@click.pass_context
def archive(
    ctx: click.Context,
    handles: tuple[str, ...],
    conns: int,
    queue_size: int,
    no_media: bool,
    global_media: bool,
    no_reblogs: bool,
    likes: bool,
) -> None:
    """Archive one or more blogs.

    Example: blogarchiver archive staff --conns 8 --no-reblogs
    """
    cfg = ArchiverConfig(
        api=ctx.obj["api_cfg"],
        workers=0 if no_media else conns,
        save_media=not no_media,
        global_media=global_media,
        skip_reblogs=no_reblogs,
        likes=likes,
        output_root=ctx.obj["output"],
        queue_size=queue_size,
    )
    with Archiver(cfg) as a:
        try:
            results = a.archive(handles)
        except StorageSetupError as exc:
            console.print(f"[red]✗[/red] {exc}")
            sys.exit(1)
        for handle, ok in results.items():
            mark = "[green]✓[/green]" if ok else "[red]✗[/red]"
            console.print(f"  {mark} {handle}")
        _print_stats(a.stats)
    if not all(results.values()):
        sys.exit(1)


@cli.command()
@click.argument("handle")
@click.option("--offset", default=0, type=click.IntRange(min=0), help="Post offset of the page to show")
@click.option("--likes", is_flag=True, help="Preview likes instead of posts")
@click.pass_context
def preview(ctx: click.Context, handle: str, offset: int, likes: bool) -> None:
    """Show one page of a blog and its media without saving anything.

    Example: blogarchiver preview staff --offset 40
    """
    cfg = ArchiverConfig(api=ctx.obj["api_cfg"], likes=likes, output_root=ctx.obj["output"])
    collection = cfg.collection(handle)
    extractor = MediaExtractor(cfg)
    kind = cfg.feed_kind

    with FeedClient(cfg.api) as client:
        try:
            with client.open_page(kind, handle, offset) as resp:
                resp.read()
                tree = JsonTree.parse(resp.content)
        except (ArchiverError, httpx.HTTPError) as exc:
            console.print(f"[red]✗[/red] {exc}")
            sys.exit(1)

    table = Table(title=f"{handle} {kind.path} @ {offset}", show_header=True, header_style="bold cyan")
    table.add_column("Id", style="bold", justify="right")
    table.add_column("Type")
    table.add_column("Reblog", justify="center")
    table.add_column("Media", overflow="fold")
    for post in tree.array_at(*kind.posts_key):
        urls = [job.url for job in extractor.iter_jobs(collection, [post])]
        table.add_row(
            post.string_at("id_string"),
            post.string_at("type"),
            "✓" if post.exists("reblogged_from_id") else "",
            "\n".join(urls),
        )
    console.print(table)


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
