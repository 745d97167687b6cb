"""Command-line interface for inspecting and maintaining cache indexes."""

import logging
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.table import Table

from indexcache.backends import CacheError, ExecutionClock, IndexCacheBackend, IndexCacheConfig

app = typer.Typer(
    name="indexcache",
    help="Maintenance commands for document-index cache directories",
    add_completion=False,
)

console = Console()

DirectoryArg = Annotated[
    Path,
    typer.Argument(help="Index directory", exists=True, file_okay=False, dir_okay=True),
]
CompressionOpt = Annotated[
    Optional[str],
    typer.Option("--compression", "-c", help="Algorithm payloads were compressed with (zlib, gzip, zstd)"),
]
NowOpt = Annotated[
    Optional[int],
    typer.Option("--now", help="Unix timestamp to treat as the current time"),
]


@app.callback()
def main(
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable debug logging")] = False,
) -> None:
    """Maintenance commands for document-index cache directories."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _open(
    directory: Path,
    compression: str | None = None,
    now: int | None = None,
) -> IndexCacheBackend:
    config = IndexCacheConfig(
        directory=str(directory),
        compression=compression is not None,
        compression_algorithm=compression or "zlib",
    )
    return IndexCacheBackend(config, clock=ExecutionClock(now))


def _fail(error: Exception) -> None:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1)


@app.command(name="stats")
def stats_cmd(directory: DirectoryArg) -> None:
    """Show document and segment counts of an index."""
    try:
        with _open(directory) as cache:
            stats = cache.stats()
            index = cache.index
            segments = getattr(index, "segment_count", None)
            deleted = getattr(index, "deleted_count", None)
    except CacheError as e:
        _fail(e)

    table = Table(title=f"Index {directory}", show_header=True, header_style="bold magenta")
    table.add_column("Metric", style="cyan", no_wrap=True)
    table.add_column("Value", justify="right")
    table.add_row("Live documents", str(stats["documents"]))
    if segments is not None:
        table.add_row("Segments", str(segments))
    if deleted is not None:
        table.add_row("Deleted (not yet optimized)", str(deleted))
    console.print(table)


@app.command(name="gc")
def gc_cmd(
    directory: DirectoryArg,
    now: NowOpt = None,
    optimize: Annotated[bool, typer.Option("--optimize", help="Compact the index afterwards")] = False,
) -> None:
    """Delete expired entries."""
    try:
        with _open(directory, now=now) as cache:
            before = cache.stats()["documents"]
            cache.collect_garbage()
            if optimize:
                cache.optimize()
            after = cache.stats()["documents"]
    except CacheError as e:
        _fail(e)

    typer.echo(f"Removed {before - after} expired entries, {after} remaining")


@app.command(name="flush")
def flush_cmd(
    directory: DirectoryArg,
    tag: Annotated[
        Optional[list[str]],
        typer.Option("--tag", "-t", help="Only flush entries with this tag (repeatable)"),
    ] = None,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete all entries, or only entries carrying the given tags."""
    if not tag and not yes:
        typer.confirm(f"Delete every entry in {directory}?", abort=True)

    try:
        with _open(directory) as cache:
            if tag:
                cache.flush_by_tags(tag)
            else:
                cache.flush()
            remaining = cache.stats()["documents"]
    except CacheError as e:
        _fail(e)

    typer.echo(f"Flushed, {remaining} entries remaining")


@app.command(name="optimize")
def optimize_cmd(directory: DirectoryArg) -> None:
    """Merge segments and drop deleted documents."""
    try:
        with _open(directory) as cache:
            cache.optimize()
    except CacheError as e:
        _fail(e)

    typer.echo(f"Optimized {directory}")


@app.command(name="tags")
def tags_cmd(
    directory: DirectoryArg,
    tag: Annotated[str, typer.Argument(help="Tag to look up")],
    now: NowOpt = None,
) -> None:
    """List identifiers of live entries carrying a tag."""
    try:
        with _open(directory, now=now) as cache:
            identifiers = list(cache.find_identifiers_by_tag(tag))
    except CacheError as e:
        _fail(e)

    for identifier in identifiers:
        typer.echo(identifier)


@app.command(name="get")
def get_cmd(
    directory: DirectoryArg,
    identifier: Annotated[str, typer.Argument(help="Cache entry identifier")],
    compression: CompressionOpt = None,
    now: NowOpt = None,
) -> None:
    """Print the raw payload of an entry."""
    try:
        with _open(directory, compression=compression, now=now) as cache:
            payload = cache.get(identifier)
    except CacheError as e:
        _fail(e)

    if payload is None:
        typer.echo(f"Not found: {identifier}", err=True)
        raise typer.Exit(1)
    typer.echo(payload, nl=False)


if __name__ == "__main__":
    app()
