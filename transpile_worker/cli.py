"""
CLI for transpile-worker.

Provides `transpile-worker resolve` and `transpile-worker fetch` for checking
how plugin/preset names and package paths resolve against the CDN.
"""

import asyncio
import logging
import sys
from pathlib import Path

import click

from .config import WorkerSettings
from .config import load_settings
from .exceptions import TranspileError
from .fetch.fetcher import RemoteFetcher
from .fetch.http import HttpPackageDownloader
from .fetch.protocol import DownloaderProtocol
from .resolution.resolver import NameResolver
from .store.overlay import OverlayStore


def make_downloader(settings: WorkerSettings) -> DownloaderProtocol:
    """Downloader used by CLI commands."""
    return HttpPackageDownloader(
        cdn_url=settings.cdn_url,
        packages_root=settings.packages_root,
        timeout=settings.fetch_timeout,
    )


def _setup(config_path: str | None, verbose: bool) -> tuple[OverlayStore, RemoteFetcher, WorkerSettings]:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(Path(config_path) if config_path else None)
    store = OverlayStore()
    fetcher = RemoteFetcher(store, make_downloader(settings), settings.packages_root)
    return store, fetcher, settings


@click.group()
@click.version_option(version="0.1.0", prog_name="transpile-worker")
def cli() -> None:
    """Transpile worker - plugin resolution and fetch tools."""
    pass


@cli.command()
@click.argument("name")
@click.option("--preset", is_flag=True, help="Resolve with the preset naming convention")
@click.option(
    "--engine-version",
    type=int,
    default=7,
    show_default=True,
    help="Major version of the target engine",
)
@click.option("--config", "config_path", type=click.Path(exists=True), help="Settings YAML file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def resolve(
    name: str,
    preset: bool,
    engine_version: int,
    config_path: str | None,
    verbose: bool,
) -> None:
    """Resolve a plugin or preset NAME to the package that exists remotely.

    Examples:

        transpile-worker resolve env --preset

        transpile-worker resolve styled-jsx --engine-version 6
    """
    _, fetcher, settings = _setup(config_path, verbose)
    resolver = NameResolver(
        fetcher,
        packages_root=settings.packages_root,
        modern_major=settings.modern_engine_major,
    )

    try:
        canonical = asyncio.run(
            resolver.resolve(name, is_preset=preset, engine_major=engine_version)
        )
    except TranspileError as e:
        click.secho(str(e), fg="red", err=True)
        sys.exit(1)

    click.echo(canonical)


@cli.command()
@click.argument("path")
@click.option("--config", "config_path", type=click.Path(exists=True), help="Settings YAML file")
@click.option("--verbose", "-v", is_flag=True, help="Show debug logging")
def fetch(path: str, config_path: str | None, verbose: bool) -> None:
    """Download PATH into an empty store and list the files it produced.

    Examples:

        transpile-worker fetch /node_modules/babel-plugin-detective
    """
    store, fetcher, _ = _setup(config_path, verbose)

    async def run() -> list[str]:
        await fetcher.ensure_path(path)
        return sorted(store.remote_paths())

    try:
        paths = asyncio.run(run())
    except TranspileError as e:
        click.secho(str(e), fg="red", err=True)
        sys.exit(1)

    for fetched in paths:
        click.echo(f"  {click.style(fetched, fg='cyan')}")


def main() -> None:
    """Entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
