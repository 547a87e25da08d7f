"""
Command-line interface for curator.

Provides commands to run the ingestion schedulers, trigger single
cycles and run retention by hand.

Usage:
    curator run                  # Run news and video schedulers
    curator once --content-type video
    curator cleanup --dry-run    # Show what retention would delete
    curator purge-rejected       # Delete stale rejected items
    curator purge-inactive       # Delete long-deactivated videos
    curator next-delay           # Print the next scheduled delay
"""

import asyncio
import json
import signal
from collections.abc import Awaitable, Callable
from typing import Any

import click

from curator.ingestion.feeds import create_video_search
from curator.ingestion.schemas import ContentType
from curator.observability.logging import setup_logging
from curator.observability.metrics import get_metrics
from curator.scheduler import IngestionScheduler, NewsScheduler, VideoScheduler
from curator.storage import ContentStore, InMemoryContentStore, RestContentStore

CONTENT_TYPES = ["news", "video", "all"]


def create_store(mock: bool = False) -> ContentStore:
    """In-memory store for --mock runs, the REST content store otherwise."""
    if mock:
        return InMemoryContentStore()
    return RestContentStore()


def create_schedulers(
    content_type: str,
    store: ContentStore,
    mock: bool = False,
) -> list[IngestionScheduler]:
    """Build the schedulers selected by ``--content-type``."""
    schedulers: list[IngestionScheduler] = []
    if content_type in ("news", "all"):
        schedulers.append(NewsScheduler(store))
    if content_type in ("video", "all"):
        schedulers.append(VideoScheduler(store, search=create_video_search(use_sample=mock)))
    return schedulers


def _dump(payload: Any) -> None:
    click.echo(json.dumps(payload, indent=2, default=str))


async def _with_schedulers(
    content_type: str,
    mock: bool,
    action: Callable[[IngestionScheduler], Awaitable[Any]],
) -> list[Any]:
    store = create_store(mock)
    schedulers = create_schedulers(content_type, store, mock)
    try:
        return [await action(s) for s in schedulers]
    finally:
        for scheduler in schedulers:
            await scheduler.pipeline.close()
        await store.close()


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
def main(debug: bool) -> None:
    """Curator - News and video ingestion with moderation and retention."""
    setup_logging(level="DEBUG" if debug else None)


@main.command()
@click.option("--content-type", type=click.Choice(CONTENT_TYPES), default="all", help="Schedulers to run")
@click.option("--mock", is_flag=True, help="Use in-memory store and sample video search")
@click.option("--metrics/--no-metrics", default=True, help="Enable metrics server")
def run(content_type: str, mock: bool, metrics: bool) -> None:
    """Run the ingestion schedulers until interrupted."""

    async def run_schedulers():
        store = create_store(mock)
        schedulers = create_schedulers(content_type, store, mock)

        if metrics:
            get_metrics().start_server()

        # Handle shutdown signals
        async def shutdown():
            for scheduler in schedulers:
                await scheduler.stop()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(shutdown()))

        try:
            await asyncio.gather(*(s.start() for s in schedulers))
        finally:
            await store.close()

    asyncio.run(run_schedulers())


@main.command()
@click.option("--content-type", type=click.Choice(CONTENT_TYPES), default="all", help="Content type to ingest")
@click.option("--mock", is_flag=True, help="Use in-memory store and sample video search")
def once(content_type: str, mock: bool) -> None:
    """Run a single ingestion cycle and print its result as JSON."""

    async def run_cycle(scheduler: IngestionScheduler) -> dict[str, Any]:
        return (await scheduler.run_cycle()).to_dict()

    results = asyncio.run(_with_schedulers(content_type, mock, run_cycle))
    _dump(results[0] if len(results) == 1 else results)


@main.command()
@click.option("--content-type", type=click.Choice(CONTENT_TYPES), default="all", help="Content type to clean up")
@click.option("--dry-run", is_flag=True, help="Plan deletions without deleting")
@click.option("--mock", is_flag=True, help="Use in-memory store")
def cleanup(content_type: str, dry_run: bool, mock: bool) -> None:
    """Run retention once."""

    async def retain(scheduler: IngestionScheduler) -> dict[str, Any]:
        report = await scheduler.run_retention(dry_run=dry_run)
        return report.to_dict()

    _dump(asyncio.run(_with_schedulers(content_type, mock, retain)))


@main.command("purge-rejected")
@click.option("--content-type", type=click.Choice(CONTENT_TYPES), default="all", help="Content type to purge")
@click.option("--days", type=int, default=None, help="Age threshold in days (default from settings)")
@click.option("--mock", is_flag=True, help="Use in-memory store")
def purge_rejected(content_type: str, days: int | None, mock: bool) -> None:
    """Hard-delete rejected items older than the retention threshold."""

    async def purge(scheduler: IngestionScheduler) -> dict[str, Any]:
        return (await scheduler.purge_rejected(days)).to_dict()

    _dump(asyncio.run(_with_schedulers(content_type, mock, purge)))


@main.command("purge-inactive")
@click.option("--content-type", type=click.Choice(CONTENT_TYPES), default="video", help="Content type to purge")
@click.option("--days", type=int, default=None, help="Age threshold in days (default from settings)")
@click.option("--mock", is_flag=True, help="Use in-memory store")
def purge_inactive(content_type: str, days: int | None, mock: bool) -> None:
    """Hard-delete deactivated items older than the inactive threshold."""

    async def purge(scheduler: IngestionScheduler) -> dict[str, Any]:
        return (await scheduler.purge_inactive(days)).to_dict()

    _dump(asyncio.run(_with_schedulers(content_type, mock, purge)))


@main.command("next-delay")
@click.option("--content-type", type=click.Choice(CONTENT_TYPES), default="all", help="Scheduler to query")
@click.option("--mock", is_flag=True, help="Use in-memory store")
def next_delay(content_type: str, mock: bool) -> None:
    """Print the delay each scheduler would wait before its next cycle."""

    async def delay(scheduler: IngestionScheduler) -> tuple[ContentType, float]:
        return scheduler.content_type, await scheduler.next_delay()

    for ct, seconds in asyncio.run(_with_schedulers(content_type, mock, delay)):
        click.echo(f"{ct.value}: {seconds:.0f}s ({seconds / 60:.1f} min)")


if __name__ == "__main__":
    main()
