"""Command-line helpers for the weekly summary, one-off polls and backfills."""

from __future__ import annotations

import argparse
import asyncio
import datetime as dt
import typing as typ

import msgspec

from devpulse.metrics.errors import AggregationError
from devpulse.metrics.markdown import format_metrics_as_markdown
from devpulse.services import build_services, resolve_database_url

if typ.TYPE_CHECKING:
    from devpulse.polling.scheduler import PollCycleResult
    from devpulse.services import ServiceContainer

# GitHub stops listing commits after 10,000 results, i.e. 100 pages of 100.
SEED_MAX_PAGES = 100


async def _summary(services: ServiceContainer, *, markdown: bool) -> int:
    try:
        metrics = await services.metrics_service.compute_weekly_metrics()
    except AggregationError as exc:
        print(f"Could not compute weekly metrics: {exc}")
        return 1
    if markdown:
        print(format_metrics_as_markdown(metrics), end="")
    else:
        print(msgspec.json.format(msgspec.json.encode(metrics)).decode())
    return 0


def _print_cycle(cycle: PollCycleResult) -> None:
    for result in cycle.results:
        print(
            f"{result.provider}: {result.projects_scanned} projects, "
            f"{result.ingestion.inserted} inserted, "
            f"{result.ingestion.skipped} skipped, "
            f"{result.ingestion.failed} failed"
        )
    for failure in cycle.failures:
        print(f"{failure.provider}: scan failed: {failure.error}")
    for provider in cycle.skipped_providers:
        print(f"{provider}: not configured")


def _report(cycle: PollCycleResult | None) -> int:
    if cycle is None:
        print("A poll cycle is already running")
        return 1
    _print_cycle(cycle)
    return 1 if cycle.failures else 0


async def _poll(services: ServiceContainer) -> int:
    return _report(await services.scheduler.run_cycle())


async def _seed(services: ServiceContainer, since: dt.date) -> int:
    start = dt.datetime.combine(since, dt.time(), tzinfo=dt.UTC)
    print(f"Seeding activity since {start.isoformat()}")
    return _report(await services.scheduler.backfill(start))


async def _run(args: argparse.Namespace) -> int:
    seeding = args.command == "seed"
    services = build_services(
        args.database_url, max_pages=SEED_MAX_PAGES if seeding else None
    )
    try:
        await services.start_storage()
        if args.command == "summary":
            return await _summary(services, markdown=args.markdown)
        if seeding:
            return await _seed(services, args.since)
        return await _poll(services)
    finally:
        await services.aclose()


def main(argv: list[str] | None = None) -> int:
    """Print the weekly summary, run one poll cycle or backfill history.

    Parameters
    ----------
    argv : list[str] | None, optional
        Command-line arguments. ``None`` defaults to ``sys.argv``.

    Returns
    -------
    int
        Exit code: 0 on success, 1 when the command could not complete.

    """
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "--database-url",
        default=resolve_database_url(),
        help="SQLAlchemy async database URL (default: DEVPULSE_DATABASE_URL)",
    )
    commands = parser.add_subparsers(dest="command", required=True)
    summary = commands.add_parser("summary", help="Print the trailing 7-day summary")
    summary.add_argument(
        "--markdown", action="store_true", help="Render the summary as Markdown"
    )
    commands.add_parser("poll", help="Scan every configured provider once")
    seed = commands.add_parser(
        "seed", help="Backfill provider activity from a start date"
    )
    seed.add_argument(
        "--since",
        type=dt.date.fromisoformat,
        default=dt.date(dt.datetime.now(dt.UTC).year, 1, 1),
        help="First UTC day to backfill, YYYY-MM-DD (default: 1 January this year)",
    )
    args = parser.parse_args(argv)

    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
