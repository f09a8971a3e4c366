"""GroceryWatch command-line runner.

Usage:
    # Create the database tables
    grocerywatch init-db

    # Register a store (strategy selected by code)
    grocerywatch add-store TNT "T&T Supermarket" https://www.tntsupermarket.com

    # Scrape one store and wait for the job to finish
    grocerywatch scrape TNT

    # Scrape every active store
    grocerywatch scrape --all

    # Show the latest job of a store
    grocerywatch status TNT

    # List price drops of at least 20% against 1-2 days ago
    grocerywatch drops --min 20 --limit 50

    # Run the cron scheduler in the foreground
    grocerywatch schedule
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import structlog

from grocerywatch.app import GroceryWatchApp
from grocerywatch.config import settings
from grocerywatch.core.exceptions import GroceryWatchError
from grocerywatch.core.logging import configure_logging
from grocerywatch.models.scrape_job import JobStatus
from grocerywatch.schemas import PriceDropResponse, ScrapeJobStatus
from grocerywatch.services.price_analysis import PriceAnalyzer

logger = structlog.get_logger(__name__)


def print_job(job: ScrapeJobStatus) -> None:
    print(
        f"{job.store_code:<12} {job.status.value:<10} "
        f"total={job.total_products} ok={job.success_count} errors={job.error_count} "
        f"id={job.id}"
    )
    for message in job.error_messages[:5]:
        print(f"    ! {message}")
    if len(job.error_messages) > 5:
        print(f"    ... {len(job.error_messages) - 5} more")


async def cmd_init_db(app: GroceryWatchApp, args: argparse.Namespace) -> int:
    await app.init_db()
    print("Database tables created")
    return 0


async def cmd_add_store(app: GroceryWatchApp, args: argparse.Namespace) -> int:
    config = json.loads(args.config) if args.config else None
    store = await app.add_store(args.code, args.name, args.base_url, config)
    print(f"Saved store {store.code} ({store.name})")
    return 0


async def cmd_scrape(app: GroceryWatchApp, args: argparse.Namespace) -> int:
    if args.all:
        jobs = await app.orchestrator.trigger_scrape_all()
    elif args.store_code:
        jobs = [await app.orchestrator.trigger_scrape(args.store_code)]
    else:
        print("Specify a store code or --all", file=sys.stderr)
        return 2

    if not jobs:
        print("No scrape jobs started")
        return 1
    if args.no_wait:
        for job in jobs:
            print_job(job)
        return 0

    failed = 0
    for job in jobs:
        final = await app.orchestrator.wait_for(job.id)
        if final is None:
            continue
        print_job(final)
        if final.status is JobStatus.FAILED:
            failed += 1
    return 1 if failed else 0


async def cmd_status(app: GroceryWatchApp, args: argparse.Namespace) -> int:
    job = await app.orchestrator.get_latest_job(args.store_code)
    if job is None:
        print(f"No jobs for store {args.store_code}")
        return 1
    print_job(job)
    return 0


async def cmd_drops(app: GroceryWatchApp, args: argparse.Namespace) -> int:
    async with app.session_factory() as db:
        drops = await PriceAnalyzer(db).get_recent_price_drops(args.min, args.limit)

    if args.json:
        payload = [PriceDropResponse.model_validate(d).model_dump(mode="json") for d in drops]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return 0

    if not drops:
        print("No price drops found")
        return 0
    for drop in drops:
        print(
            f"{drop.drop_percentage:>7.2f}%  {drop.store_code:<12} "
            f"${drop.previous_price} -> ${drop.current_price}  {drop.product_name}"
        )
    return 0


async def cmd_schedule(app: GroceryWatchApp, args: argparse.Namespace) -> int:
    if not settings.SCHEDULER_ENABLED:
        logger.warning("scheduler_disabled")
        print("Scheduler is disabled (SCHEDULER_ENABLED=false)", file=sys.stderr)
        return 1

    app.scheduler.start()
    print(f"Scheduler running with cron '{app.scheduler.cron}' (Ctrl+C to stop)")
    try:
        await asyncio.Event().wait()
    finally:
        app.scheduler.stop()
    return 0


COMMANDS = {
    "init-db": cmd_init_db,
    "add-store": cmd_add_store,
    "scrape": cmd_scrape,
    "status": cmd_status,
    "drops": cmd_drops,
    "schedule": cmd_schedule,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="grocerywatch",
        description="Grocery price tracker: scrape stores, record prices, find price drops.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    parser.add_argument("--log-level", default=None, help=f"Log level (default {settings.LOG_LEVEL})")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create database tables")

    add_store = sub.add_parser("add-store", help="Register or update a store")
    add_store.add_argument("code", help="Store code, e.g. TNT or PRICESMART")
    add_store.add_argument("name")
    add_store.add_argument("base_url")
    add_store.add_argument("--config", default=None, help="Scraper config as a JSON object")

    scrape = sub.add_parser("scrape", help="Trigger a scrape")
    scrape.add_argument("store_code", nargs="?", help="Store code to scrape")
    scrape.add_argument("--all", action="store_true", help="Scrape every active store")
    scrape.add_argument("--no-wait", action="store_true", help="Return once the jobs are created")

    status = sub.add_parser("status", help="Show a store's latest scrape job")
    status.add_argument("store_code")

    drops = sub.add_parser("drops", help="List recent price drops")
    drops.add_argument("--min", type=float, default=0, help="Minimum drop percentage")
    drops.add_argument("--limit", type=int, default=50)
    drops.add_argument("--json", action="store_true", help="Print JSON")

    sub.add_parser("schedule", help="Run the periodic scrape scheduler")

    return parser


async def run(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)

    async with GroceryWatchApp(database_url=args.database_url) as app:
        try:
            return await COMMANDS[args.command](app, args)
        except GroceryWatchError as e:
            logger.error("command_failed", command=args.command, error=e.message)
            print(f"Error: {e.message}", file=sys.stderr)
            return 1


def main(argv: Optional[List[str]] = None) -> None:
    try:
        sys.exit(asyncio.run(run(argv)))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
