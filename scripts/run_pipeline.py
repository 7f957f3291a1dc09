"""Manual pipeline runner for one-off refreshes and debugging.

Runs a single pipeline operation against the configured database and
prints the resulting summary.

Usage:
    python scripts/run_pipeline.py deals
    python scripts/run_pipeline.py deals --max-deals 10
    python scripts/run_pipeline.py tracked --owner user-123
    python scripts/run_pipeline.py search "wireless earbuds" --limit 5

Ctrl+C stops a bulk run before its next item and still prints the
partial summary.
"""

import argparse
import asyncio
import os
import signal
import sys
from decimal import Decimal
from typing import Optional

# Add backend to path so we can import dealgalaxy modules
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "backend"))

from dealgalaxy.config import settings  # noqa: E402
from dealgalaxy.core.exceptions import DealGalaxyException  # noqa: E402
from dealgalaxy.core.logging import configure_logging  # noqa: E402
from dealgalaxy.db.session import async_session_factory, create_tables  # noqa: E402
from dealgalaxy.scrapers.amazon import AmazonScraper  # noqa: E402
from dealgalaxy.scrapers.scraper_service import ScraperService  # noqa: E402


def _install_cancel_handler(cancel_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)
    except NotImplementedError:
        # Windows event loops have no signal handlers; Ctrl+C aborts immediately
        pass


def _print_summary(title: str, summary: dict) -> None:
    print(f"\n{'=' * 70}")
    print(f"  {title}")
    print(f"{'=' * 70}")
    for key, value in summary.items():
        print(f"  {key.replace('_', ' ').capitalize():<20} {value}")
    print(f"{'=' * 70}\n")


def _format_price(price: Optional[Decimal]) -> str:
    return f"₹{price:,.2f}" if price is not None else "n/a"


async def run(args: argparse.Namespace) -> int:
    config = settings.pipeline_config()
    cancel_event = asyncio.Event()
    _install_cancel_handler(cancel_event)

    await create_tables()

    async with async_session_factory() as db, AmazonScraper(config) as scraper:
        service = ScraperService(db, scraper, config)

        if args.command == "deals":
            summary = await service.refresh_deals(
                max_deals=args.max_deals, cancel_event=cancel_event
            )
            _print_summary("Deal Refresh", summary.as_dict())

        elif args.command == "tracked":
            summary = await service.refresh_tracked_prices(
                args.owner, cancel_event=cancel_event
            )
            _print_summary(f"Tracked Prices ({args.owner})", summary.as_dict())

        elif args.command == "search":
            results = await service.search_products(args.keyword, limit=args.limit)
            if not results:
                print("No results found.\n")
            for i, result in enumerate(results, 1):
                print(f"[{i}] {result.title}")
                print(f"    ASIN:     {result.asin or 'n/a'}")
                print(f"    Price:    {_format_price(result.price)}")
                if result.discount_percentage:
                    print(f"    Discount: {result.discount_percentage}%")
                print(f"    URL:      {result.affiliate_url}")
                print()

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run one DealGalaxy pipeline operation")
    subparsers = parser.add_subparsers(dest="command", required=True)

    deals = subparsers.add_parser("deals", help="Refresh the deal cache")
    deals.add_argument("--max-deals", type=int, default=None, help="Cap on listing entries")

    tracked = subparsers.add_parser("tracked", help="Refresh one owner's tracked prices")
    tracked.add_argument("--owner", required=True, help="Owner id")

    search = subparsers.add_parser("search", help="Run a keyword search")
    search.add_argument("keyword", help="Search keyword")
    search.add_argument("--limit", type=int, default=10, help="Maximum results")

    return parser


def main() -> None:
    args = build_parser().parse_args()
    configure_logging(settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    try:
        sys.exit(asyncio.run(run(args)))
    except DealGalaxyException as e:
        print(f"\nError: {type(e).__name__}: {e.message}\n", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
