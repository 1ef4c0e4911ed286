"""Worker process for the daily annual leave update.

Runs an asyncio loop that applies due grants and expiries once a day.
``annual-leave-daily-update`` runs a single pass for cron and exits non-zero
when any member failed.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from datetime import date

from annual_leave.config import configure_logging, get_settings
from annual_leave.db import dispose_engine, session_scope
from annual_leave.services.daily_update import DailyUpdateResult, run_daily_update

logger = logging.getLogger(__name__)


async def run_once(target_date: date | None = None) -> DailyUpdateResult:
    """Run the daily update for one date in a fresh session."""
    async with session_scope() as session:
        result = await run_daily_update(session, target_date)
    for error in result.errors:
        logger.error("Daily update error: %s", error)
    return result


async def run_daily_loop() -> None:
    """Main worker loop that runs the daily update every interval."""
    interval = get_settings().daily_update_interval_seconds
    logger.info("Annual leave worker started (interval=%ds)", interval)

    while True:
        today = date.today()
        try:
            await run_once(today)
        except Exception:
            logger.exception("Daily update run failed for %s", today)

        await asyncio.sleep(interval)


async def _run_once_and_dispose(target_date: date | None) -> DailyUpdateResult:
    try:
        return await run_once(target_date)
    finally:
        await dispose_engine()


def main() -> None:
    """Entry point for the worker process."""
    configure_logging()
    asyncio.run(run_daily_loop())


def run_once_cli(argv: list[str] | None = None) -> int:
    """Entry point for a single run, e.g. from cron."""
    parser = argparse.ArgumentParser(description="Apply due annual leave grants and expiries.")
    parser.add_argument(
        "--date",
        type=date.fromisoformat,
        default=None,
        help="Date to evaluate as YYYY-MM-DD (defaults to today)",
    )
    args = parser.parse_args(argv)

    configure_logging()
    try:
        result = asyncio.run(_run_once_and_dispose(args.date))
    except Exception:
        logger.exception("Daily update run failed")
        return 1
    return 0 if result.ok else 1


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "once":
        sys.exit(run_once_cli(sys.argv[2:]))
    main()
