"""Sync entrypoint - Standalone script for running one sync job.

Usage:
    python -m marketsync.sync_entrypoint live        # One live snapshot cycle
    python -m marketsync.sync_entrypoint backfill    # Backfill empty timeframes for the tracked universe
    python -m marketsync.sync_entrypoint update      # Append one synthetic point per timeframe
"""

import asyncio
import sys

from marketsync.core.config import settings
from marketsync.core.db import SessionLocal
from marketsync.core.logging import get_logger
from marketsync.ingestion.errors import ConfigurationError
from marketsync.services.scheduler import build_syncers

logger = get_logger("sync_entrypoint")

JOBS = ("live", "backfill", "update")


async def run_job(job: str) -> dict:
    """Run a single sync job to completion."""
    live, history = build_syncers(settings, SessionLocal)
    logger.info(f"Starting sync job: {job}")
    if job == "live":
        result = await live.run_cycle()
    elif job == "backfill":
        result = await history.sync_all()
    else:
        result = await history.update_all()
    logger.info(f"Sync job {job} completed: {result}")
    return result


def main(argv: list[str] | None = None) -> dict:
    """Main entry point for one-off sync runs."""
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 1 or args[0] not in JOBS:
        logger.error(f"Usage: python -m marketsync.sync_entrypoint {{{'|'.join(JOBS)}}}")
        sys.exit(2)

    try:
        result = asyncio.run(run_job(args[0]))
    except ConfigurationError as exc:
        logger.error(f"Configuration error: {exc}")
        sys.exit(1)

    if not result.get("success", False) or result.get("failed"):
        sys.exit(1)
    return result


if __name__ == "__main__":
    main()
