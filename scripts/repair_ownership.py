#!/usr/bin/env python3
"""
Check (and optionally repair) that every user's post list matches the posts
they actually created.

  python scripts/repair_ownership.py                 # report only
  python scripts/repair_ownership.py --repair        # fix divergence

Uses DATABASE_URL (or .env) like the API. Exits 1 when divergence is found
and --repair was not given.
"""
import argparse
import asyncio
import logging
import sys

from livefeed.config import settings
from livefeed.database import dispose_db, get_sessionmaker, init_db
from livefeed.ownership import check_ownership, repair_ownership

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s — %(message)s",
)
logger = logging.getLogger("repair_ownership")


async def main(repair: bool) -> int:
    if not settings.database_url:
        logger.error("DATABASE_URL is not set")
        return 2

    await init_db(settings.database_url)
    try:
        async with get_sessionmaker()() as db:
            report = await (repair_ownership(db) if repair else check_ownership(db))
    finally:
        await dispose_db()

    for user_id, post_id in report.missing:
        logger.info("missing reference: user=%s post=%s", user_id, post_id)
    for user_id, post_id in report.dangling:
        logger.info("dangling reference: user=%s post=%s", user_id, post_id)

    if report.consistent:
        logger.info("Post ownership is consistent")
        return 0
    if repair:
        logger.info("Repaired %d references", len(report.missing) + len(report.dangling))
        return 0
    return 1


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Check / repair post ownership lists")
    parser.add_argument("--repair", action="store_true", help="fix divergence in place")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.repair)))
