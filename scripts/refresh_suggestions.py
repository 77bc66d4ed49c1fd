"""
Refresh every suggestion cache and expire stale rows.

Meant to run periodically (cron, systemd timer):
    python scripts/refresh_suggestions.py
    python scripts/refresh_suggestions.py --expire-only
"""
import argparse
import asyncio
import sys

from readiness_engine.config import get_settings
from readiness_engine.database import async_session_maker, close_db
from readiness_engine.engines.suggestions.cache import SuggestionCache
from readiness_engine.logging_config import configure_logging, get_logger, request_scope

logger = get_logger("refresh_suggestions")


async def run(expire_only: bool = False) -> int:
    async with async_session_maker() as session:
        cache = SuggestionCache(session)
        try:
            expired = await cache.expire_stale()
            refreshed = {"learners": 0, "groups": 0}
            if not expire_only:
                refreshed = await cache.refresh_all()
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Suggestion refresh failed")
            return 1

    logger.info("Suggestion refresh done", extra={"expired": expired, **refreshed})
    return 0


async def main(expire_only: bool = False) -> int:
    settings = get_settings()
    configure_logging(
        log_level=settings.log_level,
        environment=settings.environment,
        debug=settings.debug,
    )
    with request_scope():
        try:
            return await run(expire_only=expire_only)
        finally:
            await close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--expire-only", action="store_true", help="only mark expired rows, skip recomputation")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(expire_only=args.expire_only)))
