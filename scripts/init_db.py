"""
Create every table of the local store.

Usage:
    python -m scripts.init_db
"""

import asyncio
import sys
import logging
from core.config import settings
from core.database import LocalStore
from core.exceptions import DatabaseError
from core.logging import setup_logging

logger = logging.getLogger(__name__)


async def init_database(database_url: str = None) -> int:
    logger.info("Connecting to local store...")
    try:
        async with LocalStore(database_url or settings.DATABASE_URL) as store:
            logger.info("Creating tables...")
            await store.create_schema()
    except DatabaseError as e:
        logger.error(f"Schema creation failed: {e}", extra={"error_context": e.to_dict()})
        return 1
    logger.info("Tables created successfully.")
    return 0


def main() -> int:
    setup_logging()
    return asyncio.run(init_database())


if __name__ == "__main__":
    sys.exit(main())
