"""
Print row counts per collection, successful-sync totals and recent runs.

Usage:
    python -m scripts.show_summary [--limit N]
"""

import argparse
import asyncio
import sys
from typing import List, Optional
from core.config import settings
from core.database import LocalStore
from core.logging import setup_logging
from replication.ledger import SyncLedger
from replication.reconciler import Reconciler
from replication.report import (
    RULE,
    collect_entity_counts,
    format_entity_counts,
    format_entity_totals,
    format_recent_runs,
)


async def show_summary(limit: int = 10, store: Optional[LocalStore] = None) -> str:
    store = store or LocalStore(settings.DATABASE_URL)
    async with store:
        await store.create_schema()
        counts = await collect_entity_counts(Reconciler(store))
        ledger = SyncLedger(store)
        totals = await ledger.entity_totals()
        runs = await ledger.recent_runs(limit)

    return "\n\n".join([
        RULE,
        format_entity_counts(counts),
        format_entity_totals(totals),
        format_recent_runs(runs),
        RULE,
    ])


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="show_summary", description=__doc__.strip().splitlines()[0])
    parser.add_argument("--limit", type=int, default=10, help="Number of recent runs to list")
    args = parser.parse_args(argv)

    setup_logging("WARNING")
    print(asyncio.run(show_summary(args.limit)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
