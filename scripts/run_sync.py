"""
Run a sync for one entity type, or for all of them.

Usage:
    python -m scripts.run_sync contacts
    python -m scripts.run_sync inventory_models --quick
    python -m scripts.run_sync serial_units --details-only
    python -m scripts.run_sync all

Exit status is 0 when every run ended success or partial, 1 otherwise.
A summary is printed whatever the outcome; SIGINT / SIGTERM stop the run
after the record in flight so it can be resumed later.
"""

import argparse
import asyncio
import signal
import sys
import logging
from typing import List, Optional
from core.config import settings
from core.database import LocalStore
from core.exceptions import FatalRunError
from core.logging import setup_logging
from models.base import SyncMode, SyncStatus
from replication.client import RemoteAPIClient
from replication.mappings import COLLECTIONS
from replication.orchestrator import SyncOrchestrator
from replication.report import format_batch_summary, format_summary

logger = logging.getLogger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="run_sync",
        description="Replicate Flex API collections into the local store"
    )
    parser.add_argument(
        "entity_type",
        choices=sorted(COLLECTIONS) + ["all"],
        help="Collection to sync, or 'all' for every collection in dependency order"
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--quick",
        action="store_true",
        help="List phase only, skip per-record detail fetches"
    )
    mode.add_argument(
        "--details-only",
        action="store_true",
        help="Detail phase only, resume the backlog left by earlier runs"
    )
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    return parser.parse_args(argv)


def selected_mode(args: argparse.Namespace) -> SyncMode:
    if args.quick:
        return SyncMode.LIST
    if args.details_only:
        return SyncMode.DETAILS
    return SyncMode.FULL


def install_stop_handlers(orchestrator: SyncOrchestrator):
    """Route SIGINT / SIGTERM to a cooperative stop"""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.request_stop)
        except NotImplementedError:
            # Windows event loops have no add_signal_handler
            signal.signal(sig, orchestrator.request_stop)


async def run_sync(
    args: argparse.Namespace,
    store: Optional[LocalStore] = None,
    client: Optional[RemoteAPIClient] = None,
    install_signals: bool = True
) -> int:
    """Run the requested sync and print its summary. Returns the exit status."""
    if client is None and not settings.FLEX_API_KEY:
        print("FLEX_API_KEY is not set (environment or .env)", file=sys.stderr)
        return 1

    mode = selected_mode(args)
    store = store or LocalStore(settings.DATABASE_URL)
    client = client or RemoteAPIClient()

    async with store, client:
        await store.create_schema()
        orchestrator = SyncOrchestrator(store, client)
        if install_signals:
            install_stop_handlers(orchestrator)

        if args.entity_type == "all":
            results = await orchestrator.run_all(mode=mode)
            for stats in results:
                print(format_summary(stats))
            print(format_batch_summary(results))
            failed = [s for s in results if s.final_status() == SyncStatus.FAILED]
            return 1 if failed else 0

        try:
            stats = await orchestrator.run(args.entity_type, mode)
        except FatalRunError as e:
            if e.stats is not None:
                print(format_summary(e.stats))
            print(f"Sync failed: {e.original_exception or e.message}", file=sys.stderr)
            return 1

        print(format_summary(stats))
        return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)
    return asyncio.run(run_sync(args))


if __name__ == "__main__":
    sys.exit(main())
