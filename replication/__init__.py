"""
Replication engine: copies Flex API collections into the local store.

Modules:
    retry: Bounded retry loop with error classification and back-off
    client: httpx client for the remote collection endpoints
    fetcher: Paginated enumeration of a collection
    mappings: Declarative mapping table (collection -> columns)
    reconciler: Generic insert-or-update of one remote record
    ledger: Sync audit ledger (sync_runs)
    orchestrator: Two-phase, resumable sync of one entity type
    report: Plain-text summaries for the CLI scripts

Architecture:
    Phase 1 lists a collection and reconciles the cheap list columns.
    Phase 2 fetches each record not yet marked detail_fetched and merges
    the detail payload. Progress is stored in the entity tables, so an
    interrupted run is resumed by running it again.

Usage:
    async with LocalStore() as store, RemoteAPIClient() as client:
        await store.create_schema()
        orchestrator = SyncOrchestrator(store, client)
        stats = await orchestrator.run("contacts", SyncMode.FULL)
"""

__all__ = [
    "RetryExecutor",
    "RemoteAPIClient",
    "PaginatedFetcher",
    "Reconciler",
    "SyncLedger",
    "SyncOrchestrator",
    "COLLECTIONS",
]
