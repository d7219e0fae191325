"""
Pydantic schemas for data validation and serialization.

Schemas:
    remote: Page envelope returned by the remote collection endpoints
    sync: Run counters and ledger summaries
    api: Status API responses

Usage:
    from schemas.remote import PageEnvelope
    from schemas.sync import SyncStats, SyncRunSummary
"""

__all__ = [
    "PageEnvelope",
    "SyncStats",
    "SyncRunSummary",
    "EntityTotals",
    "HealthCheckResponse",
    "RunsResponse",
    "StatsResponse",
]
