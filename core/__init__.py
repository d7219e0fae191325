"""
Core utilities and configuration for the Flex replication engine.

This package provides foundational components used throughout the engine:

Modules:
    config: Application configuration and environment variable management
    database: LocalStore handle (engine + session factory with open/close lifecycle)
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import LocalStore
    from core.exceptions import AuthError, RateLimitedError
    from core.logging import setup_logging

Example:
    setup_logging()

    async with LocalStore(settings.DATABASE_URL) as store:
        await store.create_schema()
        async with store.session() as session:
            ...
"""

__all__ = [
    "settings",
    "LocalStore",
    "setup_logging",
    # Exceptions
    "SyncException",
    "RetryableError",
    "NonRetryableError",
    "RemoteAPIError",
    "AuthError",
    "RateLimitedError",
    "TransientNetworkError",
    "PaginationError",
    "MappingError",
    "StoreError",
    "DatabaseError",
    "ReconciliationError",
    "LedgerError",
    "FatalRunError",
]
