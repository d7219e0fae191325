"""
Health check endpoint with store connectivity and last run per entity type
"""

from fastapi import APIRouter, Depends
from api.dependencies import get_store
from core.database import LocalStore
from core.exceptions import DatabaseError
from models.base import SyncStatus
from replication.ledger import SyncLedger
from schemas.api import HealthCheckResponse
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthCheckResponse)
async def health_check(store: LocalStore = Depends(get_store)):
    """
    Health check endpoint.

    Returns:
    - Local store connectivity
    - The latest run of every entity type that has been synced
    """
    db_connected = await store.ping()

    last_runs = {}
    if db_connected:
        try:
            last_runs = await SyncLedger(store).last_run_per_entity()
        except DatabaseError as e:
            logger.error(
                f"Failed to read sync ledger: {e.message}",
                extra={"error_context": e.to_dict()}
            )

    failed = sum(1 for run in last_runs.values() if run.status == SyncStatus.FAILED.value)

    return HealthCheckResponse(
        status="healthy",  # recomputed by the validator
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        last_runs=last_runs,
        total_entity_types=len(last_runs),
        failed_entity_types=failed
    )
