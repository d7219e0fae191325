"""
Replication statistics endpoint
"""

from fastapi import APIRouter, Depends, HTTPException
from api.dependencies import get_ledger, get_reconciler
from core.exceptions import DatabaseError
from replication.ledger import SyncLedger
from replication.reconciler import Reconciler
from replication.report import collect_entity_counts
from schemas.api import EntityStatistics, StatsResponse
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Statistics"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    ledger: SyncLedger = Depends(get_ledger),
    reconciler: Reconciler = Depends(get_reconciler)
):
    """
    Get replication statistics.

    Returns:
    - Local row count and detail progress per entity type
    - Last successful run and successful-run totals per entity type
    """
    try:
        counts = await collect_entity_counts(reconciler)
        last_success = await ledger.last_successful_per_entity()
        totals = {t.entity_type: t for t in await ledger.entity_totals()}
    except DatabaseError as e:
        logger.error(f"Failed to compute stats: {e.message}", extra={"error_context": e.to_dict()})
        raise HTTPException(status_code=503, detail="Local store unavailable")

    entities = []
    for count in counts:
        total = totals.get(count.entity_type)
        entities.append(EntityStatistics(
            **count.model_dump(),
            last_successful_run=last_success.get(count.entity_type),
            successful_runs=total.runs if total else 0,
            total_fetched=total.total_fetched if total else 0
        ))

    return StatsResponse(
        total_records=sum(c.rows for c in counts),
        pending_details=sum(c.detail_pending or 0 for c in counts),
        entities=entities
    )
