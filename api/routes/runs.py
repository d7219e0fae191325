"""
Sync run history endpoint
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from api.dependencies import get_ledger
from core.exceptions import DatabaseError
from replication.ledger import SyncLedger
from replication.mappings import COLLECTIONS
from schemas.api import RunsResponse
from typing import Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Runs"])


@router.get("/runs", response_model=RunsResponse)
async def get_runs(
    limit: int = Query(20, ge=1, le=200, description="Number of recent runs to return"),
    entity_type: Optional[str] = Query(None, description="Only runs of this entity type"),
    ledger: SyncLedger = Depends(get_ledger)
):
    """Most recent sync runs, newest first"""
    if entity_type is not None and entity_type not in COLLECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown entity type '{entity_type}'")

    try:
        runs = await ledger.recent_runs(limit=limit, entity_type=entity_type)
    except DatabaseError as e:
        logger.error(f"Failed to read sync runs: {e.message}", extra={"error_context": e.to_dict()})
        raise HTTPException(status_code=503, detail="Sync ledger unavailable")

    return RunsResponse(count=len(runs), runs=runs)
