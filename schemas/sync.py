"""
Pydantic schemas for sync run statistics and ledger summaries
"""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from datetime import datetime
from uuid import UUID
from models.base import SyncStatus, SyncMode


class SyncStats(BaseModel):
    """
    Running counters for one orchestrator invocation.

    Mutated in place while the run progresses and handed to the ledger
    at completion.
    """

    entity_type: str
    mode: SyncMode = SyncMode.FULL

    fetched: int = 0
    inserted: int = 0
    updated: int = 0
    errors: int = 0
    not_found: int = 0
    details_fetched: int = 0
    requests: int = 0

    # Size of the Phase 2 backlog computed after Phase 1
    missing_ids: Optional[int] = None

    rate_limited: bool = False
    stopped: bool = False
    fatal: bool = False

    error_message: Optional[str] = None
    error_details: List[Dict[str, Any]] = Field(default_factory=list)

    started_at: datetime = Field(default_factory=datetime.utcnow)
    duration_seconds: Optional[float] = None

    def record_outcome(self, outcome: str):
        """Count one reconciliation outcome"""
        if outcome == "inserted":
            self.inserted += 1
        elif outcome == "updated":
            self.updated += 1
        else:
            self.errors += 1

    def add_error(self, detail: Dict[str, Any], limit: int = 50):
        """Count a per-record error and keep the first few details"""
        self.errors += 1
        if len(self.error_details) < limit:
            self.error_details.append(detail)

    def final_status(self) -> SyncStatus:
        """
        Terminal status for the ledger.

        failed  - something escaped the per-record boundary
        partial - halted by throttling or a stop request, or some records failed
        success - everything processed without error
        """
        if self.fatal:
            return SyncStatus.FAILED
        if self.rate_limited or self.stopped or self.errors > 0:
            return SyncStatus.PARTIAL
        return SyncStatus.SUCCESS

    def finish(self):
        self.duration_seconds = round(
            (datetime.utcnow() - self.started_at).total_seconds(), 3
        )


class SyncRunSummary(BaseModel):
    """Ledger row as returned by read queries"""

    id: int
    run_id: UUID
    entity_type: str
    mode: SyncMode
    status: SyncStatus
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: Optional[float] = None
    records_fetched: int = 0
    records_inserted: int = 0
    records_updated: int = 0
    records_failed: int = 0
    records_not_found: int = 0
    details_fetched: int = 0
    requests_made: int = 0
    halted_by_rate_limit: bool = False
    error_message: Optional[str] = None

    class Config:
        from_attributes = True
        use_enum_values = True


class EntityTotals(BaseModel):
    """Aggregate of successful runs for one entity type"""

    entity_type: str
    last_sync: Optional[datetime] = None
    runs: int = 0
    total_fetched: int = 0
    total_inserted: int = 0
    total_updated: int = 0
