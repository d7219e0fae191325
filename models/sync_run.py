from sqlalchemy import Column, String, Enum, DateTime, Float, Integer, Text, Boolean, Index
from sqlalchemy.types import Uuid
from datetime import datetime
import uuid
from models.base import Base, BigIntegerPK, JSONType, SyncStatus, SyncMode


class SyncRun(Base):
    """
    Audit ledger: one row per orchestrator invocation for one entity type.

    Purpose:
    - Audit trail of all sync runs
    - Human-facing summaries (recent runs, last success per entity type)
    - Error tracking and debugging

    Lifecycle is strictly linear: running -> success | partial | failed.
    A row is created at run start and updated exactly once at completion.
    Resumption does not read this table; it is driven by detail_fetched.
    """
    __tablename__ = "sync_runs"

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    run_id = Column(Uuid(as_uuid=True), default=uuid.uuid4, unique=True, nullable=False, index=True)

    # What was synchronized
    entity_type = Column(String(100), nullable=False, index=True)
    mode = Column(Enum(SyncMode), default=SyncMode.FULL, nullable=False)

    # Run status
    status = Column(Enum(SyncStatus), default=SyncStatus.RUNNING, nullable=False, index=True)

    # Timestamps
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    completed_at = Column(DateTime, nullable=True)
    duration_seconds = Column(Float, nullable=True)

    # Counts
    records_fetched = Column(Integer, default=0)
    records_inserted = Column(Integer, default=0)
    records_updated = Column(Integer, default=0)
    records_failed = Column(Integer, default=0)
    records_not_found = Column(Integer, default=0)
    details_fetched = Column(Integer, default=0)
    requests_made = Column(Integer, default=0)

    # Halt / error tracking
    halted_by_rate_limit = Column(Boolean, default=False, nullable=False)
    error_message = Column(Text, nullable=True)
    error_details = Column(JSONType, nullable=True)

    __table_args__ = (
        Index("idx_sync_run_entity_started", "entity_type", "started_at"),
        Index("idx_sync_run_status", "status", "started_at"),
    )
