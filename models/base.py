from datetime import datetime
from sqlalchemy import Column, String, BigInteger, Integer, DateTime, Boolean, JSON
from sqlalchemy.orm import declarative_base
from sqlalchemy.dialects.postgresql import JSONB
import enum

Base = declarative_base()

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests and local runs)
JSONType = JSON().with_variant(JSONB(), "postgresql")

# SQLite only autoincrements INTEGER PRIMARY KEY columns
BigIntegerPK = BigInteger().with_variant(Integer(), "sqlite")


# ============================================================================
# ENUMS
# ============================================================================

class SyncStatus(str, enum.Enum):
    """Sync run terminal status"""
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


class SyncMode(str, enum.Enum):
    """Which phases a sync run executes"""
    FULL = "full"        # Phase 1 then Phase 2
    LIST = "list"        # Phase 1 only (quick mode)
    DETAILS = "details"  # Phase 2 only (resume detail backlog)


# ============================================================================
# MIXINS
# ============================================================================

class RemoteEntityMixin:
    """
    Columns shared by every replicated entity table.

    - remote_id is the natural key used for reconciliation
    - raw_payload holds the last-seen remote record verbatim
    - created_at is set once, updated_at on every reconciliation
    """

    id = Column(BigIntegerPK, primary_key=True, autoincrement=True)
    remote_id = Column(String(64), unique=True, nullable=False, index=True)

    raw_payload = Column(JSONType, nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


class DetailFetchMixin:
    """
    Resumption checkpoint for two-phase entity types.

    detail_fetched starts false when a row is created from list data and is
    set true only after its detail payload has been reconciled. Rows whose
    detail endpoint answers 404 are flagged remote_missing and leave the
    backlog until the list endpoint reports them again.
    """

    detail_fetched = Column(Boolean, nullable=False, default=False, index=True)
    detail_fetched_at = Column(DateTime, nullable=True)
    detail_payload = Column(JSONType, nullable=True)
    remote_missing = Column(Boolean, nullable=False, default=False)
