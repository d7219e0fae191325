"""
Sync audit ledger.

One SyncRun row per orchestrator invocation: created as ``running`` when the
run starts and completed exactly once with the final counts. The ledger is
for humans and the status API; resumption never reads it.
"""

from datetime import datetime
from typing import Dict, List, Optional
from uuid import UUID
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from core.database import LocalStore
from core.exceptions import DatabaseError, LedgerError
from models.base import SyncMode, SyncStatus
from models.sync_run import SyncRun
from schemas.sync import EntityTotals, SyncRunSummary, SyncStats
import logging

logger = logging.getLogger(__name__)


class SyncLedger:
    """Read and write access to the sync_runs table"""

    def __init__(self, store: LocalStore):
        self.store = store

    async def start(self, entity_type: str, mode: SyncMode = SyncMode.FULL) -> UUID:
        """Create a ``running`` ledger row and return its run_id"""
        run = SyncRun(
            entity_type=entity_type,
            mode=mode,
            status=SyncStatus.RUNNING,
            started_at=datetime.utcnow(),
            records_fetched=0,
            records_inserted=0,
            records_updated=0,
            records_failed=0,
            records_not_found=0,
            details_fetched=0,
            requests_made=0,
            halted_by_rate_limit=False
        )
        try:
            async with self.store.session() as session:
                session.add(run)
                await session.commit()
                await session.refresh(run)
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to create sync run",
                context={"operation": "INSERT", "table_name": "sync_runs", "entity_type": entity_type},
                original_exception=e
            )

        logger.debug(f"Ledger: started run {run.run_id} for {entity_type} ({mode.value})")
        return run.run_id

    async def complete(self, run_id: UUID, stats: SyncStats) -> SyncRunSummary:
        """
        Write the final status and counts of a run.

        Raises:
            LedgerError: Unknown run_id, or the run was already completed
        """
        status = stats.final_status()

        try:
            async with self.store.session() as session:
                result = await session.execute(
                    select(SyncRun).where(SyncRun.run_id == run_id)
                )
                run = result.scalar_one_or_none()

                if run is None:
                    raise LedgerError("Unknown sync run", context={"run_id": run_id})
                if run.status != SyncStatus.RUNNING:
                    raise LedgerError(
                        "Sync run already completed",
                        context={"run_id": run_id, "status": run.status.value}
                    )

                run.status = status
                run.completed_at = datetime.utcnow()
                run.duration_seconds = (
                    stats.duration_seconds
                    if stats.duration_seconds is not None
                    else (run.completed_at - run.started_at).total_seconds()
                )
                run.records_fetched = stats.fetched
                run.records_inserted = stats.inserted
                run.records_updated = stats.updated
                run.records_failed = stats.errors
                run.records_not_found = stats.not_found
                run.details_fetched = stats.details_fetched
                run.requests_made = stats.requests
                run.halted_by_rate_limit = stats.rate_limited
                run.error_message = stats.error_message or (
                    f"{stats.errors} records failed" if stats.errors else None
                )
                run.error_details = stats.error_details or None

                await session.commit()
                summary = SyncRunSummary.model_validate(run)

        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to complete sync run",
                context={"operation": "UPDATE", "table_name": "sync_runs", "run_id": run_id},
                original_exception=e
            )

        logger.info(
            f"Ledger: run {run_id} for {stats.entity_type} finished {status.value} - "
            f"fetched={stats.fetched} inserted={stats.inserted} "
            f"updated={stats.updated} errors={stats.errors}"
        )
        return summary

    async def get_run(self, run_id: UUID) -> Optional[SyncRunSummary]:
        run = await self._first(select(SyncRun).where(SyncRun.run_id == run_id))
        return SyncRunSummary.model_validate(run) if run else None

    async def recent_runs(self, limit: int = 20, entity_type: Optional[str] = None) -> List[SyncRunSummary]:
        """Most recent runs first"""
        query = select(SyncRun).order_by(SyncRun.started_at.desc(), SyncRun.id.desc()).limit(limit)
        if entity_type:
            query = query.where(SyncRun.entity_type == entity_type)
        runs = await self._all(query)
        return [SyncRunSummary.model_validate(run) for run in runs]

    async def last_successful(self, entity_type: str) -> Optional[SyncRunSummary]:
        run = await self._first(
            select(SyncRun)
            .where(
                SyncRun.entity_type == entity_type,
                SyncRun.status == SyncStatus.SUCCESS
            )
            .order_by(SyncRun.id.desc())
            .limit(1)
        )
        return SyncRunSummary.model_validate(run) if run else None

    async def last_successful_per_entity(self) -> Dict[str, SyncRunSummary]:
        return await self._latest_per_entity(SyncStatus.SUCCESS)

    async def last_run_per_entity(self) -> Dict[str, SyncRunSummary]:
        return await self._latest_per_entity(None)

    async def entity_totals(self) -> List[EntityTotals]:
        """Aggregate successful runs per entity type"""
        query = (
            select(
                SyncRun.entity_type,
                func.max(SyncRun.completed_at).label("last_sync"),
                func.count(SyncRun.id).label("runs"),
                func.coalesce(func.sum(SyncRun.records_fetched), 0).label("total_fetched"),
                func.coalesce(func.sum(SyncRun.records_inserted), 0).label("total_inserted"),
                func.coalesce(func.sum(SyncRun.records_updated), 0).label("total_updated"),
            )
            .where(SyncRun.status == SyncStatus.SUCCESS)
            .group_by(SyncRun.entity_type)
            .order_by(SyncRun.entity_type)
        )
        try:
            async with self.store.session() as session:
                result = await session.execute(query)
                rows = result.mappings().all()
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to aggregate sync runs",
                context={"operation": "SELECT", "table_name": "sync_runs"},
                original_exception=e
            )
        return [EntityTotals(**dict(row)) for row in rows]

    async def _latest_per_entity(self, status: Optional[SyncStatus]) -> Dict[str, SyncRunSummary]:
        latest = select(
            SyncRun.entity_type,
            func.max(SyncRun.id).label("max_id")
        )
        if status is not None:
            latest = latest.where(SyncRun.status == status)
        latest = latest.group_by(SyncRun.entity_type).subquery()

        runs = await self._all(
            select(SyncRun)
            .join(latest, SyncRun.id == latest.c.max_id)
            .order_by(SyncRun.entity_type)
        )
        return {run.entity_type: SyncRunSummary.model_validate(run) for run in runs}

    async def _first(self, query) -> Optional[SyncRun]:
        runs = await self._all(query)
        return runs[0] if runs else None

    async def _all(self, query) -> List[SyncRun]:
        try:
            async with self.store.session() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read sync runs",
                context={"operation": "SELECT", "table_name": "sync_runs"},
                original_exception=e
            )
