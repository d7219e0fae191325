"""
Insert-or-update reconciliation of remote records against the local store.

One generic routine serves every collection in the mapping table:

- look up the local row by remote_id
- absent  -> insert mapped columns + raw payload        (outcome "inserted")
- present -> overwrite mapped columns + raw payload     (outcome "updated")

Each record is written and committed on its own, so an interruption loses
at most the record in flight. Mapping errors and rows rejected by the store
are returned as "failed" results; only failures of the store itself are
raised past the per-record boundary.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, NamedTuple, Optional, Set
from sqlalchemy import func, insert, select, update
from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from core.database import LocalStore
from core.exceptions import DatabaseError, MappingError, ReconciliationError, SyncException
from replication.mappings import (
    CollectionSpec,
    extract_remote_id,
    map_record,
)
import logging

logger = logging.getLogger(__name__)

INSERTED = "inserted"
UPDATED = "updated"
FAILED = "failed"


class ReconcileResult(NamedTuple):
    outcome: str
    remote_id: Optional[str]
    error: Optional[SyncException] = None

    @property
    def ok(self) -> bool:
        return self.outcome != FAILED


class Reconciler:
    """
    Generic reconciliation routine driven by CollectionSpec.

    Phases:
        "list"   - Phase 1 / flat sync: overwrite the list columns
        "detail" - Phase 2: merge the detail payload, preferring existing
                   non-null values over nulls, and mark detail_fetched
    """

    def __init__(self, store: LocalStore):
        self.store = store

    async def reconcile(
        self,
        spec: CollectionSpec,
        record: Dict[str, Any],
        phase: str = "list"
    ) -> ReconcileResult:
        """
        Reconcile one remote record. Never raises for per-record problems.

        Raises:
            DatabaseError: The local store failed (connection, schema, lock)
        """
        try:
            remote_id = extract_remote_id(spec, record)
            mappings = spec.fields if phase == "detail" else spec.list_mappings()
            values = map_record(spec, record, mappings)
        except MappingError as e:
            logger.error(
                f"Mapping failed for {spec.name}: {e.message}",
                extra={"error_context": e.to_dict()}
            )
            return ReconcileResult(FAILED, _safe_id(spec, record), e)

        model = spec.model
        table = model.__table__
        now = datetime.utcnow()

        try:
            async with self.store.session() as session:
                result = await session.execute(
                    select(table).where(table.c.remote_id == remote_id)
                )
                existing = result.mappings().first()

                if phase == "detail":
                    values = self._merge(existing, values)
                    if spec.two_phase:
                        values["detail_fetched"] = True
                        values["detail_fetched_at"] = now
                        values["detail_payload"] = record

                if spec.two_phase:
                    values["remote_missing"] = False
                values["raw_payload"] = record
                values["updated_at"] = now

                if existing is None:
                    values["remote_id"] = remote_id
                    values["created_at"] = now
                    await session.execute(insert(table).values(**values))
                    outcome = INSERTED
                else:
                    await session.execute(
                        update(table)
                        .where(table.c.remote_id == remote_id)
                        .values(**values)
                    )
                    outcome = UPDATED

                await session.commit()

        except (IntegrityError, DataError, OverflowError) as e:
            # sqlite3 raises a bare OverflowError for ints wider than 64 bits
            error = ReconciliationError(
                f"Store rejected {spec.name} record",
                context={"collection": spec.name, "remote_id": remote_id},
                original_exception=e
            )
            reason = getattr(e, "orig", e)
            logger.error(
                f"Reconciliation rejected for {spec.name}/{remote_id}: {str(reason)[:200]}",
                extra={"error_context": error.to_dict()}
            )
            return ReconcileResult(FAILED, remote_id, error)

        except SQLAlchemyError as e:
            raise DatabaseError(
                "Local store failed during reconciliation",
                context={
                    "operation": "UPSERT",
                    "table_name": table.name,
                    "remote_id": remote_id
                },
                original_exception=e
            )

        logger.debug(f"{spec.name}/{remote_id} {outcome}")
        return ReconcileResult(outcome, remote_id)

    @staticmethod
    def _merge(existing: Optional[Dict[str, Any]], values: Dict[str, Any]) -> Dict[str, Any]:
        """COALESCE(new, existing): a null in the detail payload keeps the stored value"""
        if existing is None:
            return values
        merged = {}
        for column, value in values.items():
            merged[column] = value if value is not None else existing.get(column)
        return merged

    # ------------------------------------------------------------------
    # Queries used by the orchestrator
    # ------------------------------------------------------------------

    async def detail_done_ids(self, spec: CollectionSpec, remote_ids: Iterable[str]) -> Set[str]:
        """Subset of remote_ids already marked detail_fetched"""
        wanted = list(remote_ids)
        if not wanted or not spec.two_phase:
            return set()

        table = spec.model.__table__
        done: Set[str] = set()
        try:
            async with self.store.session() as session:
                for i in range(0, len(wanted), 500):
                    chunk = wanted[i:i + 500]
                    result = await session.execute(
                        select(table.c.remote_id).where(
                            table.c.remote_id.in_(chunk),
                            table.c.detail_fetched.is_(True)
                        )
                    )
                    done.update(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read detail progress",
                context={"operation": "SELECT", "table_name": table.name},
                original_exception=e
            )
        return done

    async def pending_detail_ids(self, spec: CollectionSpec, limit: Optional[int] = None) -> list:
        """
        Remote ids still waiting for a detail fetch, oldest rows first.

        Ordered by (created_at, id) so successive runs walk the same backlog.
        """
        table = spec.model.__table__
        query = (
            select(table.c.remote_id)
            .where(*_pending_detail(table))
            .order_by(table.c.created_at, table.c.id)
        )
        if limit:
            query = query.limit(limit)

        try:
            async with self.store.session() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read pending detail backlog",
                context={"operation": "SELECT", "table_name": table.name},
                original_exception=e
            )

    async def mark_missing(self, spec: CollectionSpec, remote_id: str) -> None:
        """Take a row out of the detail backlog after its detail endpoint answered 404"""
        table = spec.model.__table__
        try:
            async with self.store.session() as session:
                await session.execute(
                    update(table)
                    .where(table.c.remote_id == remote_id)
                    .values(remote_missing=True, updated_at=datetime.utcnow())
                )
                await session.commit()
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to flag missing record",
                context={"operation": "UPDATE", "table_name": table.name, "remote_id": remote_id},
                original_exception=e
            )

    async def count(self, spec: CollectionSpec, detail_fetched: Optional[bool] = None) -> int:
        table = spec.model.__table__
        query = select(func.count()).select_from(table)
        if detail_fetched is not None and spec.two_phase:
            query = query.where(table.c.detail_fetched.is_(detail_fetched))

        try:
            async with self.store.session() as session:
                result = await session.execute(query)
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to count rows",
                context={"operation": "SELECT", "table_name": table.name},
                original_exception=e
            )

    async def count_pending_details(self, spec: CollectionSpec) -> int:
        """Size of the detail backlog; rows flagged remote_missing are not counted"""
        table = spec.model.__table__
        try:
            async with self.store.session() as session:
                result = await session.execute(
                    select(func.count()).select_from(table).where(*_pending_detail(table))
                )
                return result.scalar() or 0
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to count pending details",
                context={"operation": "SELECT", "table_name": table.name},
                original_exception=e
            )

    async def referenced_ids(self, spec: CollectionSpec) -> list:
        """Distinct non-null ids that rows of another table point at"""
        scope = spec.referenced_by
        table = scope.model.__table__
        column = table.c[scope.column]
        try:
            async with self.store.session() as session:
                result = await session.execute(
                    select(column).where(column.isnot(None)).distinct().order_by(column)
                )
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read referenced ids",
                context={"operation": "SELECT", "table_name": table.name, "column": scope.column},
                original_exception=e
            )

    async def parent_rows(self, spec: CollectionSpec) -> list:
        """Parent rows (as mappings) for parent-scoped enumeration, oldest first"""
        parent_table = spec.parent.model.__table__
        columns = {"remote_id"} | set(spec.parent.inject.values())
        try:
            async with self.store.session() as session:
                result = await session.execute(
                    select(*[parent_table.c[name] for name in sorted(columns)])
                    .order_by(parent_table.c.created_at, parent_table.c.id)
                )
                return [dict(row) for row in result.mappings().all()]
        except SQLAlchemyError as e:
            raise DatabaseError(
                "Failed to read parent rows",
                context={"operation": "SELECT", "table_name": parent_table.name},
                original_exception=e
            )


def _safe_id(spec: CollectionSpec, record: Any) -> Optional[str]:
    if isinstance(record, dict) and record.get(spec.id_field) is not None:
        return str(record.get(spec.id_field))
    return None


def _pending_detail(table) -> tuple:
    return (table.c.detail_fetched.is_(False), table.c.remote_missing.is_(False))
