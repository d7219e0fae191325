"""
Sync Orchestrator - drives the two-phase replication of one entity type.

Phases:
1. List   - enumerate the collection and reconcile the list columns of
            every record (the whole sync for flat collections)
2. Detail - fetch each row still marked detail_fetched = false, one by
            one, and merge the detail payload into it

Progress lives in the entity tables themselves (detail_fetched), so a run
halted by throttling, a stop request or a crash is resumed simply by
running again. Every run is recorded in the sync ledger, whatever its
outcome.
"""

import asyncio
import enum
from contextlib import aclosing
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional
from core.config import settings
from core.database import LocalStore
from core.exceptions import (
    AuthError,
    DatabaseError,
    FatalRunError,
    RateLimitedError,
    RemoteAPIError,
    SyncException,
)
from models.base import SyncMode
from replication.client import RemoteAPIClient
from replication.fetcher import PaginatedFetcher
from replication.ledger import SyncLedger
from replication.mappings import COLLECTIONS, CollectionSpec, get_collection
from replication.reconciler import ReconcileResult, Reconciler
from schemas.sync import SyncStats
import logging

logger = logging.getLogger(__name__)


class SyncState(str, enum.Enum):
    IDLE = "idle"
    PHASE1_RUNNING = "phase1_running"
    PHASE1_DONE = "phase1_done"
    PHASE2_RUNNING = "phase2_running"
    COMPLETE = "complete"
    RATE_LIMITED = "rate_limited"
    STOPPED = "stopped"
    FAILED = "failed"


# Failures that make the remaining entity types of a batch pointless
_BATCH_ABORTING = (AuthError, DatabaseError)


class SyncOrchestrator:
    """
    Two-phase sync of one entity type at a time against one local store.

    Responsibilities:
    - Run Phase 1 and/or Phase 2 according to the SyncMode
    - Keep per-record failures inside the record boundary
    - Halt cleanly (partial) on persistent throttling or a stop request
    - Mark the run failed and raise FatalRunError on anything else
    - Always complete the ledger row
    """

    def __init__(
        self,
        store: LocalStore,
        client: RemoteAPIClient,
        ledger: Optional[SyncLedger] = None,
        reconciler: Optional[Reconciler] = None,
        fetcher: Optional[PaginatedFetcher] = None,
        request_delay: Optional[float] = None,
        progress_every: Optional[int] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep
    ):
        self.store = store
        self.client = client
        self.ledger = ledger or SyncLedger(store)
        self.reconciler = reconciler or Reconciler(store)
        self.request_delay = settings.REQUEST_DELAY if request_delay is None else request_delay
        self.fetcher = fetcher or PaginatedFetcher(client, request_delay=self.request_delay, sleep=sleep)
        self.progress_every = progress_every or settings.PROGRESS_EVERY
        self._sleep = sleep

        self.state = SyncState.IDLE
        self._stop_requested = False
        self._failed_in: Optional[str] = None

    # ------------------------------------------------------------------
    # Cooperative cancellation
    # ------------------------------------------------------------------

    def request_stop(self, *args):
        """
        Ask the current run to halt before its next record.

        Accepts and ignores signal-handler arguments so it can be installed
        directly with ``signal.signal``.
        """
        if not self._stop_requested:
            logger.warning("Stop requested - finishing the record in flight")
        self._stop_requested = True

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def run(self, entity_type: str, mode: SyncMode = SyncMode.FULL) -> SyncStats:
        """
        Synchronize one entity type.

        Returns:
            SyncStats of the run (status via ``final_status()``)

        Raises:
            KeyError: Unknown entity type
            FatalRunError: The run was aborted and recorded as failed
        """
        spec = get_collection(entity_type)
        stats = SyncStats(entity_type=entity_type, mode=mode)
        failure: Optional[BaseException] = None
        cancelled = False

        run_id = await self.ledger.start(entity_type, mode)
        requests_before = self.client.requests_made

        logger.info(f"Starting {mode.value} sync for {entity_type} (run {run_id})")

        try:
            proceed = True
            if mode in (SyncMode.FULL, SyncMode.LIST):
                proceed = await self._phase1(spec, stats)

            if proceed and mode in (SyncMode.FULL, SyncMode.DETAILS):
                if spec.two_phase:
                    proceed = await self._phase2(spec, stats)
                elif mode == SyncMode.DETAILS:
                    logger.info(f"{entity_type} has no detail phase, nothing to resume")

            if proceed:
                self.state = SyncState.COMPLETE

        except RateLimitedError as e:
            self.state = SyncState.RATE_LIMITED
            stats.rate_limited = True
            stats.error_message = f"Halted by rate limiting: {e.message}"
            logger.warning(
                f"{entity_type}: halted by persistent throttling, run again later to resume",
                extra={"error_context": e.to_dict()}
            )

        except asyncio.CancelledError:
            self.state = SyncState.STOPPED
            stats.stopped = True
            stats.error_message = "Cancelled"
            cancelled = True
            logger.warning(f"{entity_type}: run cancelled")

        except SyncException as e:
            failure = e
            self._fail(stats, e.message, e.to_dict())
            logger.error(
                f"{entity_type}: sync failed in {self._failed_in}: {e.message}",
                extra={"error_context": e.to_dict()}
            )

        except Exception as e:
            failure = e
            self._fail(stats, str(e), {"error_type": type(e).__name__, "message": str(e)})
            logger.exception(f"{entity_type}: unexpected error in {self._failed_in}")

        phase = self.state.value if failure is None else self._failed_in
        stats.requests = self.client.requests_made - requests_before
        stats.finish()

        try:
            await self.ledger.complete(run_id, stats)
        except DatabaseError as ledger_error:
            logger.error(
                f"Could not record the outcome of run {run_id}: {ledger_error.message}",
                extra={"error_context": ledger_error.to_dict()}
            )
            if failure is None and not cancelled:
                failure = ledger_error
                stats.fatal = True

        if cancelled:
            raise asyncio.CancelledError()

        if failure is not None:
            raise FatalRunError(
                f"Sync of {entity_type} failed",
                context={"entity_type": entity_type, "phase": phase, "run_id": run_id},
                original_exception=failure,
                stats=stats
            )

        logger.info(
            f"Finished {entity_type}: {stats.final_status().value} - "
            f"fetched={stats.fetched} inserted={stats.inserted} updated={stats.updated} "
            f"details={stats.details_fetched} errors={stats.errors} ({stats.duration_seconds}s)"
        )
        return stats

    async def run_all(
        self,
        entity_types: Optional[List[str]] = None,
        mode: SyncMode = SyncMode.FULL
    ) -> List[SyncStats]:
        """
        Synchronize several entity types one after another.

        Stops early when a run is halted by throttling or a stop request, or
        when a failure would affect every remaining entity type (auth, store).
        Other fatal failures are logged and the batch continues.
        """
        names = list(entity_types) if entity_types else list(COLLECTIONS)
        for name in names:
            get_collection(name)  # fail fast on typos

        results: List[SyncStats] = []
        for name in names:
            if self._stop_requested:
                logger.warning(f"Stop requested - skipping {name} and the rest of the batch")
                break

            try:
                stats = await self.run(name, mode)
            except FatalRunError as e:
                if e.stats is not None:
                    results.append(e.stats)
                if isinstance(e.original_exception, _BATCH_ABORTING):
                    logger.error(f"Aborting batch after {name}: {e.message}")
                    break
                continue

            results.append(stats)
            if stats.rate_limited:
                logger.warning(f"Throttled during {name} - not starting the remaining entity types")
                break

        return results

    # ------------------------------------------------------------------
    # Phase 1: list enumeration
    # ------------------------------------------------------------------

    async def _phase1(self, spec: CollectionSpec, stats: SyncStats) -> bool:
        """Returns False when the run was halted by a stop request"""
        self.state = SyncState.PHASE1_RUNNING
        seen_ids = set()

        if spec.parent is not None:
            batches = self._iter_parent_scoped(spec, stats)
        elif spec.referenced_by is not None:
            batches = self._iter_referenced(spec, stats)
        elif spec.paginated:
            batches = self.fetcher.iter_pages(spec.list_path, params=spec.list_params or None)
        else:
            batches = self._iter_unpaged(spec)

        async with aclosing(batches) as pages:
            async for batch in pages:
                for record in batch:
                    if self._stop_requested:
                        return self._halt(stats)

                    stats.fetched += 1
                    result = await self.reconciler.reconcile(spec, record, phase="list")
                    self._count(stats, result, "list")
                    if result.remote_id:
                        seen_ids.add(result.remote_id)

                    if stats.fetched % self.progress_every == 0:
                        logger.info(
                            f"  {spec.name}: listed {stats.fetched} "
                            f"(inserted={stats.inserted}, updated={stats.updated}, errors={stats.errors})"
                        )

        if self._stop_requested:
            return self._halt(stats)

        if spec.paginated and spec.parent is None:
            for page in self.fetcher.failed_pages:
                stats.add_error({
                    "phase": "list",
                    "page": page,
                    "error_type": "TransientNetworkError",
                    "error_message": f"page {page} skipped after retries"
                })

        self.state = SyncState.PHASE1_DONE
        logger.info(f"{spec.name}: phase 1 complete, {stats.fetched} records listed")

        if spec.two_phase:
            done = await self.reconciler.detail_done_ids(spec, seen_ids)
            missing = seen_ids - done
            stats.missing_ids = len(missing)
            logger.info(f"{spec.name}: {len(missing)} of {len(seen_ids)} listed records still need details")

        return True

    async def _iter_unpaged(self, spec: CollectionSpec) -> AsyncIterator[List[Dict[str, Any]]]:
        records = await self.client.get_list(spec.list_path, spec.list_params or None)
        if records:
            yield records

    async def _iter_parent_scoped(
        self,
        spec: CollectionSpec,
        stats: SyncStats
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """One unpaged listing per locally stored parent row"""
        scope = spec.parent
        parents = await self.reconciler.parent_rows(spec)
        logger.info(f"{spec.name}: enumerating under {len(parents)} {scope.model.__tablename__}")

        for index, parent in enumerate(parents):
            if self._stop_requested:
                return
            if index:
                await self._sleep(self.request_delay)

            params = dict(spec.list_params)
            params[scope.param] = parent["remote_id"]
            try:
                records = await self.client.get_list(spec.list_path, params)
            except (AuthError, RateLimitedError):
                raise
            except RemoteAPIError as e:
                stats.add_error({
                    "phase": "list",
                    "parent_id": parent["remote_id"],
                    "error_type": type(e).__name__,
                    "error_message": e.message
                })
                logger.error(
                    f"{spec.name}: listing under {parent['remote_id']} failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                continue

            if records:
                yield [_inject_parent(scope.inject, parent, record) for record in records]

    async def _iter_referenced(
        self,
        spec: CollectionSpec,
        stats: SyncStats
    ) -> AsyncIterator[List[Dict[str, Any]]]:
        """One record fetch per id referenced from another local table"""
        scope = spec.referenced_by
        ids = await self.reconciler.referenced_ids(spec)
        logger.info(f"{spec.name}: {len(ids)} ids referenced from {scope.model.__tablename__}.{scope.column}")

        for index, remote_id in enumerate(ids):
            if self._stop_requested:
                return
            if index:
                await self._sleep(self.request_delay)

            try:
                record = await self.client.get_record(spec.list_path, remote_id)
            except (AuthError, RateLimitedError):
                raise
            except RemoteAPIError as e:
                stats.add_error({
                    "phase": "list",
                    "remote_id": remote_id,
                    "error_type": type(e).__name__,
                    "error_message": e.message
                })
                logger.error(
                    f"{spec.name}/{remote_id}: fetch failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                continue

            if record is None:
                stats.not_found += 1
                logger.warning(f"{spec.name}/{remote_id}: referenced but not on the remote, skipped")
                continue

            if record.get(spec.id_field) is None:
                record = {**record, spec.id_field: remote_id}
            yield [record]

    # ------------------------------------------------------------------
    # Phase 2: per-record detail fetch
    # ------------------------------------------------------------------

    async def _phase2(self, spec: CollectionSpec, stats: SyncStats) -> bool:
        """Returns False when the run was halted by a stop request"""
        self.state = SyncState.PHASE2_RUNNING
        pending = await self.reconciler.pending_detail_ids(spec)
        total = len(pending)
        if stats.missing_ids is None:
            stats.missing_ids = total

        if not total:
            logger.info(f"{spec.name}: no detail backlog")
            return True

        logger.info(f"{spec.name}: fetching details for {total} records")

        for index, remote_id in enumerate(pending, 1):
            if self._stop_requested:
                return self._halt(stats)
            if index > 1:
                await self._sleep(self.request_delay)

            try:
                record = await self.client.get_record(spec.detail_path, remote_id)
            except (AuthError, RateLimitedError):
                raise
            except RemoteAPIError as e:
                stats.add_error({
                    "phase": "detail",
                    "remote_id": remote_id,
                    "error_type": type(e).__name__,
                    "error_message": e.message
                })
                logger.error(
                    f"{spec.name}/{remote_id}: detail fetch failed: {e.message}",
                    extra={"error_context": e.to_dict()}
                )
                continue

            if record is None:
                stats.not_found += 1
                await self.reconciler.mark_missing(spec, remote_id)
                logger.warning(f"{spec.name}/{remote_id}: gone from the remote, skipped")
                continue

            if record.get(spec.id_field) is None:
                record = {**record, spec.id_field: remote_id}

            result = await self.reconciler.reconcile(spec, record, phase="detail")
            self._count(stats, result, "detail")
            if result.ok:
                stats.details_fetched += 1

            if index % self.progress_every == 0 or index == total:
                logger.info(
                    f"  {spec.name}: details {index}/{total} "
                    f"(fetched={stats.details_fetched}, errors={stats.errors}, "
                    f"not_found={stats.not_found})"
                )

        return True

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _halt(self, stats: SyncStats) -> bool:
        self.state = SyncState.STOPPED
        stats.stopped = True
        stats.error_message = "Stopped on request"
        logger.warning(f"{stats.entity_type}: stopped on request, run again to resume")
        return False

    def _fail(self, stats: SyncStats, message: str, detail: Dict[str, Any]):
        self._failed_in = self.state.value
        self.state = SyncState.FAILED
        stats.fatal = True
        stats.error_message = message
        stats.error_details.append(detail)

    @staticmethod
    def _count(stats: SyncStats, result: ReconcileResult, phase: str):
        if result.ok:
            stats.record_outcome(result.outcome)
            return
        stats.add_error({
            "phase": phase,
            "remote_id": result.remote_id,
            "error_type": type(result.error).__name__,
            "error_message": result.error.message if result.error else None
        })


def _inject_parent(inject: Dict[str, str], parent: Dict[str, Any], record: Any) -> Any:
    """Copy parent columns into a child record"""
    if not isinstance(record, dict):
        return record
    enriched = dict(record)
    for field, column in inject.items():
        enriched[field] = parent.get(column)
    return enriched
