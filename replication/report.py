"""
Plain-text reports for the CLI scripts.
"""

from datetime import datetime
from typing import List, Optional
from replication.mappings import COLLECTIONS
from replication.reconciler import Reconciler
from schemas.api import EntityCount
from schemas.sync import EntityTotals, SyncRunSummary, SyncStats

RULE = "=" * 70


def display_name(entity_type: str) -> str:
    """inventory_models -> Inventory Models"""
    return " ".join(word.capitalize() for word in entity_type.split("_"))


def format_summary(stats: SyncStats) -> str:
    """Summary block printed after every sync run, whatever its outcome"""
    status = stats.final_status().value.upper()
    lines = [
        RULE,
        f"{display_name(stats.entity_type)} sync ({stats.mode.value}): {status}",
        RULE,
        f"   Fetched:          {stats.fetched}",
        f"   Inserted:         {stats.inserted}",
        f"   Updated:          {stats.updated}",
        f"   Details fetched:  {stats.details_fetched}",
        f"   Not found:        {stats.not_found}",
        f"   Errors:           {stats.errors}",
        f"   Requests:         {stats.requests}",
        f"   Duration:         {stats.duration_seconds or 0:.1f}s",
    ]
    if stats.missing_ids is not None:
        lines.insert(7, f"   Missing details:  {stats.missing_ids}")
    if stats.rate_limited:
        lines.append("   Halted by rate limiting - run again later to resume")
    elif stats.stopped:
        lines.append("   Stopped before completion - run again to resume")
    if stats.error_message and stats.fatal:
        lines.append(f"   Error: {stats.error_message}")
    return "\n".join(lines)


def format_batch_summary(results: List[SyncStats]) -> str:
    """One line per entity type followed by totals"""
    lines = [RULE, "Sync batch summary", RULE]
    for stats in results:
        lines.append(
            f"   {display_name(stats.entity_type):<25} {stats.final_status().value:<8} "
            f"fetched={stats.fetched} inserted={stats.inserted} "
            f"updated={stats.updated} errors={stats.errors}"
        )
    lines.append("   " + "-" * 35)
    lines.append(
        f"   {'Total':<25} {'':<8} "
        f"fetched={sum(s.fetched for s in results)} "
        f"inserted={sum(s.inserted for s in results)} "
        f"updated={sum(s.updated for s in results)} "
        f"errors={sum(s.errors for s in results)}"
    )
    return "\n".join(lines)


async def collect_entity_counts(reconciler: Reconciler) -> List[EntityCount]:
    """Row counts and detail progress for every replicated collection"""
    counts = []
    for name, spec in COLLECTIONS.items():
        rows = await reconciler.count(spec)
        detailed = pending = None
        if spec.two_phase:
            detailed = await reconciler.count(spec, detail_fetched=True)
            pending = await reconciler.count_pending_details(spec)
        counts.append(EntityCount(
            entity_type=name,
            rows=rows,
            two_phase=spec.two_phase,
            detail_fetched=detailed,
            detail_pending=pending
        ))
    return counts


def format_entity_counts(counts: List[EntityCount]) -> str:
    lines = ["Database summary:", ""]
    for count in counts:
        progress = ""
        if count.two_phase:
            progress = f"   ({count.detail_fetched} with details)"
        lines.append(f"   {display_name(count.entity_type):<25} {count.rows:>7} records{progress}")
    lines.append("   " + "-" * 35)
    lines.append(f"   {'Total records':<25} {sum(c.rows for c in counts):>7}")
    return "\n".join(lines)


def format_entity_totals(totals: List[EntityTotals], now: Optional[datetime] = None) -> str:
    """Successful-run aggregates, most recently synced first"""
    now = now or datetime.utcnow()
    ordered = sorted(totals, key=lambda t: t.last_sync or datetime.min, reverse=True)
    lines = ["Recent sync activity:", ""]
    if not ordered:
        lines.append("   No successful syncs yet")
    for total in ordered:
        lines.append(f"   {display_name(total.entity_type):<30} {time_ago(total.last_sync, now):>15}")
        lines.append(
            f"   {'':<30} -> {total.total_inserted} inserted, "
            f"{total.total_updated} updated over {total.runs} runs"
        )
    return "\n".join(lines)


def format_recent_runs(runs: List[SyncRunSummary]) -> str:
    lines = ["Recent runs:", ""]
    if not runs:
        lines.append("   No sync runs recorded")
    for run in runs:
        started = run.started_at.strftime("%Y-%m-%d %H:%M:%S")
        duration = f"{run.duration_seconds:.1f}s" if run.duration_seconds is not None else "-"
        lines.append(
            f"   {started}  {run.entity_type:<20} {run.mode:<8} {run.status:<8} "
            f"fetched={run.records_fetched} errors={run.records_failed} {duration:>8}"
        )
    return "\n".join(lines)


def time_ago(when: Optional[datetime], now: datetime) -> str:
    if when is None:
        return "never"
    seconds = max(int((now - when).total_seconds()), 0)
    if seconds < 60:
        return "just now"
    minutes = seconds // 60
    if minutes < 60:
        return f"{minutes}m ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"
    return f"{hours // 24}d ago"
