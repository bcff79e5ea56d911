"""Log Retrieval Engine: index plan + gateway reads + residual filters."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import date as Date, datetime, time, timezone
from typing import Callable, List, Optional

from logviewer.core.logging import get_logger
from logviewer.models.logs import FilterSpec, LogRecord
from logviewer.services.context import LogStoreContext
from logviewer.services.index_selector import (
    EMPTY_PLAN,
    IndexPlan,
    select_index_plan,
    window_start,
)
from logviewer.services.record_gateway import FetchReport, RecordGateway, sort_key

logger = get_logger("log_retrieval")


@dataclass
class RetrievalResult:
    records: List[LogRecord]
    plan: IndexPlan = EMPTY_PLAN
    report: FetchReport = field(default_factory=FetchReport)

    def diagnostics(self) -> dict:
        data = self.report.as_dict()
        data["returned"] = len(self.records)
        return data


def _contains(haystack: str, needle: str) -> bool:
    return needle.lower() in (haystack or "").lower()


def _in_window_check(
    filters: FilterSpec, today: Optional[Date]
) -> Optional[Callable[[LogRecord], bool]]:
    """``monthsBack`` bound for reads that carry no explicit date."""
    if today is None or filters.date or not filters.months_back:
        return None

    oldest = window_start(today, filters.months_back)
    first_day, last_day = oldest.isoformat(), today.isoformat()
    cutoff_ms = int(datetime.combine(oldest, time(), tzinfo=timezone.utc).timestamp() * 1000)

    def in_window(record: LogRecord) -> bool:
        if record.date and first_day <= record.date <= last_day:
            return True
        return record.ts >= cutoff_ms

    return in_window


def build_residual_filter(
    filters: FilterSpec, plan: IndexPlan, today: Optional[Date] = None
) -> Callable[[LogRecord], bool]:
    """Predicate for everything the chosen index could not enforce.

    With ``today`` given and no ``date`` filter, records older than the
    ``monthsBack`` window are dropped whichever index was read.
    """
    exact = [(name, filters.dimension(name)) for name in plan.residual_dimensions(filters)]
    nickname = filters.nickname
    message = filters.message
    quick_user = filters.quick_user_id
    in_window = _in_window_check(filters, today)

    def matches(record: LogRecord) -> bool:
        for name, expected in exact:
            if record.field_value(name) != expected:
                return False
        if in_window is not None and not in_window(record):
            return False
        if nickname and not _contains(record.nickname, nickname):
            return False
        if message and not _contains(record.message, message):
            return False
        if quick_user and not _contains(record.user_id, quick_user):
            return False
        return True

    return matches


async def _read_plan(
    gateway: RecordGateway,
    plan: IndexPlan,
    limit: int,
    concurrency: int,
    report: FetchReport,
) -> List[LogRecord]:
    if len(plan.paths) == 1:
        return await gateway.fetch_records_at_index_path(plan.paths[0], limit, report)

    semaphore = asyncio.Semaphore(max(1, concurrency))

    async def _read_one(path: str) -> List[LogRecord]:
        async with semaphore:
            return await gateway.fetch_records_at_index_path(path, limit, report)

    # A hard failure on any index read fails the whole call and cancels the rest.
    tasks = [asyncio.ensure_future(_read_one(path)) for path in plan.paths]
    try:
        per_path = await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise
    records: List[LogRecord] = []
    for chunk in per_path:
        records.extend(chunk)
    return records


async def retrieve_logs(
    context: LogStoreContext, filters: FilterSpec
) -> RetrievalResult:
    """Fetch the records matching ``filters``, sorted by ``(ts, seq)``.

    An empty list is a normal result. Index-read failures propagate as a
    single ``LogStoreError``; per-record failures only show in the report.
    """
    settings = context.settings
    effective = filters.with_defaults(settings)
    today = context.today()
    plan = select_index_plan(effective, today, settings.max_fanout_days)
    if plan.is_empty:
        logger.info("No index plan for filters; returning no logs")
        return RetrievalResult(records=[])

    report = FetchReport()
    raw = await _read_plan(
        context.gateway,
        plan,
        effective.limit or settings.default_fetch_limit,
        settings.fanout_concurrency,
        report,
    )

    matches = build_residual_filter(effective, plan, today)
    records = [record for record in raw if matches(record)]
    records.sort(key=sort_key)

    logger.info(
        "Retrieved %d logs via %s (%d paths, %d read, stale=%d, failed=%d)",
        len(records),
        plan.rule,
        len(plan.paths),
        len(raw),
        report.stale,
        report.failed,
    )
    return RetrievalResult(records=records, plan=plan, report=report)


async def fetch_log(context: LogStoreContext, log_id: str) -> Optional[LogRecord]:
    return await context.gateway.fetch_record_by_id(log_id)
