from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import ValidationError

from logviewer.core.logging import get_logger
from logviewer.models.logs import (
    DedupMode,
    DeleteRequest,
    ExportFormat,
    FilterSpec,
    GroupBy,
    LogRecord,
    LogsResponse,
    SortDirection,
    SortField,
)
from logviewer.services.context import LogStoreContext, get_context
from logviewer.services.dedup import deduplicate
from logviewer.services.export import export_filename, render_export
from logviewer.services.filter_options import load_filter_options
from logviewer.services.grouping import (
    flatten_nested_groups,
    group_records,
)
from logviewer.services.log_retrieval import RetrievalResult, fetch_log, retrieve_logs
from logviewer.services.paging import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, paginate, sort_records

logger = get_logger("api.logs")

router = APIRouter(prefix="/api/logs", tags=["logs"])


def get_filters(
    project: Optional[str] = Query(default=None),
    server: Optional[str] = Query(default=None),
    platform: Optional[str] = Query(default=None),
    date: Optional[str] = Query(default=None, description="YYYY-MM-DD"),
    user_id: Optional[str] = Query(default=None, alias="userId"),
    quick_user_id: Optional[str] = Query(
        default=None, alias="quickUserId", description="Substring match on user id"
    ),
    nickname: Optional[str] = Query(default=None, description="Substring match"),
    message: Optional[str] = Query(default=None, description="Substring match"),
    months_back: Optional[int] = Query(default=None, alias="monthsBack", ge=0),
    limit: Optional[int] = Query(default=None, ge=1, le=10000),
) -> FilterSpec:
    try:
        return FilterSpec(
            project=project,
            server=server,
            platform=platform,
            date=date,
            user_id=user_id,
            quick_user_id=quick_user_id,
            nickname=nickname,
            message=message,
            months_back=months_back,
            limit=limit,
        )
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False),
        )


async def _retrieve(
    context: LogStoreContext, filters: FilterSpec, dedup: DedupMode
) -> Tuple[RetrievalResult, List[LogRecord]]:
    result = await retrieve_logs(context, filters)
    return result, deduplicate(result.records, dedup)


def _serialize_groups(groups: Dict[str, List[LogRecord]]) -> List[Dict[str, Any]]:
    return [
        {
            "key": key,
            "count": len(logs),
            "sample": logs[0].message if logs else "",
            "logs": [record.to_wire() for record in logs],
        }
        for key, logs in groups.items()
    ]


@router.get("", response_model=LogsResponse)
async def list_logs(
    filters: FilterSpec = Depends(get_filters),
    dedup: DedupMode = Query(default=DedupMode.NONE),
    sort_field: SortField = Query(default=SortField.TIMESTAMP, alias="sortField"),
    sort_dir: SortDirection = Query(default=SortDirection.DESC, alias="sortDir"),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=DEFAULT_PAGE_SIZE, alias="pageSize", ge=1, le=MAX_PAGE_SIZE),
    context: LogStoreContext = Depends(get_context),
) -> LogsResponse:
    """Filtered, optionally deduplicated logs, one page at a time."""
    result, records = await _retrieve(context, filters, dedup)
    ordered = sort_records(records, sort_field, sort_dir)
    page_records, total_pages = paginate(ordered, page, page_size)

    return LogsResponse(
        logs=[record.to_wire() for record in page_records],
        total=len(records),
        page=page,
        page_size=page_size,
        total_pages=total_pages,
        strategy=result.plan.rule,
        index_paths=list(result.plan.paths[:5]),
        diagnostics=result.diagnostics(),
    )


@router.get("/groups")
async def list_log_groups(
    group_by: GroupBy = Query(alias="groupBy"),
    filters: FilterSpec = Depends(get_filters),
    dedup: DedupMode = Query(default=DedupMode.NONE),
    context: LogStoreContext = Depends(get_context),
) -> Dict[str, Any]:
    result, records = await _retrieve(context, filters, dedup)
    grouped = group_records(records, group_by)

    if group_by is GroupBy.USER_ERRORS:
        groups = [
            {
                "key": user,
                "count": sum(len(logs) for logs in patterns.values()),
                "groups": _serialize_groups(patterns),
            }
            for user, patterns in grouped.items()
        ]
    else:
        groups = _serialize_groups(grouped)

    return {
        "groupBy": group_by.value,
        "groups": groups,
        "total": len(records),
        "strategy": result.plan.rule,
        "diagnostics": result.diagnostics(),
    }


@router.get("/export")
async def export_logs(
    fmt: ExportFormat = Query(default=ExportFormat.JSON, alias="format"),
    group_by: Optional[GroupBy] = Query(default=None, alias="groupBy"),
    filters: FilterSpec = Depends(get_filters),
    dedup: DedupMode = Query(default=DedupMode.NONE),
    context: LogStoreContext = Depends(get_context),
) -> Response:
    _, records = await _retrieve(context, filters, dedup)

    groups = None
    if group_by is not None:
        grouped = group_records(records, group_by)
        groups = (
            flatten_nested_groups(grouped) if group_by is GroupBy.USER_ERRORS else grouped
        )

    body, media_type = render_export(fmt, records, groups)
    filename = export_filename(fmt, groups is not None, context.today())
    logger.info("Exporting %d logs as %s (%s)", len(records), fmt.value, filename)
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/options")
async def get_filter_options(
    project: Optional[str] = Query(default=None),
    context: LogStoreContext = Depends(get_context),
) -> Dict[str, Any]:
    selected = (project or "").strip() or context.settings.default_project
    options = await load_filter_options(context.store, selected)
    return {"project": selected, **options}


@router.get("/record/{log_id}")
async def get_log_record(
    log_id: str, context: LogStoreContext = Depends(get_context)
) -> Dict[str, Any]:
    record = await fetch_log(context, log_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Log not found")
    return record.to_wire()


@router.delete("/path")
async def delete_path(
    payload: DeleteRequest, context: LogStoreContext = Depends(get_context)
) -> Dict[str, Any]:
    """Irreversibly delete everything under ``path``.

    ``confirm`` must repeat the path exactly; nothing is deleted otherwise.
    """
    if not payload.confirm or payload.confirm.strip() != payload.path.strip():
        raise HTTPException(
            status_code=400, detail="Deletion requires confirm to match the path"
        )
    deleted = await context.gateway.delete_by_path(payload.path)
    return {"deleted": True, "path": deleted}
