import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from fastapi.concurrency import run_in_threadpool

from app.core.audit import write_audit_log
from app.core.dependencies import get_auth_context, get_report_session, get_session_registry
from app.core.security import AuthContext
from app.schemas.report import GeneralReportResponse, ReportErrorDetail, ReportView, SortBy, SortOrder
from app.services.report import (
    ReportAuthorizationError,
    ReportError,
    ReportSession,
    ReportSessionRegistry,
    ReportSnapshot,
    ReportUnavailableError,
    build_report_response,
    export_report,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin/reports", tags=["reports"])


def report_view(
    search: str = Query("", description="Case-insensitive match on name, email or phone"),
    sort_by: Optional[SortBy] = Query(None, description="Sort key; omit for the default favorites-first order"),
    sort_order: SortOrder = Query(SortOrder.DESC, description="asc = low to high, desc = high to low"),
    limit: Optional[int] = Query(None, ge=1, description="Show only the first N rows"),
) -> ReportView:
    return ReportView(search=search, sort_by=sort_by, sort_order=sort_order, limit=limit)


def _raise_for_report_error(e: ReportError):
    if isinstance(e, ReportAuthorizationError):
        status_code = 401
    elif isinstance(e, ReportUnavailableError):
        status_code = 502
    else:
        status_code = 500
    raise HTTPException(
        status_code=status_code,
        detail=ReportErrorDetail(message=e.message, retryable=e.retryable).model_dump(),
    )


async def _load(
    session: ReportSession, registry: ReportSessionRegistry, force_refresh: bool
) -> ReportSnapshot:
    try:
        return await session.current(force_refresh=force_refresh)
    except ReportAuthorizationError as e:
        # Rejected credentials must not keep a session around
        registry.release(session)
        _raise_for_report_error(e)
    except ReportError as e:
        _raise_for_report_error(e)


@router.get("/general", response_model=GeneralReportResponse)
async def get_general_report(
    refresh: bool = Query(False, description="Recompute from the source collections first"),
    view: ReportView = Depends(report_view),
    session: ReportSession = Depends(get_report_session),
    registry: ReportSessionRegistry = Depends(get_session_registry),
):
    """Member activity report: contributions, goals and loans per member (Admin only)."""
    snapshot = await _load(session, registry, force_refresh=refresh)
    return build_report_response(snapshot, view)


@router.post("/general/refresh", response_model=GeneralReportResponse)
async def refresh_general_report(
    view: ReportView = Depends(report_view),
    session: ReportSession = Depends(get_report_session),
    registry: ReportSessionRegistry = Depends(get_session_registry),
):
    """Recompute the report; joins a refresh that is already running."""
    snapshot = await _load(session, registry, force_refresh=True)
    return build_report_response(snapshot, view)


@router.get("/general/export")
async def export_general_report(
    view: ReportView = Depends(report_view),
    session: ReportSession = Depends(get_report_session),
    registry: ReportSessionRegistry = Depends(get_session_registry),
):
    """Download the currently displayed rows as CSV."""
    snapshot = await _load(session, registry, force_refresh=False)
    payload = export_report(snapshot, view)
    logger.info(f"Exporting general report as {payload.filename} ({payload.row_count} rows)")
    await run_in_threadpool(
        write_audit_log,
        session.auth.identity,
        "export_general_report",
        f"{payload.filename} rows={payload.row_count}",
    )
    return Response(
        content=payload.content,
        media_type=payload.media_type,
        headers={"Content-Disposition": f'attachment; filename="{payload.filename}"'},
    )


@router.delete("/general/session")
def abandon_general_report(
    auth: AuthContext = Depends(get_auth_context),
    registry: ReportSessionRegistry = Depends(get_session_registry),
):
    """Leave the report view; any refresh still running is discarded."""
    discarded = registry.discard(auth)
    return {"message": "Report session closed" if discarded else "No active report session"}
