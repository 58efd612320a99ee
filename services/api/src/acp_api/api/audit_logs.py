"""审计日志接口。"""

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from acp_api.core.config import get_settings
from acp_api.dependencies import require_admin
from acp_api.db.session import get_db
from acp_api.models.audit import AuditLog
from acp_api.schemas.audit import AuditPurgeRequest
from acp_api.schemas.common import ErrorResponse, SuccessResponse
from acp_api.schemas.responses import AuditLogPageData, AuditPurgeData
from acp_api.services.audit import purge_audit_logs, query_audit_logs, retention_cutoff
from acp_api.services.validation import page_window
from acp_api.utils.response import pagination_meta, success

router = APIRouter(prefix="/audit-logs", tags=["audit-logs"])


def _audit_log_data(entry: AuditLog) -> dict:
    return {
        "id": entry.id,
        "actor_user_id": entry.actor_user_id,
        "action": entry.action,
        "resource_type": entry.resource_type,
        "resource_id": entry.resource_id,
        "before_data": entry.before_data,
        "after_data": entry.after_data,
        "description": entry.description,
        "ip": entry.ip,
        "user_agent": entry.user_agent,
        "created_at": entry.created_at,
    }


@router.get(
    "",
    summary="查询审计日志",
    description="按动作、资源类型、操作人、描述关键字与时间范围过滤，新记录在前，并附带统计信息。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuditLogPageData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def list_audit_logs(
    request: Request,
    page: int = Query(default=1, description="页码，从 1 开始。"),
    limit: int | None = Query(default=None, description="每页条数。"),
    action: str | None = Query(default=None, description="动作过滤，例如 UPDATE。"),
    resource_type: str | None = Query(default=None, description="资源类型过滤，例如 role。"),
    actor_user_id: int | None = Query(default=None, description="操作人用户 ID。"),
    search: str | None = Query(default=None, description="按描述模糊搜索。"),
    start_date: datetime | None = Query(default=None, description="开始时间（含）。"),
    end_date: datetime | None = Query(default=None, description="结束时间（含）。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    limit = settings.page_size_default if limit is None else limit
    offset, limit = page_window(page, limit, max_limit=settings.page_size_max)
    logs, stats = query_audit_logs(
        db,
        offset=offset,
        limit=limit,
        action=action,
        resource_type=resource_type,
        actor_user_id=actor_user_id,
        search=search,
        start=start_date,
        end=end_date,
    )
    data = {
        "logs": [_audit_log_data(entry) for entry in logs],
        "pagination": pagination_meta(page=page, limit=limit, total=stats["total"]),
        "stats": stats,
    }
    return success(request, data)


@router.post(
    "/purge",
    summary="清理过期审计日志",
    description="删除早于保留期的日志，不可恢复；清理操作本身不记录审计。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuditPurgeData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def purge(
    request: Request,
    payload: AuditPurgeRequest,
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    if payload.before is not None:
        cutoff = payload.before
    else:
        days = payload.retention_days if payload.retention_days is not None else settings.audit_retention_days
        cutoff = retention_cutoff(days)
    result = purge_audit_logs(db, cutoff=cutoff, batch_size=settings.audit_purge_batch_size)
    return success(
        request,
        {"deleted_count": result.deleted_count, "cutoff": result.cutoff, "cancelled": result.cancelled},
    )
