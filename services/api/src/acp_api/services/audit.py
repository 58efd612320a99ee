"""审计服务。

只追加写入，查询与按保留期清理；清理本身不产生审计记录。
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import json
import logging
from typing import Any

from fastapi import Request
from sqlalchemy import ColumnElement, delete, func, select
from sqlalchemy.orm import Session

from acp_api.core.errors import ValidationError
from acp_api.models.audit import AuditLog

logger = logging.getLogger("acp_api.audit")


@dataclass(frozen=True)
class AuditContext:
    """审计上下文：操作人与请求来源。"""

    actor_user_id: int | None
    ip: str | None = None
    user_agent: str | None = None

    @classmethod
    def from_request(cls, request: Request, actor_user_id: int | None) -> "AuditContext":
        """从请求状态中提取客户端信息（由中间件注入）。"""
        return cls(
            actor_user_id=actor_user_id,
            ip=getattr(request.state, "client_ip", None),
            user_agent=getattr(request.state, "user_agent", None),
        )


@dataclass(frozen=True)
class PurgeResult:
    """清理结果。"""

    deleted_count: int
    cutoff: datetime
    cancelled: bool = False


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"unsupported snapshot value: {type(value).__name__}")


def canonical_json(value: Any) -> str | None:
    """规范化序列化：键排序、紧凑分隔符、保留非 ASCII 字符。"""
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=_json_default)


def record_audit(
    db: Session,
    ctx: AuditContext,
    *,
    action: str,
    resource_type: str,
    resource_id: int,
    description: str,
    before: Any = None,
    after: Any = None,
) -> AuditLog:
    """写入审计日志，仅由变更网关在同一事务内调用。"""
    entry = AuditLog(
        actor_user_id=ctx.actor_user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        before_data=canonical_json(before),
        after_data=canonical_json(after),
        description=description,
        ip=ctx.ip,
        user_agent=ctx.user_agent,
    )
    db.add(entry)
    return entry


def _build_filters(
    *,
    action: str | None,
    resource_type: str | None,
    actor_user_id: int | None,
    search: str | None,
    start: datetime | None,
    end: datetime | None,
) -> list[ColumnElement[bool]]:
    filters: list[ColumnElement[bool]] = []
    if action:
        filters.append(AuditLog.action == action)
    if resource_type:
        filters.append(AuditLog.resource_type == resource_type)
    if actor_user_id is not None:
        filters.append(AuditLog.actor_user_id == actor_user_id)
    if search and search.strip():
        filters.append(AuditLog.description.ilike(f"%{search.strip()}%"))
    if start is not None:
        filters.append(AuditLog.created_at >= start)
    if end is not None:
        filters.append(AuditLog.created_at <= end)
    return filters


def query_audit_logs(
    db: Session,
    *,
    offset: int,
    limit: int,
    action: str | None = None,
    resource_type: str | None = None,
    actor_user_id: int | None = None,
    search: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    now: datetime | None = None,
) -> tuple[list[AuditLog], dict[str, Any]]:
    """按条件分页查询审计日志，并返回筛选范围内的统计信息。"""
    if start is not None and end is not None and start > end:
        raise ValidationError("开始时间不能晚于结束时间。", field="start_date")

    filters = _build_filters(
        action=action,
        resource_type=resource_type,
        actor_user_id=actor_user_id,
        search=search,
        start=start,
        end=end,
    )
    logs = (
        db.execute(
            select(AuditLog)
            .where(*filters)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .offset(offset)
            .limit(limit)
        )
        .scalars()
        .all()
    )

    current = now or datetime.now(timezone.utc)
    today_start = current.replace(hour=0, minute=0, second=0, microsecond=0)
    total = db.execute(select(func.count(AuditLog.id)).where(*filters)).scalar_one()
    today = db.execute(
        select(func.count(AuditLog.id)).where(*filters).where(AuditLog.created_at >= today_start)
    ).scalar_one()
    by_action = {
        action_value: count
        for action_value, count in db.execute(
            select(AuditLog.action, func.count(AuditLog.id)).where(*filters).group_by(AuditLog.action)
        ).all()
    }
    by_actor = {
        "system" if actor_id is None else str(actor_id): count
        for actor_id, count in db.execute(
            select(AuditLog.actor_user_id, func.count(AuditLog.id)).where(*filters).group_by(AuditLog.actor_user_id)
        ).all()
    }
    stats = {"total": total, "today": today, "by_action": by_action, "by_actor": by_actor}
    return list(logs), stats


def retention_cutoff(retention_days: int, *, now: datetime | None = None) -> datetime:
    """计算保留期截止时间：早于该时间的日志会被清理。"""
    if retention_days < 0:
        raise ValidationError("retention_days 不能为负数。", field="retention_days")
    return (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)


def purge_audit_logs(
    db: Session,
    *,
    cutoff: datetime,
    batch_size: int,
    should_stop: Callable[[], bool] | None = None,
) -> PurgeResult:
    """分批删除 created_at 早于 cutoff 的日志，每批独立提交，批次之间检查取消信号。

    该操作不可逆，且不写入审计记录。
    """
    if batch_size < 1:
        raise ValidationError("batch_size 必须大于 0。", field="batch_size")

    deleted = 0
    cancelled = False
    while True:
        ids = (
            db.execute(
                select(AuditLog.id).where(AuditLog.created_at < cutoff).order_by(AuditLog.id).limit(batch_size)
            )
            .scalars()
            .all()
        )
        if not ids:
            break
        db.execute(delete(AuditLog).where(AuditLog.id.in_(ids)))
        db.commit()
        deleted += len(ids)
        if len(ids) < batch_size:
            break
        if should_stop is not None and should_stop():
            cancelled = True
            break

    logger.info("audit purge cutoff=%s deleted=%s cancelled=%s", cutoff.isoformat(), deleted, cancelled)
    return PurgeResult(deleted_count=deleted, cutoff=cutoff, cancelled=cancelled)
