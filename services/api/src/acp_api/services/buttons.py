"""按钮权限目录服务。"""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from acp_api.core.errors import ConflictError, NotFoundError
from acp_api.models.catalog import ButtonPermission
from acp_api.models.permission import RoleButtonGrant
from acp_api.schemas.button import ButtonPermissionCreateRequest, ButtonPermissionUpdateRequest
from acp_api.services.validation import patch_fields


def button_snapshot(button: ButtonPermission) -> dict[str, Any]:
    """审计用按钮权限快照。"""
    return {
        "id": button.id,
        "name": button.name,
        "display_name": button.display_name,
        "description": button.description,
        "category": str(button.category),
        "is_active": button.is_active,
    }


def get_button(db: Session, button_id: int) -> ButtonPermission:
    button = db.get(ButtonPermission, button_id)
    if button is None:
        raise NotFoundError("按钮权限不存在。", button_id=button_id)
    return button


def list_buttons(
    db: Session,
    *,
    offset: int,
    limit: int,
    search: str | None = None,
    category: str | None = None,
) -> tuple[list[ButtonPermission], int]:
    """分页查询按钮权限，支持按分类筛选。"""
    filters = []
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(
            or_(
                ButtonPermission.name.ilike(pattern),
                ButtonPermission.display_name.ilike(pattern),
                ButtonPermission.description.ilike(pattern),
            )
        )
    if category:
        filters.append(ButtonPermission.category == category)

    buttons = (
        db.execute(
            select(ButtonPermission)
            .where(*filters)
            .order_by(ButtonPermission.category, ButtonPermission.name)
            .offset(offset)
            .limit(limit)
        )
        .scalars()
        .all()
    )
    total = db.execute(select(func.count(ButtonPermission.id)).where(*filters)).scalar_one()
    return list(buttons), total


def _ensure_unique_name(db: Session, name: str, *, exclude_id: int | None = None) -> None:
    stmt = select(ButtonPermission.id).where(ButtonPermission.name == name)
    if exclude_id is not None:
        stmt = stmt.where(ButtonPermission.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise ConflictError("按钮权限名称已存在。", name=name)


def create_button(db: Session, command: ButtonPermissionCreateRequest) -> ButtonPermission:
    _ensure_unique_name(db, command.name)
    button = ButtonPermission(**command.model_dump())
    db.add(button)
    db.flush()
    return button


def update_button(
    db: Session, button_id: int, command: ButtonPermissionUpdateRequest
) -> tuple[dict[str, Any], ButtonPermission]:
    """更新按钮权限，返回 (变更前快照, 按钮权限)。"""
    button = get_button(db, button_id)
    before = button_snapshot(button)
    changes = patch_fields(command, required={"name", "display_name", "category", "is_active"})
    if "name" in changes and changes["name"] != button.name:
        _ensure_unique_name(db, changes["name"], exclude_id=button_id)
    for field, value in changes.items():
        setattr(button, field, value)
    db.flush()
    return before, button


def delete_buttons(db: Session, button_ids: Iterable[int]) -> tuple[list[dict[str, Any]], list[dict[str, int]]]:
    """删除按钮权限并级联删除引用它们的角色授权，返回 (被删快照, 被删授权)。"""
    ordered_ids = sorted(set(button_ids))
    buttons = [get_button(db, button_id) for button_id in ordered_ids]
    grants = (
        db.execute(
            select(RoleButtonGrant)
            .where(RoleButtonGrant.button_id.in_(ordered_ids))
            .order_by(RoleButtonGrant.role_id, RoleButtonGrant.button_id)
        )
        .scalars()
        .all()
    )
    revoked = [{"role_id": grant.role_id, "button_id": grant.button_id} for grant in grants]
    snapshots = [button_snapshot(button) for button in buttons]

    db.execute(delete(RoleButtonGrant).where(RoleButtonGrant.button_id.in_(ordered_ids)))
    db.execute(delete(ButtonPermission).where(ButtonPermission.id.in_(ordered_ids)))
    db.flush()
    return snapshots, revoked
