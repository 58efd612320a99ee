"""角色授权矩阵（数据库驱动）。

授权为覆盖式：按 (角色, 类别) 计算差集，只删除移除项、只插入新增项。
同一角色的覆盖操作通过角色行锁串行化，后提交者生效。
"""

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from acp_api.core.errors import NotFoundError, ReferentialError
from acp_api.models.catalog import ButtonPermission, Menu
from acp_api.models.permission import RoleButtonGrant, RoleMenuGrant
from acp_api.models.role import Role
from acp_api.services.validation import normalize_id_set


@dataclass(frozen=True)
class GrantDelta:
    """一次覆盖操作的授权差集。"""

    role_id: int
    before: list[int]
    after: list[int]
    added: list[int] = field(default_factory=list)
    removed: list[int] = field(default_factory=list)

    def audit_before(self, key: str) -> dict[str, Any]:
        return {"role_id": self.role_id, key: self.before}

    def audit_after(self, key: str) -> dict[str, Any]:
        return {"role_id": self.role_id, key: self.after, "added": self.added, "removed": self.removed}


def lock_role(db: Session, role_id: int) -> Role:
    """对角色行加锁（SELECT ... FOR UPDATE），角色不存在视为引用错误。"""
    role = db.execute(select(Role).where(Role.id == role_id).with_for_update()).scalar_one_or_none()
    if role is None:
        raise ReferentialError("角色不存在。", role_id=role_id)
    return role


def _existing_ids(db: Session, id_column, ids: set[int]) -> set[int]:
    if not ids:
        return set()
    return set(db.execute(select(id_column).where(id_column.in_(ids))).scalars().all())


def list_role_menu_ids(db: Session, role_id: int) -> list[int]:
    return sorted(db.execute(select(RoleMenuGrant.menu_id).where(RoleMenuGrant.role_id == role_id)).scalars().all())


def list_role_button_ids(db: Session, role_id: int) -> list[int]:
    return sorted(
        db.execute(select(RoleButtonGrant.button_id).where(RoleButtonGrant.role_id == role_id)).scalars().all()
    )


def set_role_menu_grants(db: Session, role_id: int, menu_ids: list[int]) -> GrantDelta:
    """覆盖设置角色菜单授权。重复 ID 自动合并，未知菜单整体拒绝。"""
    lock_role(db, role_id)
    wanted = normalize_id_set(menu_ids, field="menu_ids")
    missing = sorted(wanted - _existing_ids(db, Menu.id, wanted))
    if missing:
        raise ReferentialError("菜单不存在。", menu_ids=missing)

    current = set(list_role_menu_ids(db, role_id))
    removed = sorted(current - wanted)
    added = sorted(wanted - current)
    if removed:
        db.execute(
            delete(RoleMenuGrant).where(RoleMenuGrant.role_id == role_id).where(RoleMenuGrant.menu_id.in_(removed))
        )
    db.add_all(RoleMenuGrant(role_id=role_id, menu_id=menu_id) for menu_id in added)
    db.flush()
    return GrantDelta(role_id=role_id, before=sorted(current), after=sorted(wanted), added=added, removed=removed)


def set_role_button_grants(db: Session, role_id: int, button_ids: list[int]) -> GrantDelta:
    """覆盖设置角色按钮授权。"""
    lock_role(db, role_id)
    wanted = normalize_id_set(button_ids, field="button_ids")
    missing = sorted(wanted - _existing_ids(db, ButtonPermission.id, wanted))
    if missing:
        raise ReferentialError("按钮权限不存在。", button_ids=missing)

    current = set(list_role_button_ids(db, role_id))
    removed = sorted(current - wanted)
    added = sorted(wanted - current)
    if removed:
        db.execute(
            delete(RoleButtonGrant)
            .where(RoleButtonGrant.role_id == role_id)
            .where(RoleButtonGrant.button_id.in_(removed))
        )
    db.add_all(RoleButtonGrant(role_id=role_id, button_id=button_id) for button_id in added)
    db.flush()
    return GrantDelta(role_id=role_id, before=sorted(current), after=sorted(wanted), added=added, removed=removed)


def get_effective_grants(db: Session, role_id: int) -> dict[str, Any]:
    """返回角色当前授权集合（ID 升序）。"""
    if db.get(Role, role_id) is None:
        raise NotFoundError("角色不存在。", role_id=role_id)
    return {
        "role_id": role_id,
        "menu_ids": list_role_menu_ids(db, role_id),
        "button_ids": list_role_button_ids(db, role_id),
    }
