"""角色存储服务。

受保护判定同时检查 is_system 标记与内置角色名单，
避免因数据录入错误导致内置角色失去保护。
"""

from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from acp_api.core.errors import ConflictError, NotFoundError, ProtectedResourceError, ReferentialError
from acp_api.models.enums import PROTECTED_ROLE_NAMES
from acp_api.models.permission import RoleButtonGrant, RoleMenuGrant
from acp_api.models.role import Role, User
from acp_api.schemas.role import RoleCreateRequest, RoleUpdateRequest
from acp_api.services.validation import patch_fields


def is_protected_role(role: Role) -> bool:
    """系统角色或内置角色名均视为受保护。"""
    return bool(role.is_system) or role.name in PROTECTED_ROLE_NAMES


def role_snapshot(role: Role) -> dict[str, Any]:
    """审计用角色快照（不含易变时间戳）。"""
    return {
        "id": role.id,
        "name": role.name,
        "display_name": role.display_name,
        "description": role.description,
        "is_system": role.is_system,
        "is_active": role.is_active,
    }


def _count_by_role(db: Session, column, role_ids: list[int]) -> dict[int, int]:
    if not role_ids:
        return {}
    rows = db.execute(select(column, func.count()).where(column.in_(role_ids)).group_by(column)).all()
    return {role_id: count for role_id, count in rows}


def user_counts(db: Session, role_ids: list[int]) -> dict[int, int]:
    """按角色统计当前绑定用户数。"""
    return _count_by_role(db, User.role_id, role_ids)


def role_views(db: Session, roles: list[Role]) -> list[dict[str, Any]]:
    """组装带用户数与授权数的角色视图。"""
    role_ids = [role.id for role in roles]
    users = user_counts(db, role_ids)
    menus = _count_by_role(db, RoleMenuGrant.role_id, role_ids)
    buttons = _count_by_role(db, RoleButtonGrant.role_id, role_ids)
    return [
        {
            **role_snapshot(role),
            "is_protected": is_protected_role(role),
            "user_count": users.get(role.id, 0),
            "menu_grant_count": menus.get(role.id, 0),
            "button_grant_count": buttons.get(role.id, 0),
            "created_at": role.created_at,
            "updated_at": role.updated_at,
        }
        for role in roles
    ]


def get_role(db: Session, role_id: int) -> Role:
    """按 ID 读取角色，不存在时抛出 NotFoundError。"""
    role = db.get(Role, role_id)
    if role is None:
        raise NotFoundError("角色不存在。", role_id=role_id)
    return role


def get_role_by_name(db: Session, name: str) -> Role:
    role = db.execute(select(Role).where(Role.name == name)).scalar_one_or_none()
    if role is None:
        raise NotFoundError("角色不存在。", name=name)
    return role


def list_roles(
    db: Session,
    *,
    offset: int,
    limit: int,
    search: str | None = None,
    is_active: bool | None = None,
) -> tuple[list[Role], int]:
    """分页查询角色，按创建时间倒序。"""
    filters = []
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(or_(Role.name.ilike(pattern), Role.display_name.ilike(pattern), Role.description.ilike(pattern)))
    if is_active is not None:
        filters.append(Role.is_active == is_active)

    roles = (
        db.execute(select(Role).where(*filters).order_by(Role.created_at.desc(), Role.id.desc()).offset(offset).limit(limit))
        .scalars()
        .all()
    )
    total = db.execute(select(func.count(Role.id)).where(*filters)).scalar_one()
    return list(roles), total


def create_role(db: Session, command: RoleCreateRequest) -> Role:
    """创建角色，名称全局唯一。"""
    if db.execute(select(Role.id).where(Role.name == command.name)).first() is not None:
        raise ConflictError("角色名称已存在。", name=command.name)
    role = Role(**command.model_dump())
    db.add(role)
    db.flush()
    return role


def _ensure_editable(role: Role) -> None:
    if is_protected_role(role):
        raise ProtectedResourceError("系统内置角色不可修改。", role_id=role.id, name=role.name)


def update_role(db: Session, role_id: int, command: RoleUpdateRequest) -> tuple[dict[str, Any], Role]:
    """更新角色可变字段，返回 (变更前快照, 角色)。"""
    role = get_role(db, role_id)
    _ensure_editable(role)
    before = role_snapshot(role)
    for field, value in patch_fields(command, required={"display_name", "is_active"}).items():
        setattr(role, field, value)
    db.flush()
    return before, role


def lock_roles(db: Session, role_ids: list[int]) -> list[Role]:
    """按 ID 升序对角色行加锁（SELECT ... FOR UPDATE）。

    用户分配与授权覆盖同样先锁角色行，删除、停用与它们互斥，
    统计到的用户数在提交前不会被并发分配改变。
    """
    return list(
        db.execute(select(Role).where(Role.id.in_(role_ids)).order_by(Role.id).with_for_update()).scalars().all()
    )


def delete_roles(db: Session, role_ids: Iterable[int]) -> list[dict[str, Any]]:
    """删除角色及其全部授权；任一角色受保护或仍有用户绑定则整体拒绝。"""
    ordered_ids = sorted(set(role_ids))
    roles = lock_roles(db, ordered_ids)
    missing = sorted(set(ordered_ids) - {role.id for role in roles})
    if missing:
        raise NotFoundError("角色不存在。", role_id=missing[0])
    counts = user_counts(db, ordered_ids)
    for role in roles:
        if is_protected_role(role):
            raise ProtectedResourceError("系统内置角色不可删除。", role_id=role.id, name=role.name)
        if counts.get(role.id, 0) > 0:
            raise ConflictError(
                "角色仍有用户绑定，无法删除。",
                role_id=role.id,
                name=role.name,
                user_count=counts[role.id],
            )

    snapshots = [role_snapshot(role) for role in roles]
    db.execute(delete(RoleMenuGrant).where(RoleMenuGrant.role_id.in_(ordered_ids)))
    db.execute(delete(RoleButtonGrant).where(RoleButtonGrant.role_id.in_(ordered_ids)))
    db.execute(delete(Role).where(Role.id.in_(ordered_ids)))
    db.flush()
    return snapshots


def batch_set_active(db: Session, role_ids: Iterable[int], is_active: bool) -> list[dict[str, Any]]:
    """批量启用/停用角色，返回变更前快照列表。"""
    ordered_ids = sorted(set(role_ids))
    roles = lock_roles(db, ordered_ids)
    missing = sorted(set(ordered_ids) - {role.id for role in roles})
    if missing:
        raise ReferentialError("角色不存在。", role_ids=missing)
    for role in roles:
        _ensure_editable(role)

    before = [role_snapshot(role) for role in roles]
    for role in roles:
        role.is_active = is_active
    db.flush()
    return before


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("用户不存在。", user_id=user_id)
    return user


def assign_user_role(db: Session, user_id: int, role_id: int) -> tuple[int | None, User]:
    """为用户绑定角色（一人一角色），返回 (原角色 ID, 用户)。"""
    user = _get_user(db, user_id)
    # 与 delete_roles 共用角色行锁，避免分配到正在删除的角色。
    locked = lock_roles(db, [role_id])
    if not locked:
        raise ReferentialError("角色不存在。", role_id=role_id)
    role = locked[0]
    if not role.is_active:
        raise ConflictError("角色已停用，无法分配。", role_id=role_id)
    previous = user.role_id
    user.role_id = role_id
    db.flush()
    return previous, user


def user_snapshot(user: User) -> dict[str, Any]:
    """审计用用户快照。"""
    return {
        "id": user.id,
        "username": user.username,
        "display_name": user.display_name,
        "role_id": user.role_id,
        "is_active": user.is_active,
    }


def list_users(
    db: Session,
    *,
    offset: int,
    limit: int,
    search: str | None = None,
    role_id: int | None = None,
    is_active: bool | None = None,
) -> tuple[list[dict[str, Any]], int]:
    """分页查询用户及其角色名，按创建时间倒序。"""
    filters = []
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        filters.append(or_(User.username.ilike(pattern), User.display_name.ilike(pattern)))
    if role_id is not None:
        filters.append(User.role_id == role_id)
    if is_active is not None:
        filters.append(User.is_active == is_active)

    rows = db.execute(
        select(User, Role.name)
        .outerjoin(Role, Role.id == User.role_id)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id.desc())
        .offset(offset)
        .limit(limit)
    ).all()
    total = db.execute(select(func.count(User.id)).where(*filters)).scalar_one()
    items = [{**user_snapshot(user), "role_name": role_name, "created_at": user.created_at} for user, role_name in rows]
    return items, total


def batch_update_users(db: Session, user_ids: Iterable[int], changes: dict[str, Any]) -> list[dict[str, Any]]:
    """批量更新用户角色或启用状态，任一用户不存在则整体拒绝。返回变更前快照列表。

    changes 仅包含显式传入的字段；role_id 为 None 表示解除绑定。
    """
    ordered_ids = sorted(set(user_ids))
    if changes.get("role_id") is not None:
        locked = lock_roles(db, [changes["role_id"]])
        if not locked:
            raise ReferentialError("角色不存在。", role_id=changes["role_id"])
        if not locked[0].is_active:
            raise ConflictError("角色已停用，无法分配。", role_id=changes["role_id"])

    users = db.execute(select(User).where(User.id.in_(ordered_ids)).order_by(User.id)).scalars().all()
    missing = sorted(set(ordered_ids) - {user.id for user in users})
    if missing:
        raise ReferentialError("用户不存在。", user_ids=missing)

    before = [user_snapshot(user) for user in users]
    for user in users:
        for field, value in changes.items():
            setattr(user, field, value)
    db.flush()
    return before


def revoke_user_role(db: Session, user_id: int) -> tuple[int | None, User]:
    """解除用户角色绑定，返回 (原角色 ID, 用户)。"""
    user = _get_user(db, user_id)
    previous = user.role_id
    user.role_id = None
    db.flush()
    return previous, user
