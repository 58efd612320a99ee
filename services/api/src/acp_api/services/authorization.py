"""鉴权读路径。

判定规则：
1. 用户不存在抛出 NotFoundError；其余“无权限”情况一律返回 False 或空结果。
2. 用户停用、未绑定角色、角色不存在或停用时，全部拒绝。
3. 授权不具备层级继承：授予子菜单不会隐式授予祖先菜单，反之亦然。
"""

from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from acp_api.core.errors import NotFoundError
from acp_api.models.catalog import ButtonPermission
from acp_api.models.permission import RoleButtonGrant, RoleMenuGrant
from acp_api.models.role import Role, User
from acp_api.services.buttons import button_snapshot
from acp_api.services.menu_tree import MenuTree


def _get_user(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("用户不存在。", user_id=user_id)
    return user


def resolve_active_role(db: Session, user_id: int) -> Role | None:
    """解析用户当前生效角色；任一环节不可用时返回 None。"""
    user = _get_user(db, user_id)
    if not user.is_active or user.role_id is None:
        return None
    role = db.get(Role, user.role_id)
    if role is None or not role.is_active:
        return None
    return role


def has_menu_access(db: Session, user_id: int, menu_id: int) -> bool:
    """判断用户是否被授予指定菜单。"""
    role = resolve_active_role(db, user_id)
    if role is None:
        return False
    grant = db.execute(
        select(RoleMenuGrant.menu_id).where(RoleMenuGrant.role_id == role.id).where(RoleMenuGrant.menu_id == menu_id)
    ).first()
    return grant is not None


def has_button_access(db: Session, user_id: int, button_name: str) -> bool:
    """按按钮标识名判断用户是否具备按钮权限。"""
    role = resolve_active_role(db, user_id)
    if role is None:
        return False
    grant = db.execute(
        select(RoleButtonGrant.button_id)
        .join(ButtonPermission, ButtonPermission.id == RoleButtonGrant.button_id)
        .where(RoleButtonGrant.role_id == role.id)
        .where(ButtonPermission.name == button_name)
    ).first()
    return grant is not None


def effective_menu_tree(db: Session, user_id: int, *, tree: MenuTree | None = None) -> list[dict[str, Any]]:
    """已授权菜单树：未授权节点连同其子树一起隐藏。"""
    role = resolve_active_role(db, user_id)
    if role is None:
        return []
    granted = set(db.execute(select(RoleMenuGrant.menu_id).where(RoleMenuGrant.role_id == role.id)).scalars().all())
    if not granted:
        return []
    return (tree or MenuTree.load(db)).to_nested(include=granted)


def effective_permissions(db: Session, user_id: int) -> dict[str, Any]:
    """返回用户最终生效的菜单树与按钮权限。"""
    user = _get_user(db, user_id)
    role = resolve_active_role(db, user_id)
    result: dict[str, Any] = {
        "user_id": user.id,
        "role_id": user.role_id,
        "role_name": None,
        "menus": [],
        "buttons": [],
    }
    if role is None:
        return result

    buttons = (
        db.execute(
            select(ButtonPermission)
            .join(RoleButtonGrant, RoleButtonGrant.button_id == ButtonPermission.id)
            .where(RoleButtonGrant.role_id == role.id)
            .order_by(ButtonPermission.id)
        )
        .scalars()
        .all()
    )
    result["role_name"] = role.name
    result["menus"] = effective_menu_tree(db, user_id)
    result["buttons"] = [button_snapshot(button) for button in buttons]
    return result
