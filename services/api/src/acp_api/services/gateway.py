"""变更网关。

所有写操作必须经由本模块：业务变更与审计记录在同一事务内提交，
任何一步失败都整体回滚，不会留下“有变更无审计”或“有审计无变更”的中间状态。
"""

from collections.abc import Callable, Iterable, Mapping
import logging
from typing import Any, TypeVar

from sqlalchemy.orm import Session

from acp_api.core.errors import AccessControlError, InternalError, ValidationError
from acp_api.models.catalog import ButtonPermission, Menu
from acp_api.models.enums import BULK_RESOURCE_ID, AuditAction, ResourceType
from acp_api.models.role import Role, User
from acp_api.schemas.button import ButtonPermissionCreateRequest, ButtonPermissionUpdateRequest
from acp_api.schemas.menu import MenuCreateRequest, MenuUpdateRequest
from acp_api.schemas.permission import MatrixApplyRequest, RoleButtonGrantRequest, RoleMenuGrantRequest
from acp_api.schemas.role import (
    RoleBatchActiveRequest,
    RoleCreateRequest,
    RoleUpdateRequest,
    UserBatchUpdateRequest,
    UserRoleAssignRequest,
)
from acp_api.services import buttons, menu_tree, permissions, roles
from acp_api.services.audit import AuditContext, record_audit
from acp_api.services.permissions import GrantDelta
from acp_api.services.validation import normalize_id_set, parse_command, patch_fields

logger = logging.getLogger("acp_api.gateway")

ResultT = TypeVar("ResultT")
Payload = Mapping[str, Any]


class MutationGateway:
    """写操作唯一入口，一次调用对应一个事务。"""

    def __init__(self, db: Session, ctx: AuditContext) -> None:
        self.db = db
        self.ctx = ctx

    def _run(self, operation: str, mutate: Callable[[], ResultT]) -> ResultT:
        """执行变更并提交；领域异常原样抛出，其余异常包装为 InternalError。"""
        try:
            result = mutate()
            self.db.commit()
        except AccessControlError:
            self.db.rollback()
            raise
        except Exception as exc:
            self.db.rollback()
            logger.exception("mutation rolled back operation=%s actor=%s", operation, self.ctx.actor_user_id)
            raise InternalError("操作失败，变更已回滚。", operation=operation) from exc
        logger.info("mutation committed operation=%s actor=%s", operation, self.ctx.actor_user_id)
        return result

    def _audit(
        self,
        *,
        action: str,
        resource_type: str,
        resource_id: int,
        description: str,
        before: Any = None,
        after: Any = None,
    ) -> None:
        record_audit(
            self.db,
            self.ctx,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            description=description,
            before=before,
            after=after,
        )
        self.db.flush()

    # 角色

    def create_role(self, payload: RoleCreateRequest | Payload) -> Role:
        command = parse_command(RoleCreateRequest, payload)

        def mutate() -> Role:
            role = roles.create_role(self.db, command)
            self._audit(
                action=AuditAction.CREATE,
                resource_type=ResourceType.ROLE,
                resource_id=role.id,
                description=f"创建角色 {role.name}",
                after=roles.role_snapshot(role),
            )
            return role

        return self._run("role.create", mutate)

    def update_role(self, role_id: int, payload: RoleUpdateRequest | Payload) -> Role:
        command = parse_command(RoleUpdateRequest, payload)

        def mutate() -> Role:
            before, role = roles.update_role(self.db, role_id, command)
            self._audit(
                action=AuditAction.UPDATE,
                resource_type=ResourceType.ROLE,
                resource_id=role.id,
                description=f"更新角色 {role.name}",
                before=before,
                after=roles.role_snapshot(role),
            )
            return role

        return self._run("role.update", mutate)

    def delete_role(self, role_id: int) -> dict[str, Any]:
        """删除单个角色，返回被删角色快照。"""

        def mutate() -> dict[str, Any]:
            (snapshot,) = roles.delete_roles(self.db, [role_id])
            self._audit(
                action=AuditAction.DELETE,
                resource_type=ResourceType.ROLE,
                resource_id=role_id,
                description=f"删除角色 {snapshot['name']}",
                before=snapshot,
            )
            return snapshot

        return self._run("role.delete", mutate)

    def delete_roles(self, role_ids: Iterable[int]) -> int:
        """批量删除角色，任一角色不可删则整体失败。"""
        ids = normalize_id_set(list(role_ids), field="role_ids")
        if not ids:
            raise ValidationError("role_ids 不能为空。", field="role_ids")

        def mutate() -> int:
            snapshots = roles.delete_roles(self.db, ids)
            self._audit(
                action=AuditAction.BATCH_DELETE,
                resource_type=ResourceType.ROLE,
                resource_id=BULK_RESOURCE_ID,
                description=f"批量删除 {len(snapshots)} 个角色",
                before=snapshots,
            )
            return len(snapshots)

        return self._run("role.batch_delete", mutate)

    def batch_set_active(self, payload: RoleBatchActiveRequest | Payload) -> int:
        command = parse_command(RoleBatchActiveRequest, payload)
        ids = normalize_id_set(command.role_ids, field="role_ids")

        def mutate() -> int:
            before = roles.batch_set_active(self.db, ids, command.is_active)
            self._audit(
                action=AuditAction.BATCH_UPDATE,
                resource_type=ResourceType.ROLE,
                resource_id=BULK_RESOURCE_ID,
                description=f"批量{'启用' if command.is_active else '停用'} {len(before)} 个角色",
                before=before,
                after={"role_ids": sorted(ids), "is_active": command.is_active},
            )
            return len(before)

        return self._run("role.batch_set_active", mutate)

    # 菜单

    def create_menu(self, payload: MenuCreateRequest | Payload) -> Menu:
        command = parse_command(MenuCreateRequest, payload)

        def mutate() -> Menu:
            menu = menu_tree.create_menu(self.db, command)
            self._audit(
                action=AuditAction.CREATE,
                resource_type=ResourceType.MENU,
                resource_id=menu.id,
                description=f"创建菜单 {menu.name}",
                after=menu_tree.menu_snapshot(menu),
            )
            return menu

        return self._run("menu.create", mutate)

    def update_menu(self, menu_id: int, payload: MenuUpdateRequest | Payload) -> Menu:
        command = parse_command(MenuUpdateRequest, payload)

        def mutate() -> Menu:
            before, menu = menu_tree.update_menu(self.db, menu_id, command)
            self._audit(
                action=AuditAction.UPDATE,
                resource_type=ResourceType.MENU,
                resource_id=menu.id,
                description=f"更新菜单 {menu.name}",
                before=before,
                after=menu_tree.menu_snapshot(menu),
            )
            return menu

        return self._run("menu.update", mutate)

    def delete_menu(self, menu_id: int) -> tuple[list[int], int]:
        """级联删除菜单，返回 (被删菜单 ID, 被删授权数)。"""

        def mutate() -> tuple[list[int], int]:
            snapshots, revoked = menu_tree.delete_menus(self.db, [menu_id])
            self._audit(
                action=AuditAction.DELETE,
                resource_type=ResourceType.MENU,
                resource_id=menu_id,
                description=f"删除菜单 {menu_id} 及 {len(snapshots) - 1} 个子菜单",
                before={"menus": snapshots, "revoked_grants": revoked},
            )
            return [item["id"] for item in snapshots], len(revoked)

        return self._run("menu.delete", mutate)

    # 按钮权限

    def create_button(self, payload: ButtonPermissionCreateRequest | Payload) -> ButtonPermission:
        command = parse_command(ButtonPermissionCreateRequest, payload)

        def mutate() -> ButtonPermission:
            button = buttons.create_button(self.db, command)
            self._audit(
                action=AuditAction.CREATE,
                resource_type=ResourceType.BUTTON_PERMISSION,
                resource_id=button.id,
                description=f"创建按钮权限 {button.name}",
                after=buttons.button_snapshot(button),
            )
            return button

        return self._run("button.create", mutate)

    def update_button(self, button_id: int, payload: ButtonPermissionUpdateRequest | Payload) -> ButtonPermission:
        command = parse_command(ButtonPermissionUpdateRequest, payload)

        def mutate() -> ButtonPermission:
            before, button = buttons.update_button(self.db, button_id, command)
            self._audit(
                action=AuditAction.UPDATE,
                resource_type=ResourceType.BUTTON_PERMISSION,
                resource_id=button.id,
                description=f"更新按钮权限 {button.name}",
                before=before,
                after=buttons.button_snapshot(button),
            )
            return button

        return self._run("button.update", mutate)

    def delete_button(self, button_id: int) -> int:
        """删除按钮权限，返回被级联删除的授权数。"""

        def mutate() -> int:
            (snapshot,), revoked = buttons.delete_buttons(self.db, [button_id])
            self._audit(
                action=AuditAction.DELETE,
                resource_type=ResourceType.BUTTON_PERMISSION,
                resource_id=button_id,
                description=f"删除按钮权限 {snapshot['name']}",
                before={**snapshot, "revoked_grants": revoked},
            )
            return len(revoked)

        return self._run("button.delete", mutate)

    # 授权矩阵

    def _apply_menu_grants(self, role_id: int, menu_ids: list[int]) -> GrantDelta:
        delta = permissions.set_role_menu_grants(self.db, role_id, menu_ids)
        self._audit(
            action=AuditAction.UPDATE,
            resource_type=ResourceType.ROLE_MENU_GRANT,
            resource_id=role_id,
            description=f"覆盖角色 {role_id} 菜单授权：新增 {len(delta.added)}，移除 {len(delta.removed)}",
            before=delta.audit_before("menu_ids"),
            after=delta.audit_after("menu_ids"),
        )
        return delta

    def _apply_button_grants(self, role_id: int, button_ids: list[int]) -> GrantDelta:
        delta = permissions.set_role_button_grants(self.db, role_id, button_ids)
        self._audit(
            action=AuditAction.UPDATE,
            resource_type=ResourceType.ROLE_BUTTON_GRANT,
            resource_id=role_id,
            description=f"覆盖角色 {role_id} 按钮授权：新增 {len(delta.added)}，移除 {len(delta.removed)}",
            before=delta.audit_before("button_ids"),
            after=delta.audit_after("button_ids"),
        )
        return delta

    def set_role_menu_grants(self, role_id: int, payload: RoleMenuGrantRequest | Payload) -> GrantDelta:
        command = parse_command(RoleMenuGrantRequest, payload)
        return self._run("grant.menu.replace", lambda: self._apply_menu_grants(role_id, command.menu_ids))

    def set_role_button_grants(self, role_id: int, payload: RoleButtonGrantRequest | Payload) -> GrantDelta:
        command = parse_command(RoleButtonGrantRequest, payload)
        return self._run("grant.button.replace", lambda: self._apply_button_grants(role_id, command.button_ids))

    def apply_matrix(self, payload: MatrixApplyRequest | Payload) -> list[dict[str, Any]]:
        """逐角色覆盖授权，每个角色独立事务，返回逐项结果。

        单个角色失败不影响已提交或后续角色。
        """
        command = parse_command(MatrixApplyRequest, payload)
        results: list[dict[str, Any]] = []
        for item in command.items:

            def mutate(item=item) -> dict[str, Any]:
                outcome: dict[str, Any] = {"role_id": item.role_id, "success": True}
                if item.menu_ids is not None:
                    outcome["menu_ids"] = self._apply_menu_grants(item.role_id, item.menu_ids).after
                if item.button_ids is not None:
                    outcome["button_ids"] = self._apply_button_grants(item.role_id, item.button_ids).after
                return outcome

            try:
                results.append(self._run("grant.matrix.item", mutate))
            except AccessControlError as exc:
                results.append(
                    {
                        "role_id": item.role_id,
                        "success": False,
                        "error_code": exc.code,
                        "error_message": exc.message,
                    }
                )
        return results

    # 用户角色

    def assign_user_role(self, user_id: int, payload: UserRoleAssignRequest | Payload) -> User:
        command = parse_command(UserRoleAssignRequest, payload)

        def mutate() -> User:
            previous, user = roles.assign_user_role(self.db, user_id, command.role_id)
            self._audit(
                action=AuditAction.ASSIGN,
                resource_type=ResourceType.USER,
                resource_id=user.id,
                description=f"为用户 {user.username} 分配角色 {command.role_id}",
                before={"user_id": user.id, "role_id": previous},
                after={"user_id": user.id, "role_id": user.role_id},
            )
            return user

        return self._run("user.role.assign", mutate)

    def batch_update_users(self, payload: UserBatchUpdateRequest | Payload) -> int:
        """批量改绑角色或启停账号，单事务写入一条 BATCH_UPDATE 审计。"""
        command = parse_command(UserBatchUpdateRequest, payload)
        ids = normalize_id_set(command.user_ids, field="user_ids")
        changes = patch_fields(command, required={"is_active"})
        changes.pop("user_ids", None)

        def mutate() -> int:
            before = roles.batch_update_users(self.db, ids, changes)
            self._audit(
                action=AuditAction.BATCH_UPDATE,
                resource_type=ResourceType.USER,
                resource_id=BULK_RESOURCE_ID,
                description=f"批量更新 {len(before)} 个用户：{', '.join(item['username'] for item in before)}",
                before=before,
                after={"user_ids": sorted(ids), **changes},
            )
            return len(before)

        return self._run("user.batch_update", mutate)

    def revoke_user_role(self, user_id: int) -> User:
        def mutate() -> User:
            previous, user = roles.revoke_user_role(self.db, user_id)
            self._audit(
                action=AuditAction.REVOKE,
                resource_type=ResourceType.USER,
                resource_id=user.id,
                description=f"解除用户 {user.username} 的角色绑定",
                before={"user_id": user.id, "role_id": previous},
                after={"user_id": user.id, "role_id": None},
            )
            return user

        return self._run("user.role.revoke", mutate)
