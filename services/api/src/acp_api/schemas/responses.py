"""接口成功响应 `data` 字段结构定义。

说明：
1. 所有业务接口统一返回 `SuccessResponse[data=...]`。
2. 本文件专注于定义各接口在 `data` 中的业务字段。
3. 字段描述会直接用于 Swagger 展示，便于联调时理解含义。
"""

from datetime import datetime

from pydantic import Field

from acp_api.schemas.common import BaseSchema, PaginationMeta


class HealthStatusData(BaseSchema):
    """健康检查返回结构。"""

    status: str = Field(description="健康状态值，常见为 ok 或 ready。")
    app_name: str | None = Field(default=None, description="应用名称。")
    env: str | None = Field(default=None, description="运行环境标识。")
    tables: dict[str, int] | None = Field(default=None, description="就绪探针读取到的各权限表记录数。")


class RoleData(BaseSchema):
    """角色结构。"""

    id: int = Field(description="角色 ID。")
    name: str = Field(description="角色标识名（不可修改）。")
    display_name: str = Field(description="角色展示名。")
    description: str | None = Field(default=None, description="角色说明。")
    is_system: bool = Field(description="是否系统内置角色。")
    is_active: bool = Field(description="是否启用。")
    is_protected: bool = Field(description="是否受保护（不可编辑/删除）。")
    user_count: int = Field(description="当前绑定该角色的用户数。")
    menu_grant_count: int = Field(default=0, description="已授权菜单数。")
    button_grant_count: int = Field(default=0, description="已授权按钮数。")
    created_at: datetime | None = Field(default=None, description="创建时间。")
    updated_at: datetime | None = Field(default=None, description="更新时间。")


class RolePageData(BaseSchema):
    """角色分页列表。"""

    roles: list[RoleData] = Field(description="当前页角色。")
    pagination: PaginationMeta = Field(description="分页信息。")


class CountData(BaseSchema):
    """批量操作影响条数。"""

    count: int = Field(description="受影响记录数。")


class MenuData(BaseSchema):
    """菜单结构。"""

    id: int = Field(description="菜单 ID。")
    name: str = Field(description="菜单标识名。")
    display_name: str = Field(description="菜单展示名。")
    path: str | None = Field(default=None, description="前端路由路径。")
    icon: str | None = Field(default=None, description="图标名称。")
    parent_id: int | None = Field(default=None, description="父菜单 ID。")
    sort_order: int = Field(description="同级排序值。")
    is_active: bool = Field(description="是否启用。")


class MenuTreeNodeData(MenuData):
    """菜单树节点。"""

    children: list["MenuTreeNodeData"] = Field(default_factory=list, description="子菜单。")


class MenuPageData(BaseSchema):
    """菜单分页列表。"""

    menus: list[MenuData] = Field(description="当前页菜单。")
    pagination: PaginationMeta = Field(description="分页信息。")


class MenuDeleteData(BaseSchema):
    """菜单级联删除结果。"""

    menu_ids: list[int] = Field(description="被删除的菜单 ID（含全部子孙）。")
    revoked_grant_count: int = Field(description="随之删除的角色菜单授权数。")


class ButtonPermissionData(BaseSchema):
    """按钮权限结构。"""

    id: int = Field(description="按钮权限 ID。")
    name: str = Field(description="按钮权限标识名。")
    display_name: str = Field(description="按钮展示名。")
    description: str | None = Field(default=None, description="权限说明。")
    category: str = Field(description="权限分类。")
    is_active: bool = Field(description="是否启用。")


class ButtonPermissionPageData(BaseSchema):
    """按钮权限分页列表。"""

    buttons: list[ButtonPermissionData] = Field(description="当前页按钮权限。")
    pagination: PaginationMeta = Field(description="分页信息。")


class RoleGrantData(BaseSchema):
    """角色当前授权集合。"""

    role_id: int = Field(description="角色 ID。")
    menu_ids: list[int] = Field(description="已授权菜单 ID（升序）。")
    button_ids: list[int] = Field(description="已授权按钮 ID（升序）。")


class MatrixItemResultData(BaseSchema):
    """多角色授权覆盖的单项结果。"""

    role_id: int = Field(description="角色 ID。")
    success: bool = Field(description="该角色是否提交成功。")
    menu_ids: list[int] | None = Field(default=None, description="提交后的菜单授权。")
    button_ids: list[int] | None = Field(default=None, description="提交后的按钮授权。")
    error_code: str | None = Field(default=None, description="失败错误码。")
    error_message: str | None = Field(default=None, description="失败原因。")


class EffectivePermissionData(BaseSchema):
    """用户最终生效权限。"""

    user_id: int = Field(description="用户 ID。")
    role_id: int | None = Field(default=None, description="用户角色 ID。")
    role_name: str | None = Field(default=None, description="用户角色标识名。")
    menus: list[MenuTreeNodeData] = Field(description="已授权菜单树（未授权父节点会隐藏其子树）。")
    buttons: list[ButtonPermissionData] = Field(description="已授权按钮权限。")


class UserRoleData(BaseSchema):
    """用户角色绑定结果。"""

    user_id: int = Field(description="用户 ID。")
    username: str = Field(description="登录名。")
    role_id: int | None = Field(default=None, description="当前角色 ID。")


class UserData(BaseSchema):
    """用户结构。"""

    id: int = Field(description="用户 ID。")
    username: str = Field(description="登录名。")
    display_name: str = Field(description="展示名。")
    role_id: int | None = Field(default=None, description="当前角色 ID。")
    role_name: str | None = Field(default=None, description="当前角色标识名。")
    is_active: bool = Field(description="账号是否启用。")
    created_at: datetime | None = Field(default=None, description="创建时间。")


class UserPageData(BaseSchema):
    """用户分页列表。"""

    users: list[UserData] = Field(description="当前页用户。")
    pagination: PaginationMeta = Field(description="分页信息。")


class AuditLogData(BaseSchema):
    """审计日志结构。"""

    id: int = Field(description="日志 ID。")
    actor_user_id: int | None = Field(default=None, description="操作人用户 ID。")
    action: str = Field(description="动作。")
    resource_type: str = Field(description="资源类型。")
    resource_id: int = Field(description="资源 ID，批量操作为 0。")
    before_data: str | None = Field(default=None, description="变更前快照（规范化 JSON）。")
    after_data: str | None = Field(default=None, description="变更后快照（规范化 JSON）。")
    description: str = Field(description="操作描述。")
    ip: str | None = Field(default=None, description="客户端 IP。")
    user_agent: str | None = Field(default=None, description="客户端 User-Agent。")
    created_at: datetime = Field(description="记录时间。")


class AuditStatsData(BaseSchema):
    """审计日志统计。"""

    total: int = Field(description="满足筛选条件的总条数。")
    today: int = Field(description="其中今天（UTC）产生的条数。")
    by_action: dict[str, int] = Field(description="按动作分组计数。")
    by_actor: dict[str, int] = Field(description="按操作人分组计数（键为用户 ID，系统动作为 system）。")


class AuditLogPageData(BaseSchema):
    """审计日志分页查询结果。"""

    logs: list[AuditLogData] = Field(description="当前页日志（新到旧）。")
    pagination: PaginationMeta = Field(description="分页信息。")
    stats: AuditStatsData = Field(description="统计信息。")


class AuditPurgeData(BaseSchema):
    """审计日志清理结果。"""

    deleted_count: int = Field(description="删除条数。")
    cutoff: datetime = Field(description="删除早于该时间点的日志。")
    cancelled: bool = Field(default=False, description="是否在批次之间被取消。")
