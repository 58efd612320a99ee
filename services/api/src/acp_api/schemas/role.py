"""角色管理相关请求结构。"""

from pydantic import Field, model_validator

from acp_api.schemas.common import IDENTIFIER_PATTERN, CommandModel


class RoleCreateRequest(CommandModel):
    """角色创建请求。"""

    name: str = Field(min_length=1, max_length=64, pattern=IDENTIFIER_PATTERN, description="角色标识名，创建后不可修改。")
    display_name: str = Field(min_length=1, max_length=128, description="角色展示名。")
    description: str | None = Field(default=None, description="角色说明。")
    is_system: bool = Field(default=False, description="是否系统内置角色（创建后即受保护）。")
    is_active: bool = Field(default=True, description="是否启用。")


class RoleUpdateRequest(CommandModel):
    """角色更新请求，仅包含可修改字段；name 不可修改。"""

    display_name: str | None = Field(default=None, min_length=1, max_length=128, description="角色展示名。")
    description: str | None = Field(default=None, description="角色说明。")
    is_active: bool | None = Field(default=None, description="是否启用。")


class RoleBatchActiveRequest(CommandModel):
    """批量启用/停用角色请求。"""

    role_ids: list[int] = Field(min_length=1, description="目标角色 ID 列表。", examples=[[5, 6, 7]])
    is_active: bool = Field(description="目标启用状态。")


class UserRoleAssignRequest(CommandModel):
    """为用户分配角色请求。"""

    role_id: int = Field(ge=1, description="目标角色 ID。")


class UserBatchUpdateRequest(CommandModel):
    """批量更新用户请求；role_id 显式传 null 表示解除角色绑定。"""

    user_ids: list[int] = Field(min_length=1, description="目标用户 ID 列表。", examples=[[11, 12]])
    role_id: int | None = Field(default=None, ge=1, description="目标角色 ID。")
    is_active: bool | None = Field(default=None, description="目标账号启用状态。")

    @model_validator(mode="after")
    def require_any_change(self) -> "UserBatchUpdateRequest":
        """至少需要更新一个字段。"""
        if not self.model_fields_set & {"role_id", "is_active"}:
            raise ValueError("role_id or is_active is required")
        return self
