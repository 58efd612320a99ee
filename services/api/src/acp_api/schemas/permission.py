"""权限矩阵相关请求结构。"""

from pydantic import Field, model_validator

from acp_api.schemas.common import CommandModel


class RoleMenuGrantRequest(CommandModel):
    """覆盖设置角色菜单授权。"""

    menu_ids: list[int] = Field(default_factory=list, description="授权菜单 ID 全集。", examples=[[10, 11]])


class RoleButtonGrantRequest(CommandModel):
    """覆盖设置角色按钮授权。"""

    button_ids: list[int] = Field(default_factory=list, description="授权按钮 ID 全集。", examples=[[3]])


class MatrixItemRequest(CommandModel):
    """单个角色的授权覆盖项；未传入的类别保持不变。"""

    role_id: int = Field(ge=1, description="角色 ID。")
    menu_ids: list[int] | None = Field(default=None, description="授权菜单 ID 全集。")
    button_ids: list[int] | None = Field(default=None, description="授权按钮 ID 全集。")

    @model_validator(mode="after")
    def require_any_kind(self) -> "MatrixItemRequest":
        """至少需要覆盖一类授权。"""
        if self.menu_ids is None and self.button_ids is None:
            raise ValueError("menu_ids or button_ids is required")
        return self


class MatrixApplyRequest(CommandModel):
    """多角色授权批量覆盖请求，每个角色独立提交。"""

    items: list[MatrixItemRequest] = Field(min_length=1, description="角色授权覆盖项列表。")
