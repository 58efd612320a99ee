"""菜单目录相关请求结构。"""

from pydantic import Field

from acp_api.schemas.common import IDENTIFIER_PATTERN, CommandModel


class MenuCreateRequest(CommandModel):
    """菜单创建请求。"""

    id: int | None = Field(default=None, ge=1, description="可选指定 ID，用于初始化或导入。")
    name: str = Field(min_length=1, max_length=64, pattern=IDENTIFIER_PATTERN, description="菜单标识名。")
    display_name: str = Field(min_length=1, max_length=128, description="菜单展示名。")
    path: str | None = Field(default=None, max_length=256, description="前端路由路径。")
    icon: str | None = Field(default=None, max_length=64, description="图标名称。")
    parent_id: int | None = Field(default=None, ge=1, description="父菜单 ID，为空表示根节点。")
    sort_order: int = Field(default=0, description="同级排序值。")
    is_active: bool = Field(default=True, description="是否启用。")


class MenuUpdateRequest(CommandModel):
    """菜单更新请求；显式传入 parent_id=null 表示移动为根节点。"""

    name: str | None = Field(default=None, min_length=1, max_length=64, pattern=IDENTIFIER_PATTERN)
    display_name: str | None = Field(default=None, min_length=1, max_length=128)
    path: str | None = Field(default=None, max_length=256)
    icon: str | None = Field(default=None, max_length=64)
    parent_id: int | None = Field(default=None, ge=1)
    sort_order: int | None = None
    is_active: bool | None = None
