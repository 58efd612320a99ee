"""按钮权限目录相关请求结构。"""

from pydantic import Field

from acp_api.models.enums import ButtonCategory
from acp_api.schemas.common import IDENTIFIER_PATTERN, CommandModel


class ButtonPermissionCreateRequest(CommandModel):
    """按钮权限创建请求。"""

    name: str = Field(min_length=1, max_length=64, pattern=IDENTIFIER_PATTERN, description="按钮权限标识名。")
    display_name: str = Field(min_length=1, max_length=128, description="按钮展示名。")
    description: str | None = Field(default=None, description="权限说明。")
    category: ButtonCategory = Field(default=ButtonCategory.OTHER, description="权限分类。")
    is_active: bool = Field(default=True, description="是否启用。")


class ButtonPermissionUpdateRequest(CommandModel):
    """按钮权限更新请求。"""

    name: str | None = Field(default=None, min_length=1, max_length=64, pattern=IDENTIFIER_PATTERN)
    display_name: str | None = Field(default=None, min_length=1, max_length=128)
    description: str | None = None
    category: ButtonCategory | None = None
    is_active: bool | None = None
