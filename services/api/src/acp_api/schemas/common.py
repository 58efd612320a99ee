"""全局通用结构。

用于定义统一响应包裹结构与命令模型基类，便于在线接口文档展示与联调。
"""

from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

# 角色/菜单/按钮标识名规则：字母开头，后续为字母、数字或下划线。
IDENTIFIER_PATTERN = r"^[A-Za-z][A-Za-z0-9_]*$"


class BaseSchema(BaseModel):
    """基础结构，开启对象映射能力。"""

    model_config = ConfigDict(from_attributes=True)


class CommandModel(BaseModel):
    """写操作命令基类，拒绝未声明字段。"""

    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class PaginationMeta(BaseSchema):
    """分页元信息。"""

    page: int = Field(description="当前页码（从 1 开始）。")
    limit: int = Field(description="每页条数。")
    total: int = Field(description="总记录数。")
    total_pages: int = Field(description="总页数。")


class ErrorPayload(BaseSchema):
    """错误主体。"""

    code: str = Field(description="机器可识别错误码。")
    message: str = Field(description="人类可读错误信息。")
    details: dict[str, Any] = Field(default_factory=dict, description="可选扩展错误细节。")


class ErrorResponse(BaseSchema):
    """统一错误响应。"""

    request_id: str = Field(description="服务端生成的请求追踪 ID。")
    error: ErrorPayload = Field(description="错误主体。")


T = TypeVar("T")


class SuccessResponse(BaseSchema, Generic[T]):
    """统一成功响应。"""

    request_id: str = Field(description="服务端生成的请求追踪 ID。")
    data: T = Field(description="业务返回数据主体。")
    meta: dict[str, Any] = Field(default_factory=dict, description="可选扩展元信息。")
