"""权限核心领域异常。

服务层只抛出本模块异常，由 `acp_api.exceptions` 统一转换为协议错误结构。
"""

from typing import Any

from fastapi import status


class AccessControlError(Exception):
    """领域异常基类。"""

    code = "ACCESS_CONTROL_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class ValidationError(AccessControlError):
    """字段缺失、格式非法、标识符不符合规则。"""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class ConflictError(AccessControlError):
    """名称重复，或因仍有用户绑定而无法删除。"""

    code = "CONFLICT"
    status_code = status.HTTP_409_CONFLICT


class ProtectedResourceError(AccessControlError):
    """尝试编辑或删除系统内置/受保护角色。"""

    code = "PROTECTED_RESOURCE"
    status_code = status.HTTP_403_FORBIDDEN


class ReferentialError(AccessControlError):
    """引用了不存在的父菜单/角色/菜单/按钮，或检测到循环。"""

    code = "REFERENTIAL_ERROR"
    status_code = status.HTTP_422_UNPROCESSABLE_CONTENT


class NotFoundError(AccessControlError):
    """按 ID 查询的资源不存在。"""

    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND


class AuthorizationError(AccessControlError):
    """调用方缺少所需的管理角色。"""

    code = "FORBIDDEN"
    status_code = status.HTTP_403_FORBIDDEN


class InternalError(AccessControlError):
    """存储或事务失败，变更与审计已整体回滚。"""

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
