"""领域枚举定义。"""

from enum import StrEnum


class ProtectedRoleName(StrEnum):
    """内置受保护角色名，不可编辑或删除。"""

    SUPER_ADMIN = "SUPER_ADMIN"  # 超级管理员。
    ADMIN = "ADMIN"  # 管理员。
    SALES_MANAGER = "SALES_MANAGER"  # 销售经理。
    SALES_PERSON = "SALES_PERSON"  # 销售人员。
    FINANCE = "FINANCE"  # 财务。
    CUSTOMER_SERVICE = "CUSTOMER_SERVICE"  # 客服。
    USER = "USER"  # 普通用户。


class ButtonCategory(StrEnum):
    """按钮权限分类（封闭枚举）。"""

    CREATE = "create"  # 新增类操作。
    READ = "read"  # 查看类操作。
    UPDATE = "update"  # 编辑类操作。
    DELETE = "delete"  # 删除类操作。
    EXPORT = "export"  # 导出。
    IMPORT = "import"  # 导入。
    APPROVE = "approve"  # 审批。
    OTHER = "other"  # 其他。


class AuditAction(StrEnum):
    """审计动作。"""

    CREATE = "CREATE"  # 创建单个资源。
    UPDATE = "UPDATE"  # 更新单个资源（含授权集合覆盖）。
    DELETE = "DELETE"  # 删除单个资源（含级联）。
    BATCH_UPDATE = "BATCH_UPDATE"  # 批量更新，resource_id 固定为 0。
    BATCH_DELETE = "BATCH_DELETE"  # 批量删除，resource_id 固定为 0。
    ASSIGN = "ASSIGN"  # 为用户分配角色。
    REVOKE = "REVOKE"  # 撤销用户角色。


class ResourceType(StrEnum):
    """审计资源类型。"""

    ROLE = "role"
    MENU = "menu"
    BUTTON_PERMISSION = "button_permission"
    ROLE_MENU_GRANT = "role_menu_grant"
    ROLE_BUTTON_GRANT = "role_button_grant"
    USER = "user"


PROTECTED_ROLE_NAMES = frozenset(name.value for name in ProtectedRoleName)
# 批量操作或无单一资源时使用的资源 ID。
BULK_RESOURCE_ID = 0
