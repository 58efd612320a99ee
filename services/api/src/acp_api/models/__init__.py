"""ORM 模型导出集合。"""

from acp_api.models.audit import AuditLog
from acp_api.models.catalog import ButtonPermission, Menu
from acp_api.models.permission import RoleButtonGrant, RoleMenuGrant
from acp_api.models.role import Role, User

__all__ = [
    "AuditLog",
    "ButtonPermission",
    "Menu",
    "Role",
    "RoleButtonGrant",
    "RoleMenuGrant",
    "User",
]
