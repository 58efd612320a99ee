"""路由模块导出集合。"""

from . import audit_logs, buttons, health, menus, permissions, roles, users

__all__ = [
    "audit_logs",
    "buttons",
    "health",
    "menus",
    "permissions",
    "roles",
    "users",
]
