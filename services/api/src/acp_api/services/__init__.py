"""服务层能力导出集合。"""

from acp_api.services.audit import AuditContext, PurgeResult, purge_audit_logs, query_audit_logs, retention_cutoff
from acp_api.services.authorization import (
    effective_menu_tree,
    effective_permissions,
    has_button_access,
    has_menu_access,
    resolve_active_role,
)
from acp_api.services.gateway import MutationGateway
from acp_api.services.menu_tree import MenuNode, MenuTree
from acp_api.services.permissions import GrantDelta, get_effective_grants

__all__ = [
    "AuditContext",
    "PurgeResult",
    "purge_audit_logs",
    "query_audit_logs",
    "retention_cutoff",
    "effective_menu_tree",
    "effective_permissions",
    "has_button_access",
    "has_menu_access",
    "resolve_active_role",
    "MutationGateway",
    "MenuNode",
    "MenuTree",
    "GrantDelta",
    "get_effective_grants",
]
