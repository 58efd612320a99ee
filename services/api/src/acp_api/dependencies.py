"""请求上下文依赖。

职责:
1. 解析并校验访问令牌。
2. 将认证主体映射为本地 User（必须存在且启用）。
3. 生成后续路由统一使用的 RequestContext 与变更网关。
"""

from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from acp_api.core.config import get_settings
from acp_api.core.errors import AuthorizationError
from acp_api.core.security import UNAUTHORIZED, AuthenticatedPrincipal, parse_authorization_header
from acp_api.db.session import get_db
from acp_api.models.role import Role, User
from acp_api.services.audit import AuditContext
from acp_api.services.gateway import MutationGateway

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """请求上下文。

    该对象在路由层作为统一输入，避免每个接口重复解析用户与角色。
    """

    # 当前请求用户 ID。
    user_id: int
    # 当前用户角色 ID（可能为空）。
    role_id: int | None
    # 当前用户角色标识名，角色不存在或已停用时为空。
    role_name: str | None
    # 认证主体原始信息（来自 JWT）。
    principal: AuthenticatedPrincipal


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedPrincipal:
    """提取并解析当前请求认证主体。"""
    authorization = None
    if credentials is not None and credentials.credentials:
        authorization = f"{credentials.scheme} {credentials.credentials}"
    return parse_authorization_header(authorization)


def get_request_context(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
    db: Session = Depends(get_db),
) -> RequestContext:
    """认证并加载本地用户；用户不存在或已停用一律按未认证处理。"""
    user = db.get(User, principal.user_id)
    if user is None or not user.is_active:
        raise UNAUTHORIZED

    role = db.get(Role, user.role_id) if user.role_id is not None else None
    return RequestContext(
        user_id=user.id,
        role_id=user.role_id,
        role_name=role.name if role is not None and role.is_active else None,
        principal=principal,
    )


def require_admin(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
    """管理类接口要求调用方角色启用且在管理角色名单内。"""
    if ctx.role_name is None or ctx.role_name not in get_settings().admin_roles:
        raise AuthorizationError("需要管理员角色。", role_name=ctx.role_name)
    return ctx


def get_gateway(
    request: Request,
    ctx: RequestContext = Depends(require_admin),
    db: Session = Depends(get_db),
) -> MutationGateway:
    """构造绑定当前操作人与请求来源的变更网关。"""
    return MutationGateway(db, AuditContext.from_request(request, ctx.user_id))
