"""认证解析与令牌校验工具。

令牌签发属于外部登录系统，本服务只负责校验 Bearer 令牌并提取主体。
"""
from dataclasses import dataclass
from functools import lru_cache
import re
from typing import Any

import jwt
from fastapi import HTTPException, status
from jwt import InvalidTokenError, PyJWKClient

from acp_api.core.config import get_settings

UNAUTHORIZED = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="unauthorized",
)


@dataclass
class AuthenticatedPrincipal:
    """统一认证主体对象。"""

    # 主体标识（sub），对应本地用户 ID。
    subject: str
    # 认证提供方（issuer）。
    provider: str
    # 原始声明集，便于下游扩展。
    claims: dict[str, Any]

    @property
    def user_id(self) -> int:
        """将主体标识解析为本地用户 ID。"""
        try:
            return int(self.subject)
        except ValueError as exc:
            raise UNAUTHORIZED from exc


@lru_cache
def _get_jwks_client(jwks_url: str) -> PyJWKClient:
    """缓存密钥集合客户端，减少重复网络开销。"""
    return PyJWKClient(jwks_url)


def _decode_jwt(token: str) -> dict[str, Any]:
    """按配置解码并校验令牌。"""
    settings = get_settings()
    options = {"verify_signature": True, "verify_aud": bool(settings.auth_jwt_audience)}
    if settings.auth_jwks_url:
        # 生产建议使用 JWKS，支持密钥轮换。
        key: Any = _get_jwks_client(settings.auth_jwks_url).get_signing_key_from_jwt(token).key
    else:
        key = settings.auth_jwt_secret

    try:
        return jwt.decode(
            token,
            key=key,
            algorithms=settings.auth_algorithms,
            issuer=settings.auth_jwt_issuer,
            audience=settings.auth_jwt_audience,
            leeway=settings.auth_jwt_leeway_seconds,
            options=options,
        )
    except InvalidTokenError as exc:
        raise UNAUTHORIZED from exc


def _extract_bearer_token(authorization: str | None) -> str:
    """从 Authorization 头中提取 Bearer token，兼容重复头被逗号拼接的场景。"""
    if not authorization:
        raise UNAUTHORIZED
    tokens = re.findall(r"Bearer\s+([^,\s]+)", authorization, flags=re.IGNORECASE)
    for candidate in reversed(tokens):
        token = candidate.strip()
        if token:
            return token
    raise UNAUTHORIZED


def parse_authorization_header(authorization: str | None) -> AuthenticatedPrincipal:
    """解析认证头并返回认证主体。"""
    claims = _decode_jwt(_extract_bearer_token(authorization))

    subject = str(claims.get("sub") or "").strip()
    if not subject:
        raise UNAUTHORIZED

    provider = claims.get("provider")
    issuer = str(provider if isinstance(provider, str) and provider else (claims.get("iss") or "jwt"))
    return AuthenticatedPrincipal(subject=subject, provider=issuer, claims=claims)
