"""权限管理接口。

- 运行时查询：`/me` 仅要求登录，供前端渲染菜单与按钮。
- 授权配置：其余接口要求管理员角色，写操作全部经由变更网关。
"""

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy.orm import Session

from acp_api.dependencies import RequestContext, get_gateway, get_request_context, require_admin
from acp_api.db.session import get_db
from acp_api.schemas.common import ErrorResponse, SuccessResponse
from acp_api.schemas.permission import MatrixApplyRequest, RoleButtonGrantRequest, RoleMenuGrantRequest
from acp_api.schemas.responses import EffectivePermissionData, MatrixItemResultData, RoleGrantData
from acp_api.services import effective_permissions, get_effective_grants
from acp_api.services.gateway import MutationGateway
from acp_api.utils.response import success

router = APIRouter(prefix="/permissions", tags=["permissions"])

_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}


@router.get(
    "/me",
    summary="查询我的生效权限",
    description="返回当前用户已授权的菜单树与按钮权限；角色停用或未分配时返回空集合。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[EffectivePermissionData],
    responses={401: {"model": ErrorResponse}},
)
def get_my_permissions(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, effective_permissions(db, ctx.user_id))


@router.get(
    "/users/{user_id}",
    summary="查询用户生效权限",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[EffectivePermissionData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
)
def get_user_permissions(
    request: Request,
    user_id: int = Path(..., ge=1, description="用户 ID。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(request, effective_permissions(db, user_id))


@router.get(
    "/roles/{role_id}",
    summary="查询角色当前授权",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleGrantData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
)
def get_role_grants(
    request: Request,
    role_id: int = Path(..., ge=1, description="角色 ID。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(request, get_effective_grants(db, role_id))


@router.put(
    "/roles/{role_id}/menus",
    summary="覆盖角色菜单授权",
    description="以传入集合替换现有菜单授权；重复调用结果一致，每次调用记录一条审计。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleGrantData],
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def replace_role_menus(
    request: Request,
    payload: RoleMenuGrantRequest,
    role_id: int = Path(..., ge=1, description="角色 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    gateway.set_role_menu_grants(role_id, payload)
    return success(request, get_effective_grants(gateway.db, role_id))


@router.put(
    "/roles/{role_id}/buttons",
    summary="覆盖角色按钮授权",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleGrantData],
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def replace_role_buttons(
    request: Request,
    payload: RoleButtonGrantRequest,
    role_id: int = Path(..., ge=1, description="角色 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    gateway.set_role_button_grants(role_id, payload)
    return success(request, get_effective_grants(gateway.db, role_id))


@router.put(
    "/matrix",
    summary="批量覆盖多角色授权",
    description="每个角色独立提交，返回逐项结果；单项失败不影响其他角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[MatrixItemResultData]],
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def apply_matrix(
    request: Request,
    payload: MatrixApplyRequest,
    gateway: MutationGateway = Depends(get_gateway),
):
    return success(request, gateway.apply_matrix(payload))
