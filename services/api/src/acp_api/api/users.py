"""用户角色绑定接口。"""

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.orm import Session

from acp_api.core.config import get_settings
from acp_api.db.session import get_db
from acp_api.dependencies import get_gateway, require_admin
from acp_api.schemas.common import ErrorResponse, SuccessResponse
from acp_api.schemas.responses import CountData, UserPageData, UserRoleData
from acp_api.schemas.role import UserBatchUpdateRequest, UserRoleAssignRequest
from acp_api.services import roles
from acp_api.services.gateway import MutationGateway
from acp_api.services.validation import page_window
from acp_api.utils.response import pagination_meta, success

router = APIRouter(prefix="/users", tags=["users"])


def _user_role_data(user) -> dict:
    return {"user_id": user.id, "username": user.username, "role_id": user.role_id}


@router.get(
    "",
    summary="查询用户列表",
    description="分页返回用户及其角色；支持按角色、启用状态过滤与登录名/展示名搜索。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserPageData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def list_users(
    request: Request,
    page: int = Query(default=1, description="页码，从 1 开始。"),
    limit: int | None = Query(default=None, description="每页条数。"),
    search: str | None = Query(default=None, description="按登录名/展示名模糊搜索。"),
    role_id: int | None = Query(default=None, description="按角色 ID 过滤。"),
    is_active: bool | None = Query(default=None, description="按账号启用状态过滤。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    limit = settings.page_size_default if limit is None else limit
    offset, limit = page_window(page, limit, max_limit=settings.page_size_max)
    users, total = roles.list_users(
        db, offset=offset, limit=limit, search=search, role_id=role_id, is_active=is_active
    )
    return success(request, {"users": users, "pagination": pagination_meta(page=page, limit=limit, total=total)})


@router.put(
    "",
    summary="批量更新用户",
    description="单事务为多个用户改绑角色或启停账号，写入一条 BATCH_UPDATE 审计；任一用户不存在则整体拒绝。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CountData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def batch_update_users(
    request: Request,
    payload: UserBatchUpdateRequest,
    gateway: MutationGateway = Depends(get_gateway),
):
    return success(request, {"count": gateway.batch_update_users(payload)})


@router.put(
    "/{user_id}/role",
    summary="分配用户角色",
    description="一个用户仅绑定一个角色；目标角色必须存在且启用。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserRoleData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def assign_role(
    request: Request,
    payload: UserRoleAssignRequest,
    user_id: int = Path(..., ge=1, description="用户 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    user = gateway.assign_user_role(user_id, payload)
    return success(request, _user_role_data(user))


@router.delete(
    "/{user_id}/role",
    summary="解除用户角色",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserRoleData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def revoke_role(
    request: Request,
    user_id: int = Path(..., ge=1, description="用户 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    user = gateway.revoke_user_role(user_id)
    return success(request, _user_role_data(user))
