"""角色管理接口。"""

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.orm import Session

from acp_api.core.config import get_settings
from acp_api.core.errors import ValidationError
from acp_api.dependencies import get_gateway, require_admin
from acp_api.db.session import get_db
from acp_api.schemas.common import ErrorResponse, SuccessResponse
from acp_api.schemas.responses import CountData, RoleData, RolePageData
from acp_api.schemas.role import RoleBatchActiveRequest, RoleCreateRequest, RoleUpdateRequest
from acp_api.services import roles
from acp_api.services.gateway import MutationGateway
from acp_api.services.validation import page_window
from acp_api.utils.response import pagination_meta, success

router = APIRouter(prefix="/roles", tags=["roles"])

_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}


def parse_id_list(raw: str, *, field: str) -> list[int]:
    """解析逗号分隔的 ID 列表，例如 `1,2,3`。"""
    items = [item.strip() for item in raw.split(",") if item.strip()]
    try:
        ids = [int(item) for item in items]
    except ValueError as exc:
        raise ValidationError(f"{field} 必须是逗号分隔的整数。", field=field) from exc
    if not ids:
        raise ValidationError(f"{field} 不能为空。", field=field)
    return ids


@router.get(
    "",
    summary="查询角色列表",
    description="分页返回角色，附带用户数与授权数；支持名称搜索与启用状态过滤。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RolePageData],
    responses=_ERRORS,
)
def list_roles(
    request: Request,
    page: int = Query(default=1, description="页码，从 1 开始。"),
    limit: int | None = Query(default=None, description="每页条数。"),
    search: str | None = Query(default=None, description="按名称/展示名/说明模糊搜索。"),
    is_active: bool | None = Query(default=None, description="按启用状态过滤。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    limit = settings.page_size_default if limit is None else limit
    offset, limit = page_window(page, limit, max_limit=settings.page_size_max)
    items, total = roles.list_roles(db, offset=offset, limit=limit, search=search, is_active=is_active)
    data = {
        "roles": roles.role_views(db, items),
        "pagination": pagination_meta(page=page, limit=limit, total=total),
    }
    return success(request, data)


@router.post(
    "",
    summary="创建角色",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[RoleData],
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create_role(
    request: Request,
    payload: RoleCreateRequest,
    gateway: MutationGateway = Depends(get_gateway),
):
    role = gateway.create_role(payload)
    return success(request, roles.role_views(gateway.db, [role])[0])


@router.put(
    "/batch-active",
    summary="批量启用/停用角色",
    description="单事务执行，写入一条 BATCH_UPDATE 审计；包含受保护角色时整体拒绝。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CountData],
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def batch_set_active(
    request: Request,
    payload: RoleBatchActiveRequest,
    gateway: MutationGateway = Depends(get_gateway),
):
    return success(request, {"count": gateway.batch_set_active(payload)})


@router.delete(
    "",
    summary="批量删除角色",
    description="任一角色受保护或仍有用户绑定时整体失败。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CountData],
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def batch_delete_roles(
    request: Request,
    ids: str = Query(..., description="逗号分隔的角色 ID，例如 1,2。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    count = gateway.delete_roles(parse_id_list(ids, field="ids"))
    return success(request, {"count": count})


@router.get(
    "/{role_id}",
    summary="查询角色详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
)
def get_role(
    request: Request,
    role_id: int = Path(..., ge=1, description="角色 ID。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    role = roles.get_role(db, role_id)
    return success(request, roles.role_views(db, [role])[0])


@router.patch(
    "/{role_id}",
    summary="更新角色",
    description="name 不可修改；受保护角色拒绝编辑。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update_role(
    request: Request,
    payload: RoleUpdateRequest,
    role_id: int = Path(..., ge=1, description="角色 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    role = gateway.update_role(role_id, payload)
    return success(request, roles.role_views(gateway.db, [role])[0])


@router.delete(
    "/{role_id}",
    summary="删除角色",
    description="受保护角色或仍有用户绑定的角色不可删除；角色授权一并删除。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CountData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
def delete_role(
    request: Request,
    role_id: int = Path(..., ge=1, description="角色 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    gateway.delete_role(role_id)
    return success(request, {"count": 1})
