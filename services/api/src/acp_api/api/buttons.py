"""按钮权限目录接口。"""

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.orm import Session

from acp_api.core.config import get_settings
from acp_api.dependencies import get_gateway, require_admin
from acp_api.db.session import get_db
from acp_api.models.enums import ButtonCategory
from acp_api.schemas.button import ButtonPermissionCreateRequest, ButtonPermissionUpdateRequest
from acp_api.schemas.common import ErrorResponse, SuccessResponse
from acp_api.schemas.responses import ButtonPermissionData, ButtonPermissionPageData, CountData
from acp_api.services.buttons import button_snapshot, list_buttons
from acp_api.services.gateway import MutationGateway
from acp_api.services.validation import page_window
from acp_api.utils.response import pagination_meta, success

router = APIRouter(prefix="/buttons", tags=["buttons"])

_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}


@router.get(
    "",
    summary="查询按钮权限列表",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ButtonPermissionPageData],
    responses=_ERRORS,
)
def list_button_page(
    request: Request,
    page: int = Query(default=1, description="页码，从 1 开始。"),
    limit: int | None = Query(default=None, description="每页条数。"),
    search: str | None = Query(default=None, description="按名称/展示名/说明模糊搜索。"),
    category: ButtonCategory | None = Query(default=None, description="按分类过滤。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    limit = settings.page_size_default if limit is None else limit
    offset, limit = page_window(page, limit, max_limit=settings.page_size_max)
    buttons, total = list_buttons(db, offset=offset, limit=limit, search=search, category=category)
    data = {
        "buttons": [button_snapshot(button) for button in buttons],
        "pagination": pagination_meta(page=page, limit=limit, total=total),
    }
    return success(request, data)


@router.post(
    "",
    summary="创建按钮权限",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[ButtonPermissionData],
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create_button(
    request: Request,
    payload: ButtonPermissionCreateRequest,
    gateway: MutationGateway = Depends(get_gateway),
):
    button = gateway.create_button(payload)
    return success(request, button_snapshot(button))


@router.patch(
    "/{button_id}",
    summary="更新按钮权限",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ButtonPermissionData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update_button(
    request: Request,
    payload: ButtonPermissionUpdateRequest,
    button_id: int = Path(..., ge=1, description="按钮权限 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    button = gateway.update_button(button_id, payload)
    return success(request, button_snapshot(button))


@router.delete(
    "/{button_id}",
    summary="删除按钮权限",
    description="同时删除引用该按钮的角色授权，返回被删除的授权数。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CountData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
)
def delete_button(
    request: Request,
    button_id: int = Path(..., ge=1, description="按钮权限 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    return success(request, {"count": gateway.delete_button(button_id)})
