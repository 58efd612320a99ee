"""菜单管理接口。"""

from fastapi import APIRouter, Depends, Path, Query, Request, status
from sqlalchemy.orm import Session

from acp_api.core.config import get_settings
from acp_api.dependencies import get_gateway, require_admin
from acp_api.db.session import get_db
from acp_api.schemas.common import ErrorResponse, SuccessResponse
from acp_api.schemas.menu import MenuCreateRequest, MenuUpdateRequest
from acp_api.schemas.responses import MenuData, MenuDeleteData, MenuPageData, MenuTreeNodeData
from acp_api.services.gateway import MutationGateway
from acp_api.services.menu_tree import MenuTree, list_menus, menu_snapshot
from acp_api.services.validation import page_window
from acp_api.utils.response import pagination_meta, success

router = APIRouter(prefix="/menus", tags=["menus"])

_ERRORS = {401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}}


@router.get(
    "",
    summary="查询菜单平铺列表",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MenuPageData],
    responses=_ERRORS,
)
def list_menu_page(
    request: Request,
    page: int = Query(default=1, description="页码，从 1 开始。"),
    limit: int | None = Query(default=None, description="每页条数。"),
    search: str | None = Query(default=None, description="按名称/展示名/路径模糊搜索。"),
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    settings = get_settings()
    limit = settings.page_size_default if limit is None else limit
    offset, limit = page_window(page, limit, max_limit=settings.page_size_max)
    menus, total = list_menus(db, offset=offset, limit=limit, search=search)
    data = {
        "menus": [menu_snapshot(menu) for menu in menus],
        "pagination": pagination_meta(page=page, limit=limit, total=total),
    }
    return success(request, data)


@router.get(
    "/tree",
    summary="查询完整菜单树",
    description="根节点优先，同级按 sort_order、id 排序。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[MenuTreeNodeData]],
    responses=_ERRORS,
)
def get_menu_tree(
    request: Request,
    _ctx=Depends(require_admin),
    db: Session = Depends(get_db),
):
    return success(request, MenuTree.load(db).to_nested())


@router.post(
    "",
    summary="创建菜单",
    status_code=status.HTTP_201_CREATED,
    response_model=SuccessResponse[MenuData],
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def create_menu(
    request: Request,
    payload: MenuCreateRequest,
    gateway: MutationGateway = Depends(get_gateway),
):
    menu = gateway.create_menu(payload)
    return success(request, menu_snapshot(menu))


@router.patch(
    "/{menu_id}",
    summary="更新菜单",
    description="变更父菜单时拒绝形成循环。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MenuData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update_menu(
    request: Request,
    payload: MenuUpdateRequest,
    menu_id: int = Path(..., ge=1, description="菜单 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    menu = gateway.update_menu(menu_id, payload)
    return success(request, menu_snapshot(menu))


@router.delete(
    "/{menu_id}",
    summary="删除菜单",
    description="级联删除全部子孙菜单及其角色授权。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[MenuDeleteData],
    responses={**_ERRORS, 404: {"model": ErrorResponse}},
)
def delete_menu(
    request: Request,
    menu_id: int = Path(..., ge=1, description="菜单 ID。"),
    gateway: MutationGateway = Depends(get_gateway),
):
    menu_ids, revoked = gateway.delete_menu(menu_id)
    return success(request, {"menu_ids": menu_ids, "revoked_grant_count": revoked})
