"""健康检查接口。"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from acp_api.core.config import get_settings
from acp_api.db.session import get_db
from acp_api.models.catalog import ButtonPermission, Menu
from acp_api.models.role import Role
from acp_api.schemas.common import ErrorResponse, SuccessResponse
from acp_api.schemas.responses import HealthStatusData
from acp_api.utils.response import success

logger = logging.getLogger("acp_api.health")

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    description="仅表示进程存活，不访问数据库。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={500: {"model": ErrorResponse}},
)
def live(request: Request):
    settings = get_settings()
    return success(request, {"status": "ok", "app_name": settings.app_name, "env": settings.app_env})


@router.get(
    "/ready",
    summary="就绪探针",
    description="确认角色、菜单与按钮权限表可读，返回各表记录数；数据库不可用时返回 503。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={503: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    settings = get_settings()
    try:
        counts = {
            "roles": db.execute(select(func.count(Role.id))).scalar_one(),
            "menus": db.execute(select(func.count(Menu.id))).scalar_one(),
            "button_permissions": db.execute(select(func.count(ButtonPermission.id))).scalar_one(),
        }
    except SQLAlchemyError as exc:
        logger.warning("readiness check failed: %s", exc)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"code": "SERVICE_UNAVAILABLE", "message": "权限数据表不可用。"},
        ) from exc
    return success(
        request,
        {"status": "ready", "app_name": settings.app_name, "env": settings.app_env, "tables": counts},
    )
