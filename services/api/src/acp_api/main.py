"""FastAPI 应用入口点。"""

from fastapi import FastAPI

from acp_api.core.config import get_settings
from acp_api.exceptions import register_exception_handlers
from acp_api.middlewares import register_middlewares
from acp_api.api.router import api_router

settings = get_settings()


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "基于角色的菜单与按钮权限管理接口。\n\n"
            "所有业务接口统一返回：`{request_id, data, meta}`。\n"
            "通过访问令牌进行认证，令牌 `sub` 为本地用户 ID。\n"
            "所有写操作均记录审计日志。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "permissions", "description": "生效权限查询与角色授权覆盖。"},
            {"name": "roles", "description": "角色生命周期管理（内置角色受保护）。"},
            {"name": "menus", "description": "菜单树维护，删除时级联子孙与授权。"},
            {"name": "buttons", "description": "按钮权限目录维护。"},
            {"name": "users", "description": "用户角色分配与解除。"},
            {"name": "audit-logs", "description": "审计日志查询与保留期清理。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
