"""数据库引擎与会话工厂。

连接池参数取自 Settings；SQLite（测试或本地调试）不支持这些参数，按方言跳过。
"""

from collections.abc import Generator
from typing import Any

from sqlalchemy import Engine, create_engine
from sqlalchemy.engine import make_url
from sqlalchemy.orm import Session, sessionmaker

from acp_api.core.config import Settings, get_settings


def engine_options(settings: Settings) -> dict[str, Any]:
    """根据配置生成 create_engine 参数。"""
    options: dict[str, Any] = {"future": True, "pool_pre_ping": True, "echo": settings.db_echo}
    if make_url(settings.database_url).get_backend_name() != "sqlite":
        options.update(
            pool_size=settings.db_pool_size,
            max_overflow=settings.db_max_overflow,
            pool_recycle=settings.db_pool_recycle_seconds,
        )
    return options


def build_engine(settings: Settings) -> Engine:
    return create_engine(settings.database_url, **engine_options(settings))


engine = build_engine(get_settings())
# 路由层通过 get_db 获取短生命周期会话，写操作统一由 MutationGateway 提交。
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


def get_db() -> Generator[Session, None, None]:
    """为每个请求提供独立数据库会话。"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
