"""角色与用户模型。"""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from acp_api.models.base import Base, IntegerPrimaryKeyMixin, TimestampMixin


class Role(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    """角色实体。

    说明：
    1. name 创建后不可修改，全局唯一。
    2. is_system 或 name 命中内置受保护名单时，禁止编辑与删除。
    """

    __tablename__ = "roles"

    # 角色标识名（如 SALES_MANAGER）。
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 前端展示名。
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 角色说明。
    description: Mapped[str | None] = mapped_column(Text)
    # 是否系统内置角色。
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 是否启用，停用角色在鉴权时一律拒绝。
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class User(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    """用户实体（仅保留鉴权所需字段，账号资料由外部系统维护）。"""

    __tablename__ = "users"

    # 登录名，全局唯一。
    username: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    # 前端展示名。
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 当前角色 ID，一个用户仅绑定一个角色。
    role_id: Mapped[int | None] = mapped_column(Integer, index=True)
    # 账号是否启用。
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
