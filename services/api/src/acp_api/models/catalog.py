"""菜单与按钮权限目录模型。"""

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from acp_api.models.base import Base, IntegerPrimaryKeyMixin, TimestampMixin
from acp_api.models.enums import ButtonCategory


class Menu(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    """菜单节点，通过 parent_id 组成树（邻接表）。"""

    __tablename__ = "menus"

    # 菜单标识名，全局唯一。
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 前端展示名。
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 前端路由路径。
    path: Mapped[str | None] = mapped_column(String(256))
    # 图标名称。
    icon: Mapped[str | None] = mapped_column(String(64))
    # 父菜单 ID，为空表示根节点。
    parent_id: Mapped[int | None] = mapped_column(Integer, index=True)
    # 同级排序值，越小越靠前。
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 是否启用。
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class ButtonPermission(Base, IntegerPrimaryKeyMixin, TimestampMixin):
    """按钮级操作权限，扁平目录，无层级。"""

    __tablename__ = "button_permissions"

    # 按钮权限标识名，全局唯一。
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 前端展示名。
    display_name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 权限说明。
    description: Mapped[str | None] = mapped_column(Text)
    # 分类（create/read/update/delete/export/import/approve/other）。
    category: Mapped[str] = mapped_column(String(16), nullable=False, default=ButtonCategory.OTHER, index=True)
    # 是否启用。
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
