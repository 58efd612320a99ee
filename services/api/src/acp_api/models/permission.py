"""角色授权关系模型。"""

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column

from acp_api.models.base import Base


class RoleMenuGrant(Base):
    """角色-菜单授权关系，存在即授权。"""

    __tablename__ = "role_menu_grants"

    # 角色 ID。
    role_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # 菜单 ID。
    menu_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)


class RoleButtonGrant(Base):
    """角色-按钮授权关系，存在即授权。"""

    __tablename__ = "role_button_grants"

    # 角色 ID。
    role_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # 按钮权限 ID。
    button_id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
