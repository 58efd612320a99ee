import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import acp_api.models  # noqa: F401
from acp_api.core.errors import NotFoundError
from acp_api.models.base import Base
from acp_api.models.catalog import ButtonPermission, Menu
from acp_api.models.permission import RoleButtonGrant, RoleMenuGrant
from acp_api.models.role import Role, User
from acp_api.services.authorization import (
    effective_menu_tree,
    effective_permissions,
    has_button_access,
    has_menu_access,
)


@pytest.fixture
def db_session() -> Session:
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    local_session = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
    db = local_session()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def world(db_session: Session) -> dict[str, int]:
    """销售角色授予 [10, 11] 菜单与按钮 3；菜单 12 是 10 的子菜单但未授权。"""
    sales = Role(name="SALES", display_name="销售")
    db_session.add(sales)
    db_session.flush()
    db_session.add_all(
        [
            Menu(id=10, name="customers", display_name="客户", sort_order=2),
            Menu(id=11, name="orders", display_name="订单", sort_order=1),
            Menu(id=12, name="customer_detail", display_name="客户详情", parent_id=10),
            Menu(id=13, name="reports", display_name="报表", parent_id=12),
            ButtonPermission(id=3, name="customer_export", display_name="导出客户", category="export"),
            ButtonPermission(id=4, name="customer_delete", display_name="删除客户", category="delete"),
            RoleMenuGrant(role_id=sales.id, menu_id=10),
            RoleMenuGrant(role_id=sales.id, menu_id=11),
            RoleMenuGrant(role_id=sales.id, menu_id=13),
            RoleButtonGrant(role_id=sales.id, button_id=3),
        ]
    )
    user = User(username="alice", display_name="Alice", role_id=sales.id)
    db_session.add(user)
    db_session.flush()
    return {"user_id": user.id, "role_id": sales.id}


def test_menu_access_follows_grants_without_inheritance(db_session: Session, world: dict[str, int]):
    user_id = world["user_id"]

    assert has_menu_access(db_session, user_id, 10)
    assert has_menu_access(db_session, user_id, 11)
    assert not has_menu_access(db_session, user_id, 12)
    # 祖先未授权不影响对子菜单本身的判定。
    assert has_menu_access(db_session, user_id, 13)


def test_button_access_by_name(db_session: Session, world: dict[str, int]):
    user_id = world["user_id"]

    assert has_button_access(db_session, user_id, "customer_export")
    assert not has_button_access(db_session, user_id, "customer_delete")
    assert not has_button_access(db_session, user_id, "no_such_button")


def test_effective_tree_hides_subtree_of_ungranted_node(db_session: Session, world: dict[str, int]):
    tree = effective_menu_tree(db_session, world["user_id"])

    assert [node["id"] for node in tree] == [11, 10]
    assert tree[1]["children"] == []


def test_effective_permissions_scenario(db_session: Session, world: dict[str, int]):
    result = effective_permissions(db_session, world["user_id"])

    assert result["role_name"] == "SALES"
    assert sorted(node["id"] for node in result["menus"]) == [10, 11]
    assert [button["id"] for button in result["buttons"]] == [3]
    assert result["buttons"][0]["category"] == "export"


def test_inactive_role_denies_everything(db_session: Session, world: dict[str, int]):
    db_session.get(Role, world["role_id"]).is_active = False
    db_session.flush()

    assert not has_menu_access(db_session, world["user_id"], 10)
    assert not has_button_access(db_session, world["user_id"], "customer_export")
    result = effective_permissions(db_session, world["user_id"])
    assert result["menus"] == []
    assert result["buttons"] == []
    assert result["role_name"] is None


def test_inactive_user_and_missing_role_deny(db_session: Session, world: dict[str, int]):
    orphan = User(username="bob", display_name="Bob", role_id=999)
    no_role = User(username="carol", display_name="Carol")
    db_session.add_all([orphan, no_role])
    db_session.get(User, world["user_id"]).is_active = False
    db_session.flush()

    for user_id in (world["user_id"], orphan.id, no_role.id):
        assert not has_menu_access(db_session, user_id, 10)
        assert effective_menu_tree(db_session, user_id) == []


def test_unknown_user_raises_not_found(db_session: Session):
    with pytest.raises(NotFoundError):
        has_menu_access(db_session, 404, 10)
    with pytest.raises(NotFoundError):
        effective_permissions(db_session, 404)
