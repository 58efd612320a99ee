import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

import acp_api.models  # noqa: F401
from acp_api.core.errors import ConflictError, NotFoundError, ReferentialError, ValidationError
from acp_api.models.base import Base
from acp_api.models.catalog import Menu
from acp_api.models.permission import RoleMenuGrant
from acp_api.schemas.menu import MenuCreateRequest, MenuUpdateRequest
from acp_api.services.menu_tree import MenuTree, create_menu, delete_menus, list_menus, update_menu
from acp_api.services.validation import parse_command


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


def _menu(db: Session, menu_id: int, name: str, parent_id: int | None = None, sort_order: int = 0) -> Menu:
    menu = Menu(id=menu_id, name=name, display_name=name, parent_id=parent_id, sort_order=sort_order)
    db.add(menu)
    db.flush()
    return menu


def _seed_tree(db: Session) -> None:
    # 1 ─┬─ 2 ── 4
    #    └─ 3
    # 5
    _menu(db, 1, "system", sort_order=1)
    _menu(db, 2, "roles", parent_id=1, sort_order=2)
    _menu(db, 3, "menus", parent_id=1, sort_order=1)
    _menu(db, 4, "role_detail", parent_id=2)
    _menu(db, 5, "dashboard", sort_order=0)


def test_iteration_is_root_first_ordered_and_restartable(db_session: Session):
    _seed_tree(db_session)
    tree = MenuTree.load(db_session)

    first = [node.id for node in tree]
    second = [node.id for node in tree]

    assert first == [5, 1, 3, 2, 4]
    assert second == first
    assert len(tree) == 5
    assert [depth for depth, _ in tree.walk()] == [0, 0, 1, 1, 2]


def test_sort_order_ties_break_on_id(db_session: Session):
    _menu(db_session, 7, "b", sort_order=0)
    _menu(db_session, 6, "a", sort_order=0)

    assert [node.id for node in MenuTree.load(db_session)] == [6, 7]


def test_orphan_menu_is_treated_as_root(db_session: Session):
    _menu(db_session, 1, "root")
    _menu(db_session, 9, "orphan", parent_id=404)

    tree = MenuTree.load(db_session)

    assert [node.id for node in tree.children_of(None)] == [1, 9]


def test_descendants_and_ancestors(db_session: Session):
    _seed_tree(db_session)
    tree = MenuTree.load(db_session)

    assert sorted(tree.descendant_ids(1)) == [2, 3, 4]
    assert tree.descendant_ids(5) == []
    assert tree.ancestor_ids(4) == [2, 1]
    assert tree.would_create_cycle(1, 4)
    assert tree.would_create_cycle(2, 2)
    assert not tree.would_create_cycle(5, 4)


def test_to_nested_prunes_subtree_of_excluded_node(db_session: Session):
    _seed_tree(db_session)
    tree = MenuTree.load(db_session)

    nested = tree.to_nested(include={1, 3, 4, 5})

    assert [item["id"] for item in nested] == [5, 1]
    system = nested[1]
    assert [child["id"] for child in system["children"]] == [3]
    assert system["children"][0]["children"] == []


def test_create_menu_validates_name_and_parent(db_session: Session):
    _seed_tree(db_session)

    menu = create_menu(db_session, MenuCreateRequest(name="audit", display_name="审计", parent_id=1, sort_order=3))
    assert menu.id is not None
    assert menu.parent_id == 1

    with pytest.raises(ConflictError):
        create_menu(db_session, MenuCreateRequest(name="audit", display_name="重复"))
    with pytest.raises(ReferentialError):
        create_menu(db_session, MenuCreateRequest(name="ghost_child", display_name="x", parent_id=999))
    with pytest.raises(ValidationError):
        parse_command(MenuCreateRequest, {"name": "9starts_with_digit", "display_name": "x"})


def test_create_menu_with_self_parent_is_rejected(db_session: Session):
    _seed_tree(db_session)

    with pytest.raises(ReferentialError):
        create_menu(db_session, MenuCreateRequest(id=10, name="loop", display_name="loop", parent_id=10))
    with pytest.raises(ConflictError):
        create_menu(db_session, MenuCreateRequest(id=3, name="taken_id", display_name="x"))


def test_create_with_explicit_id_cannot_adopt_its_own_orphan_descendant_as_parent(db_session: Session):
    # 5 与 6 指向尚不存在的 99；再以 99 创建并挂到 6 下会闭合 99 -> 6 -> 5 -> 99。
    _menu(db_session, 5, "orphan_top", parent_id=99)
    _menu(db_session, 6, "orphan_leaf", parent_id=5)
    db_session.commit()

    with pytest.raises(ReferentialError):
        create_menu(db_session, MenuCreateRequest(id=99, name="missing_parent", display_name="x", parent_id=6))
    db_session.rollback()

    assert db_session.get(Menu, 99) is None
    assert [node.id for node in MenuTree.load(db_session)] == [5, 6]

    adopted = create_menu(db_session, MenuCreateRequest(id=99, name="missing_parent", display_name="x"))
    assert adopted.parent_id is None
    assert [node.id for node in MenuTree.load(db_session)] == [99, 5, 6]


def test_auto_id_after_explicit_id_does_not_collide(db_session: Session):
    create_menu(db_session, MenuCreateRequest(id=40, name="imported", display_name="导入"))

    menu = create_menu(db_session, MenuCreateRequest(name="created_later", display_name="后建"))

    assert menu.id > 40


def test_update_menu_rejects_cycle_into_own_subtree(db_session: Session):
    _seed_tree(db_session)

    with pytest.raises(ReferentialError):
        update_menu(db_session, 1, MenuUpdateRequest(parent_id=4))
    with pytest.raises(ReferentialError):
        update_menu(db_session, 2, MenuUpdateRequest(parent_id=2))
    with pytest.raises(ReferentialError):
        update_menu(db_session, 2, MenuUpdateRequest(parent_id=999))

    before, menu = update_menu(db_session, 2, MenuUpdateRequest(parent_id=5, display_name="角色"))
    assert before["parent_id"] == 1
    assert menu.parent_id == 5
    assert menu.display_name == "角色"


def test_update_menu_can_move_to_root_and_rejects_null_name(db_session: Session):
    _seed_tree(db_session)

    _, menu = update_menu(db_session, 4, MenuUpdateRequest(parent_id=None))
    assert menu.parent_id is None

    with pytest.raises(ValidationError):
        update_menu(db_session, 4, MenuUpdateRequest(name=None))


def test_delete_cascades_descendants_and_their_grants_only(db_session: Session):
    _seed_tree(db_session)
    db_session.add_all(
        [
            RoleMenuGrant(role_id=1, menu_id=2),
            RoleMenuGrant(role_id=1, menu_id=4),
            RoleMenuGrant(role_id=1, menu_id=5),
            RoleMenuGrant(role_id=2, menu_id=3),
        ]
    )
    db_session.flush()

    snapshots, revoked = delete_menus(db_session, [2])

    assert [item["id"] for item in snapshots] == [2, 4]
    assert revoked == [{"role_id": 1, "menu_id": 2}, {"role_id": 1, "menu_id": 4}]
    remaining_menus = db_session.execute(select(Menu.id).order_by(Menu.id)).scalars().all()
    assert remaining_menus == [1, 3, 5]
    remaining_grants = db_session.execute(
        select(RoleMenuGrant.role_id, RoleMenuGrant.menu_id).order_by(RoleMenuGrant.role_id, RoleMenuGrant.menu_id)
    ).all()
    assert [tuple(row) for row in remaining_grants] == [(1, 5), (2, 3)]


def test_delete_unknown_menu_raises_not_found(db_session: Session):
    _seed_tree(db_session)

    with pytest.raises(NotFoundError):
        delete_menus(db_session, [404])
    assert db_session.execute(select(func.count(Menu.id))).scalar_one() == 5


def test_list_menus_supports_search_and_paging(db_session: Session):
    _seed_tree(db_session)

    menus, total = list_menus(db_session, offset=0, limit=2)
    assert total == 5
    assert [menu.id for menu in menus] == [4, 5]

    menus, total = list_menus(db_session, offset=0, limit=10, search="role")
    assert total == 2
    assert sorted(menu.name for menu in menus) == ["role_detail", "roles"]
