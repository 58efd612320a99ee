import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import acp_api.models  # noqa: F401
from acp_api.core.errors import NotFoundError, ReferentialError, ValidationError
from acp_api.models.base import Base
from acp_api.models.catalog import ButtonPermission, Menu
from acp_api.models.role import Role
from acp_api.services.permissions import get_effective_grants, set_role_button_grants, set_role_menu_grants


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
def seeded(db_session: Session) -> Role:
    role = Role(name="SALES", display_name="销售")
    db_session.add(role)
    db_session.add_all(Menu(id=menu_id, name=f"menu_{menu_id}", display_name=f"菜单{menu_id}") for menu_id in (10, 11, 12))
    db_session.add_all(
        ButtonPermission(id=button_id, name=f"button_{button_id}", display_name=f"按钮{button_id}")
        for button_id in (3, 4)
    )
    db_session.flush()
    return role


def test_replace_is_order_insensitive_and_collapses_duplicates(db_session: Session, seeded: Role):
    set_role_menu_grants(db_session, seeded.id, [11, 10, 11])

    assert get_effective_grants(db_session, seeded.id)["menu_ids"] == [10, 11]


def test_replace_computes_delta_against_current_grants(db_session: Session, seeded: Role):
    set_role_menu_grants(db_session, seeded.id, [10, 11])

    delta = set_role_menu_grants(db_session, seeded.id, [11, 12])

    assert delta.before == [10, 11]
    assert delta.after == [11, 12]
    assert delta.added == [12]
    assert delta.removed == [10]
    assert get_effective_grants(db_session, seeded.id)["menu_ids"] == [11, 12]


def test_repeated_replace_is_idempotent(db_session: Session, seeded: Role):
    set_role_button_grants(db_session, seeded.id, [3])
    delta = set_role_button_grants(db_session, seeded.id, [3])

    assert delta.added == []
    assert delta.removed == []
    assert get_effective_grants(db_session, seeded.id)["button_ids"] == [3]


def test_empty_set_clears_grants(db_session: Session, seeded: Role):
    set_role_menu_grants(db_session, seeded.id, [10, 11, 12])
    set_role_menu_grants(db_session, seeded.id, [])

    assert get_effective_grants(db_session, seeded.id)["menu_ids"] == []


def test_menu_and_button_kinds_are_independent(db_session: Session, seeded: Role):
    set_role_menu_grants(db_session, seeded.id, [10])
    set_role_button_grants(db_session, seeded.id, [4])
    set_role_menu_grants(db_session, seeded.id, [12])

    grants = get_effective_grants(db_session, seeded.id)
    assert grants == {"role_id": seeded.id, "menu_ids": [12], "button_ids": [4]}


def test_unknown_references_are_rejected_without_changes(db_session: Session, seeded: Role):
    set_role_menu_grants(db_session, seeded.id, [10])

    with pytest.raises(ReferentialError) as exc:
        set_role_menu_grants(db_session, seeded.id, [10, 99])
    assert exc.value.details["menu_ids"] == [99]
    with pytest.raises(ReferentialError):
        set_role_button_grants(db_session, seeded.id, [5])
    with pytest.raises(ReferentialError):
        set_role_menu_grants(db_session, 999, [10])

    assert get_effective_grants(db_session, seeded.id)["menu_ids"] == [10]


def test_non_positive_ids_are_validation_errors(db_session: Session, seeded: Role):
    with pytest.raises(ValidationError):
        set_role_menu_grants(db_session, seeded.id, [0])


def test_effective_grants_for_unknown_role(db_session: Session):
    with pytest.raises(NotFoundError):
        get_effective_grants(db_session, 42)
