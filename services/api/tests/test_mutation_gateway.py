import json

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

import acp_api.models  # noqa: F401
from acp_api.core.errors import InternalError, ProtectedResourceError, ReferentialError, ValidationError
from acp_api.models.audit import AuditLog
from acp_api.models.base import Base
from acp_api.models.catalog import ButtonPermission, Menu
from acp_api.models.permission import RoleMenuGrant
from acp_api.models.role import Role, User
from acp_api.services import gateway as gateway_module
from acp_api.services.audit import AuditContext
from acp_api.services.authorization import effective_permissions
from acp_api.services.gateway import MutationGateway
from acp_api.services.permissions import get_effective_grants
from acp_api.services.roles import get_role_by_name


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
def gateway(db_session: Session) -> MutationGateway:
    return MutationGateway(db_session, AuditContext(actor_user_id=1, ip="127.0.0.1", user_agent="pytest"))


def _audit_rows(db: Session) -> list[AuditLog]:
    return db.execute(select(AuditLog).order_by(AuditLog.id)).scalars().all()


def _seed_catalog(db: Session) -> None:
    db.add_all(
        [
            Menu(id=10, name="customers", display_name="客户"),
            Menu(id=11, name="orders", display_name="订单"),
            ButtonPermission(id=3, name="customer_export", display_name="导出客户", category="export"),
        ]
    )
    db.commit()


def test_create_role_commits_mutation_and_audit_together(db_session: Session, gateway: MutationGateway):
    role = gateway.create_role({"name": "SALES", "display_name": "销售"})

    (entry,) = _audit_rows(db_session)
    assert entry.action == "CREATE"
    assert entry.resource_type == "role"
    assert entry.resource_id == role.id
    assert entry.actor_user_id == 1
    assert json.loads(entry.after_data)["name"] == "SALES"
    assert entry.before_data is None


def test_raw_payload_with_unknown_field_is_rejected(db_session: Session, gateway: MutationGateway):
    with pytest.raises(ValidationError):
        gateway.create_role({"name": "SALES", "display_name": "销售", "color": "red"})
    with pytest.raises(ValidationError):
        gateway.update_role(1, {"name": "RENAMED"})
    with pytest.raises(ValidationError):
        gateway.create_button({"name": "export", "display_name": "导出", "category": "print"})
    assert _audit_rows(db_session) == []


def test_audit_failure_rolls_back_the_mutation(
    db_session: Session, gateway: MutationGateway, monkeypatch: pytest.MonkeyPatch
):
    def _broken_record(*_args, **_kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(gateway_module, "record_audit", _broken_record)

    with pytest.raises(InternalError) as exc:
        gateway.create_role({"name": "SALES", "display_name": "销售"})

    assert isinstance(exc.value.__cause__, RuntimeError)
    assert db_session.execute(select(func.count(Role.id))).scalar_one() == 0
    assert _audit_rows(db_session) == []


def test_domain_error_rolls_back_and_keeps_its_kind(db_session: Session, gateway: MutationGateway):
    db_session.add(Role(name="SUPER_ADMIN", display_name="超级管理员", is_system=True))
    db_session.commit()

    with pytest.raises(ProtectedResourceError):
        gateway.delete_role(get_role_by_name(db_session, "SUPER_ADMIN").id)

    assert get_role_by_name(db_session, "SUPER_ADMIN") is not None
    assert _audit_rows(db_session) == []


def test_sales_scenario_grants_become_effective(db_session: Session, gateway: MutationGateway):
    _seed_catalog(db_session)
    role = gateway.create_role({"name": "SALES", "display_name": "销售"})
    role_id = role.id
    db_session.add(User(username="alice", display_name="Alice", role_id=role_id))
    db_session.commit()

    gateway.set_role_menu_grants(role_id, {"menu_ids": [11, 10]})
    gateway.set_role_button_grants(role_id, {"button_ids": [3]})

    user_id = db_session.execute(select(User.id).where(User.username == "alice")).scalar_one()
    result = effective_permissions(db_session, user_id)
    assert sorted(node["id"] for node in result["menus"]) == [10, 11]
    assert [button["id"] for button in result["buttons"]] == [3]


def test_identical_replace_twice_writes_two_audit_entries(db_session: Session, gateway: MutationGateway):
    _seed_catalog(db_session)
    role_id = gateway.create_role({"name": "SALES", "display_name": "销售"}).id

    gateway.set_role_menu_grants(role_id, {"menu_ids": [10, 11]})
    gateway.set_role_menu_grants(role_id, {"menu_ids": [10, 11]})

    grant_entries = [entry for entry in _audit_rows(db_session) if entry.resource_type == "role_menu_grant"]
    assert len(grant_entries) == 2
    assert all(entry.action == "UPDATE" and entry.resource_id == role_id for entry in grant_entries)
    second_after = json.loads(grant_entries[1].after_data)
    assert second_after["added"] == []
    assert second_after["removed"] == []
    assert get_effective_grants(db_session, role_id)["menu_ids"] == [10, 11]


def test_batch_set_active_writes_single_bulk_entry(db_session: Session, gateway: MutationGateway):
    db_session.add_all([Role(id=role_id, name=f"TEAM_{role_id}", display_name=f"团队{role_id}") for role_id in (5, 6, 7)])
    db_session.commit()

    count = gateway.batch_set_active({"role_ids": [5, 6, 7], "is_active": False})

    assert count == 3
    assert all(not db_session.get(Role, role_id).is_active for role_id in (5, 6, 7))
    (entry,) = _audit_rows(db_session)
    assert entry.action == "BATCH_UPDATE"
    assert entry.resource_id == 0
    assert [item["id"] for item in json.loads(entry.before_data)] == [5, 6, 7]


def test_delete_menu_audits_cascade(db_session: Session, gateway: MutationGateway):
    db_session.add_all(
        [
            Menu(id=1, name="system", display_name="系统"),
            Menu(id=2, name="roles", display_name="角色", parent_id=1),
            RoleMenuGrant(role_id=9, menu_id=2),
        ]
    )
    db_session.commit()

    menu_ids, revoked = gateway.delete_menu(1)

    assert menu_ids == [1, 2]
    assert revoked == 1
    (entry,) = _audit_rows(db_session)
    assert entry.action == "DELETE"
    assert entry.resource_type == "menu"
    assert json.loads(entry.before_data)["revoked_grants"] == [{"menu_id": 2, "role_id": 9}]


def test_batch_delete_roles_is_single_bulk_entry(db_session: Session, gateway: MutationGateway):
    db_session.add_all([Role(id=21, name="TEMP_A", display_name="A"), Role(id=22, name="TEMP_B", display_name="B")])
    db_session.commit()

    assert gateway.delete_roles([21, 22]) == 2

    (entry,) = _audit_rows(db_session)
    assert entry.action == "BATCH_DELETE"
    assert entry.resource_id == 0


def test_matrix_reports_per_item_results(db_session: Session, gateway: MutationGateway):
    _seed_catalog(db_session)
    role_id = gateway.create_role({"name": "SALES", "display_name": "销售"}).id

    results = gateway.apply_matrix(
        {
            "items": [
                {"role_id": role_id, "menu_ids": [10], "button_ids": [3]},
                {"role_id": 999, "menu_ids": [10]},
                {"role_id": role_id, "menu_ids": [10, 404]},
            ]
        }
    )

    assert results[0] == {"role_id": role_id, "success": True, "menu_ids": [10], "button_ids": [3]}
    assert results[1]["success"] is False
    assert results[1]["error_code"] == ReferentialError.code
    assert results[2]["success"] is False
    assert get_effective_grants(db_session, role_id) == {"role_id": role_id, "menu_ids": [10], "button_ids": [3]}


def test_assign_and_revoke_user_role_are_audited(db_session: Session, gateway: MutationGateway):
    role_id = gateway.create_role({"name": "SALES", "display_name": "销售"}).id
    db_session.add(User(id=50, username="alice", display_name="Alice"))
    db_session.commit()

    gateway.assign_user_role(50, {"role_id": role_id})
    gateway.revoke_user_role(50)

    actions = [(entry.action, entry.resource_type, entry.resource_id) for entry in _audit_rows(db_session)[1:]]
    assert actions == [("ASSIGN", "user", 50), ("REVOKE", "user", 50)]
    assert db_session.get(User, 50).role_id is None


def test_batch_update_users_writes_one_bulk_user_entry(db_session: Session, gateway: MutationGateway):
    role_id = gateway.create_role({"name": "SALES", "display_name": "销售"}).id
    db_session.add_all(
        [User(id=60, username="alice", display_name="Alice"), User(id=61, username="bob", display_name="Bob")]
    )
    db_session.commit()

    assert gateway.batch_update_users({"user_ids": [61, 60, 61], "role_id": role_id}) == 2

    entry = _audit_rows(db_session)[-1]
    assert (entry.action, entry.resource_type, entry.resource_id) == ("BATCH_UPDATE", "user", 0)
    assert json.loads(entry.after_data) == {"role_id": role_id, "user_ids": [60, 61]}
    assert [item["id"] for item in json.loads(entry.before_data)] == [60, 61]
    assert {db_session.get(User, 60).role_id, db_session.get(User, 61).role_id} == {role_id}


def test_batch_update_users_requires_a_change_and_rolls_back_on_unknown_user(
    db_session: Session, gateway: MutationGateway
):
    db_session.add(User(id=60, username="alice", display_name="Alice"))
    db_session.commit()

    with pytest.raises(ValidationError):
        gateway.batch_update_users({"user_ids": [60]})
    with pytest.raises(ValidationError):
        gateway.batch_update_users({"user_ids": [60], "is_active": None})
    with pytest.raises(ReferentialError):
        gateway.batch_update_users({"user_ids": [60, 404], "is_active": False})

    assert db_session.get(User, 60).is_active is True
    assert _audit_rows(db_session) == []
