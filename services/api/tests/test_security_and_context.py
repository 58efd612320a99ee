import jwt
import pytest
from fastapi import HTTPException
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

import acp_api.models  # noqa: F401
from acp_api.core.config import Settings, get_settings
from acp_api.core.errors import AuthorizationError
from acp_api.core.security import AuthenticatedPrincipal, parse_authorization_header
from acp_api.db.session import engine_options
from acp_api.dependencies import get_request_context, require_admin
from acp_api.models.base import Base
from acp_api.models.role import Role, User

SECRET = "unit-test-secret-key-at-least-32-bytes"


@pytest.fixture(autouse=True)
def jwt_settings(monkeypatch):
    monkeypatch.setenv("ACP_AUTH_JWT_SECRET", SECRET)
    monkeypatch.setenv("ACP_AUTH_JWT_ALGORITHMS", "HS256")
    monkeypatch.setenv("ACP_ADMIN_ROLE_NAMES", "SUPER_ADMIN, ADMIN")
    monkeypatch.delenv("ACP_AUTH_JWT_ISSUER", raising=False)
    monkeypatch.delenv("ACP_AUTH_JWT_AUDIENCE", raising=False)
    monkeypatch.delenv("ACP_AUTH_JWKS_URL", raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


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


def _principal(user_id: int) -> AuthenticatedPrincipal:
    return AuthenticatedPrincipal(subject=str(user_id), provider="jwt", claims={"sub": str(user_id)})


def test_parse_authorization_header_jwt():
    token = jwt.encode({"sub": "42", "iss": "sso"}, SECRET, algorithm="HS256")

    principal = parse_authorization_header(f"Bearer {token}")

    assert principal.subject == "42"
    assert principal.provider == "sso"
    assert principal.user_id == 42


def test_parse_authorization_header_prefers_real_token_when_placeholder_exists():
    token = jwt.encode({"sub": "7"}, SECRET, algorithm="HS256")

    principal = parse_authorization_header(f"Bearer {{{{bearerToken}}}}, Bearer {token}")

    assert principal.user_id == 7


@pytest.mark.parametrize(
    "header",
    [None, "", "Basic abc", "Bearer {{bearerToken}}", f"Bearer {jwt.encode({'sub': '1'}, 'another-secret-of-32-bytes-or-more!', algorithm='HS256')}"],
)
def test_parse_authorization_header_rejects_invalid(header):
    with pytest.raises(HTTPException) as exc:
        parse_authorization_header(header)
    assert exc.value.status_code == 401


def test_non_numeric_subject_is_unauthorized():
    token = jwt.encode({"sub": "user-abc"}, SECRET, algorithm="HS256")
    principal = parse_authorization_header(f"Bearer {token}")

    with pytest.raises(HTTPException) as exc:
        _ = principal.user_id
    assert exc.value.status_code == 401


def test_request_context_loads_active_user_and_role(db_session: Session):
    role = Role(name="ADMIN", display_name="管理员", is_system=True)
    db_session.add(role)
    db_session.flush()
    db_session.add(User(id=5, username="ops", display_name="Ops", role_id=role.id))
    db_session.commit()

    ctx = get_request_context(principal=_principal(5), db=db_session)

    assert ctx.user_id == 5
    assert ctx.role_name == "ADMIN"
    assert require_admin(ctx) is ctx


def test_request_context_rejects_disabled_or_unknown_user(db_session: Session):
    db_session.add(User(id=6, username="gone", display_name="Gone", is_active=False))
    db_session.commit()

    for user_id in (6, 404):
        with pytest.raises(HTTPException) as exc:
            get_request_context(principal=_principal(user_id), db=db_session)
        assert exc.value.status_code == 401


def test_inactive_or_non_admin_role_is_forbidden(db_session: Session):
    disabled = Role(name="SUPER_ADMIN", display_name="超级管理员", is_system=True, is_active=False)
    sales = Role(name="SALES", display_name="销售")
    db_session.add_all([disabled, sales])
    db_session.flush()
    db_session.add_all(
        [
            User(id=7, username="former_admin", display_name="Former", role_id=disabled.id),
            User(id=8, username="seller", display_name="Seller", role_id=sales.id),
        ]
    )
    db_session.commit()

    for user_id in (7, 8):
        ctx = get_request_context(principal=_principal(user_id), db=db_session)
        with pytest.raises(AuthorizationError):
            require_admin(ctx)


def test_engine_options_follow_settings_and_skip_pool_for_sqlite():
    postgres = Settings(database_url="postgresql+psycopg://u:p@db:5432/acp", db_pool_size=8, db_max_overflow=2)
    sqlite = Settings(database_url="sqlite+pysqlite:///:memory:", db_echo=True)

    options = engine_options(postgres)
    assert (options["pool_size"], options["max_overflow"], options["pool_recycle"]) == (8, 2, 1800)
    assert options["pool_pre_ping"] is True

    options = engine_options(sqlite)
    assert "pool_size" not in options
    assert options["echo"] is True
