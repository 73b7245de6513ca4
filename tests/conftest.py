from typing import Any, Dict

import pytest
from fastapi.testclient import TestClient

from qc_tracker.core.config import Settings
from qc_tracker.core.db import create_db_and_tables, create_db_engine, create_session_factory
from qc_tracker.factory import create_app
from qc_tracker.models.enums import UserRole
from qc_tracker.models.user import User
from qc_tracker.services.auth import AuthService


def make_user(db, username: str, role: UserRole, password: str = "secret123", **extra) -> User:
    user = User(
        username=username,
        password_hash=AuthService.hash_password(password),
        full_name=extra.pop("full_name", username.title()),
        role=role,
        is_active=extra.pop("is_active", True),
        **extra,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def as_current_user(user: User) -> Dict[str, Any]:
    return {
        "user_id": user.id,
        "username": user.username,
        "full_name": user.full_name,
        "role": user.role.value,
    }


@pytest.fixture
def settings(tmp_path):
    return Settings({
        "SECRET_KEY": "test-secret-key",
        "DATABASE_URL": "sqlite://",
        "UPLOAD_DIR": str(tmp_path / "uploads"),
        "BASE_URL": "http://qc.example.test",
        "LOG_LEVEL": "WARNING",
    })


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings.database_url)
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = create_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def leader(db) -> User:
    return make_user(db, "leader", UserRole.LEADER, password="leader123", full_name="Leader Quality Control")


@pytest.fixture
def staff(db) -> User:
    return make_user(db, "staff", UserRole.STAFF, password="staff123", full_name="Quality Control Staff")


@pytest.fixture
def leader_user(leader) -> Dict[str, Any]:
    return as_current_user(leader)


@pytest.fixture
def staff_user(staff) -> Dict[str, Any]:
    return as_current_user(staff)


@pytest.fixture
def app(settings, engine):
    return create_app(settings, engine=engine)


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def leader_headers(settings, leader) -> Dict[str, str]:
    token = AuthService(settings).create_access_token(leader)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def staff_headers(settings, staff) -> Dict[str, str]:
    token = AuthService(settings).create_access_token(staff)
    return {"Authorization": f"Bearer {token}"}
