from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from qc_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from qc_tracker.models.enums import ActionType, UserRole
from qc_tracker.models.history import HistoryLog
from qc_tracker.services.auth import ALGORITHM, AuthService
from qc_tracker.services.user import UserService


def test_password_hash_roundtrip():
    hashed = AuthService.hash_password("leader123")

    assert hashed != "leader123"
    assert AuthService.verify_password("leader123", hashed)
    assert not AuthService.verify_password("leader124", hashed)
    assert not AuthService.verify_password("", hashed)


def test_access_token_carries_identity(settings, leader):
    service = AuthService(settings)

    payload = service.verify_access_token(service.create_access_token(leader))

    assert payload["user_id"] == leader.id
    assert payload["username"] == "leader"
    assert payload["full_name"] == "Leader Quality Control"
    assert payload["role"] == "leader"


def test_expired_or_foreign_tokens_are_rejected(settings, leader):
    service = AuthService(settings)
    expired = jwt.encode(
        {"user_id": leader.id, "exp": int((datetime.now(timezone.utc) - timedelta(hours=1)).timestamp())},
        settings.secret_key,
        algorithm=ALGORITHM,
    )
    foreign = jwt.encode({"user_id": leader.id}, "another-secret", algorithm=ALGORITHM)

    assert service.verify_access_token(expired) is None
    assert service.verify_access_token(foreign) is None
    assert service.verify_access_token("not-a-token") is None


def test_authenticate_checks_password_and_active_flag(db, staff):
    service = UserService(db)

    assert service.authenticate("staff", "staff123").id == staff.id
    assert service.authenticate("staff", "wrong") is None
    assert service.authenticate("nobody", "staff123") is None

    service.update_user(staff.id, {"is_active": False})
    assert service.authenticate("staff", "staff123") is None


def test_create_user_validates_input(db, leader):
    service = UserService(db)

    user = service.create_user({"username": "ani", "password": "rahasia", "full_name": "Ani", "role": "staff"})
    assert user.role == UserRole.STAFF
    assert "password_hash" not in user.public_dict()

    with pytest.raises(ConflictError):
        service.create_user({"username": "ani", "password": "rahasia", "full_name": "Ani 2", "role": "staff"})
    with pytest.raises(ValidationError):
        service.create_user({"username": "budi", "password": "rahasia", "full_name": "Budi", "role": "admin"})
    with pytest.raises(ValidationError):
        service.create_user({"username": "budi", "password": "123", "full_name": "Budi", "role": "staff"})
    with pytest.raises(ValidationError):
        service.create_user({"username": "budi", "password": "rahasia", "role": "staff"})


def test_update_user_is_partial(db, staff):
    updated = UserService(db).update_user(staff.id, {"email": "staff@qclaptop.com"})

    assert updated.email == "staff@qclaptop.com"
    assert updated.full_name == "Quality Control Staff"
    assert updated.role == UserRole.STAFF


def test_list_active_users_by_role(db, leader, staff):
    service = UserService(db)
    service.create_user({"username": "old", "password": "rahasia", "full_name": "Old Staff", "role": "staff"})
    old = service.get_user_by_username("old")
    service.deactivate_user(old.id, {"user_id": leader.id})

    assert [u.username for u in service.list_active_users_by_role("staff")] == ["staff"]
    assert [u.username for u in service.list_active_users_by_role("leader")] == ["leader"]
    with pytest.raises(ValidationError):
        service.list_active_users_by_role("admin")


def test_leader_cannot_deactivate_self(db, leader):
    with pytest.raises(ValidationError):
        UserService(db).deactivate_user(leader.id, {"user_id": leader.id})


def test_change_password_requires_current_password(db, staff):
    service = UserService(db)

    with pytest.raises(ValidationError):
        service.change_password(staff.id, "wrong", "newpass1")
    with pytest.raises(ValidationError):
        service.change_password(staff.id, "staff123", "short")

    service.change_password(staff.id, "staff123", "newpass1")
    assert service.authenticate("staff", "newpass1") is not None


def test_reset_password_for_unknown_user(db):
    with pytest.raises(NotFoundError):
        UserService(db).set_password(404, "newpass1")


def test_session_events_are_logged(db, staff):
    UserService(db).record_session_event(staff, "login", "10.1.1.1")

    entry = db.query(HistoryLog).one()
    assert entry.action_type == ActionType.STATUS_CHANGE
    assert entry.laptop_id is None
    assert entry.details == {"action": "login"}
    assert entry.ip_address == "10.1.1.1"


def test_racing_create_with_same_username_is_conflict(db, staff, monkeypatch):
    service = UserService(db)
    monkeypatch.setattr(UserService, "get_user_by_username", lambda self, username: None)

    with pytest.raises(ConflictError):
        service.create_user({"username": "staff", "password": "rahasia", "full_name": "Staff 2", "role": "staff"})

    monkeypatch.undo()
    assert service.get_user_by_username("staff").id == staff.id
