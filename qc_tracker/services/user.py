from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from qc_tracker.core.db import transaction
from qc_tracker.core.exceptions import ConflictError, NotFoundError, ValidationError
from qc_tracker.models.enums import ActionType, UserRole
from qc_tracker.models.user import User
from qc_tracker.services.auth import AuthService
from qc_tracker.services.history import HistoryService
import logging

logger = logging.getLogger(__name__)


def parse_role(value: Any) -> UserRole:
    try:
        return UserRole(value)
    except ValueError:
        raise ValidationError("Invalid role (only leader or staff)")


class UserService:

    def __init__(self, db: Session):
        self.db = db
        self.history = HistoryService(db)

    def get_user_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.db.query(User).filter(User.username == username).first()

    def require_user(self, user_id: int) -> User:
        user = self.get_user_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def list_users(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()

    def list_active_users_by_role(self, role: str) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.role == parse_role(role), User.is_active == True)  # noqa: E712
            .order_by(User.full_name)
            .all()
        )

    def authenticate(self, username: str, password: str) -> Optional[User]:
        user = self.db.query(User).filter(User.username == username, User.is_active == True).first()  # noqa: E712
        if not user:
            return None
        if not AuthService.verify_password(password, user.password_hash):
            return None
        return user

    def create_user(self, user_data: Dict[str, Any]) -> User:
        """Create a new user"""
        username = (user_data.get("username") or "").strip()
        full_name = (user_data.get("full_name") or "").strip()
        if not username or not user_data.get("password") or not full_name or not user_data.get("role"):
            raise ValidationError("Username, password, full name and role are required")

        role = parse_role(user_data["role"])
        password = AuthService.validate_new_password(user_data["password"])

        with transaction(self.db):
            if self.get_user_by_username(username):
                raise ConflictError("Username is already taken")

            user = User(
                username=username,
                password_hash=AuthService.hash_password(password),
                full_name=full_name,
                role=role,
                email=user_data.get("email"),
                is_active=True,
                created_at=datetime.now(timezone.utc),
                updated_at=datetime.now(timezone.utc),
            )
            self.db.add(user)
            try:
                self.db.flush()
            except IntegrityError:
                raise ConflictError("Username is already taken")

        self.db.refresh(user)

        logger.info(f"Created new user: {username} with role: {role.value}")
        return user

    def update_user(self, user_id: int, user_data: Dict[str, Any]) -> User:
        with transaction(self.db):
            user = self.require_user(user_id)

            if user_data.get("full_name") is not None:
                user.full_name = user_data["full_name"]
            if user_data.get("role") is not None:
                user.role = parse_role(user_data["role"])
            if user_data.get("email") is not None:
                user.email = user_data["email"]
            if user_data.get("is_active") is not None:
                user.is_active = bool(user_data["is_active"])
            user.updated_at = datetime.now(timezone.utc)

        self.db.refresh(user)
        return user

    def set_password(self, user_id: int, new_password: str) -> User:
        password = AuthService.validate_new_password(new_password)

        with transaction(self.db):
            user = self.require_user(user_id)
            user.password_hash = AuthService.hash_password(password)
            user.updated_at = datetime.now(timezone.utc)

        logger.info(f"Password changed for user: {user.username}")
        return user

    def change_password(self, user_id: int, current_password: str, new_password: str) -> User:
        if not current_password or not new_password:
            raise ValidationError("Current and new password are required")

        user = self.require_user(user_id)
        if not AuthService.verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")

        return self.set_password(user_id, new_password)

    def deactivate_user(self, user_id: int, current_user: Dict[str, Any]) -> User:
        if user_id == current_user.get("user_id"):
            raise ValidationError("You cannot deactivate your own account")

        with transaction(self.db):
            user = self.require_user(user_id)
            user.is_active = False
            user.updated_at = datetime.now(timezone.utc)

        logger.info(f"Deactivated user: {user.username}")
        return user

    def record_session_event(self, user: User, event: str, ip_address: Optional[str] = None) -> None:
        """Write a login/logout entry to the history log."""
        with transaction(self.db):
            self.history.append(
                user_id=user.id,
                action=f"User {user.username} {'logged in' if event == 'login' else 'logged out'}",
                action_type=ActionType.STATUS_CHANGE,
                details={"action": event},
                ip_address=ip_address,
            )
