from datetime import datetime, timezone, timedelta
from typing import Optional, Dict, Any

import bcrypt
from jose import JWTError, jwt

from qc_tracker.core.config import Settings
from qc_tracker.core.exceptions import ValidationError
from qc_tracker.models.user import User
import logging

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes of a password
MAX_PASSWORD_BYTES = 72
MIN_PASSWORD_LENGTH = 6


class AuthService:
    def __init__(self, settings: Settings):
        self.secret_key = settings.secret_key
        self.token_expire_hours = settings.token_expire_hours

    @staticmethod
    def validate_new_password(password: Optional[str]) -> str:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
        if len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise ValidationError(f"Password must be at most {MAX_PASSWORD_BYTES} bytes")
        return password

    @staticmethod
    def hash_password(password: str) -> str:
        hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
        return hashed.decode("utf-8")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        encoded = (password or "").encode("utf-8")
        if not encoded or len(encoded) > MAX_PASSWORD_BYTES:
            return False
        try:
            return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))
        except ValueError as e:
            logger.warning(f"Stored password hash could not be checked: {e}")
            return False

    def create_access_token(self, user: User) -> str:
        token_data = {
            "user_id": user.id,
            "username": user.username,
            "full_name": user.full_name,
            "role": user.role.value if hasattr(user.role, "value") else user.role,
            "exp": int((datetime.now(timezone.utc) + timedelta(hours=self.token_expire_hours)).timestamp()),
        }

        return jwt.encode(token_data, self.secret_key, algorithm=ALGORITHM)

    def verify_access_token(self, token: str) -> Optional[Dict[str, Any]]:
        try:
            payload = jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])

            if datetime.now(timezone.utc).timestamp() > payload.get('exp', 0):
                return None

            return payload

        except JWTError as e:
            logger.debug(f"Access token verification failed: {e}")
            return None
