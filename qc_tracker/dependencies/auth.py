from typing import Optional, Dict, Any
from fastapi import HTTPException, Request, status
from qc_tracker.models.enums import UserRole
from qc_tracker.services.auth import AuthService
import logging

logger = logging.getLogger(__name__)


def get_bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization")
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_client_ip(request: Request) -> str:
    client_ip = getattr(request.state, "client_ip", None)
    if client_ip:
        return client_ip

    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def get_current_user(request: Request) -> Optional[Dict[str, Any]]:
    token = get_bearer_token(request)
    if not token:
        return None

    auth_service = AuthService(request.app.state.settings)
    payload = auth_service.verify_access_token(token)

    if not payload:
        return None

    user_data = {
        "user_id": payload.get("user_id"),
        "username": payload.get("username"),
        "full_name": payload.get("full_name"),
        "role": payload.get("role"),
    }
    request.state.user = user_data
    return user_data


def require_authentication(request: Request) -> Dict[str, Any]:
    if not get_bearer_token(request):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Access token required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    current_user = get_current_user(request)
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid or expired token",
        )
    return current_user


def require_leader(request: Request) -> Dict[str, Any]:
    current_user = require_authentication(request)

    if current_user["role"] != UserRole.LEADER:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this resource",
        )

    return current_user


def require_staff(request: Request) -> Dict[str, Any]:
    current_user = require_authentication(request)

    if current_user["role"] not in [UserRole.STAFF, UserRole.LEADER]:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You do not have access to this resource",
        )

    return current_user
