import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from qc_tracker.core.db import get_session
from qc_tracker.core.exceptions import QCError
from qc_tracker.dependencies.auth import get_client_ip, require_authentication
from qc_tracker.routes.common import to_http_exception
from qc_tracker.services.auth import AuthService
from qc_tracker.services.user import UserService

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    username: str
    password: str


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


@router.post("/login")
async def login(payload: LoginRequest, request: Request, db: Session = Depends(get_session)):
    if not payload.username or not payload.password:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username and password are required")

    user_service = UserService(db)
    auth_service = AuthService(request.app.state.settings)

    user = user_service.authenticate(payload.username, payload.password)
    if not user:
        logger.warning(f"Failed login attempt for user: {payload.username}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid username or password")

    try:
        token = auth_service.create_access_token(user)
        user_service.record_session_event(user, "login", get_client_ip(request))
    except QCError as e:
        raise to_http_exception(e)

    logger.info(f"User {user.username} logged in successfully")
    return {"message": "Login successful", "token": token, "user": user.public_dict()}


@router.get("/me")
async def me(current_user: Dict[str, Any] = Depends(require_authentication), db: Session = Depends(get_session)):
    user = UserService(db).get_user_by_id(current_user["user_id"])
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user.public_dict()


@router.post("/logout")
async def logout(request: Request,
                 current_user: Dict[str, Any] = Depends(require_authentication),
                 db: Session = Depends(get_session)):
    user_service = UserService(db)
    user = user_service.get_user_by_id(current_user["user_id"])
    if user:
        try:
            user_service.record_session_event(user, "logout", get_client_ip(request))
        except QCError as e:
            raise to_http_exception(e)

    logger.info(f"User {current_user['username']} logged out")
    return {"message": "Logout successful"}


@router.put("/change-password")
async def change_password(payload: ChangePasswordRequest,
                          current_user: Dict[str, Any] = Depends(require_authentication),
                          db: Session = Depends(get_session)):
    try:
        UserService(db).change_password(current_user["user_id"], payload.current_password, payload.new_password)
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "Password changed successfully"}
