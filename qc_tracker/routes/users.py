from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from qc_tracker.core.db import get_session
from qc_tracker.core.exceptions import QCError
from qc_tracker.dependencies.auth import require_authentication, require_leader
from qc_tracker.routes.common import to_http_exception
from qc_tracker.services.user import UserService

router = APIRouter()


class UserCreate(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None


class UserUpdate(BaseModel):
    full_name: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    is_active: Optional[bool] = None


class PasswordReset(BaseModel):
    new_password: Optional[str] = None


@router.get("")
async def list_users(current_user: Dict[str, Any] = Depends(require_leader), db: Session = Depends(get_session)):
    return [user.public_dict() for user in UserService(db).list_users()]


@router.get("/role/{role}")
async def list_users_by_role(role: str,
                             current_user: Dict[str, Any] = Depends(require_authentication),
                             db: Session = Depends(get_session)):
    try:
        users = UserService(db).list_active_users_by_role(role)
    except QCError as e:
        raise to_http_exception(e)

    return [
        {"id": user.id, "username": user.username, "full_name": user.full_name}
        for user in users
    ]


@router.get("/{user_id}")
async def get_user(user_id: int,
                   current_user: Dict[str, Any] = Depends(require_leader),
                   db: Session = Depends(get_session)):
    try:
        return UserService(db).require_user(user_id).public_dict()
    except QCError as e:
        raise to_http_exception(e)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate,
                      current_user: Dict[str, Any] = Depends(require_leader),
                      db: Session = Depends(get_session)):
    try:
        user = UserService(db).create_user(payload.model_dump())
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "User created successfully", "user": user.public_dict()}


@router.put("/{user_id}")
async def update_user(user_id: int, payload: UserUpdate,
                      current_user: Dict[str, Any] = Depends(require_leader),
                      db: Session = Depends(get_session)):
    try:
        user = UserService(db).update_user(user_id, payload.model_dump())
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "User updated successfully", "user": user.public_dict()}


@router.put("/{user_id}/reset-password")
async def reset_password(user_id: int, payload: PasswordReset,
                         current_user: Dict[str, Any] = Depends(require_leader),
                         db: Session = Depends(get_session)):
    try:
        UserService(db).set_password(user_id, payload.new_password)
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "Password reset successfully"}


@router.delete("/{user_id}")
async def deactivate_user(user_id: int,
                          current_user: Dict[str, Any] = Depends(require_leader),
                          db: Session = Depends(get_session)):
    try:
        UserService(db).deactivate_user(user_id, current_user)
    except QCError as e:
        raise to_http_exception(e)

    return {"message": "User deactivated successfully"}
