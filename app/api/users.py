"""Registration and admin user management."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.auth import get_app_settings, raise_account_error, require_admin
from app.core.config import Settings
from app.core.database import get_db
from app.core.security import TokenIdentity
from app.schemas.auth import (
    AuthResponse,
    MessageResponse,
    RegisterRequest,
    UserOut,
    UserUpdateRequest,
)
from app.services import accounts

router = APIRouter()

MAX_PAGE_SIZE = 1000


@router.post("/register", response_model=AuthResponse)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthResponse:
    """Create an account with role 'user' and return a JWT for it."""
    try:
        result = accounts.register(db, settings, body.name, body.email, body.password)
    except accounts.AccountServiceError as e:
        raise_account_error(e)
    return AuthResponse(token=result.token, user=UserOut.model_validate(result.user))


@router.get("", response_model=list[UserOut])
def list_users(
    _admin: Annotated[TokenIdentity, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    skip: Annotated[int, Query(ge=0)] = 0,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
) -> list[UserOut]:
    """List all users (admin only). Pagination is optional."""
    users = accounts.list_users(db, skip=skip, limit=limit)
    return [UserOut.model_validate(u) for u in users]


@router.put("/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    _admin: Annotated[TokenIdentity, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> UserOut:
    """Update name, email, and/or role (admin only). The password hash is never returned."""
    try:
        user = accounts.update_user(db, user_id, body.model_dump(exclude_unset=True))
    except accounts.AccountServiceError as e:
        raise_account_error(e)
    return UserOut.model_validate(user)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    _admin: Annotated[TokenIdentity, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    """Permanently delete a user (admin only)."""
    try:
        accounts.delete_user(db, user_id)
    except accounts.AccountServiceError as e:
        raise_account_error(e)
    return MessageResponse(msg="User removed")
