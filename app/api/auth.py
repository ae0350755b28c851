"""Login, current-user profile, and the auth dependencies (get_current_identity, require_admin)."""

import logging
from typing import Annotated, NoReturn

import jwt
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import APIKeyHeader
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.config import Settings
from app.core.database import get_db
from app.core.security import ROLE_ADMIN, TOKEN_HEADER, TokenIdentity, decode_access_token
from app.schemas.auth import AuthResponse, LoginRequest, UserOut
from app.services import accounts

logger = logging.getLogger(__name__)
router = APIRouter()
token_header = APIKeyHeader(name=TOKEN_HEADER, auto_error=False)

NO_TOKEN_MSG = "No token, authorization denied"
INVALID_TOKEN_MSG = "Token is not valid"
ADMIN_REQUIRED_MSG = "Access denied. Admin privileges required."
SERVER_ERROR_MSG = "Server error"


def get_app_settings(request: Request) -> Settings:
    """Dependency: the Settings the app was built with."""
    return request.app.state.settings


def raise_account_error(e: accounts.AccountServiceError) -> NoReturn:
    """Translate an account failure into the matching HTTP error."""
    raise HTTPException(status_code=e.status_code, detail=e.message) from e


def get_current_identity(
    token: Annotated[str | None, Depends(token_header)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> TokenIdentity:
    """Dependency: require a valid x-auth-token and return its identity. Raises 401 otherwise."""
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=NO_TOKEN_MSG)
    try:
        return decode_access_token(token, settings)
    except jwt.PyJWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=INVALID_TOKEN_MSG)


def require_admin(
    identity: Annotated[TokenIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> TokenIdentity:
    """
    Dependency: require that the token's user currently has role 'admin'.

    The role is re-read from storage so promotions and demotions made after the
    token was issued take effect immediately. Raises 403 for non-admins or
    deleted accounts, 500 if the lookup itself fails.
    """
    try:
        user = accounts.get_user(db, identity.id)
    except SQLAlchemyError:
        logger.exception("Admin check failed", extra={"user_id": identity.id})
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=SERVER_ERROR_MSG
        )
    if user is None or user.role != ROLE_ADMIN:
        logger.info("Admin access denied", extra={"user_id": identity.id})
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=ADMIN_REQUIRED_MSG)
    return identity


@router.post("/login", response_model=AuthResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns a JWT and the user.
    Send the token back on protected routes in the x-auth-token header.
    """
    try:
        result = accounts.login(db, settings, body.email, body.password)
    except accounts.AccountServiceError as e:
        raise_account_error(e)
    return AuthResponse(token=result.token, user=UserOut.model_validate(result.user))


@router.get("/user", response_model=UserOut)
def get_authenticated_user(
    identity: Annotated[TokenIdentity, Depends(get_current_identity)],
    db: Annotated[Session, Depends(get_db)],
) -> UserOut:
    """Return the current user's profile (no password hash)."""
    try:
        user = accounts.get_profile(db, identity.id)
    except accounts.AccountServiceError as e:
        raise_account_error(e)
    return UserOut.model_validate(user)
