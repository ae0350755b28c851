"""Account service: registration, login, profile lookup, and admin user management."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.security import (
    ROLE_USER,
    create_access_token,
    hash_password,
    verify_password,
)
from app.models import User

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "email", "role")

# Largest id a signed 64-bit INTEGER column can hold; larger ids cannot exist.
MAX_USER_ID = 2**63 - 1

# Checked against when the email is unknown so both login failures cost one bcrypt verify.
_DUMMY_PASSWORD_HASH = hash_password("not-a-real-password")


class AccountServiceError(Exception):
    """Base for account failures that map to a client-facing status and message."""

    status_code = 400

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class DuplicateEmailError(AccountServiceError):
    """Raised when the email is already taken by another account."""

    status_code = 400

    def __init__(self, message: str = "User already exists") -> None:
        super().__init__(message)


class InvalidCredentialsError(AccountServiceError):
    """Raised for an unknown email or a wrong password; deliberately does not say which."""

    status_code = 400

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class UserNotFoundError(AccountServiceError):
    """Raised when the referenced user id does not exist."""

    status_code = 404

    def __init__(self, message: str = "User not found") -> None:
        super().__init__(message)


@dataclass(frozen=True)
class AuthResult:
    """Outcome of a successful register or login."""

    token: str
    user: User


def _issue_for(user: User, settings: Settings) -> AuthResult:
    token = create_access_token(user_id=user.id, role=user.role, settings=settings)
    return AuthResult(token=token, user=user)


def register(
    db: Session,
    settings: Settings,
    name: str,
    email: str,
    password: str,
) -> AuthResult:
    """
    Create a 'user'-role account and return a token for it.

    Email uniqueness is left to the unique index: a concurrent or repeated
    registration surfaces as IntegrityError and is reported as DuplicateEmailError.
    """
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password, rounds=settings.BCRYPT_ROUNDS),
        role=ROLE_USER,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info("Registration rejected: email already exists", extra={"email": email})
        raise DuplicateEmailError() from e
    db.refresh(user)
    logger.info("User registered", extra={"user_id": user.id, "email": email})
    return _issue_for(user, settings)


def login(db: Session, settings: Settings, email: str, password: str) -> AuthResult:
    """Verify credentials and return a token carrying the stored role."""
    user = db.query(User).filter(User.email == email).first()
    if user is None:
        verify_password(password, _DUMMY_PASSWORD_HASH)
    if user is None or not verify_password(password, user.password_hash):
        logger.info("Login failed", extra={"email": email})
        raise InvalidCredentialsError()
    logger.info("Login succeeded", extra={"user_id": user.id})
    return _issue_for(user, settings)


def get_user(db: Session, user_id: int) -> User | None:
    """Look up a user by id; ids outside the storable range are simply absent."""
    if not 1 <= user_id <= MAX_USER_ID:
        return None
    return db.query(User).filter(User.id == user_id).first()


def get_profile(db: Session, user_id: int) -> User:
    """Return the user for a verified identity; the account may have been deleted since."""
    user = get_user(db, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


def list_users(db: Session, skip: int = 0, limit: int | None = None) -> list[User]:
    """All users ordered by id, optionally paginated."""
    query = db.query(User).order_by(User.id)
    if skip:
        query = query.offset(skip)
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def update_user(db: Session, user_id: int, changes: dict[str, Any]) -> User:
    """
    Apply name/email/role from changes; keys that are missing or None are left as-is.

    Raises UserNotFoundError if the id is absent, DuplicateEmailError if the new
    email belongs to another account.
    """
    user = get_user(db, user_id)
    if user is None:
        raise UserNotFoundError()
    applied = {k: v for k, v in changes.items() if k in UPDATABLE_FIELDS and v is not None}
    for field, value in applied.items():
        setattr(user, field, value)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        raise DuplicateEmailError() from e
    db.refresh(user)
    logger.info(
        "User updated",
        extra={"user_id": user.id, "fields": ",".join(sorted(applied))},
    )
    return user


def delete_user(db: Session, user_id: int) -> None:
    """Permanently remove the user. Raises UserNotFoundError if absent."""
    user = get_user(db, user_id)
    if user is None:
        raise UserNotFoundError()
    db.delete(user)
    db.commit()
    logger.info("User deleted", extra={"user_id": user_id})
