"""Password hashing and JWT creation/verification for authentication."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

import bcrypt
import jwt

if TYPE_CHECKING:
    from app.core.config import Settings

# bcrypt only looks at the first 72 bytes of the password.
BCRYPT_MAX_BYTES = 72
DEFAULT_BCRYPT_ROUNDS = 10

# Token lifetime; not configurable.
TOKEN_EXPIRE_HOURS = 24

# Header carrying the raw JWT (no "Bearer" prefix).
TOKEN_HEADER = "x-auth-token"

ROLE_USER = "user"
ROLE_ADMIN = "admin"
ROLES = (ROLE_USER, ROLE_ADMIN)


class TokenSigningError(Exception):
    """Raised when a token cannot be signed (missing secret or signer failure)."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


@dataclass(frozen=True)
class TokenIdentity:
    """Identity carried by a verified token: user id and the role at issuance."""

    id: int
    role: str


def hash_password(plain_password: str, rounds: int = DEFAULT_BCRYPT_ROUNDS) -> str:
    """Hash a plain-text password for storage with a fresh salt. Do not store plain passwords."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=rounds)).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """Verify a plain password against a stored hash."""
    pw_bytes = plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(pw_bytes, hashed.encode("utf-8"))
    except (ValueError, TypeError, AttributeError):
        return False


def _secret(settings: Settings) -> str | None:
    secret = getattr(settings, "JWT_SECRET", None)
    if secret is None:
        return None
    value = secret.get_secret_value()
    if not value or not value.strip():
        return None
    return value


def create_access_token(user_id: int, role: str, settings: Settings) -> str:
    """
    Create a JWT whose payload is {"user": {"id", "role"}} plus "exp".

    Raises TokenSigningError if the secret is unavailable or signing fails.
    """
    secret = _secret(settings)
    if secret is None:
        raise TokenSigningError("JWT_SECRET is not configured.")
    expire = datetime.now(UTC) + timedelta(hours=TOKEN_EXPIRE_HOURS)
    payload: dict[str, Any] = {
        "user": {"id": user_id, "role": role},
        "exp": expire,
    }
    try:
        return jwt.encode(payload, secret, algorithm=settings.JWT_ALGORITHM)
    except Exception as e:
        raise TokenSigningError("Token signing failed.", cause=e) from e


def decode_access_token(token: str, settings: Settings) -> TokenIdentity:
    """
    Decode and validate a JWT; return the identity it carries.

    Raises jwt.PyJWTError on a malformed, tampered, or expired token, or when the
    payload does not hold a user id and role. A missing secret is treated the same.
    """
    secret = _secret(settings)
    if secret is None:
        raise jwt.InvalidTokenError("JWT_SECRET is not configured.")
    payload = jwt.decode(
        token,
        secret,
        algorithms=[settings.JWT_ALGORITHM],
        options={"require": ["exp"]},
    )
    user = payload.get("user")
    if not isinstance(user, dict):
        raise jwt.InvalidTokenError("Token payload has no user.")
    user_id = user.get("id")
    role = user.get("role")
    if isinstance(user_id, bool) or not isinstance(user_id, int) or not isinstance(role, str):
        raise jwt.InvalidTokenError("Token payload user is incomplete.")
    return TokenIdentity(id=user_id, role=role)
