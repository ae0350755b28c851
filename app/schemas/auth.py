"""Request/response schemas for auth and user-management endpoints."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Role = Literal["user", "admin"]

NAME_MAX_LEN = 255
EMAIL_MIN_LEN = 3
EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128


def _validate_email(value: str) -> str:
    """Minimal shape check: one '@' with something on both sides. Case is preserved."""
    value = value.strip()
    local, sep, domain = value.partition("@")
    if not sep or not local or not domain or "@" in domain or " " in value:
        raise ValueError("Please include a valid email")
    return value


def _validate_name(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("Name is required")
    return value


class RegisterRequest(BaseModel):
    """Registration payload. Unknown fields (including any 'role') are dropped."""

    model_config = ConfigDict(extra="ignore")

    name: str = Field(..., min_length=1, max_length=NAME_MAX_LEN, description="Display name")
    email: str = Field(..., min_length=EMAIL_MIN_LEN, max_length=EMAIL_MAX_LEN, description="Email")
    password: str = Field(
        ...,
        min_length=PASSWORD_MIN_LEN,
        max_length=PASSWORD_MAX_LEN,
        description="Password",
    )

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return _validate_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return _validate_email(v)


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(..., min_length=1, max_length=EMAIL_MAX_LEN, description="Email")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")

    @field_validator("email")
    @classmethod
    def strip_email(cls, v: str) -> str:
        """Same normalization as registration, so stored and submitted emails compare equal."""
        return v.strip()


class UserUpdateRequest(BaseModel):
    """Partial update applied by an admin; only fields present and non-null are changed."""

    model_config = ConfigDict(extra="ignore")

    name: str | None = Field(default=None, min_length=1, max_length=NAME_MAX_LEN)
    email: str | None = Field(default=None, min_length=EMAIL_MIN_LEN, max_length=EMAIL_MAX_LEN)
    role: Role | None = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str | None) -> str | None:
        return None if v is None else _validate_name(v)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        return None if v is None else _validate_email(v)


class UserOut(BaseModel):
    """Public view of a user (never includes the password hash)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: Role


class AuthResponse(BaseModel):
    """Token plus the authenticated user, returned by register and login."""

    token: str = Field(..., description="JWT; send it back in the x-auth-token header")
    user: UserOut


class MessageResponse(BaseModel):
    """Plain {msg} body used for confirmations and errors."""

    msg: str
