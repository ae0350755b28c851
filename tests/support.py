"""Shared builders for tests: settings, an app on in-memory SQLite, users, and tokens."""

from datetime import UTC, datetime, timedelta

import jwt
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.core.security import create_access_token, hash_password
from app.main import create_app
from app.models import Base, User

TEST_SECRET = "test-secret"


def make_settings(**overrides: object) -> Settings:
    """Settings isolated from the environment's .env file; fast bcrypt."""
    values: dict[str, object] = {
        "DATABASE_URL": "sqlite://",
        "JWT_SECRET": TEST_SECRET,
        "BCRYPT_ROUNDS": 4,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_app(settings: Settings | None = None) -> FastAPI:
    """App with its own empty in-memory database and the users table created."""
    app = create_app(settings or make_settings())
    Base.metadata.create_all(app.state.engine)
    return app


def make_client(app: FastAPI | None = None) -> TestClient:
    return TestClient(app or make_app())


def add_user(
    app: FastAPI,
    name: str = "Test User",
    email: str = "test@example.com",
    password: str = "password123",
    role: str = "user",
) -> int:
    """Insert a user straight into the app's store; return its id."""
    db = app.state.session_factory()
    try:
        user = User(
            name=name,
            email=email,
            password_hash=hash_password(password, rounds=4),
            role=role,
        )
        db.add(user)
        db.commit()
        return user.id
    finally:
        db.close()


def token_for(app: FastAPI, user_id: int, role: str = "user") -> str:
    return create_access_token(user_id=user_id, role=role, settings=app.state.settings)


def expired_token_for(user_id: int, role: str = "user", secret: str = TEST_SECRET) -> str:
    """Well-formed, correctly signed token whose exp is in the past."""
    payload = {
        "user": {"id": user_id, "role": role},
        "exp": datetime.now(UTC) - timedelta(minutes=5),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_headers(token: str) -> dict[str, str]:
    return {"x-auth-token": token}
