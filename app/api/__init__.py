"""API routes."""

from fastapi import APIRouter

from app.api import auth, countries, health, users

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(auth.router, prefix="/auth", tags=["auth"])
router.include_router(users.router, prefix="/users", tags=["users"])
router.include_router(countries.router, prefix="/countries", tags=["countries"])
