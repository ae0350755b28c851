"""FastAPI application factory. No business logic; only wiring, middleware, and error envelopes.

Run with:  uvicorn app.main:create_app --factory
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException

from app.api import router as api_router
from app.core.config import Settings, get_settings
from app.core.database import build_engine, build_sessionmaker, check_db_connected
from app.core.security import TokenSigningError

logger = logging.getLogger(__name__)

SERVER_ERROR_MSG = "Server error"


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )


def _msg(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"msg": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    """First validation problem as 'field: message' (e.g. 'email: Field required')."""
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Invalid JSON body"
    # Keep field names only; drop the location prefix and list/byte positions.
    loc = [
        part
        for part in first.get("loc", ())
        if isinstance(part, str) and part not in ("body", "query", "path")
    ]
    text = str(first.get("msg", "Invalid value"))
    # Pydantic prefixes messages raised from custom validators.
    text = text.removeprefix("Value error, ")
    return f"{'.'.join(loc)}: {text}" if loc else text


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {"msg": ...}; internal failures never leak detail."""

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        return _msg(exc.status_code, str(exc.detail), getattr(exc, "headers", None))

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return _msg(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(SQLAlchemyError)
    async def storage_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.exception(
            "Storage error",
            extra={"path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        return _msg(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MSG)

    @app.exception_handler(TokenSigningError)
    async def signing_exception_handler(request: Request, exc: TokenSigningError) -> JSONResponse:
        logger.error(
            "Token signing failed",
            extra={"path": request.url.path, "reason": exc.message},
            exc_info=exc.cause or exc,
        )
        return _msg(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MSG)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled error",
            extra={"path": request.url.path, "method": request.method},
            exc_info=exc,
        )
        return _msg(status.HTTP_500_INTERNAL_SERVER_ERROR, SERVER_ERROR_MSG)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Refuse to start when the credential store is unreachable."""
    db = app.state.session_factory()
    try:
        connected = check_db_connected(db)
    finally:
        db.close()
    if not connected:
        logger.error("Database connection failed; refusing to start")
        raise RuntimeError("Database is unreachable; check DATABASE_URL.")
    logger.info("Database connected", extra={"environment": app.state.settings.APP_ENV})
    yield
    app.state.engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """
    Build the application around an explicit Settings object.

    When settings is None they are read from the environment (and .env); a
    missing DATABASE_URL or JWT_SECRET fails here, before anything is served.
    """
    if settings is None:
        load_dotenv()
        settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="Countries Xplorer API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.engine = build_engine(settings)
    app.state.session_factory = build_sessionmaker(app.state.engine)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.API_PREFIX)

    @app.get("/")
    def root() -> dict[str, str]:
        """Root route; minimal payload for discovery."""
        return {"msg": "Welcome to the Auth API"}

    return app
