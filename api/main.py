"""
FastAPI application initialization and configuration.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from core.config import Settings, get_settings
from core.security import TokenService
from database.engine import Database
from api.routes import health
from api.routes.v1 import auth, jobs

from core.middleware import (
    AuthenticationMiddleware,
    ErrorHandlingMiddleware,
    StructuredLoggingMiddleware,
    setup_error_handlers,
    setup_logging,
)

logger = logging.getLogger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[Database] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        settings: Settings to use; defaults to the environment
        database: Pre-built database handle; built from settings when omitted.
            A handle passed in is owned by the caller and is not disposed at
            shutdown.
    """
    settings = settings or get_settings()
    token_service = TokenService.from_settings(settings)
    owns_database = database is None
    db = database or Database.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage application lifespan events."""
        logger.info(f"Starting {settings.app_name} in {settings.app_env} environment")
        if settings.database_auto_create:
            await db.create_all()

        yield

        logger.info(f"Shutting down {settings.app_name}")
        if owns_database:
            await db.close()

    app = FastAPI(
        title=settings.app_name,
        description="Job board API: accounts, job postings and job search",
        version=health.API_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.db = db
    app.state.token_service = token_service

    setup_error_handlers(app)

    # Middleware added last runs first:
    # CORS -> error handling -> logging -> authentication -> routes
    app.add_middleware(AuthenticationMiddleware, token_service=token_service)
    app.add_middleware(
        StructuredLoggingMiddleware,
        log_request_body=settings.log_request_body,
        max_body_size=settings.log_max_body_size,
    )
    app.add_middleware(ErrorHandlingMiddleware, debug=settings.debug)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check routes
    app.include_router(health.router, tags=["Health"])

    # API v1 routes
    app.include_router(auth.router, prefix=settings.api_v1_prefix, tags=["Authentication"])
    app.include_router(jobs.router, prefix=settings.api_v1_prefix, tags=["Jobs"])

    return app


def _build_default_app() -> FastAPI:
    settings = get_settings()
    # Setup structured logging (do this first, before anything else)
    setup_logging(log_level=settings.log_level, json_logs=settings.json_logs)
    return create_app(settings)


app = _build_default_app()


if __name__ == "__main__":
    import uvicorn

    _settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=_settings.debug,
        log_level=_settings.log_level.lower(),
    )
