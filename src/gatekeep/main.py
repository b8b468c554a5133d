"""FastAPI application factory.

App factory pattern: create_app() returns a configured FastAPI
instance. Lifespan sets up logging, makes sure the users table and its
uniqueness constraint exist, and disposes the engine on shutdown.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from gatekeep import __version__
from gatekeep.api import api_router
from gatekeep.config import settings
from gatekeep.log import configure_logging

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    configure_logging(settings)
    logger.info(
        "gatekeep.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from gatekeep.db.engine import engine
    from gatekeep.store.credentials import CredentialStore

    await CredentialStore.ensure_schema(engine)
    logger.info("gatekeep.schema_ready")

    yield

    logger.info("gatekeep.shutdown")
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="Gatekeep",
        description="Credential issuance and validation service",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Starlette middleware executes in reverse order of registration.
    # Request flow: RequestId → Security → CORS → handler

    from gatekeep.middleware.request_id import RequestIdMiddleware
    from gatekeep.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(RequestIdMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: gatekeep.main:app)
app = create_app()
