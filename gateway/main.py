"""Main FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.middleware import SlowAPIMiddleware

from gateway.api.errors import register_exception_handlers
from gateway.api.v1.routes import entries, fallback, mcp, system
from gateway.core.config import Settings, settings as default_settings
from gateway.core.logging_config import configure_logging
from gateway.core.rate_limit import build_preauth_limiter
from gateway.core.services import ServiceContainer
from gateway.middleware.audit import AuditMiddleware
from gateway.middleware.request_id import REQUEST_ID_HEADER, RequestIDMiddleware

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Settings to use; defaults to the environment-derived settings
        container: Pre-built services (tests inject in-memory collaborators).
            When omitted, SQL-backed services are created at startup.

    Returns:
        Configured FastAPI application
    """
    settings = settings or (container.settings if container else default_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, settings.resolved_log_format, settings.api_key_prefix)
        if getattr(app.state, "container", None) is None:
            app.state.container = ServiceContainer.from_settings(settings)
        logger.info("%s %s started", settings.app_name, settings.app_version)
        yield
        dropped = await app.state.container.audit_logger.drain(settings.audit_drain_timeout_seconds)
        logger.info("%s stopped (%d audit write(s) dropped)", settings.app_name, dropped)

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Authenticated gateway exposing journal data over REST and a streaming tool protocol",
        docs_url="/docs" if settings.debug else None,
        redoc_url=None,
        lifespan=lifespan,
    )
    if container is not None:
        app.state.container = container
    app.state.limiter = build_preauth_limiter(
        settings.preauth_rate_limit,
        settings.preauth_rate_limit_enabled,
        storage_uri=settings.rate_limit_storage_uri,
    )

    register_exception_handlers(app)

    # Added innermost first: RequestID ends up outermost
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER, "Retry-After", "Location"],
    )
    app.add_middleware(AuditMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.include_router(system.router)
    app.include_router(entries.router)
    app.include_router(mcp.router)
    # Catch-all last
    app.include_router(fallback.router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "gateway.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=default_settings.debug,
    )
