"""FastAPI application factory for the AutoSplit service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import (
    AuthorizationError,
    ConflictError,
    InvariantViolation,
    LedgerError,
    NotFoundError,
    ValidationError,
)
from .auth import WalletTokenManager, set_token_manager
from .config import AutosplitConfig
from .core import AutosplitService
from .middleware import CorrelationIdMiddleware, get_correlation_id
from .models import ErrorResponse
from .router import build_router

logger = logging.getLogger(__name__)

# Most specific class first
_ERROR_STATUS: list[tuple[type[LedgerError], int]] = [
    (ValidationError, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (AuthorizationError, status.HTTP_403_FORBIDDEN),
    (InvariantViolation, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
]


def status_for_error(exc: LedgerError) -> int:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return status_code
    return status.HTTP_400_BAD_REQUEST


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for startup/shutdown."""
    logger.info("Starting AutoSplit service...")

    yield

    logger.info("Shutting down AutoSplit service...")
    service: AutosplitService | None = getattr(app.state, "autosplit_service", None)
    if service is not None:
        service.close()
    logger.info("AutoSplit service shutdown complete")


def create_autosplit_app(
    config: AutosplitConfig,
    **service_kwargs,
) -> FastAPI:
    """Create and configure the AutoSplit FastAPI application.

    Args:
        config: AutosplitConfig instance
        **service_kwargs: Additional kwargs passed to AutosplitService

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="AutoSplit",
        description="Team payment splitting ledger",
        version=__version__,
        lifespan=_lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_origin_regex=r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$",
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Correlation ID middleware (adds X-Correlation-ID to all requests)
    app.add_middleware(CorrelationIdMiddleware)

    # Token manager
    token_manager = WalletTokenManager(config)
    set_token_manager(token_manager)

    # Create service
    autosplit_service = AutosplitService(config, **service_kwargs)

    # Build and include router
    router = build_router(autosplit_service)
    app.include_router(router)

    @app.exception_handler(LedgerError)
    async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
        status_code = status_for_error(exc)
        logger.info("call rejected (%s): %s", exc.reason, exc.message)
        body = ErrorResponse(
            detail=exc.message,
            reason=exc.reason,
            correlation_id=get_correlation_id(request),
        )
        return JSONResponse(status_code=status_code, content=body.model_dump())

    # Store references in app state
    app.state.autosplit_service = autosplit_service
    app.state.token_manager = token_manager
    app.state.config = config
    app.state.ready = False

    # Health endpoint (no auth required) - checks actual dependencies
    @app.get("/healthz")
    def healthz() -> dict:
        """Health check endpoint with dependency verification."""
        checks = {}
        all_healthy = True

        ping = getattr(autosplit_service.store, "ping", None)
        if ping is None:
            checks["storage"] = {"status": "memory"}
        else:
            try:
                ping()
                checks["storage"] = {"status": "healthy"}
            except Exception as e:
                checks["storage"] = {"status": "unhealthy", "error": str(e)}
                all_healthy = False

        checks["ledger"] = {
            "status": "healthy" if autosplit_service.ledger.is_initialized else "uninitialized",
            "event_count": autosplit_service.events.count(),
        }

        return {
            "status": "ok" if all_healthy else "degraded",
            "service": "autosplit",
            "version": __version__,
            "checks": checks,
        }

    # Ready endpoint (no auth required)
    @app.get("/ready")
    def ready() -> dict:
        """Readiness probe - returns true when service can accept traffic."""
        is_ready = bool(app.state.ready) and autosplit_service.ledger.is_initialized

        ping = getattr(autosplit_service.store, "ping", None)
        if is_ready and ping is not None:
            try:
                ping()
            except Exception:
                is_ready = False

        return {
            "ready": is_ready,
            "service": "autosplit",
        }

    # Mark as ready after all initialization
    app.state.ready = True

    return app


# Convenience: create app with config from environment
def create_app_from_env() -> FastAPI:
    """Create app using environment variable configuration."""
    config = AutosplitConfig.from_env()
    return create_autosplit_app(config)


__all__ = ["create_autosplit_app", "create_app_from_env", "status_for_error"]
