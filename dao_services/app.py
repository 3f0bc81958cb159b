from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI

from .config import Settings, get_settings
from .deps import ensure_daemon
from .errors import ApiError
from .logging import get_logger, setup_logging
from .metrics import setup_metrics
from .middleware.errors import install_error_handlers
from .middleware.logging import install_access_log_middleware
from .middleware.request_id import install_request_id_middleware
from .routers import build_router
from .security.cors import setup_cors
from .security.rate_limit import RateLimiter
from .tasks.ticker import DaemonTicker
from .version import __version__

log = get_logger(__name__)


def _build_ticker(app: FastAPI) -> Optional[DaemonTicker]:
    settings: Settings = app.state.settings
    if settings.daemon_interval_s <= 0:
        return None
    try:
        settings.require_daemon()
    except ApiError as e:
        # The HTTP surface still reports the problem on every /daemon call
        log.error("ticker.disabled", code=e.code, details=dict(e.details or {}))
        return None
    return DaemonTicker(ensure_daemon(app).scan, interval_s=settings.daemon_interval_s)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    App lifespan: start the periodic scan trigger if configured, then stop it
    and close the ledger connection pool on shutdown.
    """
    ticker = _build_ticker(app)
    if ticker is not None:
        await ticker.start()
    app.state.ticker = ticker
    try:
        yield
    finally:
        if ticker is not None:
            await ticker.stop()
        ledger = getattr(app.state, "ledger", None)
        if ledger is not None:
            await ledger.close()


def create_app(settings: Optional[Settings] = None, *, configure_logging: bool = True) -> FastAPI:
    """
    FastAPI factory. Mounts routers, middleware, error handlers and metrics.

    No network I/O happens here: ledger clients are created on first use,
    so the app boots even when required settings are missing.
    """
    settings = settings or get_settings()
    if configure_logging:
        setup_logging(level=settings.log_level, log_format=settings.log_format)

    app = FastAPI(
        title="DAO Services",
        version=__version__,
        lifespan=_lifespan,
    )
    app.state.settings = settings
    app.state.relay_limiter = RateLimiter.from_settings(settings)

    # Added innermost first; the last middleware added wraps all others
    setup_metrics(app, service_version=__version__)
    install_access_log_middleware(app)
    install_request_id_middleware(app)
    setup_cors(app, settings.cors_allow_origins)

    install_error_handlers(app)
    app.include_router(build_router())

    log.info(
        "app.created",
        version=__version__,
        gasless=settings.enable_gasless,
        daemon_interval_s=settings.daemon_interval_s,
        missing=settings.missing_for_daemon(),
    )
    return app


__all__ = ["create_app"]
