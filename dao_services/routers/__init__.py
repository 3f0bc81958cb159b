"""
HTTP routers.

- health : /healthz, /readyz, /version
- daemon : GET /daemon (one execution scan)
- relay  : POST /relay (gasless vote submission)

Usage (from the app factory):
    from dao_services.routers import build_router
    app.include_router(build_router())
"""

from __future__ import annotations

from fastapi import APIRouter

from .daemon import router as daemon_router
from .health import router as health_router
from .relay import router as relay_router


def build_router() -> APIRouter:
    root = APIRouter()
    root.include_router(health_router)
    root.include_router(daemon_router)
    root.include_router(relay_router)
    return root


__all__ = ["build_router"]
