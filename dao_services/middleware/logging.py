from __future__ import annotations

"""
Access logging middleware.

One structured ``access`` event per request with method, path, route
template, status, latency_ms, client_ip and user_agent. The request id is
already in the structlog context (see ``middleware.request_id``) when this
middleware runs inside it.
"""

import time
from typing import Callable

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..logging import get_logger

log = get_logger("dao_services.access")

# Probes would drown the access log
QUIET_PATHS = frozenset({"/healthz", "/metrics"})


def _client_ip(request: Request) -> str:
    fwd = request.headers.get("x-forwarded-for")
    if fwd:
        return fwd.split(",")[0].strip()
    real = request.headers.get("x-real-ip")
    if real:
        return real.strip()
    return request.client.host if request.client else ""


def _route_template(request: Request) -> str:
    route = request.scope.get("route")
    if route is None:
        return ""
    return getattr(route, "path_format", None) or getattr(route, "path", "") or ""


def _level_for_status(status: int) -> str:
    if status >= 500:
        return "error"
    if status >= 400:
        return "warning"
    return "info"


class AccessLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            path = request.url.path
            if path not in QUIET_PATHS or status >= 400:
                level = _level_for_status(status)
                getattr(log, level)(
                    "access",
                    method=request.method,
                    path=path,
                    route=_route_template(request),
                    status=status,
                    latency_ms=round((time.perf_counter() - start) * 1000.0, 3),
                    client_ip=_client_ip(request),
                    user_agent=request.headers.get("user-agent", ""),
                )


def install_access_log_middleware(app: FastAPI) -> None:
    app.add_middleware(AccessLogMiddleware)


__all__ = ["AccessLogMiddleware", "install_access_log_middleware"]
