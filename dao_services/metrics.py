from __future__ import annotations

"""
Prometheus metrics setup and /metrics exporter for DAO Services.

HTTP metrics (ASGI middleware):
    - http_requests_total{method,path,status}
    - http_request_duration_seconds histogram
    - http_inprogress_requests gauge

Domain metrics (incremented by the daemon and relay services):
    - dao_scans_total{outcome}                 ok | failed | coalesced
    - dao_proposals_executed_total
    - dao_proposals_skipped_total{reason}
    - dao_relay_requests_total{outcome}        submitted | <error code>

Each app owns its own CollectorRegistry so several apps (tests) can coexist
in one process.

Env
---
- METRICS_PATH: override default /metrics path (optional).
"""

import os
import time
from typing import Any, Dict, Optional

from fastapi import APIRouter, FastAPI
from prometheus_client import (CONTENT_TYPE_LATEST, CollectorRegistry, Counter,
                               Gauge, Histogram, generate_latest)
from starlette.responses import PlainTextResponse, Response
from starlette.types import ASGIApp, Receive, Scope, Send


class Metrics:
    """
    Holder for registry and metric objects. Exposed via app.state.metrics.
    """

    def __init__(self, service_name: str = "dao-services", service_version: Optional[str] = None) -> None:
        self.registry = CollectorRegistry()

        self.http_inprogress = Gauge(
            "http_inprogress_requests",
            "In-progress HTTP requests",
            ["method", "path"],
            registry=self.registry,
        )
        self.http_requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
            registry=self.registry,
        )
        self.http_request_duration_seconds = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "path", "status"],
            # A scan is a chain of RPC round-trips; keep long buckets.
            buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
            registry=self.registry,
        )

        self.scans_total = Counter(
            "dao_scans_total",
            "Execution daemon scans by outcome",
            ["outcome"],
            registry=self.registry,
        )
        self.proposals_executed_total = Counter(
            "dao_proposals_executed_total",
            "Proposals executed by the daemon",
            registry=self.registry,
        )
        self.proposals_skipped_total = Counter(
            "dao_proposals_skipped_total",
            "Proposals skipped by the daemon, by reason",
            ["reason"],
            registry=self.registry,
        )
        self.relay_requests_total = Counter(
            "dao_relay_requests_total",
            "Forward requests handled by the relay, by outcome",
            ["outcome"],
            registry=self.registry,
        )

        self.service_info = Gauge(
            "service_info",
            "Service metadata",
            ["name", "version"],
            registry=self.registry,
        )
        self.service_info.labels(service_name, service_version or "unknown").set(1)

    def render_latest(self) -> bytes:
        return generate_latest(self.registry)


def _extract_path_template(scope: Scope) -> str:
    """Low-cardinality route template; falls back to the raw path."""
    route = scope.get("route")
    for attr in ("path_format", "path"):
        if route is not None and hasattr(route, attr):
            val = getattr(route, attr, None)
            if isinstance(val, str) and val:
                return val
    return scope.get("path") or ""


class PrometheusMiddleware:
    """Minimal ASGI middleware recording HTTP metrics."""

    def __init__(self, app: ASGIApp, metrics: Metrics):
        self.app = app
        self.metrics = metrics

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        method = scope.get("method", "GET")
        path_tmpl = _extract_path_template(scope)
        start = time.perf_counter()
        status_code = 500

        self.metrics.http_inprogress.labels(method, path_tmpl).inc()

        async def send_wrapped(message: Dict[str, Any]) -> None:
            nonlocal status_code
            if message.get("type") == "http.response.start":
                status_code = int(message.get("status", 500))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapped)
        finally:
            duration = time.perf_counter() - start
            labels = (method, path_tmpl, str(status_code))
            try:
                self.metrics.http_requests_total.labels(*labels).inc()
                self.metrics.http_request_duration_seconds.labels(*labels).observe(duration)
            finally:
                self.metrics.http_inprogress.labels(method, path_tmpl).dec()


def create_metrics_router(metrics: Metrics, path: str = "/metrics") -> APIRouter:
    router = APIRouter()

    @router.get(path, include_in_schema=False)
    async def metrics_endpoint() -> Response:
        try:
            return Response(content=metrics.render_latest(), media_type=CONTENT_TYPE_LATEST)
        except Exception as e:
            # Exporters must never take the app down.
            return PlainTextResponse(f"metrics error: {e}", status_code=500)

    return router


def setup_metrics(
    app: FastAPI,
    *,
    service_name: str = "dao-services",
    service_version: Optional[str] = None,
    path: Optional[str] = None,
) -> Metrics:
    """
    Create the registry, add the HTTP middleware and mount /metrics.
    Returns the `Metrics` instance and stores it in `app.state.metrics`.
    """
    metrics = Metrics(service_name=service_name, service_version=service_version)
    app.add_middleware(PrometheusMiddleware, metrics=metrics)
    app.include_router(create_metrics_router(metrics, path or os.getenv("METRICS_PATH") or "/metrics"))
    app.state.metrics = metrics
    return metrics


__all__ = [
    "Metrics",
    "PrometheusMiddleware",
    "create_metrics_router",
    "setup_metrics",
]
