from __future__ import annotations

"""
Request ID & tracing middleware.

- Generates or propagates **X-Request-Id** for every request.
- Honors a W3C **traceparent** header: keeps the incoming trace id and
  assigns a new span id, or starts a fresh trace.
- Exposes ``request.state.request_id`` / ``trace_id`` / ``span_id`` and
  binds them to the structlog context for the lifetime of the request, so
  daemon and relay events carry the id of the request that triggered them.
- Echoes ``X-Request-Id`` and ``traceparent`` on the response.
"""

import re
import secrets
import uuid
from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from ..logging import bind_request_context, clear_request_context

_TRACEPARENT_RE = re.compile(
    r"^(?P<ver>[0-9a-f]{2})-(?P<trace_id>[0-9a-f]{32})-(?P<span_id>[0-9a-f]{16})-(?P<flags>[0-9a-f]{2})$"
)

# Inbound request ids are echoed into logs and headers; keep them tame
_REQUEST_ID_RE = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")

_CONTEXT_KEYS = ("request_id", "trace_id", "span_id")


def _parse_traceparent(value: str) -> Optional[Tuple[str, str, str]]:
    """Returns (trace_id, parent_span_id, flags) if valid, else None."""
    m = _TRACEPARENT_RE.match(value.strip())
    if not m:
        return None
    trace_id = m.group("trace_id")
    span_id = m.group("span_id")
    if trace_id == "0" * 32 or span_id == "0" * 16:
        return None
    return trace_id, span_id, m.group("flags")


def _format_traceparent(trace_id: str, span_id: str, flags: str = "01") -> str:
    return f"00-{trace_id}-{span_id}-{flags}"


@dataclass(frozen=True)
class RequestIdConfig:
    request_id_header: str = "X-Request-Id"
    traceparent_header: str = "traceparent"


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, config: Optional[RequestIdConfig] = None):
        super().__init__(app)
        self.cfg = config or RequestIdConfig()

    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get(self.cfg.request_id_header.lower(), "")
        if not _REQUEST_ID_RE.match(req_id):
            req_id = uuid.uuid4().hex

        parent = request.headers.get(self.cfg.traceparent_header.lower())
        parsed = _parse_traceparent(parent) if parent else None
        if parsed:
            trace_id, _parent_span, flags = parsed
        else:
            trace_id, flags = secrets.token_hex(16), "01"
        span_id = secrets.token_hex(8)

        request.state.request_id = req_id
        request.state.trace_id = trace_id
        request.state.span_id = span_id

        bind_request_context(request_id=req_id, trace_id=trace_id, span_id=span_id)
        try:
            response: Response = await call_next(request)
        finally:
            clear_request_context(*_CONTEXT_KEYS)

        response.headers[self.cfg.request_id_header] = req_id
        response.headers[self.cfg.traceparent_header] = _format_traceparent(trace_id, span_id, flags)
        return response


def install_request_id_middleware(app: FastAPI, *, request_id_header: str = "X-Request-Id") -> RequestIdConfig:
    cfg = RequestIdConfig(request_id_header=request_id_header)
    app.add_middleware(RequestIdMiddleware, config=cfg)
    return cfg


__all__ = [
    "RequestIdConfig",
    "RequestIdMiddleware",
    "install_request_id_middleware",
]
