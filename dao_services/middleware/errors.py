from __future__ import annotations

"""
Exception → uniform JSON error body for FastAPI.

Every error response, whatever raised it, has the same shape:

    {"error": "<code>", "detail": "<message>", "status": <int>, "request_id": "<id>"}

plus optional ``retryable`` and ``details`` members for ApiError subclasses.

- ApiError subclasses (dao_services.errors) keep their status and code.
- Starlette/FastAPI HTTPException maps to a code derived from the status.
- Request validation errors are a client error: 400 ``bad_request`` with the
  pydantic error list under ``details.errors``.
- Unhandled exceptions become 500 ``server_error``; the stack is logged,
  never returned.
"""

from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..errors import ApiError, BadRequest
from ..logging import get_logger

log = get_logger(__name__)

_STATUS_CODES = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    413: "payload_too_large",
    415: "unsupported_media_type",
    429: "rate_limited",
    500: "server_error",
    502: "bad_gateway",
    503: "service_unavailable",
    504: "gateway_timeout",
}


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "") or ""


def _respond(request: Request, body: Dict[str, Any], headers: Dict[str, str] | None = None) -> JSONResponse:
    body["request_id"] = _request_id(request)
    return JSONResponse(status_code=int(body["status"]), content=body, headers=headers)


# --------------------------- Handlers ---------------------------


async def _handle_api_error(request: Request, exc: ApiError) -> JSONResponse:
    body = exc.to_body()
    fields = {"code": exc.code, "status": exc.status_code, "path": request.url.path}
    if exc.status_code >= 500:
        log.error("api_error", detail=exc.message, **fields)
    else:
        log.warning("api_error", detail=exc.message, **fields)

    headers = None
    retry_after = (exc.details or {}).get("retry_after")
    if retry_after is not None:
        headers = {"Retry-After": str(max(1, int(retry_after)))}
    return _respond(request, body, headers)


async def _handle_http_exception(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    status = int(exc.status_code)
    body = {
        "error": _STATUS_CODES.get(status, "error"),
        "detail": str(exc.detail) if getattr(exc, "detail", None) else "",
        "status": status,
    }
    (log.warning if 400 <= status < 500 else log.error)("http_exception", path=request.url.path, **body)
    return _respond(request, body, getattr(exc, "headers", None))


async def _handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    err = BadRequest(
        "Request body is missing fields or has malformed values",
        details={"errors": _jsonable_errors(errors)},
    )
    log.warning("validation_error", path=request.url.path, errors=len(errors))
    return _respond(request, err.to_body())


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("unhandled_exception", path=request.url.path, exc_type=exc.__class__.__name__)
    body = {
        "error": "server_error",
        "detail": "An unexpected error occurred. Retry or contact the operator with the request_id.",
        "status": 500,
    }
    return _respond(request, body)


def _jsonable_errors(errors) -> list:
    """Keep only the JSON-safe parts of pydantic error entries."""
    out = []
    for e in errors:
        out.append(
            {
                "loc": [str(p) for p in e.get("loc", ())],
                "msg": str(e.get("msg", "")),
                "type": str(e.get("type", "")),
            }
        )
    return out


# --------------------------- Installer ---------------------------


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, _handle_api_error)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _handle_validation_error)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _handle_unexpected_error)


__all__ = ["install_error_handlers"]
