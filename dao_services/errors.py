from __future__ import annotations

"""
Error hierarchy for DAO Services.

Every failure that reaches an HTTP client is an :class:`ApiError`. The
exceptions are framework-agnostic; ``dao_services.middleware.errors``
serializes them into the uniform JSON body the frontend consumes:

    {"error": "<code>", "detail": "<message>", "status": 409, ...}

Design
------
- ``status_code`` (int): HTTP status
- ``code`` (str): stable machine code (e.g., "server_misconfigured")
- ``message`` (str): human-friendly summary
- ``details`` (dict|None): optional structured diagnostics
- ``retryable`` (bool): transient/operational failures carry a retry hint

Taxonomy
--------
- Misconfiguration: fatal, raised before any network I/O.
- BadRequest / InvalidSignature / NonceAlreadyUsed: client-correctable.
- NetworkError / InsufficientRelayerFunds: transient or operational.
- ContractReverted: the revert reason is surfaced verbatim.
- PrerequisiteFailed: a scan could not start (chain time, delay constant).
"""

from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional


@dataclass
class ApiError(Exception):
    message: str
    status_code: int = 400
    code: str = "bad_request"
    details: Optional[Mapping[str, Any]] = None
    retryable: bool = False

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "error": self.code,
            "detail": self.message,
            "status": self.status_code,
        }
        if self.retryable:
            body["retryable"] = True
        if self.details:
            body["details"] = dict(self.details)
        return body

    def to_response(self):
        """Return a Starlette JSONResponse (keeps the error usable in unit tests)."""
        from starlette.responses import JSONResponse

        return JSONResponse(self.to_body(), status_code=self.status_code)

    @classmethod
    def from_unexpected(cls, err: BaseException) -> "ApiError":
        return ServerError(
            "Unhandled server error",
            details={"exc_type": err.__class__.__name__, "str": str(err)},
        )


# ------------------------------ Concrete types ------------------------------- #


class BadRequest(ApiError):
    def __init__(
        self,
        message: str = "Bad request",
        *,
        code: str = "bad_request",
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=400, code=code, details=details)


class Misconfiguration(ApiError):
    def __init__(
        self,
        message: str = "Server is not configured",
        *,
        code: str = "server_misconfigured",
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=500, code=code, details=details)


class PrerequisiteFailed(ApiError):
    def __init__(self, code: str, message: str, *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, status_code=500, code=code, details=details)


class InvalidSignature(ApiError):
    def __init__(self, message: str = "Invalid signature, sign the request again", *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, status_code=400, code="invalid_signature", details=details)


class NonceAlreadyUsed(ApiError):
    def __init__(
        self,
        message: str = "This request was already processed, sign a new one",
        *,
        code: str = "nonce_already_used",
        details: Optional[Mapping[str, Any]] = None,
    ):
        super().__init__(message=message, status_code=409, code=code, details=details)


class InsufficientRelayerFunds(ApiError):
    def __init__(self, message: str = "Relayer cannot pay gas, contact the operator", *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(
            message=message,
            status_code=503,
            code="insufficient_relayer_funds",
            details=details,
            retryable=True,
        )


class NetworkError(ApiError):
    def __init__(self, message: str = "Ledger network unavailable, retry later", *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, status_code=503, code="network_error", details=details, retryable=True)


class ContractReverted(ApiError):
    def __init__(self, reason: Optional[str] = None, *, details: Optional[Mapping[str, Any]] = None):
        self.reason = reason
        msg = f"Transaction reverted: {reason}" if reason else "Transaction reverted by the contract"
        merged = dict(details or {})
        if reason:
            merged.setdefault("reason", reason)
        super().__init__(message=msg, status_code=500, code="contract_reverted", details=merged or None)


class GaslessDisabled(ApiError):
    def __init__(self):
        super().__init__(message="Gasless voting is disabled", status_code=503, code="gasless_disabled")


class RateLimited(ApiError):
    def __init__(self, retry_after: Optional[float] = None):
        details: Dict[str, Any] = {}
        if retry_after is not None:
            details["retry_after"] = retry_after
        super().__init__(message="Too many requests", status_code=429, code="rate_limited", details=details, retryable=True)


class RelayFailed(ApiError):
    def __init__(self, message: str = "Unknown relayer error", *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, status_code=500, code="relay_failed", details=details)


class ServerError(ApiError):
    def __init__(self, message: str = "Internal server error", *, details: Optional[Mapping[str, Any]] = None):
        super().__init__(message=message, status_code=500, code="server_error", details=details)


__all__ = [
    "ApiError",
    "BadRequest",
    "Misconfiguration",
    "PrerequisiteFailed",
    "InvalidSignature",
    "NonceAlreadyUsed",
    "InsufficientRelayerFunds",
    "NetworkError",
    "ContractReverted",
    "GaslessDisabled",
    "RateLimited",
    "RelayFailed",
    "ServerError",
]
