"""
HTTP middleware for dao-services.

- request_id : X-Request-Id / W3C traceparent propagation, bound to the log context
- logging    : one structured access-log line per request
- errors     : exception handlers producing the uniform JSON error body
"""

from .errors import install_error_handlers
from .logging import install_access_log_middleware
from .request_id import install_request_id_middleware

__all__ = [
    "install_error_handlers",
    "install_access_log_middleware",
    "install_request_id_middleware",
]
