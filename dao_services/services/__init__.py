"""
dao_services.services
=====================

Service layer: framework-agnostic logic behind the HTTP routes.

Public submodules
-----------------
- eligibility : pure execution-eligibility rules for one proposal
- classify    : map ledger/relay failures to stable error kinds
- daemon      : ExecutionDaemon, scans and executes eligible proposals
- relay       : MetaTxRelay, validates and submits signed forward requests

Submodules are imported lazily on first access.
"""

from __future__ import annotations

from importlib import import_module
from typing import TYPE_CHECKING

__all__ = ["eligibility", "classify", "daemon", "relay"]


def __getattr__(name: str):
    if name in __all__:
        return import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(list(globals().keys()) + __all__)


if TYPE_CHECKING:  # pragma: no cover
    from . import classify as classify
    from . import daemon as daemon
    from . import eligibility as eligibility
    from . import relay as relay
