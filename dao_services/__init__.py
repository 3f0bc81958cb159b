"""
DAO Services
============

FastAPI service that keeps a ledger-backed treasury DAO moving:

- ``GET /daemon`` scans every proposal on the treasury contract and executes
  the ones whose execution window has opened and whose vote passed.
- ``POST /relay`` submits EIP-712 signed forward requests (gasless votes)
  through the forwarding contract, paying gas from the relayer key.

This package exposes:

- ``__version__``: semantic version string
- ``build_app()``: convenience creator for a configured FastAPI app

Prefer importing submodules directly for specific concerns:
``dao_services.config``, ``dao_services.services.daemon``,
``dao_services.adapters.ledger``, etc.
"""

from __future__ import annotations

from .version import __version__

__all__ = ["__version__", "build_app"]


def build_app():
    """
    Create and return a fully configured FastAPI application.

    Importing lazily keeps ``import dao_services`` free of FastAPI and the
    eth-* stack when consumers only need version metadata.
    """
    from .app import create_app

    return create_app()
