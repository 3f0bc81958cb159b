from __future__ import annotations

"""
Per-app singletons, resolved lazily from ``app.state``.

The LedgerClient, ExecutionDaemon and MetaTxRelay are built on first use,
after the route has validated configuration, so the app boots and serves
``server_misconfigured`` errors even when required settings are missing.
The daemon is shared by ``GET /daemon`` and the periodic ticker, so both
go through one single-flight guard. Tests may pre-seed ``app.state.ledger``
with a fake.
"""

from fastapi import FastAPI

from .adapters.ledger import LedgerClient
from .config import Settings
from .services.daemon import ExecutionDaemon
from .services.relay import MetaTxRelay


def ensure_ledger(app: FastAPI) -> LedgerClient:
    ledger = getattr(app.state, "ledger", None)
    if ledger is None:
        ledger = LedgerClient.from_settings(app.state.settings)
        app.state.ledger = ledger
    return ledger


def ensure_daemon(app: FastAPI) -> ExecutionDaemon:
    daemon = getattr(app.state, "daemon", None)
    if daemon is None:
        daemon = ExecutionDaemon(ensure_ledger(app), metrics=getattr(app.state, "metrics", None))
        app.state.daemon = daemon
    return daemon


def ensure_relay(app: FastAPI) -> MetaTxRelay:
    relay = getattr(app.state, "relay", None)
    if relay is None:
        settings: Settings = app.state.settings
        relay = MetaTxRelay(
            ensure_ledger(app),
            trusted_forwarder=settings.trusted_forwarder(),
            enabled=settings.enable_gasless,
            metrics=getattr(app.state, "metrics", None),
        )
        app.state.relay = relay
    return relay


__all__ = ["ensure_ledger", "ensure_daemon", "ensure_relay"]
