from __future__ import annotations

from typing import AsyncIterator, Callable

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from dao_services.app import create_app
from dao_services.config import Settings, get_settings

from .fakes import (CHAIN_ID, DAO, FORWARDER, RELAYER_KEY, RPC_URL,
                    FakeLedger, make_proposal)

_ENV_KEYS = (
    "RPC_URL",
    "NEXT_PUBLIC_DAO_ADDRESS",
    "DAO_ADDRESS",
    "RELAYER_PRIVATE_KEY",
    "NEXT_PUBLIC_FORWARDER_ADDRESS",
    "FORWARDER_ADDRESS",
    "ENABLE_GASLESS",
    "CHAIN_ID",
    "DAEMON_INTERVAL_S",
    "ALLOW_WALLCLOCK_FALLBACK",
    "RELAY_RATE",
    "RELAY_BURST",
    "CORS_ALLOW_ORIGINS",
    "VOTER_PRIVATE_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    """Keep the developer's shell and .env out of the tests."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        values = dict(
            rpc_url=RPC_URL,
            dao_address=DAO,
            relayer_private_key=RELAYER_KEY,
            forwarder_address=FORWARDER,
            chain_id=CHAIN_ID,
            receipt_poll_s=0.01,
            relay_rate="1000r/s",
            relay_burst=1000,
        )
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def ledger() -> FakeLedger:
    return FakeLedger(
        [
            make_proposal(id=1),
            make_proposal(id=2, deadline=9_000),
            make_proposal(id=3, votes_for=1, votes_against=4),
        ],
        now=10_000,
        delay=3600,
        balance=1_000,
    )


@pytest.fixture
def app(settings: Settings, ledger: FakeLedger) -> FastAPI:
    application = create_app(settings, configure_logging=False)
    application.state.ledger = ledger
    return application


@pytest_asyncio.fixture
async def aclient(app: FastAPI) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
