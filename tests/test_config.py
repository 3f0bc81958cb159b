from __future__ import annotations

import pytest

from dao_services.config import Settings, get_settings, normalize_private_key
from dao_services.errors import Misconfiguration

from .fakes import DAO, FORWARDER, RELAYER_KEY, RPC_URL


def test_reads_frontend_style_variable_names(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RPC_URL", RPC_URL)
    monkeypatch.setenv("NEXT_PUBLIC_DAO_ADDRESS", DAO.lower())
    monkeypatch.setenv("NEXT_PUBLIC_FORWARDER_ADDRESS", FORWARDER)
    monkeypatch.setenv("RELAYER_PRIVATE_KEY", RELAYER_KEY[2:])
    monkeypatch.setenv("ENABLE_GASLESS", "false")
    monkeypatch.setenv("CHAIN_ID", "31337")

    s = get_settings()

    assert s.rpc_url == RPC_URL
    assert s.treasury_address() == DAO
    assert s.trusted_forwarder() == FORWARDER
    assert s.relayer_key() == RELAYER_KEY
    assert s.enable_gasless is False
    assert s.chain_id == 31337
    assert s.missing_for_daemon() == []
    assert get_settings() is s


def test_nothing_is_required_at_load_time():
    s = Settings(_env_file=None)
    assert s.missing_for_daemon() == ["RPC_URL", "NEXT_PUBLIC_DAO_ADDRESS", "RELAYER_PRIVATE_KEY"]
    assert s.missing_for_relay() == ["RPC_URL", "RELAYER_PRIVATE_KEY"]


def test_blank_values_count_as_missing(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("RPC_URL", "   ")
    monkeypatch.setenv("NEXT_PUBLIC_DAO_ADDRESS", "")
    s = Settings(_env_file=None)
    assert "RPC_URL" in s.missing_for_daemon()
    assert "NEXT_PUBLIC_DAO_ADDRESS" in s.missing_for_daemon()


def test_require_daemon_lists_what_is_missing(make_settings):
    with pytest.raises(Misconfiguration) as ei:
        make_settings(rpc_url=None, relayer_private_key=None).require_daemon()
    assert ei.value.code == "server_misconfigured"
    assert ei.value.details == {"missing": ["RPC_URL", "RELAYER_PRIVATE_KEY"]}


def test_relay_does_not_need_the_treasury(make_settings):
    make_settings(dao_address=None).require_relay()


@pytest.mark.parametrize(
    "raw,expected",
    [
        (RELAYER_KEY, RELAYER_KEY),
        (RELAYER_KEY[2:], RELAYER_KEY),
        (f"  {RELAYER_KEY}\n", RELAYER_KEY),
    ],
)
def test_private_key_normalization(raw, expected):
    assert normalize_private_key(raw) == expected


@pytest.mark.parametrize("raw", ["0x1234", "zz" * 32, "0x" + "11" * 33])
def test_malformed_private_key(raw):
    with pytest.raises(Misconfiguration) as ei:
        normalize_private_key(raw)
    assert ei.value.code == "invalid_relayer_private_key_format"


def test_malformed_addresses(make_settings):
    with pytest.raises(Misconfiguration) as ei:
        make_settings(dao_address="0x123").require_daemon()
    assert ei.value.code == "invalid_dao_address"

    with pytest.raises(Misconfiguration) as ei:
        make_settings(forwarder_address="nope").require_relay()
    assert ei.value.code == "invalid_forwarder_address"


def test_forwarder_is_optional(make_settings):
    assert make_settings(forwarder_address=None).trusted_forwarder() is None


def test_cors_origins_accept_csv_and_json(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("CORS_ALLOW_ORIGINS", "https://a.example, https://b.example")
    assert Settings(_env_file=None).cors_allow_origins == ["https://a.example", "https://b.example"]

    monkeypatch.setenv("CORS_ALLOW_ORIGINS", '["https://c.example"]')
    assert Settings(_env_file=None).cors_allow_origins == ["https://c.example"]


def test_secret_is_not_in_repr(make_settings):
    assert RELAYER_KEY[2:] not in repr(make_settings())
