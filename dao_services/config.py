from __future__ import annotations

"""
Configuration loader for DAO Services.

- Reads environment variables (optionally from `.env`) via pydantic-settings.
- Settings are read once per process and cached by `get_settings()`.
- Required values are NOT enforced at load time: the app must boot and answer
  `500 server_misconfigured` instead. Route handlers call `require_daemon()` /
  `require_relay()` before any network call.

Environment variables (high-level):
    RPC_URL                        (str, required)       Ledger JSON-RPC endpoint
    NEXT_PUBLIC_DAO_ADDRESS        (address, required)   Treasury contract
    RELAYER_PRIVATE_KEY            (hex, required)       Relayer key (pays gas)
    NEXT_PUBLIC_FORWARDER_ADDRESS  (address, optional)   Forwarding contract
    ENABLE_GASLESS                 (bool, default True)  Serve POST /relay
    CHAIN_ID                       (int, optional)       Expected network id

Timeouts & gas:
    RPC_TIMEOUT_S                  (float, default 10)
    RECEIPT_TIMEOUT_S              (float, default 120)
    RECEIPT_POLL_S                 (float, default 1)
    EXECUTE_GAS_LIMIT              (int, default 1_000_000)
    RELAY_GAS_LIMIT                (int, default 1_000_000)

Daemon:
    DAEMON_INTERVAL_S              (float, default 0)    0 disables the in-process trigger
    ALLOW_WALLCLOCK_FALLBACK       (bool, default False)

Relay abuse limits:
    RELAY_RATE                     (str, default "30r/m")
    RELAY_BURST                    (int, default 10)

Misc:
    LOG_LEVEL / LOG_FORMAT         (default INFO / json)
    CORS_ALLOW_ORIGINS             (csv|json list)

Notes
-----
- Lists accept comma-separated strings or JSON arrays.
"""

import json
import re
from functools import lru_cache
from typing import Annotated, List, Optional

from eth_utils import is_address, to_checksum_address
from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .errors import Misconfiguration

_PRIVATE_KEY_RE = re.compile(r"^0x[0-9a-fA-F]{64}$")


def _parse_list(val: Optional[str | List[str]], *, default: List[str]) -> List[str]:
    if val is None:
        return list(default)
    if isinstance(val, list):
        return val
    s = val.strip()
    if not s:
        return []
    if s.startswith("[") and s.endswith("]"):
        try:
            return [str(x) for x in json.loads(s)]
        except ValueError:
            pass
    return [x.strip() for x in s.split(",") if x.strip()]


def normalize_private_key(raw: str) -> str:
    """Trim, add a 0x prefix and check for exactly 32 bytes of hex."""
    key = raw.strip()
    if not key.startswith("0x"):
        key = f"0x{key}"
    if not _PRIVATE_KEY_RE.match(key):
        raise Misconfiguration(
            "RELAYER_PRIVATE_KEY must be 32 bytes of hex (64 chars, optional 0x prefix)",
            code="invalid_relayer_private_key_format",
        )
    return key


class Settings(BaseSettings):
    # Ledger access
    rpc_url: Optional[str] = Field(default=None, validation_alias=AliasChoices("RPC_URL", "rpc_url"))
    dao_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("NEXT_PUBLIC_DAO_ADDRESS", "DAO_ADDRESS", "dao_address"),
        description="Treasury (DAO) contract address",
    )
    relayer_private_key: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("RELAYER_PRIVATE_KEY", "relayer_private_key"),
    )
    forwarder_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("NEXT_PUBLIC_FORWARDER_ADDRESS", "FORWARDER_ADDRESS", "forwarder_address"),
    )
    enable_gasless: bool = True
    chain_id: Optional[int] = Field(default=None, gt=0)

    # Timeouts & gas
    rpc_timeout_s: float = Field(10.0, gt=0)
    receipt_timeout_s: float = Field(120.0, ge=0)
    receipt_poll_s: float = Field(1.0, gt=0)
    execute_gas_limit: int = Field(1_000_000, gt=21_000)
    relay_gas_limit: int = Field(1_000_000, gt=21_000)

    # Daemon
    daemon_interval_s: float = Field(0.0, ge=0)
    allow_wallclock_fallback: bool = False

    # Relay rate limit (token bucket per client IP)
    relay_rate: str = "30r/m"
    relay_burst: int = Field(10, ge=1)

    # Misc
    log_level: str = "INFO"
    log_format: str = "json"
    cors_allow_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"]
    )

    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("rpc_url", "dao_address", "forwarder_address", "relayer_private_key", mode="before")
    @classmethod
    def _blank_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v

    @field_validator("cors_allow_origins", mode="before")
    @classmethod
    def _coerce_origins(cls, v):
        return _parse_list(v, default=[])

    # ----------------------------- Requirements ----------------------------- #

    def missing_for_daemon(self) -> List[str]:
        missing = []
        if not self.rpc_url:
            missing.append("RPC_URL")
        if not self.dao_address:
            missing.append("NEXT_PUBLIC_DAO_ADDRESS")
        if self.relayer_private_key is None:
            missing.append("RELAYER_PRIVATE_KEY")
        return missing

    def missing_for_relay(self) -> List[str]:
        return [m for m in self.missing_for_daemon() if m != "NEXT_PUBLIC_DAO_ADDRESS"]

    def require_daemon(self) -> None:
        """Fail fast (no I/O) unless the execution daemon can run."""
        missing = self.missing_for_daemon()
        if missing:
            raise Misconfiguration(details={"missing": missing})
        self.relayer_key()
        self.treasury_address()

    def require_relay(self) -> None:
        missing = self.missing_for_relay()
        if missing:
            raise Misconfiguration(details={"missing": missing})
        self.relayer_key()
        self.trusted_forwarder()

    # ------------------------------ Accessors ------------------------------- #

    def relayer_key(self) -> str:
        if self.relayer_private_key is None:
            raise Misconfiguration(details={"missing": ["RELAYER_PRIVATE_KEY"]})
        return normalize_private_key(self.relayer_private_key.get_secret_value())

    def treasury_address(self) -> str:
        if not self.dao_address:
            raise Misconfiguration(details={"missing": ["NEXT_PUBLIC_DAO_ADDRESS"]})
        if not is_address(self.dao_address):
            raise Misconfiguration("NEXT_PUBLIC_DAO_ADDRESS is not a valid address", code="invalid_dao_address")
        return to_checksum_address(self.dao_address)

    def trusted_forwarder(self) -> Optional[str]:
        if not self.forwarder_address:
            return None
        if not is_address(self.forwarder_address):
            raise Misconfiguration(
                "NEXT_PUBLIC_FORWARDER_ADDRESS is not a valid address", code="invalid_forwarder_address"
            )
        return to_checksum_address(self.forwarder_address)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return cached settings instance (read once per process)."""
    return Settings()


__all__ = ["Settings", "get_settings", "normalize_private_key"]
