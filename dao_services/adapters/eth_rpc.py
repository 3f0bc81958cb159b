"""
JSON-RPC client for talking to an Ethereum-compatible ledger node.

This adapter is intentionally small. It provides:
- an async JSON-RPC transport over HTTP(S) with a per-call timeout
- ergonomic methods for the endpoints the services use:
  * eth_chainId / eth_blockNumber / eth_getBlockByNumber
  * eth_call / eth_getBalance / eth_getTransactionCount / eth_gasPrice
  * eth_sendRawTransaction / eth_getTransactionReceipt
- a helper to poll for a transaction receipt

Notes
-----
* There is deliberately no retry loop: a timeout or transport failure is
  raised as RpcTransportError and the caller decides (the daemon retries on
  its next scan, the relay leaves it to the client).
* Quantities travel as 0x-hex strings and are returned as ints.
"""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import httpx

HexStr = str


# ----------------------------- Errors ---------------------------------------


class EthRpcError(Exception):
    """Base class for all ledger RPC errors."""


class RpcTransportError(EthRpcError):
    """Network/HTTP transport-level error (includes timeouts)."""


class RpcResponseError(EthRpcError):
    """JSON-RPC error object returned from the node."""

    def __init__(self, code: int, message: str, data: Any | None = None):
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data


# ----------------------------- Helpers --------------------------------------


def to_0x(b: bytes) -> HexStr:
    return "0x" + bytes(b).hex()


def hex_to_int(value: Union[str, int, None]) -> int:
    if value is None:
        raise ValueError("expected a hex quantity, got None")
    if isinstance(value, int):
        return value
    s = value.strip().lower()
    return int(s, 16) if s.startswith("0x") else int(s)


def hex_to_bytes(value: Optional[str]) -> bytes:
    if not value:
        return b""
    s = value[2:] if value.startswith(("0x", "0X")) else value
    return bytes.fromhex(s)


def _build_headers(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    hdrs = {
        "content-type": "application/json",
        "accept": "application/json",
    }
    if extra:
        hdrs.update(extra)
    return hdrs


# ----------------------------- Client ---------------------------------------


@dataclass
class EthRpcConfig:
    url: str
    timeout_s: float = 10.0
    headers: Optional[Dict[str, str]] = None


class EthRpc:
    """
    Minimal async JSON-RPC client for an Ethereum-compatible node.
    """

    def __init__(self, config: EthRpcConfig):
        self._cfg = config
        self._id = 0
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def url(self) -> str:
        return self._cfg.url

    # ---------- lifecycle ----------

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self._cfg.timeout_s,
                headers=_build_headers(self._cfg.headers),
            )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "EthRpc":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ---------- core transport ----------

    async def call(self, method: str, params: Any | None = None) -> Any:
        """
        Perform a single JSON-RPC call. Exactly one HTTP round-trip.
        """
        if self._client is None:
            await self.start()
        assert self._client is not None

        self._id += 1
        payload = {"jsonrpc": "2.0", "id": self._id, "method": method, "params": params or []}

        try:
            resp = await self._client.post(self._cfg.url, json=payload)
        except httpx.TimeoutException as exc:
            raise RpcTransportError(f"{method}: timed out after {self._cfg.timeout_s}s") from exc
        except httpx.TransportError as exc:
            raise RpcTransportError(f"{method}: network error: {exc}") from exc

        if resp.status_code != 200:
            raise RpcTransportError(f"{method}: HTTP {resp.status_code}: {resp.text[:256]!r}")
        try:
            data = resp.json()
        except (json.JSONDecodeError, ValueError) as exc:
            raise RpcTransportError(f"{method}: malformed JSON-RPC response") from exc

        err = data.get("error") if isinstance(data, dict) else None
        if err is not None:
            raise RpcResponseError(
                int(err.get("code", -32000)),
                str(err.get("message", "Unknown error")),
                err.get("data"),
            )
        return data.get("result") if isinstance(data, dict) else None

    # ---------- typed methods ----------

    async def chain_id(self) -> int:
        return hex_to_int(await self.call("eth_chainId"))

    async def block_number(self) -> int:
        return hex_to_int(await self.call("eth_blockNumber"))

    async def get_block(self, tag: Union[str, int] = "latest") -> Optional[Dict[str, Any]]:
        ref = hex(tag) if isinstance(tag, int) else tag
        return await self.call("eth_getBlockByNumber", [ref, False])

    async def eth_call(self, to: str, data: bytes, *, sender: Optional[str] = None, gas: Optional[int] = None) -> bytes:
        tx: Dict[str, Any] = {"to": to, "data": to_0x(data)}
        if sender:
            tx["from"] = sender
        if gas is not None:
            tx["gas"] = hex(gas)
        return hex_to_bytes(await self.call("eth_call", [tx, "latest"]))

    async def get_balance(self, address: str) -> int:
        return hex_to_int(await self.call("eth_getBalance", [address, "latest"]))

    async def get_transaction_count(self, address: str, tag: str = "pending") -> int:
        return hex_to_int(await self.call("eth_getTransactionCount", [address, tag]))

    async def gas_price(self) -> int:
        return hex_to_int(await self.call("eth_gasPrice"))

    async def send_raw_transaction(self, raw_tx: bytes) -> HexStr:
        return await self.call("eth_sendRawTransaction", [to_0x(raw_tx)])

    async def get_transaction_receipt(self, tx_hash: HexStr) -> Optional[Dict[str, Any]]:
        return await self.call("eth_getTransactionReceipt", [tx_hash])

    # ---------- convenience ----------

    async def poll_for_receipt(
        self,
        tx_hash: HexStr,
        *,
        timeout_s: float = 60.0,
        poll_interval_s: float = 1.0,
    ) -> Optional[Dict[str, Any]]:
        """
        Poll the node for a transaction receipt until found or timeout.
        Returns None if not found within the timeout.
        """
        deadline = time.monotonic() + timeout_s
        while True:
            rcpt = await self.get_transaction_receipt(tx_hash)
            if rcpt is not None:
                return rcpt
            if time.monotonic() >= deadline:
                return None
            await asyncio.sleep(poll_interval_s)


__all__ = [
    "EthRpc",
    "EthRpcConfig",
    "EthRpcError",
    "RpcTransportError",
    "RpcResponseError",
    "hex_to_int",
    "hex_to_bytes",
    "to_0x",
]
