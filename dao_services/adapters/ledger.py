"""
LedgerClient: typed gateway to the treasury and forwarding contracts.

Reads are plain ``eth_call`` / ``eth_getBalance`` round-trips and have no
side effects. Writes (``execute`` and ``execute_forward``) are legacy
transactions signed with the relayer key and:

1. dry-run with ``eth_call`` from the relayer address, so a revert surfaces
   with its reason before any gas is spent;
2. are signed and submitted under a per-client lock, so concurrent writers
   never race for the same relayer account nonce;
3. wait for the receipt up to ``receipt_timeout_s``. A receipt with status 0
   raises :class:`TransactionReverted`. A timeout, or a node error while
   polling, returns the accepted hash.

Authoritative time is the latest block's timestamp. The wall clock is used
only when ``allow_wallclock_fallback`` is set and the node returned a block
without one.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from eth_abi.exceptions import DecodingError
from eth_account import Account
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address

from ..errors import Misconfiguration
from ..logging import get_logger
from ..models.proposal import Proposal
from .contracts import (EXECUTE_PROPOSAL, EXECUTION_DELAY, FORWARD_EXECUTE,
                        GET_NONCE, GET_PROPOSAL, NEXT_PROPOSAL_ID, VERIFY,
                        ContractFunction)
from .eip712 import ForwardRequest
from .eth_rpc import (EthRpc, EthRpcConfig, EthRpcError, hex_to_bytes,
                      hex_to_int, to_0x)

log = get_logger(__name__)


class LedgerDataError(EthRpcError):
    """The node answered, but with data this client cannot use."""


class TransactionReverted(EthRpcError):
    """A submitted transaction was mined with status 0."""

    def __init__(self, tx_hash: str, reason: Optional[str] = None):
        super().__init__(f"transaction {tx_hash} reverted" + (f": {reason}" if reason else ""))
        self.tx_hash = tx_hash
        self.reason = reason


@dataclass(frozen=True)
class LedgerConfig:
    treasury_address: Optional[str] = None
    relayer_key: Optional[str] = None
    execute_gas_limit: int = 1_000_000
    relay_gas_limit: int = 1_000_000
    receipt_timeout_s: float = 120.0
    receipt_poll_s: float = 1.0
    allow_wallclock_fallback: bool = False
    expected_chain_id: Optional[int] = None


class LedgerClient:
    def __init__(
        self,
        rpc: EthRpc,
        config: LedgerConfig,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._rpc = rpc
        self._cfg = config
        self._clock = clock
        self._account: Optional[LocalAccount] = Account.from_key(config.relayer_key) if config.relayer_key else None
        self._chain_id: Optional[int] = None
        self._submit_lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings) -> "LedgerClient":
        """No I/O: the HTTP client is opened on first call."""
        rpc = EthRpc(EthRpcConfig(url=settings.rpc_url, timeout_s=settings.rpc_timeout_s))
        return cls(
            rpc,
            LedgerConfig(
                treasury_address=settings.treasury_address() if settings.dao_address else None,
                relayer_key=settings.relayer_key() if settings.relayer_private_key is not None else None,
                execute_gas_limit=settings.execute_gas_limit,
                relay_gas_limit=settings.relay_gas_limit,
                receipt_timeout_s=settings.receipt_timeout_s,
                receipt_poll_s=settings.receipt_poll_s,
                allow_wallclock_fallback=settings.allow_wallclock_fallback,
                expected_chain_id=settings.chain_id,
            ),
        )

    # ---------- lifecycle ----------

    async def close(self) -> None:
        await self._rpc.close()

    async def __aenter__(self) -> "LedgerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ---------- identity ----------

    @property
    def treasury_address(self) -> str:
        if not self._cfg.treasury_address:
            raise Misconfiguration(details={"missing": ["NEXT_PUBLIC_DAO_ADDRESS"]})
        return self._cfg.treasury_address

    @property
    def relayer_address(self) -> str:
        return self._require_account().address

    def _require_account(self) -> LocalAccount:
        if self._account is None:
            raise Misconfiguration(details={"missing": ["RELAYER_PRIVATE_KEY"]})
        return self._account

    async def chain_id(self) -> int:
        if self._chain_id is None:
            chain_id = await self._rpc.chain_id()
            expected = self._cfg.expected_chain_id
            if expected is not None and chain_id != expected:
                raise Misconfiguration(
                    f"Ledger reports chain id {chain_id}, expected {expected}",
                    code="chain_mismatch",
                    details={"expected": expected, "got": chain_id},
                )
            self._chain_id = chain_id
        return self._chain_id

    # ---------- reads ----------

    async def head(self) -> int:
        return await self._rpc.block_number()

    async def current_time(self) -> int:
        block = await self._rpc.get_block("latest")
        ts = block.get("timestamp") if isinstance(block, dict) else None
        if ts is None:
            if self._cfg.allow_wallclock_fallback:
                log.warning("ledger.time.wallclock_fallback", block=bool(block))
                return int(self._clock())
            raise LedgerDataError("could_not_get_block_timestamp")
        return hex_to_int(ts)

    async def next_proposal_id(self) -> int:
        (value,) = await self._read(self.treasury_address, NEXT_PROPOSAL_ID)
        return int(value)

    async def get_proposal(self, proposal_id: int) -> Proposal:
        (values,) = await self._read(self.treasury_address, GET_PROPOSAL, int(proposal_id))
        return Proposal.from_abi(values)

    async def execution_delay(self) -> int:
        (value,) = await self._read(self.treasury_address, EXECUTION_DELAY)
        return int(value)

    async def balance(self, address: Optional[str] = None) -> int:
        return await self._rpc.get_balance(address or self.treasury_address)

    async def get_nonce(self, forwarder: str, owner: str) -> int:
        (value,) = await self._read(forwarder, GET_NONCE, to_checksum_address(owner))
        return int(value)

    async def verify_forward(self, forwarder: str, request: ForwardRequest, signature: str) -> bool:
        (ok,) = await self._read(forwarder, VERIFY, request.as_abi_tuple(), hex_to_bytes(signature))
        return bool(ok)

    async def _read(self, to: str, fn: ContractFunction, *args: Any) -> tuple:
        raw = await self._rpc.eth_call(to, fn.encode_call(*args))
        try:
            return fn.decode_output(raw)
        except DecodingError as exc:
            raise LedgerDataError(f"{fn.signature}: undecodable return data ({len(raw)} bytes)") from exc

    # ---------- writes ----------

    async def execute(self, proposal_id: int) -> str:
        """Submit ``executeProposal(id)``; returns the transaction hash."""
        data = EXECUTE_PROPOSAL.encode_call(int(proposal_id))
        return await self._transact(self.treasury_address, data, self._cfg.execute_gas_limit)

    async def execute_forward(self, forwarder: str, request: ForwardRequest, signature: str) -> str:
        data = FORWARD_EXECUTE.encode_call(request.as_abi_tuple(), hex_to_bytes(signature))
        return await self._transact(to_checksum_address(forwarder), data, self._cfg.relay_gas_limit)

    async def _transact(self, to: str, data: bytes, gas_limit: int) -> str:
        account = self._require_account()

        await self._rpc.eth_call(to, data, sender=account.address, gas=gas_limit)

        async with self._submit_lock:
            tx: Dict[str, Any] = {
                "to": to,
                "value": 0,
                "gas": gas_limit,
                "gasPrice": await self._rpc.gas_price(),
                "nonce": await self._rpc.get_transaction_count(account.address, "pending"),
                "chainId": await self.chain_id(),
                "data": to_0x(data),
            }
            signed = account.sign_transaction(tx)
            tx_hash = await self._rpc.send_raw_transaction(signed.raw_transaction)

        log.info("ledger.tx.submitted", tx_hash=tx_hash, to=to, nonce=tx["nonce"], gas=gas_limit)

        if self._cfg.receipt_timeout_s <= 0:
            return tx_hash
        try:
            receipt = await self._rpc.poll_for_receipt(
                tx_hash,
                timeout_s=self._cfg.receipt_timeout_s,
                poll_interval_s=self._cfg.receipt_poll_s,
            )
        except EthRpcError as exc:
            # submitted already; the hash is the result either way
            log.warning("ledger.tx.receipt_unavailable", tx_hash=tx_hash, error=str(exc))
            return tx_hash
        if receipt is None:
            log.warning("ledger.tx.receipt_timeout", tx_hash=tx_hash, timeout_s=self._cfg.receipt_timeout_s)
            return tx_hash
        if hex_to_int(receipt.get("status", "0x1")) == 0:
            raise TransactionReverted(tx_hash)
        return receipt.get("transactionHash") or tx_hash


__all__ = [
    "LedgerClient",
    "LedgerConfig",
    "LedgerDataError",
    "TransactionReverted",
]
