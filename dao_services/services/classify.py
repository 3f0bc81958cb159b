from __future__ import annotations

"""
Failure classification shared by the execution daemon and the relay.

Low-level ledger failures (transport errors, JSON-RPC error objects, mined
reverts, free-form node messages) are mapped to a small stable taxonomy:

    insufficient_relayer_funds | invalid_signature | nonce_already_used
    network_error | contract_reverted(reason) | unknown(message)

Structured signals are used first:
- ``RpcTransportError`` (timeouts, refused connections, non-200) → network_error
- ``TransactionReverted`` (receipt status 0)                      → contract_reverted
- JSON-RPC error code 3 or revert data carrying ``Error(string)``  → contract_reverted(reason)

Only then is the message substring-matched. Message matching is best effort:
node implementations word their errors differently and the list below is
deliberately short and non-exhaustive. Correctness never depends on it; an
unmatched message is reported as ``unknown`` with the original text.
Errors about the relayer's own account nonce ("nonce too low",
"replacement transaction underpriced") are a server-side problem and are
also reported as ``unknown`` rather than as a reused client nonce.
"""

import asyncio
import enum
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..adapters.contracts import decode_revert_reason
from ..adapters.eth_rpc import RpcResponseError, RpcTransportError
from ..adapters.ledger import TransactionReverted
from ..errors import (ApiError, ContractReverted, InsufficientRelayerFunds,
                      InvalidSignature, NetworkError, NonceAlreadyUsed,
                      RelayFailed)

# JSON-RPC error code geth and most clients use for "execution reverted"
EXECUTION_REVERTED_CODE = 3


class FailureKind(str, enum.Enum):
    INSUFFICIENT_RELAYER_FUNDS = "insufficient_relayer_funds"
    INVALID_SIGNATURE = "invalid_signature"
    NONCE_ALREADY_USED = "nonce_already_used"
    NETWORK_ERROR = "network_error"
    CONTRACT_REVERTED = "contract_reverted"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Failure:
    kind: FailureKind
    message: str
    reason: Optional[str] = None

    @property
    def code(self) -> str:
        return self.kind.value

    def detail(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"message": self.message}
        if self.reason:
            out["reason"] = self.reason
        return out

    def to_api_error(self) -> ApiError:
        """HTTP mapping used by the relay; ``unknown`` becomes ``relay_failed``."""
        if self.kind is FailureKind.INSUFFICIENT_RELAYER_FUNDS:
            return InsufficientRelayerFunds()
        if self.kind is FailureKind.INVALID_SIGNATURE:
            return InvalidSignature(details={"message": self.message})
        if self.kind is FailureKind.NONCE_ALREADY_USED:
            return NonceAlreadyUsed()
        if self.kind is FailureKind.NETWORK_ERROR:
            return NetworkError()
        if self.kind is FailureKind.CONTRACT_REVERTED:
            return ContractReverted(self.reason)
        return RelayFailed(self.message or "Unknown relayer error")


# ------------------------------ message fallback ------------------------------

_REVERT_PATTERNS = (
    re.compile(r"reverted with reason string '([^']*)'", re.IGNORECASE),
    re.compile(r'reason="([^"]*)"', re.IGNORECASE),
    re.compile(r"execution reverted:\s*(.+)", re.IGNORECASE),
    re.compile(r"reverted:\s*(.+)", re.IGNORECASE),
)

_NETWORK_MARKERS = ("network", "timeout", "timed out", "connection")

# the relayer's own account nonce, not the forwarder's per-signer nonce
_ACCOUNT_NONCE_MARKERS = ("nonce too low", "nonce too high", "replacement transaction")


def extract_revert_reason(message: str) -> Optional[str]:
    """Pull the revert reason out of a node or library error message."""
    for pattern in _REVERT_PATTERNS:
        m = pattern.search(message)
        if m:
            reason = m.group(1).strip()
            return reason or None
    return None


def _revert_data_reason(data: Any) -> Optional[str]:
    if isinstance(data, dict):
        data = data.get("data")
    if not isinstance(data, str) or not data.startswith("0x"):
        return None
    try:
        raw = bytes.fromhex(data[2:])
    except ValueError:
        return None
    return decode_revert_reason(raw)


def classify_message(message: str) -> Failure:
    lower = message.lower()
    if "insufficient funds" in lower:
        return Failure(FailureKind.INSUFFICIENT_RELAYER_FUNDS, message)
    if "signature" in lower:
        return Failure(FailureKind.INVALID_SIGNATURE, message)
    if any(marker in lower for marker in _ACCOUNT_NONCE_MARKERS):
        return Failure(FailureKind.UNKNOWN, message)
    if "nonce" in lower or "already used" in lower:
        return Failure(FailureKind.NONCE_ALREADY_USED, message)
    if any(marker in lower for marker in _NETWORK_MARKERS):
        return Failure(FailureKind.NETWORK_ERROR, message)
    if "revert" in lower:
        return Failure(FailureKind.CONTRACT_REVERTED, message, extract_revert_reason(message))
    return Failure(FailureKind.UNKNOWN, message)


def classify(exc: BaseException) -> Failure:
    message = getattr(exc, "message", None) or str(exc) or exc.__class__.__name__

    if isinstance(exc, (RpcTransportError, asyncio.TimeoutError)):
        return Failure(FailureKind.NETWORK_ERROR, message)

    if isinstance(exc, TransactionReverted):
        return Failure(FailureKind.CONTRACT_REVERTED, message, exc.reason)

    if isinstance(exc, RpcResponseError):
        reason = _revert_data_reason(exc.data)
        if reason is not None:
            return Failure(FailureKind.CONTRACT_REVERTED, exc.message, reason)
        if exc.code == EXECUTION_REVERTED_CODE:
            return Failure(FailureKind.CONTRACT_REVERTED, exc.message, extract_revert_reason(exc.message))
        return classify_message(exc.message)

    return classify_message(message)


__all__ = [
    "FailureKind",
    "Failure",
    "classify",
    "classify_message",
    "extract_revert_reason",
]
