"""
EIP-712 structured data for MinimalForwarder meta-transactions.

A ForwardRequest is signed by the voter over a typed, domain-scoped encoding
that binds the ledger's chain id and the forwarder's address, so a signature
cannot be replayed on another network or against another forwarder.

The relay never signs requests; ``sign_forward_request`` exists for clients,
the CLI ``sign-vote`` helper and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Tuple

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import to_checksum_address

from .contracts import VOTE
from .eth_rpc import hex_to_bytes, to_0x

DOMAIN_NAME = "MinimalForwarder"
DOMAIN_VERSION = "0.0.1"

# Default gas forwarded to the target call for a vote
DEFAULT_VOTE_GAS = 200_000

VOTE_AGAINST = 0
VOTE_FOR = 1
VOTE_ABSTAIN = 2

EIP712_DOMAIN_TYPE = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

FORWARD_REQUEST_TYPES = {
    "ForwardRequest": [
        {"name": "from", "type": "address"},
        {"name": "to", "type": "address"},
        {"name": "value", "type": "uint256"},
        {"name": "gas", "type": "uint256"},
        {"name": "nonce", "type": "uint256"},
        {"name": "data", "type": "bytes"},
    ],
}


@dataclass(frozen=True)
class ForwardRequest:
    """``{from, to, value, gas, nonce, data}``; ``nonce`` is per signer."""

    sender: str
    to: str
    value: int
    gas: int
    nonce: int
    data: bytes

    def __post_init__(self) -> None:
        object.__setattr__(self, "sender", to_checksum_address(self.sender))
        object.__setattr__(self, "to", to_checksum_address(self.to))

    def as_abi_tuple(self) -> Tuple[Any, ...]:
        return (self.sender, self.to, self.value, self.gas, self.nonce, self.data)

    def as_message(self) -> Dict[str, Any]:
        return {
            "from": self.sender,
            "to": self.to,
            "value": self.value,
            "gas": self.gas,
            "nonce": self.nonce,
            "data": self.data,
        }

    def to_json(self) -> Dict[str, str]:
        """Wire form used by ``POST /relay`` (decimal strings, 0x data)."""
        return {
            "from": self.sender,
            "to": self.to,
            "value": str(self.value),
            "gas": str(self.gas),
            "nonce": str(self.nonce),
            "data": to_0x(self.data),
        }


def build_domain(chain_id: int, verifying_contract: str) -> Dict[str, Any]:
    return {
        "name": DOMAIN_NAME,
        "version": DOMAIN_VERSION,
        "chainId": int(chain_id),
        "verifyingContract": to_checksum_address(verifying_contract),
    }


def typed_data(request: ForwardRequest, *, chain_id: int, forwarder: str) -> Dict[str, Any]:
    return {
        "types": {"EIP712Domain": EIP712_DOMAIN_TYPE, **FORWARD_REQUEST_TYPES},
        "primaryType": "ForwardRequest",
        "domain": build_domain(chain_id, forwarder),
        "message": request.as_message(),
    }


def signable(request: ForwardRequest, *, chain_id: int, forwarder: str) -> SignableMessage:
    return encode_typed_data(full_message=typed_data(request, chain_id=chain_id, forwarder=forwarder))


def sign_forward_request(request: ForwardRequest, *, private_key: str, chain_id: int, forwarder: str) -> str:
    """Sign as the voter would in their wallet; returns a 0x-hex 65-byte signature."""
    signed = Account.sign_message(signable(request, chain_id=chain_id, forwarder=forwarder), private_key=private_key)
    return to_0x(bytes(signed.signature))


def recover_signer(request: ForwardRequest, signature: str, *, chain_id: int, forwarder: str) -> str:
    return Account.recover_message(
        signable(request, chain_id=chain_id, forwarder=forwarder),
        signature=hex_to_bytes(signature),
    )


def encode_vote_data(proposal_id: int, vote_type: int) -> bytes:
    """Calldata for ``vote(uint256,uint8)``: 0 against, 1 for, 2 abstain."""
    if vote_type not in (VOTE_AGAINST, VOTE_FOR, VOTE_ABSTAIN):
        raise ValueError(f"vote_type must be 0, 1 or 2, got {vote_type}")
    return VOTE.encode_call(int(proposal_id), int(vote_type))


__all__ = [
    "ForwardRequest",
    "FORWARD_REQUEST_TYPES",
    "DEFAULT_VOTE_GAS",
    "VOTE_AGAINST",
    "VOTE_FOR",
    "VOTE_ABSTAIN",
    "build_domain",
    "typed_data",
    "sign_forward_request",
    "recover_signer",
    "encode_vote_data",
]
