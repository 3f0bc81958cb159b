"""
ABI surface of the two contracts the services talk to.

- Treasury (DAO) contract: nextProposalId, getProposal, EXECUTION_DELAY,
  executeProposal, vote.
- MinimalForwarder: getNonce, verify, execute.

Calldata is built with eth-abi and 4-byte selectors from eth-utils; only the
functions listed here are ever encoded, so there is no JSON ABI to load.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional, Tuple

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_utils import function_signature_to_4byte_selector

PROPOSAL_TUPLE = "(uint256,address,uint256,uint256,string,uint256,uint256,uint256,bool)"
FORWARD_REQUEST_TUPLE = "(address,address,uint256,uint256,uint256,bytes)"

# Error(string) and Panic(uint256) selectors used by Solidity reverts
ERROR_SELECTOR = bytes.fromhex("08c379a0")
PANIC_SELECTOR = bytes.fromhex("4e487b71")


@dataclass(frozen=True)
class ContractFunction:
    name: str
    inputs: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.inputs)})"

    @property
    def selector(self) -> bytes:
        return function_signature_to_4byte_selector(self.signature)

    def encode_call(self, *args: Any) -> bytes:
        if len(args) != len(self.inputs):
            raise TypeError(f"{self.signature} takes {len(self.inputs)} arguments, got {len(args)}")
        return self.selector + encode(list(self.inputs), list(args))

    def decode_output(self, data: bytes) -> Tuple[Any, ...]:
        return tuple(decode(list(self.outputs), data))


# Treasury contract
NEXT_PROPOSAL_ID = ContractFunction("nextProposalId", (), ("uint256",))
GET_PROPOSAL = ContractFunction("getProposal", ("uint256",), (PROPOSAL_TUPLE,))
EXECUTION_DELAY = ContractFunction("EXECUTION_DELAY", (), ("uint256",))
EXECUTE_PROPOSAL = ContractFunction("executeProposal", ("uint256",))
VOTE = ContractFunction("vote", ("uint256", "uint8"))

# Forwarding contract
GET_NONCE = ContractFunction("getNonce", ("address",), ("uint256",))
VERIFY = ContractFunction("verify", (FORWARD_REQUEST_TUPLE, "bytes"), ("bool",))
FORWARD_EXECUTE = ContractFunction("execute", (FORWARD_REQUEST_TUPLE, "bytes"), ("bool", "bytes"))


def decode_revert_reason(data: Optional[bytes]) -> Optional[str]:
    """
    Decode Solidity revert data: ``Error(string)`` yields its message,
    ``Panic(uint256)`` yields ``panic(0x..)``. Anything else yields None.
    """
    if not data or len(data) < 4:
        return None
    try:
        if data[:4] == ERROR_SELECTOR:
            (reason,) = decode(["string"], data[4:])
            return str(reason)
        if data[:4] == PANIC_SELECTOR:
            (code,) = decode(["uint256"], data[4:])
            return f"panic(0x{int(code):x})"
    except DecodingError:
        return None
    return None


__all__ = [
    "ContractFunction",
    "PROPOSAL_TUPLE",
    "FORWARD_REQUEST_TUPLE",
    "NEXT_PROPOSAL_ID",
    "GET_PROPOSAL",
    "EXECUTION_DELAY",
    "EXECUTE_PROPOSAL",
    "VOTE",
    "GET_NONCE",
    "VERIFY",
    "FORWARD_EXECUTE",
    "decode_revert_reason",
]
