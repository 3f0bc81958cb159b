"""
Adapters between the service layer and the ledger.

- eth_rpc    : async JSON-RPC transport to an Ethereum-compatible node
- contracts  : ABI encoding for the treasury and forwarding contracts
- eip712     : ForwardRequest typed data, signing and recovery helpers
- ledger     : LedgerClient, the typed facade the services depend on

Submodules are loaded lazily via PEP 562 (__getattr__) so that importing the
package does not pull in the eth-* stack.
"""

from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

__all__ = [
    "eth_rpc",
    "contracts",
    "eip712",
    "ledger",
]


def __getattr__(name: str):
    if name in __all__:
        return importlib.import_module(f".{name}", __name__)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


def __dir__():
    return sorted(list(globals().keys()) + __all__)


if TYPE_CHECKING:
    from . import contracts, eip712, eth_rpc, ledger
