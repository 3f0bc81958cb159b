from __future__ import annotations

"""
Public model surface for dao-services.

Symbols are re-exported lazily from their submodules via __getattr__
(PEP 562) so importing the package stays cheap.

Submodules:
- common.py    → Address, Hex, Hash, Uint256
- proposal.py  → Proposal (ledger snapshot)
- daemon.py    → ExecutedProposal, SkippedProposal, ScanResult
- relay.py     → ForwardRequestModel, RelayRequest, RelayResponse
"""

from importlib import import_module
from typing import TYPE_CHECKING, Any, Dict, Tuple

__all__ = [
    "Address",
    "Hex",
    "Hash",
    "Uint256",
    "Proposal",
    "ExecutedProposal",
    "SkippedProposal",
    "ScanResult",
    "ForwardRequestModel",
    "RelayRequest",
    "RelayResponse",
]

# name -> (module, attribute)
_EXPORTS: Dict[str, Tuple[str, str]] = {
    "Address": ("dao_services.models.common", "Address"),
    "Hex": ("dao_services.models.common", "Hex"),
    "Hash": ("dao_services.models.common", "Hash"),
    "Uint256": ("dao_services.models.common", "Uint256"),
    "Proposal": ("dao_services.models.proposal", "Proposal"),
    "ExecutedProposal": ("dao_services.models.daemon", "ExecutedProposal"),
    "SkippedProposal": ("dao_services.models.daemon", "SkippedProposal"),
    "ScanResult": ("dao_services.models.daemon", "ScanResult"),
    "ForwardRequestModel": ("dao_services.models.relay", "ForwardRequestModel"),
    "RelayRequest": ("dao_services.models.relay", "RelayRequest"),
    "RelayResponse": ("dao_services.models.relay", "RelayResponse"),
}


def __getattr__(name: str) -> Any:
    try:
        mod_name, attr = _EXPORTS[name]
    except KeyError as e:  # pragma: no cover
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from e
    return getattr(import_module(mod_name), attr)


def __dir__() -> list[str]:  # pragma: no cover
    return sorted(list(globals().keys()) + __all__)


if TYPE_CHECKING:
    from .common import Address, Hash, Hex, Uint256
    from .daemon import ExecutedProposal, ScanResult, SkippedProposal
    from .proposal import Proposal
    from .relay import ForwardRequestModel, RelayRequest, RelayResponse
