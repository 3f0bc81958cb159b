from __future__ import annotations

"""
Common API model types: Address, Hex, Hash and Uint256.

- Address:  20-byte EVM address, returned in EIP-55 checksum form.
- Hex:      0x-prefixed hex string (may be empty, "0x"), lowercased.
- Hash:     0x + 64 hex chars (32 bytes), lowercased.
- Uint256:  non-negative integer; accepts ints, decimal strings and 0x-hex
            strings, since wallets and JS clients serialize big numbers as
            strings.

These are Pydantic v2 annotated aliases. Validation stays syntactic here;
whether an address is the *right* address is decided by the services.
"""

import re
from typing import Annotated, Any

from eth_utils import is_address, to_checksum_address
from pydantic import AfterValidator, BeforeValidator

_HEX_RE = re.compile(r"^0x[0-9a-f]*$")

UINT256_MAX = 2**256 - 1


def _validate_address(v: str) -> str:
    if not isinstance(v, str):
        raise ValueError("address must be a string")
    s = v.strip()
    if not is_address(s):
        raise ValueError("address must be 0x + 40 hex chars")
    return to_checksum_address(s)


def _validate_hex(v: str) -> str:
    if not isinstance(v, str):
        raise ValueError("value must be a string")
    s = v.strip().lower()
    if not _HEX_RE.match(s):
        raise ValueError("hex value must start with 0x and contain only hex characters")
    if len(s) % 2 != 0:
        raise ValueError("hex nibble length must be even")
    return s


def _validate_hash(v: str) -> str:
    s = _validate_hex(v)
    if len(s) != 66:
        raise ValueError("hash must be 0x + 64 hex chars")
    return s


def _parse_uint(v: Any) -> int:
    if isinstance(v, bool):
        raise ValueError("expected an unsigned integer, got a boolean")
    if isinstance(v, int):
        n = v
    elif isinstance(v, str):
        s = v.strip()
        if not s:
            raise ValueError("expected an unsigned integer, got an empty string")
        try:
            n = int(s, 16) if s.lower().startswith("0x") else int(s, 10)
        except ValueError:
            raise ValueError(f"not an integer: {v!r}") from None
    else:
        raise ValueError(f"expected an unsigned integer, got {type(v).__name__}")
    if n < 0 or n > UINT256_MAX:
        raise ValueError("value out of uint256 range")
    return n


Address = Annotated[str, AfterValidator(_validate_address)]
Hex = Annotated[str, AfterValidator(_validate_hex)]
Hash = Annotated[str, AfterValidator(_validate_hash)]
Uint256 = Annotated[int, BeforeValidator(_parse_uint)]


__all__ = ["Address", "Hex", "Hash", "Uint256", "UINT256_MAX"]
