from __future__ import annotations

"""
Request/response models for ``POST /relay``.

The body mirrors what a browser wallet produces after signing the EIP-712
ForwardRequest:

    {
      "forwarder": "0x…",
      "request": {"from": "0x…", "to": "0x…", "value": "0", "gas": "200000",
                  "nonce": "3", "data": "0x…"},
      "signature": "0x…"
    }

Numeric fields accept ints, decimal strings or 0x-hex strings.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..adapters.eip712 import ForwardRequest
from ..adapters.eth_rpc import hex_to_bytes
from .common import Address, Hash, Hex, Uint256


class ForwardRequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    sender: Address = Field(..., alias="from")
    to: Address
    value: Uint256
    gas: Uint256
    nonce: Uint256
    data: Hex

    def to_forward_request(self) -> ForwardRequest:
        return ForwardRequest(
            sender=self.sender,
            to=self.to,
            value=self.value,
            gas=self.gas,
            nonce=self.nonce,
            data=hex_to_bytes(self.data),
        )


class RelayRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    forwarder: Address
    request: ForwardRequestModel
    signature: Hex = Field(..., description="65-byte ECDSA signature over the EIP-712 digest")

    @field_validator("signature")
    @classmethod
    def _signature_length(cls, v: str) -> str:
        if len(v) != 2 + 65 * 2:
            raise ValueError("signature must be 65 bytes")
        return v


class RelayResponse(BaseModel):
    hash: Hash


__all__ = ["ForwardRequestModel", "RelayRequest", "RelayResponse"]
