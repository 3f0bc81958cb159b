from __future__ import annotations

"""
Gasless vote relay.

  - POST /relay : submit a voter-signed ForwardRequest through the forwarder

Status codes: 200 ``{hash}``; 400 bad request, invalid signature or unknown
forwarder; 409 nonce already used or out of order; 429 rate limited;
503 relayer out of funds, ledger unreachable or gasless disabled; 500 otherwise.
"""

from fastapi import APIRouter, Depends, Request

from ..deps import ensure_relay
from ..errors import GaslessDisabled
from ..models.relay import RelayRequest, RelayResponse
from ..security.rate_limit import relay_rate_limit

router = APIRouter(tags=["relay"])


@router.post(
    "/relay",
    summary="Relay a signed forward request",
    response_model=RelayResponse,
    dependencies=[Depends(relay_rate_limit)],
)
async def post_relay(body: RelayRequest, request: Request) -> RelayResponse:
    settings = request.app.state.settings
    if not settings.enable_gasless:
        raise GaslessDisabled()
    settings.require_relay()

    tx_hash = await ensure_relay(request.app).relay(
        body.forwarder,
        body.request.to_forward_request(),
        body.signature,
    )
    return RelayResponse(hash=tx_hash)


__all__ = ["router"]
