from __future__ import annotations

"""
Execution daemon endpoint.

  - GET /daemon : run one scan over all proposals and execute the eligible ones

Configuration is checked before any ledger call: a missing RPC_URL,
NEXT_PUBLIC_DAO_ADDRESS or RELAYER_PRIVATE_KEY answers
``500 server_misconfigured`` without touching the network.
"""

from fastapi import APIRouter, Request

from ..deps import ensure_daemon
from ..models.daemon import ScanResult

router = APIRouter(tags=["daemon"])


@router.get("/daemon", summary="Execute all eligible proposals", response_model=ScanResult)
async def run_daemon(request: Request) -> ScanResult:
    """
    Returns ``{executed: [{id, tx}], skipped: [{id, reason, detail}], ...}``.
    A call arriving while a scan is already running returns at once with
    ``coalesced: true``.
    """
    request.app.state.settings.require_daemon()
    return await ensure_daemon(request.app).scan()


__all__ = ["router"]
