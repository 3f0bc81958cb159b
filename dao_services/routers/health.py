from __future__ import annotations

import platform
import time
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from fastapi import APIRouter, Request, Response, status

from .. import version as svc_version
from ..deps import ensure_ledger
from ..errors import ApiError
from ..logging import get_logger

log = get_logger(__name__)
router = APIRouter(tags=["health"])

_PROCESS_START = time.time()


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _uptime_seconds() -> float:
    return max(0.0, time.time() - _PROCESS_START)


@lru_cache(maxsize=1)
def _git() -> Optional[str]:
    return svc_version.git_describe()


def _version_blob() -> Dict[str, Any]:
    return {
        "service": "dao-services",
        "version": svc_version.__version__,
        "git": _git(),
        "python": platform.python_version(),
        "started_at": datetime.fromtimestamp(_PROCESS_START, tz=timezone.utc).isoformat(),
        "uptime_seconds": round(_uptime_seconds(), 3),
    }


def _check_config(settings) -> Tuple[bool, Dict[str, Any]]:
    info: Dict[str, Any] = {
        "daemon_missing": settings.missing_for_daemon(),
        "relay_missing": settings.missing_for_relay(),
        "gasless": settings.enable_gasless,
    }
    try:
        if not info["daemon_missing"]:
            settings.require_daemon()
        if settings.enable_gasless and not info["relay_missing"]:
            settings.require_relay()
    except ApiError as e:
        info["error"] = e.code
        return False, info
    return not info["daemon_missing"], info


async def _check_rpc(request: Request) -> Tuple[bool, Dict[str, Any]]:
    """Cheap reachability probe: chain id and head block number."""
    settings = request.app.state.settings
    if not settings.rpc_url and getattr(request.app.state, "ledger", None) is None:
        return False, {"error": "RPC_URL not configured"}
    try:
        ledger = ensure_ledger(request.app)
        return True, {"chainId": await ledger.chain_id(), "head": await ledger.head()}
    except ApiError as e:
        return False, {"error": e.code}
    except Exception as e:
        log.warning("readyz.rpc_unreachable", error=str(e))
        return False, {"error": f"{type(e).__name__}: {e}"}


@router.get("/healthz", summary="Liveness probe", response_model=None)
async def healthz() -> Dict[str, Any]:
    """Always 200 while the process is serving requests."""
    return {"status": "ok", **_version_blob()}


@router.get("/version", summary="Service version", response_model=None)
async def version() -> Dict[str, Any]:
    return _version_blob()


@router.get("/readyz", summary="Readiness probe", response_model=None)
async def readyz(request: Request, response: Response) -> Dict[str, Any]:
    """
    200 when configuration is complete and the ledger node answers; 503 otherwise.
    """
    checks: Dict[str, Dict[str, Any]] = {}

    ok_cfg, info = _check_config(request.app.state.settings)
    checks["config"] = {"ok": ok_cfg, **info}

    ok_rpc, info = await _check_rpc(request)
    checks["rpc"] = {"ok": ok_rpc, **info}

    ok_all = ok_cfg and ok_rpc
    response.status_code = status.HTTP_200_OK if ok_all else status.HTTP_503_SERVICE_UNAVAILABLE
    return {
        "status": "ok" if ok_all else "degraded",
        "now": _utcnow_iso(),
        "checks": checks,
    }


__all__ = ["router"]
