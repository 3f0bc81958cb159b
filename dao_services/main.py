"""
Uvicorn launcher for DAO Services.

Usage:
  python -m dao_services.main [--host 0.0.0.0] [--port 8080]
                              [--workers 1] [--reload]
                              [--log-level info]

Environment overrides (if flags not provided):
  HOST / BIND, PORT, WORKERS, RELOAD, LOG_LEVEL

Each worker runs its own execution daemon guard. With DAEMON_INTERVAL_S set,
run a single worker (or a single instance) so only one process scans.
"""

from __future__ import annotations

import argparse
import os
from typing import Optional

import uvicorn


def _env_bool(name: str, default: bool) -> bool:
    v = os.getenv(name)
    if v is None:
        return default
    return v.lower() in ("1", "true", "yes", "y", "on")


def run(
    *,
    host: str = "0.0.0.0",
    port: int = 8080,
    workers: int = 1,
    reload: bool = False,
    log_level: str = "info",
) -> None:
    if reload and workers != 1:
        print("[dao-services] --reload implies --workers=1; overriding.")
        workers = 1
    uvicorn.run(
        "dao_services.app:create_app",
        factory=True,
        host=host,
        port=port,
        workers=workers,
        reload=reload,
        log_level=log_level.lower(),
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


def main(argv: Optional[list[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Run DAO Services (uvicorn)")
    parser.add_argument("--host", default=os.getenv("HOST") or os.getenv("BIND") or "0.0.0.0")
    parser.add_argument("--port", type=int, default=int(os.getenv("PORT") or 8080))
    parser.add_argument("--workers", type=int, default=int(os.getenv("WORKERS") or 1))
    parser.add_argument("--reload", action="store_true", default=_env_bool("RELOAD", False))
    parser.add_argument("--log-level", default=os.getenv("LOG_LEVEL", "info"))
    args = parser.parse_args(argv)
    run(host=args.host, port=args.port, workers=args.workers, reload=args.reload, log_level=args.log_level)


if __name__ == "__main__":
    main()
