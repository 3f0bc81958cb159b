from __future__ import annotations

"""
CORS setup for the browser frontend.

Origins come from ``Settings.cors_allow_origins`` (CORS_ALLOW_ORIGINS, csv
or JSON list). Exact origins and glob patterns such as
``https://*.example.com`` are both accepted. "*" is allowed only without
credentials; the API uses no cookies, so credentials stay off.
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware

_GLOB_CHARS = re.compile(r"[*?]")


@dataclass(frozen=True)
class CORSConfig:
    allow_origins: List[str]
    allow_origin_regex: Optional[str]
    allow_methods: List[str]
    allow_headers: List[str]
    expose_headers: List[str]
    max_age: int = 600


def _glob_to_regex(glob_origin: str) -> str:
    """
    "https://*.example.com" → ^https://(?:[^/.:]+\\.)+example\\.com$
    """
    if "://" not in glob_origin:
        raise ValueError(f"Invalid origin pattern (missing scheme): {glob_origin!r}")
    if "/" in glob_origin.split("://", 1)[1]:
        raise ValueError(f"Origin patterns must not include paths: {glob_origin!r}")
    escaped = re.escape(glob_origin).replace(r"\*\.", r"(?:[^/.:]+\.)+")
    return r"^" + escaped + r"$"


def build_cors_config(origins: Sequence[str]) -> CORSConfig:
    exact: List[str] = []
    patterns: List[str] = []
    for origin in origins:
        if origin == "*" or not _GLOB_CHARS.search(origin):
            exact.append(origin)
        else:
            patterns.append(_glob_to_regex(origin))

    regex = None
    if len(patterns) == 1:
        regex = patterns[0]
    elif patterns:
        regex = r"^(?:" + "|".join(p.strip("^$") for p in patterns) + r")$"

    return CORSConfig(
        allow_origins=exact,
        allow_origin_regex=regex,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-Id", "traceparent"],
        expose_headers=["X-Request-Id", "Retry-After"],
    )


def setup_cors(app: FastAPI, origins: Sequence[str]) -> CORSConfig:
    cfg = build_cors_config(origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.allow_origins,
        allow_origin_regex=cfg.allow_origin_regex,
        allow_credentials=False,
        allow_methods=cfg.allow_methods,
        allow_headers=cfg.allow_headers,
        expose_headers=cfg.expose_headers,
        max_age=cfg.max_age,
    )
    return cfg


__all__ = ["CORSConfig", "build_cors_config", "setup_cors"]
