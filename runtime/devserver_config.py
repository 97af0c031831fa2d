# -*- coding: utf-8 -*-
"""
Dev server config primitives (pure constants + pure helpers).

Hard rules:
- This module must NOT import devserver.py (no circular imports).
- Keep it stdlib-only.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional


SESSION_LOG_SUFFIX = ".jsonl"
SESSIONS_MOUNT_PREFIX = "/sessions/"
SESSIONS_INDEX_ROUTE = "/__sessions_index"
DEFAULT_SESSIONS_DIR_NAME = "sessions"

ENV_SESSIONS_ROOT = "SESSIONS_ROOT_PATH"
ENV_HOST = "DEVSERVER_HOST"
ENV_PORT = "DEVSERVER_PORT"

DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 5172

# Variables with these prefixes are visible to the front-end via GET /__env.
CLIENT_ENV_PREFIXES = ("DEVSERVER_", "SESSIONS_")


def resolve_sessions_root(env: Mapping[str, str], *, cwd: Optional[Path] = None) -> Path:
    """
    SESSIONS_ROOT_PATH wins when set; otherwise <cwd>/sessions.
    The directory is not required to exist.
    """
    raw = (env.get(ENV_SESSIONS_ROOT) or "").strip()
    if raw:
        return Path(raw).expanduser().resolve()
    base = cwd if cwd is not None else Path.cwd()
    return (Path(base) / DEFAULT_SESSIONS_DIR_NAME).resolve()


def read_host(env: Mapping[str, str]) -> str:
    return (env.get(ENV_HOST) or DEFAULT_HOST).strip() or DEFAULT_HOST


def read_port(env: Mapping[str, str]) -> int:
    raw = (env.get(ENV_PORT) or "").strip()
    if not raw:
        return DEFAULT_PORT
    try:
        port = int(raw)
    except ValueError:
        raise ValueError(f"{ENV_PORT} must be an integer, got {raw!r}")
    if not (0 < port < 65536):
        raise ValueError(f"{ENV_PORT} out of range: {port}")
    return port


def client_env(env: Mapping[str, str]) -> Dict[str, str]:
    return {
        k: str(v)
        for k, v in sorted(env.items())
        if any(k.startswith(p) for p in CLIENT_ENV_PREFIXES)
    }
