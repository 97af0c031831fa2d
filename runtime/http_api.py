# -*- coding: utf-8 -*-
"""
HTTP API for the session dev server.

Design:
- No import of devserver.py (avoids circular imports).
- devserver.py passes ctx=sys.modules[__name__] to register_routes().
- All handler logic lives here and uses ctx.<name> for shared state:
    ctx.resolve_sessions_root() -> Path   (re-read per request)
    ctx.TONES                   -> tone_engine.ToneAllocator
    ctx.ENV                     -> Mapping[str, str]
    ctx.HOST, ctx.HTTP_PORT, ctx.SERVER_START_TIME
"""

from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Dict

from aiohttp import web

import capabilities
import session_index
from devserver_config import (
    SESSION_LOG_SUFFIX,
    SESSIONS_INDEX_ROUTE,
    SESSIONS_MOUNT_PREFIX,
    client_env,
)
from path_engine import is_under, now_iso, safe_session_rel


NDJSON_CONTENT_TYPE = "application/x-ndjson"


def _no_store(resp: web.StreamResponse) -> web.StreamResponse:
    resp.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    resp.headers["Pragma"] = "no-cache"
    resp.headers["Expires"] = "0"
    return resp


def register_routes(app: web.Application, *, ctx) -> None:
    """
    Register aiohttp routes on the given app.

    ctx is expected to be the running server module (sys.modules[__name__]) so we can
    access server-side state without importing devserver.py.
    """

    async def handle_sessions_index(request: web.Request) -> web.Response:
        root = Path(ctx.resolve_sessions_root())
        files = session_index.build_index(
            root,
            suffix=SESSION_LOG_SUFFIX,
            mount_prefix=SESSIONS_MOUNT_PREFIX,
        )
        resp = web.json_response(session_index.manifest(files))
        resp.headers["Access-Control-Allow-Origin"] = "*"
        return _no_store(resp)

    async def handle_session_file(request: web.Request) -> web.StreamResponse:
        rel = safe_session_rel(request.match_info.get("rel", ""))
        if not rel:
            return web.Response(status=400, text="invalid path", content_type="text/plain")

        root = Path(ctx.resolve_sessions_root())
        try:
            abs_path = (root / rel).resolve()
            if not is_under(abs_path, root):
                return web.Response(status=403, text="forbidden", content_type="text/plain")
            found = abs_path.is_file()
        except (OSError, RuntimeError):
            found = False

        if not found:
            return web.Response(status=404, text="not found", content_type="text/plain")

        headers: Dict[str, str] = {}
        if abs_path.name.endswith(SESSION_LOG_SUFFIX):
            headers["Content-Type"] = NDJSON_CONTENT_TYPE
        return _no_store(web.FileResponse(path=abs_path, headers=headers))

    async def handle_get_tones(request: web.Request) -> web.Response:
        resp = web.json_response({"ok": True, "tones": list(ctx.TONES.palette)})
        resp.headers["Access-Control-Allow-Origin"] = "*"
        return resp

    async def handle_get_tone(request: web.Request) -> web.Response:
        # Dev-only surface: every distinct project stays in the process-wide
        # allocator until restart, so do not expose this server publicly.
        project = request.rel_url.query.get("project") or ""
        tone = ctx.TONES.assign(project)
        resp = web.json_response({"ok": True, "project": project, "tone": tone})
        resp.headers["Access-Control-Allow-Origin"] = "*"
        return resp

    async def handle_health(request: web.Request) -> web.Response:
        up_s = max(0, int(time.time() - ctx.SERVER_START_TIME))

        root = Path(ctx.resolve_sessions_root())
        try:
            root_exists = root.is_dir()
        except OSError:
            root_exists = False

        payload: Dict[str, Any] = {
            "ok": True,
            "host": ctx.HOST,
            "http_port": ctx.HTTP_PORT,
            "uptime_s": up_s,
            "sessions_root": str(root),
            "sessions_root_exists": root_exists,
            "tones_used": ctx.TONES.used_count,
            "tones_total": len(ctx.TONES.palette),
            "timestamp": now_iso(),
        }
        return _no_store(web.json_response(payload))

    async def handle_get_capabilities(request: web.Request) -> web.Response:
        resp = web.json_response({"ok": True, "capabilities": capabilities.get_registry_json()})
        resp.headers["Access-Control-Allow-Origin"] = "*"
        return resp

    async def handle_client_env(request: web.Request) -> web.Response:
        resp = web.json_response({"ok": True, "env": client_env(ctx.ENV)})
        return _no_store(resp)

    app.router.add_route("*", SESSIONS_INDEX_ROUTE, handle_sessions_index)
    app.router.add_get(SESSIONS_MOUNT_PREFIX.rstrip("/") + "/{rel:.+}", handle_session_file)
    app.router.add_get("/tones", handle_get_tones)
    app.router.add_get("/tone", handle_get_tone)
    app.router.add_get("/health", handle_health)
    app.router.add_get("/capabilities", handle_get_capabilities)
    app.router.add_get("/__env", handle_client_env)
