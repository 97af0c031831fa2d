# -*- coding: utf-8 -*-
"""
Session dev server.

Serves:
- GET/POST/... /__sessions_index  JSON manifest of session logs [{rel, url}]
- GET /sessions/<rel>             raw session log files
- GET /tones, GET /tone           project tone palette + sticky assignment
- GET /health, /capabilities, /__env

Environment variables:
- SESSIONS_ROOT_PATH   (default: ./sessions, resolved against the working dir)
- DEVSERVER_HOST       (default: 0.0.0.0)
- DEVSERVER_PORT       (default: 5172)
"""
from __future__ import annotations

import asyncio
import os
import signal
import sys
import tempfile
import time
from pathlib import Path
from typing import Optional, Set, Tuple

from aiohttp import web

import capabilities
import devserver_config
import http_api
import session_index
import tone_engine

# =============================================================================
# Config
# =============================================================================

ENV = os.environ

SERVER_START_TIME = time.time()

try:
    HOST = devserver_config.read_host(ENV)
    HTTP_PORT = devserver_config.read_port(ENV)
except ValueError as e:
    raise SystemExit(f"[FATAL] invalid server config: {e}")

TONES = tone_engine.default_allocator()


def resolve_sessions_root() -> Path:
    """Re-read on every call so SESSIONS_ROOT_PATH changes apply without a restart."""
    return devserver_config.resolve_sessions_root(ENV)


def build_app() -> web.Application:
    app = web.Application()
    http_api.register_routes(app, ctx=sys.modules[__name__])
    return app


def route_handler_names(app: web.Application) -> Set[str]:
    return {getattr(r.handler, "__name__", "") for r in app.router.routes()} - {""}


_SHUTDOWN_EVENT: Optional[asyncio.Event] = None


def request_shutdown(reason: str = "") -> None:
    print(f"[BOOT] shutdown requested ({reason or 'unknown'})", flush=True)
    if _SHUTDOWN_EVENT is not None:
        _SHUTDOWN_EVENT.set()


async def main() -> None:
    host = HOST
    http_port = HTTP_PORT
    root = resolve_sessions_root()

    print(f"[BOOT] SESSIONS_ROOT={root}  (exists: {root.is_dir()})")
    print(f"[BOOT] TONES={len(TONES.palette)}")
    print(f"[BOOT] HTTP:      http://{host}:{http_port}")
    print(f"[BOOT] INDEX:     http://{host}:{http_port}{devserver_config.SESSIONS_INDEX_ROUTE}")

    global _SHUTDOWN_EVENT
    _SHUTDOWN_EVENT = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _sig() -> None:
        request_shutdown("signal")

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _sig)
        except (NotImplementedError, RuntimeError):
            # Windows event loops have no add_signal_handler; Ctrl+C still raises KeyboardInterrupt.
            pass

    app = build_app()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, host, http_port)
    try:
        await site.start()
    except OSError as e:
        await runner.cleanup()
        raise SystemExit(f"[FATAL] cannot bind http://{host}:{http_port}: {e}")

    try:
        await _SHUTDOWN_EVENT.wait()
    finally:
        await runner.cleanup()


def _smoke_test_session_index() -> Tuple[bool, str]:
    """
    Offline index check on a throwaway tree:
    a/b.jsonl + d.jsonl are listed, a/c.txt is not, a missing root is empty.
    """
    try:
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            (root / "a").mkdir()
            (root / "a" / "b.jsonl").write_text("{}\n", encoding="utf-8")
            (root / "a" / "c.txt").write_text("x", encoding="utf-8")
            (root / "d.jsonl").write_text("{}\n", encoding="utf-8")

            rels = [f.rel for f in session_index.build_index(root)]
            if rels != ["a/b.jsonl", "d.jsonl"]:
                return False, f"unexpected index: {rels!r}"

            if session_index.build_index(root / "missing"):
                return False, "missing root did not yield an empty index"
        return True, "ok"
    except Exception as e:
        return False, f"index smoke crashed: {e!r}"


def _smoke_test_tones() -> Tuple[bool, str]:
    try:
        alloc = tone_engine.ToneAllocator()
        names = [f"project-{i}" for i in range(len(alloc.palette))]
        got = [alloc.assign(n) for n in names]
        if len(set(got)) != len(got):
            return False, "duplicate tones under palette capacity"
        if alloc.assign(names[0]) != got[0]:
            return False, "tone assignment not sticky"
        return True, "ok"
    except Exception as e:
        return False, f"tone smoke crashed: {e!r}"


def _run_smoke_test() -> int:
    """Returns process exit code."""
    required = [
        "http.health",
        "http.sessions.index",
        "http.sessions.file",
        "http.tones",
        "http.capabilities",
    ]
    ok, note = capabilities.smoke_test_registry(
        routed_handlers=route_handler_names(build_app()),
        required_ids=required,
    )
    if not ok:
        print(f"[SMOKE] capabilities registry FAILED:\n{note}")
        return 1
    print("[SMOKE] capabilities registry OK")

    ok, note = _smoke_test_tones()
    if not ok:
        print(f"[SMOKE] tones FAILED: {note}")
        return 1
    print("[SMOKE] tones OK")

    ok, note = _smoke_test_session_index()
    if not ok:
        print(f"[SMOKE] session index FAILED: {note}")
        return 1
    print("[SMOKE] session index OK")
    return 0


if __name__ == "__main__":
    # Smoke test short-circuit (must run BEFORE asyncio loop)
    if len(sys.argv) > 1 and sys.argv[1].strip().lower() in ("--smoke", "smoke"):
        raise SystemExit(_run_smoke_test())

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
    except asyncio.CancelledError:
        pass
