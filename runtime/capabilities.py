# -*- coding: utf-8 -*-
"""
capabilities.py

Code-backed Capabilities Registry for the session dev server.

Purpose:
- Provide a stable, always-available map of "feature -> where implemented"
  without reading the entire repo.

Notes:
- This module MUST be pure (no side effects) and safe to import from the
  HTTP layer and the smoke runner.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from dataclasses import field
import re
from typing import Any, Dict, Iterable, List, Set, Tuple


@dataclass(frozen=True)
class Capability:
    id: str
    name: str
    purpose: str
    entrypoints: List[str]
    implementation: List[str]
    state_and_artifacts: List[str]

    # Optional structured metadata (does not require updating existing entries).
    meta: Dict[str, Any] = field(default_factory=dict)


_REGISTRY: List[Capability] = [
    Capability(
        id="http.health",
        name="Health & runtime info",
        purpose="Expose host, port, uptime and the resolved sessions root.",
        entrypoints=["HTTP GET /health"],
        implementation=[
            "http_api.register_routes() -> handle_health()",
        ],
        state_and_artifacts=[
            "Reads: sessions root existence (no writes)",
        ],
    ),
    Capability(
        id="http.sessions.index",
        name="Session log manifest",
        purpose="Recursively list *.jsonl session logs under the sessions root as [{rel, url}].",
        entrypoints=["HTTP * /__sessions_index (any method)"],
        implementation=[
            "http_api.register_routes() -> handle_sessions_index()",
            "session_index.build_index(), session_index.manifest()",
        ],
        state_and_artifacts=[
            "Reads: <SESSIONS_ROOT_PATH or ./sessions>/** (rebuilt per request, no cache)",
        ],
        meta={"content_type": "application/json", "cached": False},
    ),
    Capability(
        id="http.sessions.file",
        name="Session log file serving",
        purpose="Serve raw session log bytes under the /sessions/ mount prefix.",
        entrypoints=["HTTP GET /sessions/<rel>"],
        implementation=[
            "http_api.register_routes() -> handle_session_file()",
            "path_engine.safe_session_rel(), path_engine.is_under()",
        ],
        state_and_artifacts=[
            "Reads: files under the sessions root",
            "Enforces: path must resolve under the sessions root",
        ],
    ),
    Capability(
        id="http.tones",
        name="Project tone palette + assignment",
        purpose="Publish the fixed tone palette and assign sticky, collision-aware tones to projects.",
        entrypoints=["HTTP GET /tones", "HTTP GET /tone?project=<name>"],
        implementation=[
            "http_api.register_routes() -> handle_get_tones(), handle_get_tone()",
            "tone_engine.ToneAllocator.assign()",
        ],
        state_and_artifacts=[
            "In-memory only: project -> tone map and used palette slots (process lifetime)",
        ],
        meta={"dev_only": True, "unbounded_state": "one entry per distinct project until restart"},
    ),
    Capability(
        id="http.client_env",
        name="Client-visible environment",
        purpose="Expose DEVSERVER_* and SESSIONS_* variables to the front-end.",
        entrypoints=["HTTP GET /__env"],
        implementation=[
            "http_api.register_routes() -> handle_client_env()",
            "devserver_config.client_env()",
        ],
        state_and_artifacts=[
            "Reads: process environment",
        ],
    ),
    Capability(
        id="http.capabilities",
        name="Capabilities Registry (JSON)",
        purpose="Return the code-backed registry so feature -> module mapping is always visible.",
        entrypoints=["HTTP GET /capabilities"],
        implementation=[
            "http_api.register_routes() -> handle_get_capabilities()",
            "capabilities.get_registry_json()",
        ],
        state_and_artifacts=[
            "No disk writes (pure read).",
        ],
    ),
]

# Handler names claimed by an implementation line such as
# "http_api.register_routes() -> handle_get_tones(), handle_get_tone()".
_HANDLER_RE = re.compile(r"\bhandle_\w+")


def declared_handlers(cap: Capability) -> Set[str]:
    names: Set[str] = set()
    for line in cap.implementation:
        if "register_routes()" in line:
            names.update(_HANDLER_RE.findall(line))
    return names


def validate_registry(
    *,
    routed_handlers: Iterable[str],
    required_ids: Iterable[str] = (),
) -> List[str]:
    """
    Check the registry against the handlers the HTTP app actually routes.

    - every capability names at least one registered handler
    - every registered handler is claimed by some capability
    Returns human-readable errors; empty means OK.
    """
    routed = {h for h in routed_handlers if h}
    ids = [c.id for c in _REGISTRY]
    errs: List[str] = [f"duplicate capability id: {cid}" for cid in sorted({i for i in ids if ids.count(i) > 1})]

    claimed: Set[str] = set()
    for c in _REGISTRY:
        if not c.entrypoints:
            errs.append(f"{c.id}: no entrypoints")
        handlers = declared_handlers(c)
        if not handlers:
            errs.append(f"{c.id}: names no route handler")
        for h in sorted(handlers - routed):
            errs.append(f"{c.id}: {h}() is not registered")
        claimed |= handlers

    for h in sorted(routed - claimed):
        errs.append(f"unlisted route handler: {h}()")

    for rid in required_ids:
        if rid not in ids:
            errs.append(f"missing required capability: {rid}")
    return errs


def smoke_test_registry(*, routed_handlers: Iterable[str], required_ids: Iterable[str]) -> Tuple[bool, str]:
    errs = validate_registry(routed_handlers=routed_handlers, required_ids=required_ids)
    if errs:
        return False, "- " + "\n- ".join(errs)
    return True, "ok"


def get_registry_json() -> List[Dict[str, Any]]:
    return [asdict(c) for c in _REGISTRY]
