# -*- coding: utf-8 -*-
"""
Path / naming safety helpers for the session file surfaces.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Union


PathLike = Union[str, "os.PathLike[str]"]


def to_posix_rel(path: PathLike, base: PathLike) -> str:
    """
    Path of `path` relative to `base`, always '/'-separated.
    Backslashes are normalized even on POSIX hosts, so a POSIX file literally
    named "a\\b.jsonl" comes out as "a/b.jsonl" and its url will not resolve.
    Session writers are expected not to put backslashes in file names.
    """
    rel = os.path.relpath(os.fspath(path), os.fspath(base))
    return rel.replace("\\", "/")


def safe_session_rel(rel: str) -> str:
    """
    Normalize a client-supplied relative path.
    Returns "" for empty, absolute, or upward-escaping paths.
    """
    raw = (rel or "").strip().replace("\\", "/")
    if not raw or raw.startswith("/"):
        return ""
    parts = [p for p in raw.split("/") if p and p != "."]
    if not parts or any(p == ".." for p in parts):
        return ""
    # Windows drive letters ("C:") are absolute too.
    if ":" in parts[0]:
        return ""
    return "/".join(parts)


def is_under(path: Path, root: Path) -> bool:
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
