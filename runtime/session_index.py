# -*- coding: utf-8 -*-
"""
session_index.py

Best-effort listing of session log files under a root directory.

- Rebuilt on every call (no caching); reflects what is on disk right now.
- Missing root means "no sessions yet" and yields nothing.
- Unreadable directories / entries are skipped, never fatal.
- Symlinks are not followed, so link cycles cannot loop the walk.

Does NOT contain:
- aiohttp handlers (see http_api.py)
"""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Union

from devserver_config import SESSION_LOG_SUFFIX, SESSIONS_MOUNT_PREFIX
from path_engine import to_posix_rel


@dataclass(frozen=True)
class SessionFile:
    rel: str
    url: str

    def to_json(self) -> Dict[str, str]:
        return asdict(self)


def session_url(rel: str, mount_prefix: str = SESSIONS_MOUNT_PREFIX) -> str:
    prefix = mount_prefix if mount_prefix.endswith("/") else mount_prefix + "/"
    return prefix + rel.lstrip("/")


def _skip(path: Union[str, Path], err: OSError) -> None:
    print(f"[SESSIONS] skip {path}: {err.__class__.__name__}: {err}", flush=True)


def iter_session_files(
    root_dir: Union[str, Path],
    *,
    suffix: str = SESSION_LOG_SUFFIX,
    mount_prefix: str = SESSIONS_MOUNT_PREFIX,
) -> Iterator[SessionFile]:
    root = Path(root_dir)
    try:
        if not stat.S_ISDIR(os.stat(root).st_mode):
            return
    except (FileNotFoundError, NotADirectoryError):
        return
    except OSError as e:
        # Unreachable root (EACCES on a parent, ENAMETOOLONG, ...) lists nothing.
        _skip(root, e)
        return

    stack: List[str] = [os.fspath(root)]
    while stack:
        current = stack.pop()
        try:
            with os.scandir(current) as it:
                entries = list(it)
        except OSError as e:
            _skip(current, e)
            continue

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(entry.path)
                elif entry.is_file(follow_symlinks=False) and entry.name.endswith(suffix):
                    rel = to_posix_rel(entry.path, root)
                    yield SessionFile(rel=rel, url=session_url(rel, mount_prefix))
            except OSError as e:
                _skip(entry.path, e)


def build_index(
    root_dir: Union[str, Path],
    *,
    suffix: str = SESSION_LOG_SUFFIX,
    mount_prefix: str = SESSIONS_MOUNT_PREFIX,
) -> List[SessionFile]:
    """
    Every matching file reachable from root_dir, exactly once, sorted by rel.
    """
    files = iter_session_files(root_dir, suffix=suffix, mount_prefix=mount_prefix)
    return sorted(files, key=lambda f: f.rel)


def manifest(files: Iterable[SessionFile]) -> List[Dict[str, Any]]:
    return [f.to_json() for f in files]
