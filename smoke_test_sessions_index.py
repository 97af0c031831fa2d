"""
Live smoke test against a running dev server.

    python server.py &
    python smoke_test_sessions_index.py

Writes a few session logs under the sessions root, then checks that the
index lists them, that each url is fetchable, and that tones are sticky.
"""
import asyncio
import json
import os
import sys
import uuid
from pathlib import Path

import aiohttp

HTTP_BASE = (os.environ.get("DEVSERVER_SMOKE_BASE") or "http://localhost:5172").rstrip("/")

SESSIONS_ROOT = Path(
    os.environ.get("SESSIONS_ROOT_PATH") or (Path.cwd() / "sessions")
).resolve()
SMOKE_DIR = SESSIONS_ROOT / f"_smoke_{uuid.uuid4().hex[:8]}"

FIXTURES = {
    "run1.jsonl": [{"type": "user", "text": "hello"}],
    "nested/run2.jsonl": [{"type": "assistant", "text": "hi"}, {"type": "user", "text": "bye"}],
    "nested/notes.txt": None,
}


def write_fixtures() -> None:
    for rel, rows in FIXTURES.items():
        p = SMOKE_DIR / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        if rows is None:
            p.write_text("not a session log\n", encoding="utf-8")
        else:
            p.write_text("".join(json.dumps(r) + "\n" for r in rows), encoding="utf-8")


def cleanup_fixtures() -> None:
    for p in sorted(SMOKE_DIR.rglob("*"), reverse=True):
        if p.is_dir():
            p.rmdir()
        else:
            p.unlink()
    if SMOKE_DIR.exists():
        SMOKE_DIR.rmdir()


async def check_index(session: aiohttp.ClientSession) -> None:
    # Any method rebuilds the index.
    for method in ("GET", "POST"):
        async with session.request(method, f"{HTTP_BASE}/__sessions_index") as resp:
            assert resp.status == 200, f"{method} index status {resp.status}"
            assert resp.content_type == "application/json", resp.content_type
            entries = await resp.json()

        prefix = SMOKE_DIR.name + "/"
        mine = sorted(e["rel"] for e in entries if e["rel"].startswith(prefix))
        expected = sorted(prefix + r for r, rows in FIXTURES.items() if rows is not None)
        assert mine == expected, f"{method} index mismatch: {mine} != {expected}"

    for e in entries:
        if not e["rel"].startswith(SMOKE_DIR.name + "/"):
            continue
        async with session.get(f"{HTTP_BASE}{e['url']}") as resp:
            assert resp.status == 200, f"fetch {e['url']} -> {resp.status}"
            body = await resp.text()
            assert body.strip(), f"empty body for {e['url']}"
    print("[SMOKE] sessions index OK")


async def check_tones(session: aiohttp.ClientSession) -> None:
    async with session.get(f"{HTTP_BASE}/tones") as resp:
        palette = (await resp.json())["tones"]
    assert palette, "empty palette"

    seen = {}
    for name in ("smoke-x", "smoke-y", "smoke-y", "smoke-x"):
        async with session.get(f"{HTTP_BASE}/tone", params={"project": name}) as resp:
            tone = (await resp.json())["tone"]
        assert tone in palette, tone
        assert seen.setdefault(name, tone) == tone, f"tone changed for {name}"
    print("[SMOKE] tones OK")


async def main() -> int:
    write_fixtures()
    try:
        async with aiohttp.ClientSession() as session:
            await check_index(session)
            await check_tones(session)
    except AssertionError as e:
        print(f"[SMOKE] FAILED: {e}")
        return 1
    except aiohttp.ClientError as e:
        print(f"[SMOKE] server unreachable at {HTTP_BASE}: {e!r}")
        return 2
    finally:
        cleanup_fixtures()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
