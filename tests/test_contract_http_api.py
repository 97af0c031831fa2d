from __future__ import annotations

import io
import os
import sys
import tempfile
import time
from contextlib import redirect_stdout
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

from aiohttp import web
from aiohttp.test_utils import AioHTTPTestCase

REPO_ROOT = Path(__file__).resolve().parents[1]
RUNTIME_DIR = REPO_ROOT / "runtime"
if str(RUNTIME_DIR) not in sys.path:
    sys.path.insert(0, str(RUNTIME_DIR))

import http_api  # noqa: E402
from tone_engine import ToneAllocator  # noqa: E402


class TestHttpApiContract(AioHTTPTestCase):
    async def get_application(self) -> web.Application:
        td = tempfile.TemporaryDirectory()
        self.addCleanup(td.cleanup)
        self.root = Path(td.name)
        for rel, text in {
            "a/b.jsonl": '{"type": "user"}\n',
            "a/c.txt": "notes\n",
            "d.jsonl": '{"type": "assistant"}\n',
        }.items():
            p = self.root / rel
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(text, encoding="utf-8")

        self.ctx = SimpleNamespace(
            resolve_sessions_root=lambda: self.root,
            TONES=ToneAllocator(),
            ENV={"SESSIONS_ROOT_PATH": str(self.root), "HOME": "/root"},
            HOST="127.0.0.1",
            HTTP_PORT=5172,
            SERVER_START_TIME=time.time(),
        )
        app = web.Application()
        http_api.register_routes(app, ctx=self.ctx)
        return app

    async def test_sessions_index_json(self) -> None:
        resp = await self.client.request("GET", "/__sessions_index")
        self.assertEqual(resp.status, 200)
        self.assertEqual(resp.content_type, "application/json")
        body = await resp.json()
        self.assertEqual(
            sorted(body, key=lambda e: e["rel"]),
            [
                {"rel": "a/b.jsonl", "url": "/sessions/a/b.jsonl"},
                {"rel": "d.jsonl", "url": "/sessions/d.jsonl"},
            ],
        )
        self.assertIn("no-store", resp.headers.get("Cache-Control", ""))

    async def test_sessions_index_any_method(self) -> None:
        for method in ("POST", "PUT", "DELETE"):
            resp = await self.client.request(method, "/__sessions_index")
            self.assertEqual(resp.status, 200, method)
            self.assertEqual(len(await resp.json()), 2, method)

    async def test_sessions_index_rebuilt_per_request(self) -> None:
        (self.root / "new.jsonl").write_text("{}\n", encoding="utf-8")
        resp = await self.client.request("GET", "/__sessions_index")
        rels = {e["rel"] for e in await resp.json()}
        self.assertIn("new.jsonl", rels)

    async def test_sessions_index_missing_root_is_empty_list(self) -> None:
        self.root = self.root / "missing"
        resp = await self.client.request("GET", "/__sessions_index")
        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), [])

    async def test_sessions_index_unreachable_root_is_empty_list(self) -> None:
        real_stat = os.stat
        root = os.fspath(self.root)

        def stat(path, *args, **kwargs):
            if os.fspath(path) == root:
                raise PermissionError(13, "Permission denied", root)
            return real_stat(path, *args, **kwargs)

        with mock.patch("session_index.os.stat", side_effect=stat):
            with redirect_stdout(io.StringIO()):
                resp = await self.client.request("GET", "/__sessions_index")
        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), [])

    async def test_session_file_served_at_manifest_url(self) -> None:
        resp = await self.client.request("GET", "/sessions/a/b.jsonl")
        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.text(), '{"type": "user"}\n')

    async def test_session_file_missing_is_404(self) -> None:
        resp = await self.client.request("GET", "/sessions/a/nope.jsonl")
        self.assertEqual(resp.status, 404)

    async def test_session_file_invalid_path_is_400(self) -> None:
        resp = await self.client.request("GET", "/sessions/C:/x.jsonl")
        self.assertEqual(resp.status, 400)

    async def test_session_file_symlink_outside_root_is_403(self) -> None:
        outside = tempfile.TemporaryDirectory()
        self.addCleanup(outside.cleanup)
        target = Path(outside.name) / "secret.jsonl"
        target.write_text("{}\n", encoding="utf-8")
        try:
            os.symlink(target, self.root / "escape.jsonl")
        except (OSError, NotImplementedError, AttributeError):
            self.skipTest("cannot create symlinks here")

        resp = await self.client.request("GET", "/sessions/escape.jsonl")
        self.assertEqual(resp.status, 403)

    async def test_tones_palette(self) -> None:
        resp = await self.client.request("GET", "/tones")
        body = await resp.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["tones"], list(self.ctx.TONES.palette))

    async def test_tone_assignment_is_sticky(self) -> None:
        got = {}
        for name in ("X", "Y", "Y", "X"):
            resp = await self.client.request("GET", "/tone", params={"project": name})
            body = await resp.json()
            self.assertEqual(body["project"], name)
            self.assertEqual(got.setdefault(name, body["tone"]), body["tone"])
        self.assertNotEqual(got["X"], got["Y"])

    async def test_tone_without_project(self) -> None:
        r1 = await (await self.client.request("GET", "/tone")).json()
        r2 = await (await self.client.request("GET", "/tone", params={"project": ""})).json()
        self.assertEqual(r1["tone"], r2["tone"])

    async def test_health(self) -> None:
        resp = await self.client.request("GET", "/health")
        body = await resp.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["sessions_root"], str(self.root))
        self.assertTrue(body["sessions_root_exists"])
        self.assertEqual(body["tones_total"], len(self.ctx.TONES.palette))

    async def test_capabilities(self) -> None:
        resp = await self.client.request("GET", "/capabilities")
        body = await resp.json()
        ids = {c["id"] for c in body["capabilities"]}
        self.assertIn("http.sessions.index", ids)
        self.assertIn("http.tones", ids)

    async def test_client_env(self) -> None:
        resp = await self.client.request("GET", "/__env")
        body = await resp.json()
        self.assertEqual(body["env"], {"SESSIONS_ROOT_PATH": str(self.root)})
