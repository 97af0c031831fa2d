from __future__ import annotations

import sys
import tempfile
import unittest
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
RUNTIME_DIR = REPO_ROOT / "runtime"
if str(RUNTIME_DIR) not in sys.path:
    sys.path.insert(0, str(RUNTIME_DIR))

import devserver_config as cfg  # noqa: E402
from path_engine import now_iso, safe_session_rel, to_posix_rel  # noqa: E402


class TestSessionsRootResolutionContract(unittest.TestCase):
    def test_env_override_wins(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            got = cfg.resolve_sessions_root({"SESSIONS_ROOT_PATH": td}, cwd=Path("/elsewhere"))
            self.assertEqual(got, Path(td).resolve())

    def test_default_is_sessions_under_cwd(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            got = cfg.resolve_sessions_root({}, cwd=Path(td))
            self.assertEqual(got, (Path(td) / "sessions").resolve())

    def test_blank_env_falls_back_to_default(self) -> None:
        with tempfile.TemporaryDirectory() as td:
            got = cfg.resolve_sessions_root({"SESSIONS_ROOT_PATH": "   "}, cwd=Path(td))
            self.assertEqual(got, (Path(td) / "sessions").resolve())

    def test_default_cwd_is_process_cwd(self) -> None:
        self.assertEqual(cfg.resolve_sessions_root({}), (Path.cwd() / "sessions").resolve())


class TestHostPortContract(unittest.TestCase):
    def test_defaults(self) -> None:
        self.assertEqual(cfg.read_host({}), "0.0.0.0")
        self.assertEqual(cfg.read_port({}), 5172)

    def test_overrides(self) -> None:
        self.assertEqual(cfg.read_host({"DEVSERVER_HOST": " 127.0.0.1 "}), "127.0.0.1")
        self.assertEqual(cfg.read_port({"DEVSERVER_PORT": "8080"}), 8080)

    def test_invalid_port_is_fatal_config(self) -> None:
        for bad in ("abc", "0", "70000", "-1"):
            with self.subTest(bad=bad):
                with self.assertRaises(ValueError):
                    cfg.read_port({"DEVSERVER_PORT": bad})


class TestClientEnvContract(unittest.TestCase):
    def test_only_prefixed_vars_exposed(self) -> None:
        env = {
            "SESSIONS_ROOT_PATH": "/data/sessions",
            "DEVSERVER_PORT": "5172",
            "HOME": "/root",
            "OPENAI_API_KEY": "secret",
        }
        self.assertEqual(
            cfg.client_env(env),
            {"DEVSERVER_PORT": "5172", "SESSIONS_ROOT_PATH": "/data/sessions"},
        )


class TestPathEngineContract(unittest.TestCase):
    def test_to_posix_rel(self) -> None:
        base = Path("/r")
        self.assertEqual(to_posix_rel(base / "a" / "b.jsonl", base), "a/b.jsonl")
        self.assertEqual(to_posix_rel("/r/d.jsonl", "/r"), "d.jsonl")

    def test_to_posix_rel_rewrites_backslashes_in_names(self) -> None:
        self.assertEqual(to_posix_rel("/r/a\\b.jsonl", "/r"), "a/b.jsonl")

    def test_safe_session_rel(self) -> None:
        cases = {
            "a/b.jsonl": "a/b.jsonl",
            "a\\b.jsonl": "a/b.jsonl",
            "./a//b.jsonl": "a/b.jsonl",
            "": "",
            "/etc/passwd": "",
            "../x.jsonl": "",
            "a/../../x.jsonl": "",
            "C:/x.jsonl": "",
        }
        for raw, want in cases.items():
            with self.subTest(raw=raw):
                self.assertEqual(safe_session_rel(raw), want)

    def test_now_iso_shape(self) -> None:
        s = now_iso()
        self.assertRegex(s, r"^\d{4}-\d\d-\d\dT\d\d:\d\d:\d\dZ$")


if __name__ == "__main__":
    unittest.main(verbosity=2)
