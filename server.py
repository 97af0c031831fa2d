"""
Root shim entrypoint: forwards execution to the runtime dev server.

Users should run: python server.py        (serve)
                  python server.py --smoke (offline checks)
"""


from __future__ import annotations

import runpy
from pathlib import Path
import sys

HERE = Path(__file__).resolve().parent
TARGET = HERE / "runtime" / "devserver.py"

print("ROOT SHIM:", __file__)
print("TARGET:", TARGET)

if not TARGET.exists():
    raise SystemExit(f"[FATAL] Missing runtime server at: {TARGET}")

# Runtime modules import each other by bare name.
sys.path.insert(0, str(TARGET.parent))

runpy.run_path(str(TARGET), run_name="__main__")
