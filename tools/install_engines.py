#!/usr/bin/env python3
"""
Verify that the inference engine runtimes (torch, onnxruntime) are usable.

Usage:
  python tools/install_engines.py
  python tools/install_engines.py --engines torchscript onnx --no-import

Exits with code 0 when every requested engine is available, 1 otherwise.
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

# Ensure repo root on path for 'zooci' imports when run from any CWD
_repo_root = Path(__file__).resolve().parents[1]
if str(_repo_root) not in sys.path:
    sys.path.insert(0, str(_repo_root))

from zooci.engine import EngineInstaller
from zooci.models import list_engines


def parse_args():
    ap = argparse.ArgumentParser(description="Check zooci engine runtimes")
    ap.add_argument("--engines", nargs="*", default=None, help=f"Engines to check (default: {list(list_engines())})")
    ap.add_argument("--no-import", action="store_true", help="Only locate runtimes, do not import them")
    ap.add_argument("--progress", action="store_true", help="Show a progress bar")
    return ap.parse_args()


def main():
    args = parse_args()
    installer = EngineInstaller(args.engines, import_runtimes=not args.no_import)
    events = installer.run(progress=args.progress)
    ok = True
    for name in installer.engines:
        ev = events.get(name)
        status = "OK" if ev is not None and ev.available else "MISSING"
        ok = ok and status == "OK"
        print(f"{name:20s} {status:8s} {ev.detail if ev is not None else ''}")
    return 0 if ok else 1


if __name__ == "__main__":
    raise SystemExit(main())
