#!/usr/bin/env python3
"""
Container entry point: release, then hand the process over to gunicorn.

Environment:
  PORT               listen port (default 8080)
  WEB_CONCURRENCY    gunicorn workers (default 2)
  GUNICORN_TIMEOUT   worker timeout in seconds (default 60)
  SKIP_RELEASE       "1" to boot without migrating

The login limiter is per worker process, so throttling counts are not shared
between workers.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


def _int_env(name: str, default: int, *, low: int, high: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        value = low - 1
    if not low <= value <= high:
        print(f"ERROR: {name}={raw!r} must be an integer between {low} and {high}.", flush=True)
        sys.exit(1)
    return value


def gunicorn_argv(port: int, workers: int, timeout: int) -> list[str]:
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    port = _int_env("PORT", 8080, low=1, high=65535)
    workers = _int_env("WEB_CONCURRENCY", 2, low=1, high=64)
    timeout = _int_env("GUNICORN_TIMEOUT", 60, low=1, high=3600)

    if (os.environ.get("SKIP_RELEASE") or "").strip() != "1":
        from scripts.release import run_release

        try:
            run_release()
        except Exception as e:
            print(f"Release failed: {e}", flush=True)
            sys.exit(1)

    print(f"=== gunicorn on 0.0.0.0:{port} ({workers} workers) ===", flush=True)
    os.execvp("gunicorn", gunicorn_argv(port, workers, timeout))


if __name__ == "__main__":
    main()
