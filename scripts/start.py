#!/usr/bin/env python3
"""
Container entrypoint: run the release phase, then exec gunicorn.

  PORT             listen port (default 8080)
  WEB_CONCURRENCY  gunicorn workers (default 2)
  GUNICORN_TIMEOUT worker timeout in seconds (default 60)
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

DEFAULT_PORT = 8080


def parse_port(raw: str | None) -> int:
    if not (raw or "").strip():
        return DEFAULT_PORT
    port = int(raw.strip())
    if not 1 <= port <= 65535:
        raise ValueError(f"port {port} out of range")
    return port


def gunicorn_argv(port: str, workers: str, timeout: str = "60") -> list[str]:
    # --preload imports the app once; create_app() disposes the engine in each forked worker.
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", workers,
        "--timeout", timeout,
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    try:
        port = parse_port(os.environ.get("PORT"))
    except ValueError:
        print(f"ERROR: PORT must be an integer 1-65535, got {os.environ.get('PORT')!r}", flush=True)
        sys.exit(1)

    from scripts.release import run_release

    try:
        run_release()
    except Exception as e:
        print(f"Release failed: {e}", flush=True)
        sys.exit(1)

    argv = gunicorn_argv(
        str(port),
        (os.environ.get("WEB_CONCURRENCY") or "2").strip(),
        (os.environ.get("GUNICORN_TIMEOUT") or "60").strip(),
    )
    print("exec " + " ".join(argv), flush=True)
    os.execvp("gunicorn", argv)


if __name__ == "__main__":
    main()
