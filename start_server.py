#!/usr/bin/env python3
"""Run the Waywise API with uvicorn on ``$PORT`` (default 8000)."""

import os
import sys

import uvicorn


def _port() -> int:
    raw = os.environ.get("PORT", "8000")
    try:
        return int(raw)
    except ValueError:
        print(f"Warning: Invalid PORT value '{raw}', using default 8000", file=sys.stderr)
        return 8000


def main() -> None:
    sys.path.insert(0, os.path.abspath("src"))
    port = _port()
    print(f"Starting Waywise API on port {port}...", file=sys.stderr)
    # Single worker: the in-memory entity store lives in this process.
    uvicorn.run(
        "waywise.main:app",
        host="0.0.0.0",
        port=port,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
