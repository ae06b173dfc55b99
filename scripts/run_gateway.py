#!/usr/bin/env python3
"""Run the relay gateway with explicit args (avoids shell interpolation)."""
from __future__ import annotations

import argparse

import uvicorn

from relay_gateway.app import create_app_from_env


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    app = create_app_from_env()
    # Logging is configured by create_app_from_env(); keep uvicorn's hands off.
    uvicorn.run(app, host=args.host, port=args.port, log_config=None)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
