#!/usr/bin/env python3
"""Run the share-packet service with explicit args (avoids shell interpolation)."""
from __future__ import annotations

import argparse

import uvicorn

from share_packets import create_app_from_env


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser()
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    uvicorn.run(create_app_from_env(), host=args.host, port=args.port)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
