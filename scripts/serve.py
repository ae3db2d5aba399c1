#!/usr/bin/env python3
"""Launch the lead scoring API."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path

import uvicorn

from leadscore.api import create_app
from leadscore.config import load_settings

DEFAULT_CONFIG = Path("config/config.yaml")
DEFAULT_SCHEMA = Path("config/schema.yaml")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Serve the lead scoring API")
    parser.add_argument("--config", type=Path, default=DEFAULT_CONFIG)
    parser.add_argument("--schema", type=Path, default=DEFAULT_SCHEMA)
    parser.add_argument("--host", type=str, default=None)
    parser.add_argument("--port", type=int, default=None)
    parser.add_argument("--log-level", type=str, default="info")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(args.config, args.schema if args.schema.exists() else None)
    app = create_app(settings=settings)
    uvicorn.run(
        app,
        host=args.host or settings.serving.host,
        port=args.port or settings.serving.port,
        log_level=args.log_level,
    )


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    main()
