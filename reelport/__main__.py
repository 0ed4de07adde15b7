"""Module executed when running ``python -m reelport``."""

from __future__ import annotations

import argparse
from typing import Sequence

import uvicorn

from app.config import settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="reelport",
        description="Serve the watch-history import/export API.",
    )
    parser.add_argument("--host", default=settings.server_host, help="Interface to bind")
    parser.add_argument("--port", type=int, default=settings.server_port, help="Port to bind")
    parser.add_argument(
        "--reload",
        action=argparse.BooleanOptionalAction,
        default=settings.environment == "development",
        help="Restart the server when source files change",
    )
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    """Start uvicorn; command line flags override the environment settings."""

    args = build_parser().parse_args(argv)
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
