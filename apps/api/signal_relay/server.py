"""Run the relay under uvicorn."""
from __future__ import annotations

import argparse

import uvicorn

from .core.config import settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--host", default=settings.host, help="interface to bind")
    parser.add_argument("--port", type=int, default=settings.port, help="port to listen on")
    parser.add_argument("--reload", action="store_true", help="restart on code changes")
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    uvicorn.run(
        "signal_relay.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
