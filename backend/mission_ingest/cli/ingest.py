"""CLI entrypoint that runs the ingestion service."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import signal
import sys

from mission_ingest.core.config import ensure_startup_ready, settings
from mission_ingest.core.errors import StartupConfigError
from mission_ingest.core.logging import configure_logging
from mission_ingest.services.ingestion.service import IngestionService


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m mission_ingest.cli.ingest",
        description="Tail OpenClaw logs and sync config documents into Mission Control.",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run the startup sync and one tail pass per file, then exit.",
    )
    return parser


async def run_service(service: IngestionService, *, once: bool) -> None:
    if once:
        try:
            await service.start()
        finally:
            await service.stop()
        return

    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError):
            loop.add_signal_handler(signum, service.watcher.stop)
    await service.run()


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        ensure_startup_ready(settings)
    except StartupConfigError as exc:
        print(f"ingest error: {exc}", file=sys.stderr)
        return 1

    configure_logging(level=settings.log_level, log_format=settings.log_format, use_utc=settings.log_use_utc)
    try:
        asyncio.run(run_service(IngestionService(), once=args.once))
    except KeyboardInterrupt:
        return 0
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
