"""
Command-line entry point: ship lines from stdin or a file.

Every non-empty input line becomes one record. Flags override the
``LOGSHIP_TRANSPORT__*`` environment variables.
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import IO, Sequence

from ..core.errors import ConfigurationError
from ..core.record import build_record
from ..transport.https import HTTPSTransport


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="logship",
        description="Ship log lines to a remote ingestion endpoint in batches.",
    )
    parser.add_argument("--api-key", help="Ingestion API key")
    parser.add_argument("--host", dest="host_name", help="Destination host")
    parser.add_argument("--port", type=int, help="Destination port")
    parser.add_argument("--path", help="Destination path")
    parser.add_argument(
        "--flush-interval-ms", type=int, help="Milliseconds between flushes"
    )
    parser.add_argument(
        "--high-water-mark", type=int, help="Queued records that force a flush"
    )
    parser.add_argument("--level", default="info", help="Level for each record")
    parser.add_argument(
        "--file",
        type=argparse.FileType("r", encoding="utf-8"),
        help="Read lines from this file instead of stdin",
    )
    return parser


async def ship_lines(
    transport: HTTPSTransport, stream: IO[str], *, level: str = "info"
) -> int:
    count = 0
    while True:
        # Blocking reads run off the loop so the flush timer keeps firing
        # while the source is idle
        raw = await asyncio.to_thread(stream.readline)
        if not raw:
            break
        line = raw.rstrip("\r\n")
        if not line:
            continue
        transport.write(build_record(line, level=level))
        count += 1
    return count


async def main(argv: Sequence[str] | None = None) -> int:
    """Main CLI entry point."""
    args = build_parser().parse_args(argv)
    options = {
        key: value
        for key, value in (
            ("host_name", args.host_name),
            ("port", args.port),
            ("path", args.path),
            ("flush_interval_ms", args.flush_interval_ms),
            ("high_water_mark", args.high_water_mark),
        )
        if value is not None
    }
    try:
        transport = HTTPSTransport(args.api_key, **options)
    except ConfigurationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    stream = args.file or sys.stdin
    try:
        async with transport:
            count = await ship_lines(transport, stream, level=args.level)
    finally:
        if args.file is not None:
            args.file.close()
    print(f"shipped {count} record(s)", file=sys.stderr)
    return 0


def cli_main() -> int:
    """CLI main function for non-async entry."""
    return asyncio.run(main())


if __name__ == "__main__":
    sys.exit(cli_main())
