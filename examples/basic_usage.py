"""
Basic usage example for logship.

Ships a few structured records in batches, both directly through the
transport and through the standard ``logging`` module.
"""

import asyncio
import logging
import os

from logship import HTTPSTransport, build_record, enable_stdlib_bridge


async def main() -> None:
    """Demonstrate direct writes and the logging bridge."""

    api_key = os.environ.get("LOGSHIP_TRANSPORT__API_KEY", "demo-key")

    # Flush every 500ms, or as soon as 100 records are queued
    async with HTTPSTransport(
        api_key, flush_interval_ms=500, high_water_mark=100
    ) as transport:
        transport.write(build_record("Application started", meta={"env": "dev"}))

        transport.write(
            build_record(
                "User signed up",
                events={"signup": {"plan": "pro", "user_id": "12345"}},
            ),
            callback=lambda err, accepted: print(f"accepted={accepted}"),
        )

        # Several records land in the same batch
        transport.write_many(
            build_record(f"Processed item {i}", level="debug") for i in range(10)
        )

        # Route stdlib logging through the same transport
        logger = logging.getLogger("example")
        handler = enable_stdlib_bridge(transport, logger=logger)
        logger.info("Order placed", extra={"order_id": 7})
        logger.removeHandler(handler)

        await transport.flush()
        print(f"healthy={await transport.health_check()}")


if __name__ == "__main__":
    asyncio.run(main())
