import asyncio

import structlog

from mintstats.app import MintStatsApp
from mintstats.core.config import settings
from mintstats.core.logging import Logger
from mintstats.core.logging import configure as configure_logging
from mintstats.snapshot import MintStats

configure_logging()

logger: Logger = structlog.get_logger()


async def log_snapshot(snapshot: MintStats) -> None:
    logger.info(
        "Mint stats updated",
        total_minted=snapshot.total_minted,
        recent=len(snapshot.recent_mints),
        is_loading=snapshot.is_loading,
        error=snapshot.error,
    )


async def main():
    logger.info("Starting mintstats...")
    app = MintStatsApp(settings, on_change=log_snapshot)

    await app.run()

    await logger.ainfo("mintstats finished")


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
