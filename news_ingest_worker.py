#!/usr/bin/env python3
"""Feed monitoring worker.

Runs one monitoring cycle (or scheduled) over:
- curated RSS feeds (keyword-filtered titles)
- Google News search queries (redirects resolved)

Every new candidate goes through the full ingestion pipeline.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time

import schedule
from dotenv import load_dotenv

from biaz.config import Settings, configure_logging
from biaz.services import Services

logger = logging.getLogger("news_ingest_worker")


async def _cycle(settings: Settings) -> dict:
    services = Services.build(settings)
    try:
        await services.start()
        stats = await services.monitor.run_once()
        return stats.as_dict()
    finally:
        await services.close()


def run_once() -> None:
    load_dotenv()
    settings = Settings.from_env()
    stats = asyncio.run(_cycle(settings))
    logger.info(f"[ingest] {stats}")


def run_scheduled() -> None:
    load_dotenv()
    interval = Settings.from_env().monitor_interval_minutes
    run_once()
    schedule.every(interval).minutes.do(run_once)
    while True:
        schedule.run_pending()
        time.sleep(5)


if __name__ == "__main__":
    configure_logging()
    mode = (os.environ.get("INGEST_MODE") or "once").lower().strip()
    if mode in ("scheduled", "daemon"):
        run_scheduled()
    else:
        run_once()
