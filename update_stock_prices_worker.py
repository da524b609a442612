#!/usr/bin/env python3
"""Stock price refresh worker.

Refreshes quotes for every stored stock not updated in the last 15 minutes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import time

import httpx
import schedule
from dotenv import load_dotenv

from biaz.config import Settings, configure_logging
from biaz.market.quotes import QuoteService
from biaz.market.refresh import refresh_stale_quotes
from biaz.storage.postgres_repo import PostgresRepo
from biaz.storage.postgres_schema import ensure_postgres_schema

logger = logging.getLogger("update_stock_prices_worker")


async def _refresh(settings: Settings) -> int:
    await ensure_postgres_schema(settings.pg_dsn)
    async with httpx.AsyncClient() as client:
        quotes = QuoteService(client, ttl_seconds=settings.quote_cache_ttl)
        return await refresh_stale_quotes(PostgresRepo(settings.pg_dsn), quotes)


def run_once() -> None:
    load_dotenv()
    updated = asyncio.run(_refresh(Settings.from_env()))
    logger.info(f"[prices] updated={updated}")


def run_scheduled() -> None:
    run_once()
    schedule.every(15).minutes.do(run_once)
    while True:
        schedule.run_pending()
        time.sleep(5)


if __name__ == "__main__":
    configure_logging()
    mode = (os.environ.get("PRICES_MODE") or "once").lower().strip()
    if mode in ("scheduled", "daemon"):
        run_scheduled()
    else:
        run_once()
