"""Periodic refresh of stored stock quotes."""

from __future__ import annotations

import logging
from typing import Any

from biaz.market.quotes import QuoteService

logger = logging.getLogger(__name__)


async def refresh_stale_quotes(repo: Any, quotes: QuoteService, *, max_age_minutes: int = 15) -> int:
    """Refresh every stock not updated within `max_age_minutes`; returns how many were updated."""
    symbols = await repo.stocks_needing_update(max_age_minutes)
    logger.info(f"{len(symbols)} stocks need a price update")
    updated = 0
    for symbol in symbols:
        quote = await quotes.get_quote(symbol)
        if quote is None:
            logger.warning(f"No quote for {symbol}, keeping stored price")
            continue
        await repo.upsert_stock(quote)
        updated += 1
    return updated
