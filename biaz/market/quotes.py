"""Stock quotes via Stooq (free daily OHLCV CSV) with a short in-process cache."""

from __future__ import annotations

import asyncio
import csv
import io
import logging
import time
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple

import httpx

from biaz.storage.records import StockQuote
from biaz.symbols.known_symbols import placeholder_info

logger = logging.getLogger(__name__)

STOOQ_DAILY = "https://stooq.com/q/d/l/"


@dataclass(frozen=True)
class DailyBar:
    symbol: str
    date: date
    close: float
    source: str = "stooq"


def normalize_symbol(ticker: str) -> Optional[str]:
    """Best-effort mapping from tickers to Stooq symbols.

    Notes:
    - Most US equities/ETFs: {ticker}.us
    - Class shares use a dash on Stooq (BRK.B -> brk-b.us)
    - Indices and some assets (e.g. VIX) are not available; return None.
    """
    if not ticker:
        return None
    t = str(ticker).strip().upper()
    if not t:
        return None
    # Reject obviously non-symbol strings
    if any(ch in t for ch in (" ", "/", "\\", ":", ";", ",")):
        return None
    if t in {"VIX"} or t.startswith("^"):
        return None
    if "." in t:
        head, _, cls = t.partition(".")
        if head.isalpha() and cls.isalpha() and len(cls) == 1:
            return f"{head.lower()}-{cls.lower()}.us"
        return None
    if t.isalpha() and 1 <= len(t) <= 5:
        return t.lower() + ".us"
    return None


def parse_daily_csv(symbol: str, text: str) -> List[DailyBar]:
    if not text or text.strip().lower().startswith("no data"):
        return []
    reader = csv.DictReader(io.StringIO(text))
    out: List[DailyBar] = []
    for row in reader:
        try:
            d = datetime.strptime(row["Date"], "%Y-%m-%d").date()
            close = float(row["Close"])
        except (KeyError, TypeError, ValueError):
            continue
        out.append(DailyBar(symbol=symbol, date=d, close=close))
    out.sort(key=lambda b: b.date)
    return out


class QuoteService:
    """Latest price and daily percent change per ticker, cached for `ttl_seconds`."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        ttl_seconds: int = 15 * 60,
        timeout: float = 15.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._client = client
        self.ttl_seconds = ttl_seconds
        self.timeout = timeout
        self._clock = clock
        self._cache: Dict[str, Tuple[float, StockQuote]] = {}
        self._lock = asyncio.Lock()

    async def _fetch_daily(self, stooq_symbol: str) -> List[DailyBar]:
        start = (datetime.now(timezone.utc) - timedelta(days=14)).strftime("%Y%m%d")
        resp = await self._client.get(
            STOOQ_DAILY,
            params={"s": stooq_symbol, "i": "d", "d1": start},
            headers={"User-Agent": "BIAZ-Finance/1.0"},
            timeout=self.timeout,
        )
        resp.raise_for_status()
        return parse_daily_csv(stooq_symbol, resp.text)

    async def get_quote(self, symbol: str) -> Optional[StockQuote]:
        """Returns None when the provider has nothing for the ticker."""
        sym = (symbol or "").strip().upper()
        async with self._lock:
            hit = self._cache.get(sym)
            if hit and self._clock() - hit[0] < self.ttl_seconds:
                return hit[1]

        stooq_symbol = normalize_symbol(sym)
        if not stooq_symbol:
            return None
        try:
            bars = await self._fetch_daily(stooq_symbol)
        except httpx.HTTPError as e:
            logger.warning(f"Quote fetch failed for {sym}: {e}")
            return None
        if not bars:
            logger.info(f"No quote data for {sym}")
            return None

        last = bars[-1]
        change = None
        if len(bars) > 1 and bars[-2].close:
            change = round((last.close - bars[-2].close) / bars[-2].close * 100.0, 2)
        name, exchange, sector = placeholder_info(sym)
        quote = StockQuote(
            symbol=sym,
            name=name,
            exchange=exchange,
            sector=sector,
            current_price=last.close,
            change_percent=change,
            updated_at=datetime.now(timezone.utc),
        )
        async with self._lock:
            self._cache[sym] = (self._clock(), quote)
        return quote
