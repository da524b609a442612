"""Feed monitor: poll feeds, race ingestion strategies per candidate, tally outcomes."""

from __future__ import annotations

import asyncio
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from biaz.errors import IngestionRejected
from biaz.extraction.acquire import ContentAcquirer, FetchStrategy
from biaz.extraction.images import USER_AGENT
from biaz.ingestion.article_types import FeedItem
from biaz.ingestion.feeds import FeedSource, fetch_feed
from biaz.ingestion.url_utils import canonicalize_url
from biaz.pipeline.ingest import IngestionOrchestrator
from biaz.storage.records import Article

logger = logging.getLogger(__name__)

STOCK_KEYWORDS = ["stock", "earnings", "revenue", "shares", "market", "aapl", "tsla", "nvda"]


def has_stock_keywords(title: str) -> bool:
    t = (title or "").lower()
    return any(k in t for k in STOCK_KEYWORDS)


@dataclass
class MonitorStats:
    found: int = 0
    ingested: int = 0
    cached: int = 0
    skipped: int = 0
    rejected: Counter = field(default_factory=Counter)
    failed: int = 0

    def merge(self, other: "MonitorStats") -> None:
        self.found += other.found
        self.ingested += other.ingested
        self.cached += other.cached
        self.skipped += other.skipped
        self.rejected.update(other.rejected)
        self.failed += other.failed

    def as_dict(self) -> Dict[str, Any]:
        return {
            "found": self.found,
            "ingested": self.ingested,
            "cached": self.cached,
            "skipped": self.skipped,
            "rejected": dict(self.rejected),
            "failed": self.failed,
        }


class FeedMonitor:
    def __init__(
        self,
        client: httpx.AsyncClient,
        repo: Any,
        orchestrator: IngestionOrchestrator,
        acquirer: ContentAcquirer,
        sources: Sequence[FeedSource],
        *,
        redirect_timeout: float = 10.0,
    ):
        self._client = client
        self._repo = repo
        self._orchestrator = orchestrator
        self._acquirer = acquirer
        self.sources = list(sources)
        self.redirect_timeout = redirect_timeout

    async def run_once(self) -> MonitorStats:
        logger.info(f"=== Starting feed monitoring ({len(self.sources)} sources) ===")
        results = await asyncio.gather(*(self._process_source(s) for s in self.sources), return_exceptions=True)
        total = MonitorStats()
        for source, result in zip(self.sources, results):
            if isinstance(result, Exception):
                logger.error(f"Feed {source.name} aborted: {result}")
                continue
            total.merge(result)
        logger.info(
            f"Feed monitoring complete: {total.found} found, {total.ingested} ingested, "
            f"{total.cached} cached, {total.skipped} skipped, "
            f"rejected {dict(total.rejected)}, {total.failed} failed"
        )
        return total

    async def _process_source(self, source: FeedSource) -> MonitorStats:
        stats = MonitorStats()
        try:
            items = await fetch_feed(self._client, source)
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Feed error ({source.name}): {e}")
            return stats

        new_items = 0
        for item in items[: source.max_examined]:
            stats.found += 1
            if not item.url:
                continue
            if source.keyword_filter and not has_stock_keywords(item.title):
                stats.skipped += 1
                continue

            url = canonicalize_url(await self.resolve_url(item.url))
            if await self._repo.article_exists(url):
                stats.cached += 1
                continue

            logger.info(f"Ingesting: {item.title}")
            outcome = await self._race(url, item)
            if isinstance(outcome, Article):
                if outcome.created:
                    stats.ingested += 1
                    new_items += 1
                else:
                    stats.cached += 1
            elif isinstance(outcome, IngestionRejected):
                stats.rejected[outcome.reason.value] += 1
            else:
                stats.failed += 1

            if new_items >= source.max_new:
                logger.info(f"Reached ingestion limit for {source.name}")
                break
        logger.info(f"{source.name}: {stats.as_dict()}")
        return stats

    async def resolve_url(self, url: str) -> str:
        """Follow redirects (e.g. Google News links); the original URL on failure."""
        try:
            resp = await self._client.head(
                url, follow_redirects=True, timeout=self.redirect_timeout, headers={"User-Agent": USER_AGENT}
            )
            return str(resp.url)
        except httpx.HTTPError as e:
            logger.debug(f"Could not resolve {url}: {e}")
            return url

    async def _race(self, url: str, item: FeedItem) -> Optional[Any]:
        """Run one ingestion per strategy; first success wins.

        Returns the Article, or the most informative error when all attempts fail.
        """
        strategies: List[FetchStrategy] = self._acquirer.strategy_order(item, None)
        pending = {
            asyncio.create_task(self._orchestrator.ingest(url=url, feed_item=item, strategy=s), name=s.value)
            for s in strategies
        }
        errors: List[BaseException] = []
        try:
            while pending:
                done, pending = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                for t in done:
                    if t.cancelled():
                        continue
                    exc = t.exception()
                    if exc is None:
                        logger.info(f"Strategy {t.get_name()} won for {url}")
                        return t.result()
                    logger.debug(f"Strategy {t.get_name()} failed for {url}: {exc}")
                    errors.append(exc)
        finally:
            for t in pending:
                t.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)

        for exc in errors:
            if isinstance(exc, IngestionRejected):
                logger.warning(f"Skipping {url}: {exc}")
                return exc
        logger.error(f"Failed to ingest {url}: {errors[-1] if errors else 'no strategy available'}")
        return errors[-1] if errors else None
