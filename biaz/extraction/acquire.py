"""Content acquisition: pick a fetch strategy, fall back, and settle the lead image."""

from __future__ import annotations

import asyncio
import dataclasses
import logging
from enum import Enum
from typing import List, Optional

import httpx
from lxml import html as lxml_html

from biaz.errors import AcquisitionError
from biaz.extraction.direct import fetch_direct, fetch_html
from biaz.extraction.images import discover_image, validate_image_url
from biaz.extraction.managed import ManagedExtractor
from biaz.extraction.text_utils import html_to_text, leading_sentences
from biaz.ingestion.article_types import FeedItem, FetchedArticle
from biaz.ingestion.url_utils import source_domain

logger = logging.getLogger(__name__)


class FetchStrategy(str, Enum):
    FEED = "feed"
    HTTP = "http"
    MANAGED = "managed"


def article_from_feed_item(item: FeedItem, url: str) -> FetchedArticle:
    """Trust feed metadata without touching the page."""
    full_text = html_to_text(item.content_html) or (item.description or "")
    if not full_text.strip():
        raise AcquisitionError(f"feed item for {url} carries no text")
    summary = item.description or leading_sentences(full_text)
    return FetchedArticle(
        title=item.title or "Untitled",
        summary=summary,
        full_text=full_text,
        source_domain=item.source_domain or source_domain(url),
        published_at=item.published_at,
        image_url=item.image_url,
        url=url,
        strategy=FetchStrategy.FEED.value,
    )


class ContentAcquirer:
    def __init__(
        self,
        client: httpx.AsyncClient,
        managed: Optional[ManagedExtractor] = None,
        *,
        page_timeout: float = 10.0,
        managed_timeout: float = 60.0,
    ):
        self._client = client
        self._managed = managed
        self.page_timeout = page_timeout
        self.managed_timeout = managed_timeout

    def strategy_order(self, feed_item: Optional[FeedItem], pinned: Optional[FetchStrategy]) -> List[FetchStrategy]:
        if pinned is not None:
            return [FetchStrategy(pinned)]
        order: List[FetchStrategy] = []
        if feed_item is not None:
            order.append(FetchStrategy.FEED)
        if self._managed is not None:
            order.append(FetchStrategy.MANAGED)
        order.append(FetchStrategy.HTTP)
        return order

    async def _run(self, strategy: FetchStrategy, url: str, feed_item: Optional[FeedItem]) -> FetchedArticle:
        if strategy is FetchStrategy.FEED:
            if feed_item is None:
                raise AcquisitionError("feed strategy requires feed metadata")
            return article_from_feed_item(feed_item, url)
        if strategy is FetchStrategy.MANAGED:
            if self._managed is None:
                raise AcquisitionError("managed extraction is not configured")
            return await self._managed.fetch(url, timeout=self.managed_timeout)
        return await fetch_direct(self._client, url)

    def _timeout_for(self, strategy: FetchStrategy) -> float:
        return self.managed_timeout if strategy is FetchStrategy.MANAGED else self.page_timeout

    async def fetch(
        self,
        url: str,
        feed_item: Optional[FeedItem] = None,
        strategy: Optional[FetchStrategy] = None,
    ) -> FetchedArticle:
        failures = []
        for s in self.strategy_order(feed_item, strategy):
            try:
                article = await asyncio.wait_for(self._run(s, url, feed_item), timeout=self._timeout_for(s))
            except asyncio.TimeoutError:
                logger.warning(f"{s.value} fetch timed out for {url}")
                failures.append(f"{s.value}: timeout")
                continue
            except Exception as e:
                logger.warning(f"{s.value} fetch failed for {url}: {e}")
                failures.append(f"{s.value}: {e}")
                continue
            logger.info(f"Fetched via {s.value}: {article.title[:80]}")
            return await self._settle_image(article, url)
        raise AcquisitionError(f"All fetch methods failed for {url}: " + "; ".join(failures))

    async def _settle_image(self, article: FetchedArticle, url: str) -> FetchedArticle:
        image = article.image_url
        if not image and article.strategy != FetchStrategy.HTTP.value:
            image = await self._discover_from_page(url)
        if image and not await validate_image_url(self._client, image, timeout=self.page_timeout):
            logger.info(f"Discarding unusable image {image}")
            image = None
        if image == article.image_url:
            return article
        return dataclasses.replace(article, image_url=image)

    async def _discover_from_page(self, url: str) -> Optional[str]:
        try:
            html = await asyncio.wait_for(fetch_html(self._client, url), timeout=self.page_timeout)
            return discover_image(lxml_html.fromstring(html), url)
        except Exception as e:
            logger.debug(f"Image discovery failed for {url}: {e}")
            return None
