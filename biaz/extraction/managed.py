"""Managed extraction through the Apify website content crawler."""

from __future__ import annotations

import logging
from typing import Any, Dict

import httpx

from biaz.errors import AcquisitionError
from biaz.extraction.images import absolute_url
from biaz.extraction.text_utils import truncate
from biaz.ingestion.article_types import FetchedArticle
from biaz.ingestion.feeds import parse_dt
from biaz.ingestion.url_utils import source_domain

logger = logging.getLogger(__name__)

APIFY_RUN_SYNC = "https://api.apify.com/v2/acts/{actor}/run-sync-get-dataset-items"


def _title_from_text(text: str) -> str:
    lines = [line for line in text.split("\n") if line.strip()]
    return lines[0].strip()[:200] if lines else "Untitled Article"


def article_from_item(item: Dict[str, Any], url: str) -> FetchedArticle:
    metadata = item.get("metadata") or {}
    full_text = (item.get("text") or item.get("markdown") or "").strip()
    if not full_text:
        raise AcquisitionError(f"managed extraction returned no text for {url}")
    title = (metadata.get("title") or "").strip() or _title_from_text(full_text)
    summary = (metadata.get("description") or "").strip() or truncate(full_text, 300)
    image = metadata.get("image") or metadata.get("ogImage")
    return FetchedArticle(
        title=title,
        summary=summary,
        full_text=full_text,
        source_domain=source_domain(url),
        published_at=parse_dt(metadata.get("publishedTime")),
        image_url=absolute_url(image, url) if image else None,
        url=url,
        strategy="managed",
    )


class ManagedExtractor:
    def __init__(self, client: httpx.AsyncClient, api_token: str, actor: str = "apify~website-content-crawler"):
        self._client = client
        self._token = api_token
        self._actor = actor

    async def fetch(self, url: str, *, timeout: float = 60.0) -> FetchedArticle:
        payload = {"startUrls": [{"url": url}], "maxCrawlDepth": 0, "maxCrawlPages": 1}
        try:
            resp = await self._client.post(
                APIFY_RUN_SYNC.format(actor=self._actor),
                params={"token": self._token},
                json=payload,
                timeout=timeout,
            )
            resp.raise_for_status()
            items = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise AcquisitionError(f"managed extraction failed for {url}: {e}") from e
        if not isinstance(items, list) or not items:
            raise AcquisitionError(f"No content extracted from {url}")
        article = article_from_item(items[0], url)
        logger.info(f"Fetched {url} via managed extraction ({len(article.full_text)} chars)")
        return article
