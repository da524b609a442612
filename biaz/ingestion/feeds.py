"""Feed sources (RSS/Atom and Google News search) normalized into FeedItem."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Any, List, Optional, Sequence
from urllib.parse import quote_plus

import feedparser
import httpx
from lxml import html as lxml_html
from lxml.etree import ParserError

from biaz.extraction.images import USER_AGENT, absolute_url, first_image_in_markup
from biaz.extraction.text_utils import html_to_text
from biaz.ingestion.article_types import FeedItem
from biaz.ingestion.url_utils import source_domain

logger = logging.getLogger(__name__)

GOOGLE_NEWS_SEARCH = "https://news.google.com/rss/search?q={query}&hl=en-US&gl=US&ceid=US:en"


def parse_dt(dt: Any) -> Optional[datetime]:
    if not dt:
        return None
    if isinstance(dt, datetime):
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    s = str(dt).strip()
    if not s:
        return None
    s = s.replace("Z", "+00:00")
    if " " in s and "T" not in s and "," not in s:
        s = s.replace(" ", "T", 1)
    try:
        parsed = datetime.fromisoformat(s)
    except ValueError:
        # RFC 822 dates are the RSS norm
        try:
            parsed = parsedate_to_datetime(str(dt).strip())
        except (TypeError, ValueError):
            return None
        if parsed is None:
            return None
    # Normalize naive to UTC
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass(frozen=True)
class FeedSource:
    name: str
    url: str
    kind: str = "rss"  # rss | search
    max_new: int = 5
    max_examined: int = 20
    keyword_filter: bool = True


def rss_source(url: str, name: Optional[str] = None) -> FeedSource:
    return FeedSource(name=name or (source_domain(url) or url), url=url)


def search_source(query: str) -> FeedSource:
    return FeedSource(
        name=f"Google News: {query}",
        url=GOOGLE_NEWS_SEARCH.format(query=quote_plus(query)),
        kind="search",
        max_new=3,
        max_examined=10,
        keyword_filter=False,
    )


DEFAULT_RSS_FEEDS = [
    "https://www.ft.com/technology?format=rss",
    "https://techcrunch.com/feed/",
    "https://www.reuters.com/technology/rss",
]

DEFAULT_SEARCH_QUERIES = [
    "Apple stock",
    "Tesla stock",
    "NVIDIA earnings",
    "tech stocks",
]


def default_sources(
    rss_feeds: Optional[Sequence[str]] = None, search_queries: Optional[Sequence[str]] = None
) -> List[FeedSource]:
    """Curated starter set; configuration may replace either half."""
    feeds = list(rss_feeds) if rss_feeds else DEFAULT_RSS_FEEDS
    queries = list(search_queries) if search_queries else DEFAULT_SEARCH_QUERIES
    return [rss_source(u) for u in feeds] + [search_source(q) for q in queries]


def _entry_image(entry: Any, link: str, content_html: Optional[str]) -> Optional[str]:
    for enc in entry.get("enclosures") or []:
        href = enc.get("href") or enc.get("url")
        if href and str(enc.get("type") or "image/").startswith("image/"):
            return absolute_url(href, link)
    for key in ("media_content", "media_thumbnail"):
        for media in entry.get(key) or []:
            if media.get("url"):
                return absolute_url(media["url"], link)
    if content_html:
        try:
            tree = lxml_html.fromstring(content_html)
        except (ParserError, ValueError):
            return None
        return first_image_in_markup(tree, link)
    return None


def _entry_content(entry: Any) -> Optional[str]:
    for block in entry.get("content") or []:
        value = block.get("value")
        if value and value.strip():
            return value
    return None


def parse_feed(text: str, source: FeedSource) -> List[FeedItem]:
    parsed = feedparser.parse(text)
    if parsed.bozo and not parsed.entries:
        logger.warning(f"Feed {source.name} did not parse: {parsed.get('bozo_exception')}")
        return []
    out: List[FeedItem] = []
    for entry in (parsed.entries or [])[: max(0, source.max_examined)]:
        link = (entry.get("link") or "").strip()
        title = (entry.get("title") or "").strip()
        content_html = _entry_content(entry)
        summary_html = entry.get("summary") or None
        # published / updated are common RSS fields
        published = entry.get("published") or entry.get("updated") or None
        out.append(
            FeedItem(
                title=title,
                url=link,
                published_at=parse_dt(published),
                description=html_to_text(summary_html)[:500] if summary_html else None,
                content_html=content_html or summary_html,
                image_url=_entry_image(entry, link, content_html or summary_html) if link else None,
                source_name=source.name,
                source_domain=source_domain(link),
                ingestion_source=source.kind,
                raw={"id": entry.get("id"), "feed": source.url},
            )
        )
    return out


async def fetch_feed(client: httpx.AsyncClient, source: FeedSource, *, timeout: float = 20.0) -> List[FeedItem]:
    resp = await client.get(
        source.url, headers={"User-Agent": USER_AGENT}, timeout=timeout, follow_redirects=True
    )
    resp.raise_for_status()
    return parse_feed(resp.text, source)
