"""Shared ingestion data types."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class FeedItem:
    """Normalized feed entry (pre-acquisition).

    Carries whatever metadata the feed offered; acquisition may trust it
    directly instead of fetching the page.
    """

    title: str
    url: str
    published_at: Optional[datetime] = None
    description: Optional[str] = None
    content_html: Optional[str] = None
    image_url: Optional[str] = None
    source_name: Optional[str] = None
    source_domain: Optional[str] = None
    ingestion_source: str = "unknown"
    raw: Optional[Dict[str, Any]] = None


@dataclass(frozen=True)
class FetchedArticle:
    """Normalized article content produced by any acquisition strategy."""

    title: str
    summary: str
    full_text: str
    source_domain: Optional[str]
    published_at: Optional[datetime] = None
    image_url: Optional[str] = None
    url: Optional[str] = None
    strategy: str = "unknown"
