"""Lead image discovery and validation."""

from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urljoin

import httpx

logger = logging.getLogger(__name__)

MIN_WIDTH = 400
MIN_HEIGHT = 300

USER_AGENT = "Mozilla/5.0 (compatible; BIAZ-Finance/1.0)"


def absolute_url(candidate: Optional[str], base_url: str) -> Optional[str]:
    if not candidate or not candidate.strip():
        return None
    candidate = candidate.strip()
    if candidate.startswith("data:"):
        return None
    if candidate.startswith("//"):
        return "https:" + candidate
    return urljoin(base_url, candidate)


def _meta_content(tree: Any, xpath: str) -> Optional[str]:
    values = tree.xpath(xpath)
    for v in values:
        if v and str(v).strip():
            return str(v).strip()
    return None


def _dimension(value: Optional[str]) -> int:
    if not value:
        return 0
    digits = "".join(ch for ch in str(value) if ch.isdigit())
    return int(digits) if digits else 0


def discover_image(tree: Any, base_url: str) -> Optional[str]:
    """Open Graph, then Twitter card, then the first sizable in-article image."""
    og = _meta_content(tree, '//meta[@property="og:image" or @name="og:image"]/@content')
    if og:
        return absolute_url(og, base_url)
    twitter = _meta_content(tree, '//meta[@name="twitter:image" or @property="twitter:image"]/@content')
    if twitter:
        return absolute_url(twitter, base_url)

    scopes = tree.xpath("//article") or tree.xpath("//main") or [tree]
    for scope in scopes:
        for img in scope.iter("img"):
            if _dimension(img.get("width")) >= MIN_WIDTH and _dimension(img.get("height")) >= MIN_HEIGHT:
                url = absolute_url(img.get("src"), base_url)
                if url:
                    return url
    return None


def first_image_in_markup(tree: Any, base_url: str) -> Optional[str]:
    for img in tree.iter("img"):
        url = absolute_url(img.get("src"), base_url)
        if url:
            return url
    return None


def is_image_content_type(content_type: Optional[str]) -> bool:
    ct = (content_type or "").split(";")[0].strip().lower()
    return ct.startswith("image/") or ct == "application/octet-stream"


async def validate_image_url(client: httpx.AsyncClient, url: Optional[str], *, timeout: float = 10.0) -> bool:
    """HEAD the image; accept only a success with an image or binary content type."""
    if not url or not url.lower().startswith(("http://", "https://")):
        return False
    try:
        resp = await client.head(url, timeout=timeout, follow_redirects=True, headers={"User-Agent": USER_AGENT})
    except httpx.HTTPError as e:
        logger.debug(f"Image HEAD failed for {url}: {e}")
        return False
    return resp.is_success and is_image_content_type(resp.headers.get("content-type"))
