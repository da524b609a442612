"""Direct page fetch + extraction.

Policy:
- Only public http(s) hosts are fetched.
- Bodies are capped; oversized pages are refused rather than truncated.
"""

from __future__ import annotations

import ipaddress
import logging
from typing import Optional
from urllib.parse import urljoin, urlparse

import httpx
import trafilatura
from lxml import html as lxml_html
from lxml.etree import ParserError

from biaz.errors import AcquisitionError
from biaz.extraction.images import USER_AGENT, discover_image
from biaz.extraction.text_utils import collapse_ws, leading_sentences
from biaz.ingestion.article_types import FetchedArticle
from biaz.ingestion.feeds import parse_dt
from biaz.ingestion.url_utils import source_domain

logger = logging.getLogger(__name__)

MAX_BYTES = 2_000_000
MAX_REDIRECTS = 5
MAX_TEXT = 20_000

_PRIVATE_NETS = [
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]


def _is_ip_hostname(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
        return True
    except ValueError:
        return False


def _is_private_ip(hostname: str) -> bool:
    try:
        ip = ipaddress.ip_address(hostname)
        return any(ip in net for net in _PRIVATE_NETS)
    except ValueError:
        return False


def _validate_fetch_url(url: str) -> Optional[str]:
    """Return error string if URL should not be fetched (SSRF/abuse protections)."""
    try:
        p = urlparse(url)
    except ValueError:
        return "invalid_url"
    if p.scheme not in ("http", "https"):
        return "bad_scheme"
    if not p.netloc:
        return "missing_host"
    host = (p.hostname or "").strip().lower()
    if not host:
        return "missing_host"
    # Block obvious localhost-like names
    if host in ("localhost", "localhost.localdomain"):
        return "blocked_host"
    # If hostname is an IP, block private/loopback/link-local etc.
    if _is_ip_hostname(host):
        if _is_private_ip(host):
            return "blocked_private_ip"
    return None


async def fetch_html(client: httpx.AsyncClient, url: str, *, max_bytes: int = MAX_BYTES) -> str:
    if not url:
        raise AcquisitionError("empty_url")
    current = url
    try:
        # Redirects are followed by hand so every hop passes the host checks
        for _ in range(MAX_REDIRECTS + 1):
            err = _validate_fetch_url(current)
            if err:
                raise AcquisitionError(f"refusing to fetch {current}: {err}")
            async with client.stream(
                "GET", current, headers={"User-Agent": USER_AGENT}, follow_redirects=False
            ) as resp:
                if resp.is_redirect:
                    location = resp.headers.get("location")
                    if not location:
                        raise AcquisitionError(f"redirect_without_location: {current}")
                    current = urljoin(str(resp.url), location)
                    continue
                if resp.status_code >= 400:
                    raise AcquisitionError(f"http_{resp.status_code} for {url}")
                # Size guardrail: read up to max_bytes
                content = bytearray()
                async for chunk in resp.aiter_bytes():
                    content.extend(chunk)
                    if len(content) > max_bytes:
                        raise AcquisitionError(f"too_large: {url}")
                encoding = resp.charset_encoding or "utf-8"
                break
        else:
            raise AcquisitionError(f"too_many_redirects: {url}")
    except httpx.HTTPError as e:
        raise AcquisitionError(f"fetch failed for {url}: {e}") from e
    try:
        html = content.decode(encoding, errors="replace")
    except LookupError:
        html = content.decode("utf-8", errors="replace")
    if not html.strip():
        raise AcquisitionError(f"empty_html: {url}")
    return html


def _first(tree, *xpaths: str) -> Optional[str]:
    for xp in xpaths:
        for v in tree.xpath(xp):
            text = v if isinstance(v, str) else v.text_content()
            if text and str(text).strip():
                return collapse_ws(str(text))
    return None


def _body_text(html: str, tree) -> str:
    text = trafilatura.extract(html, include_comments=False, include_tables=False)
    if text and text.strip():
        return text.strip()
    for xp in ("//article", "//main", "//body"):
        nodes = tree.xpath(xp)
        if nodes:
            lines = [line.strip() for line in nodes[0].text_content().splitlines() if line.strip()]
            if lines:
                return "\n".join(lines)
    return ""


def parse_page(html: str, url: str) -> FetchedArticle:
    try:
        tree = lxml_html.fromstring(html)
    except (ParserError, ValueError) as e:
        raise AcquisitionError(f"unparseable page {url}: {e}") from e

    title = _first(
        tree,
        '//meta[@property="og:title"]/@content',
        '//meta[@name="twitter:title"]/@content',
        "//title",
        "//h1",
    )
    description = _first(
        tree,
        '//meta[@property="og:description"]/@content',
        '//meta[@name="description"]/@content',
    )
    published = _first(
        tree,
        '//meta[@property="article:published_time"]/@content',
        '//meta[@name="pubdate"]/@content',
        "//time/@datetime",
    )
    text = _body_text(html, tree)
    if not title or not text:
        raise AcquisitionError(f"no_extract: {url}")

    return FetchedArticle(
        title=title[:200],
        summary=(description or leading_sentences(text))[:300],
        full_text=text[:MAX_TEXT],
        source_domain=source_domain(url),
        published_at=parse_dt(published),
        image_url=discover_image(tree, url),
        url=url,
        strategy="http",
    )


async def fetch_direct(client: httpx.AsyncClient, url: str) -> FetchedArticle:
    html = await fetch_html(client, url)
    article = parse_page(html, url)
    logger.info(f"Fetched {url} directly ({len(article.full_text)} chars)")
    return article
