"""URL canonicalization helpers for ingestion/dedup."""

from __future__ import annotations

import hashlib
from typing import Iterable, Optional
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse


DEFAULT_STRIP_QUERY_PARAMS = {
    # tracking
    "utm_source",
    "utm_medium",
    "utm_campaign",
    "utm_term",
    "utm_content",
    "utm_id",
    "utm_name",
    "utm_reader",
    "utm_referrer",
    "utm_pubreferrer",
    "utm_swu",
    # misc common trackers
    "gclid",
    "fbclid",
    "mc_cid",
    "mc_eid",
    "ref",
    "ref_src",
    "ref_url",
    "guccounter",
    "guce_referrer",
    "taid",
}

CONTENT_URL_PREFIX = "content://sha256/"


def canonicalize_url(url: str, *, strip_params: Optional[Iterable[str]] = None) -> str:
    """Canonicalize a URL for dedup.

    - Lowercase scheme + hostname
    - Remove fragments
    - Strip common tracking query parameters
    - Preserve order-stable remaining query params

    Synthetic content URLs are returned untouched.
    """
    if not url:
        return ""
    url = url.strip()
    if url.startswith(CONTENT_URL_PREFIX):
        return url
    strip = set(strip_params) if strip_params is not None else set(DEFAULT_STRIP_QUERY_PARAMS)
    p = urlparse(url)
    scheme = (p.scheme or "https").lower()
    netloc = (p.netloc or "").lower()
    path = p.path or "/"

    kept = []
    for k, v in parse_qsl(p.query, keep_blank_values=True):
        if k.lower() in strip:
            continue
        kept.append((k, v))
    kept.sort(key=lambda kv: (kv[0].lower(), kv[1]))
    query = urlencode(kept, doseq=True)

    return urlunparse((scheme, netloc, path, "", query, ""))


def url_hash(url: str) -> str:
    """Stable hash for a canonicalized URL."""
    canon = canonicalize_url(url)
    return hashlib.sha256(canon.encode("utf-8")).hexdigest()


def content_url(content: str) -> str:
    """Synthetic URL identifying pasted content by hash; the title does not take part."""
    sig = " ".join((content or "").split())
    return CONTENT_URL_PREFIX + hashlib.sha256(sig.encode("utf-8")).hexdigest()


def source_domain(url: str) -> Optional[str]:
    """Publisher domain without a leading `www.`."""
    if (url or "").startswith(CONTENT_URL_PREFIX):
        return None
    try:
        host = (urlparse(url or "").hostname or "").lower().strip()
    except ValueError:
        return None
    if host.startswith("www."):
        host = host[4:]
    return host or None


def same_publisher(link_domain: Optional[str], article_domain: Optional[str]) -> bool:
    """True when `link_domain` is the article's domain or one of its subdomains."""
    if not link_domain or not article_domain:
        return False
    a = article_domain.lower()
    d = link_domain.lower()
    return d == a or d.endswith("." + a) or a.endswith("." + d)
