"""Article scoring utilities.

Deterministic scoring for:
- source trust priors (initial credibility of a newly seen publisher)
- truth score over verified claims
- impact sentiment and the human-readable verdict
"""

from __future__ import annotations

import re
from typing import Optional, Sequence

from biaz.storage.records import Claim


# -----------------------------
# Source trust priors
# -----------------------------
HIGH_TRUST_DOMAINS = {
    "reuters.com",
    "apnews.com",
    "bloomberg.com",
    "ft.com",
    "wsj.com",
    "economist.com",
    "cnbc.com",
    "barrons.com",
    "marketwatch.com",
    "sec.gov",
    "federalreserve.gov",
    "treasury.gov",
    "nytimes.com",
    "bbc.co.uk",
    "bbc.com",
}

MED_TRUST_DOMAINS = {
    "techcrunch.com",
    "theverge.com",
    "arstechnica.com",
    "wired.com",
    "forbes.com",
    "businessinsider.com",
    "fortune.com",
    "axios.com",
    "investing.com",
    "marketscreener.com",
    "finance.yahoo.com",
    "seekingalpha.com",
    "fool.com",
}

VERIFIED_PUBLISHER_THRESHOLD = 0.9


def source_trust_prior(domain: Optional[str], source_name: Optional[str] = None) -> float:
    d = (domain or "").lower().strip()
    if d.startswith("www."):
        d = d[4:]
    if d in HIGH_TRUST_DOMAINS:
        return 0.95
    if d in MED_TRUST_DOMAINS:
        return 0.70
    # Heuristic by name
    name = (source_name or "").lower()
    if any(k in name for k in ("reuters", "associated press", "financial times", "bloomberg", "wall street journal")):
        return 0.90
    if any(k in name for k in ("techcrunch", "forbes", "axios", "yahoo finance")):
        return 0.70
    if not d:
        return 0.50
    # Penalize obvious spammy domains
    if any(k in d for k in ("coupon", "deals", "discount", "affiliate", "shop")):
        return 0.20
    return 0.45


def source_category(domain: Optional[str]) -> str:
    d = (domain or "").lower()
    if d.endswith(".gov"):
        return "regulator"
    if any(k in d for k in ("coupon", "deals", "discount", "affiliate", "shop")):
        return "promotional"
    if d in HIGH_TRUST_DOMAINS:
        return "wire" if d in ("reuters.com", "apnews.com", "bloomberg.com") else "financial"
    return "news"


def display_name(domain: str) -> str:
    """`techcrunch.com` -> `Techcrunch`"""
    head = (domain or "").split(".")[0]
    return head.capitalize() if head else domain


# -----------------------------
# Truth score
# -----------------------------
def truth_score(claims: Sequence[Claim]) -> float:
    if not claims:
        return 0.5
    total = sum(max(0.0, c.confidence) for c in claims)
    if total <= 0:
        return 0.5
    verified = sum(max(0.0, c.confidence) for c in claims if c.verified)
    return max(0.0, min(1.0, verified / total))


def explanation(claims: Sequence[Claim], score: float) -> str:
    verified = sum(1 for c in claims if c.verified)
    total = len(claims)
    if score >= 0.8:
        return f"High confidence: {verified} of {total} claims verified with strong evidence."
    if score >= 0.6:
        return f"Moderate confidence: {verified} of {total} claims verified. Some claims lack strong evidence."
    return (
        f"Low confidence: Only {verified} of {total} claims verified. "
        "Many claims are speculative or unverified."
    )


# -----------------------------
# Impact sentiment
# -----------------------------
POSITIVE_WORDS = ["growth", "profit", "revenue", "beat", "success", "gain", "up", "rise"]
NEGATIVE_WORDS = ["loss", "decline", "miss", "fail", "down", "fall", "investigation", "fine"]


def _present(words: Sequence[str], blob: str) -> int:
    return sum(1 for w in words if re.search(rf"\b{w}", blob))


def impact_sentiment(text: str) -> str:
    """Keyword balance over the article text: positive, negative or neutral."""
    blob = (text or "").lower()
    pos = _present(POSITIVE_WORDS, blob)
    neg = _present(NEGATIVE_WORDS, blob)
    if pos > neg:
        return "positive"
    if neg > pos:
        return "negative"
    return "neutral"
