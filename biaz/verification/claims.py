"""Claim extraction and verification with cached generative calls."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence
from urllib.parse import urlparse

from biaz.cache.redis_cache import RedisCache, ai_cache_key
from biaz.llm import prompts
from biaz.llm.gateway import GenerativeGateway
from biaz.llm.json_parse import parse_json_array
from biaz.ingestion.url_utils import same_publisher, source_domain
from biaz.storage.records import Claim

logger = logging.getLogger(__name__)

CONTEXT_CHARS = 4000
ARTICLE_CHARS = 8000
BATCH_SIZE = 8

ProgressFn = Callable[[float], Any]


@dataclass(frozen=True)
class ExtractedClaim:
    text: str
    confidence: float


def _clamp(value: Any, default: float = 0.5) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    if v != v:  # NaN
        return default
    return max(0.0, min(1.0, v))


async def _notify(progress: Optional[ProgressFn], fraction: float) -> None:
    if progress is None:
        return
    result = progress(fraction)
    if inspect.isawaitable(result):
        await result


def filter_evidence(links: Any, article_domain: Optional[str]) -> List[str]:
    """Absolute http(s) links not on the article's own publisher domain."""
    if not isinstance(links, list):
        return []
    out: List[str] = []
    for link in links:
        if not isinstance(link, str):
            continue
        link = link.strip()
        if urlparse(link).scheme not in ("http", "https"):
            continue
        if same_publisher(source_domain(link), article_domain):
            continue
        if link not in out:
            out.append(link)
    return out


class ClaimVerifier:
    def __init__(self, gateway: GenerativeGateway, cache: RedisCache, *, ttl_seconds: int = 24 * 3600):
        self._gateway = gateway
        self._cache = cache
        self.ttl_seconds = ttl_seconds

    async def extract_claims(self, text: str, title: str, *, use_cache: bool = True) -> List[ExtractedClaim]:
        body = (text or "")[:ARTICLE_CHARS]
        key = ai_cache_key("extract-claims", f"{title}\n{body}")
        raw = await self._cache.get_json(key) if use_cache else None
        if raw is None:
            response = await self._gateway.complete(prompts.extract_claims(title, body), temperature=0.3)
            raw = parse_json_array(response, None)
            if raw is None:
                logger.warning(f"Failed to parse claims for '{title[:60]}'")
                return []
            await self._cache.set_json(key, raw, self.ttl_seconds)

        claims: List[ExtractedClaim] = []
        for item in raw:
            if not isinstance(item, dict):
                continue
            claim_text = str(item.get("text") or "").strip()
            if claim_text:
                claims.append(ExtractedClaim(text=claim_text, confidence=_clamp(item.get("confidence"))))
        logger.info(f"Extracted {len(claims)} claims")
        return claims

    async def _verify_batch(
        self, batch: Sequence[ExtractedClaim], context: str, article_domain: Optional[str], use_cache: bool
    ) -> Optional[List[Dict[str, Any]]]:
        texts = [c.text for c in batch]
        key = ai_cache_key("verify-claims", "\n".join([article_domain or "", context, *texts]))
        if use_cache:
            cached = await self._cache.get_json(key)
            if cached is not None:
                return cached
        response = await self._gateway.complete(
            prompts.verify_claims(texts, context, article_domain or ""), temperature=0.3
        )
        parsed = parse_json_array(response, None)
        if parsed is None:
            logger.warning("Failed to parse verification response, marking batch unverified")
            return None
        await self._cache.set_json(key, parsed, self.ttl_seconds)
        return parsed

    @staticmethod
    def _merge(
        batch: Sequence[ExtractedClaim], verdicts: Optional[List[Dict[str, Any]]], article_domain: Optional[str]
    ) -> List[Claim]:
        by_text: Dict[str, Dict[str, Any]] = {}
        if verdicts:
            for v in verdicts:
                if isinstance(v, dict) and isinstance(v.get("text"), str):
                    by_text[v["text"].strip()] = v
        out: List[Claim] = []
        for i, claim in enumerate(batch):
            verdict = None
            if verdicts and len(verdicts) == len(batch) and isinstance(verdicts[i], dict):
                verdict = verdicts[i]
            elif claim.text in by_text:
                verdict = by_text[claim.text]
            if verdict is None:
                out.append(Claim(text=claim.text, verified=False, confidence=claim.confidence))
                continue
            out.append(
                Claim(
                    text=claim.text,
                    verified=bool(verdict.get("verified")),
                    confidence=_clamp(verdict.get("confidence"), claim.confidence),
                    evidence_links=filter_evidence(
                        verdict.get("evidenceLinks", verdict.get("evidence_links")), article_domain
                    ),
                )
            )
        return out

    async def verify_claims(
        self,
        claims: Sequence[ExtractedClaim],
        context: str,
        source_domain: Optional[str],
        progress: Optional[ProgressFn] = None,
        *,
        use_cache: bool = True,
    ) -> List[Claim]:
        """Verify claims in batches; `progress` receives 0.0, 0.5 and 1.0."""
        await _notify(progress, 0.0)
        if not claims:
            await _notify(progress, 1.0)
            return []

        ctx = (context or "")[:CONTEXT_CHARS]
        batches = [list(claims[i:i + BATCH_SIZE]) for i in range(0, len(claims), BATCH_SIZE)]
        midpoint = (len(batches) - 1) // 2
        verified: List[Claim] = []
        for i, batch in enumerate(batches):
            verdicts = await self._verify_batch(batch, ctx, source_domain, use_cache)
            verified.extend(self._merge(batch, verdicts, source_domain))
            if i == midpoint:
                await _notify(progress, 0.5)
        await _notify(progress, 1.0)
        logger.info(f"Verified {sum(1 for c in verified if c.verified)} of {len(verified)} claims")
        return verified
