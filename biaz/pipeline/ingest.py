"""Ingestion orchestrator.

One call takes a URL (or pasted content) from receipt to a persisted Article:

    dedup -> acquire -> resolve symbols -> extract claims -> verify claims
          -> score -> policy check -> persist

Nothing is written before the persist step; a rejected or failed ingestion
leaves no trace in the store.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence

from biaz.errors import PipelineError
from biaz.extraction.acquire import ContentAcquirer, FetchStrategy
from biaz.extraction.text_utils import leading_sentences, truncate
from biaz.forecast.forecasts import ForecastService
from biaz.ingestion.article_types import FeedItem, FetchedArticle
from biaz.ingestion.url_utils import canonicalize_url, content_url, source_domain
from biaz.market.quotes import QuoteService
from biaz.scoring import article_scoring
from biaz.scoring.admission import AdmissionPolicy, check_content
from biaz.storage.records import Article, Source, StockQuote, new_id
from biaz.symbols.resolver import SymbolResolver
from biaz.verification.claims import ClaimVerifier, ExtractedClaim

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], Any]

DEFAULT_PASTED_TITLE = "Demo Article"


async def report(progress: Optional[ProgressCallback], percent: int, message: str) -> None:
    logger.info(f"[{percent:3d}%] {message}")
    if progress is None:
        return
    result = progress(percent, message)
    if inspect.isawaitable(result):
        await result


def fix_summary(title: str, summary: Optional[str], text: str) -> str:
    """Summary must say something the title does not."""
    summary = (summary or "").strip()
    if not summary or summary == title or summary.startswith(title):
        summary = leading_sentences(text) or truncate(text, 300)
    return summary


def build_source(domain: Optional[str]) -> Optional[Source]:
    if not domain:
        return None
    prior = article_scoring.source_trust_prior(domain)
    return Source(
        id=new_id("src"),
        domain=domain,
        name=article_scoring.display_name(domain),
        credibility_score=prior,
        category=article_scoring.source_category(domain),
        verified=prior >= article_scoring.VERIFIED_PUBLISHER_THRESHOLD,
    )


class IngestionOrchestrator:
    def __init__(
        self,
        repo: Any,
        acquirer: ContentAcquirer,
        symbols: SymbolResolver,
        verifier: ClaimVerifier,
        policy: AdmissionPolicy,
        forecasts: ForecastService,
        quotes: QuoteService,
    ):
        self._repo = repo
        self._acquirer = acquirer
        self._symbols = symbols
        self._verifier = verifier
        self._policy = policy
        self._forecasts = forecasts
        self._quotes = quotes

    async def ingest(
        self,
        url: Optional[str] = None,
        manual_symbol: Optional[str] = None,
        feed_item: Optional[FeedItem] = None,
        strategy: Optional[FetchStrategy] = None,
        pasted_content: Optional[str] = None,
        pasted_title: Optional[str] = None,
        progress: Optional[ProgressCallback] = None,
        manual: bool = False,
    ) -> Article:
        if not url and not (pasted_content and pasted_content.strip()):
            raise PipelineError("Either a URL or pasted content is required")

        await report(progress, 0, "Starting ingestion")
        if pasted_content and not url:
            key_url = content_url(pasted_content)
        else:
            key_url = canonicalize_url(url)

        existing = await self._repo.find_article_by_url(key_url)
        if existing is not None:
            logger.info(f"Article already exists: {existing.id}")
            existing.created = False
            await report(progress, 100, "Article already exists")
            return existing

        # acquiring
        await report(progress, 10, "Fetching article content")
        if pasted_content and pasted_content.strip():
            fetched = FetchedArticle(
                title=(pasted_title or DEFAULT_PASTED_TITLE).strip(),
                summary="",
                full_text=pasted_content.strip(),
                source_domain=source_domain(key_url),
                published_at=datetime.now(timezone.utc),
                url=key_url,
                strategy="pasted",
            )
        else:
            fetched = await self._acquirer.fetch(key_url, feed_item=feed_item, strategy=strategy)
        title, text = fetched.title, fetched.full_text

        # resolving-symbols
        await report(progress, 25, "Resolving stock symbols")
        mentioned = await self._symbols.resolve_symbols(title, text, manual_symbol)
        affected: List[str] = []
        if not mentioned:
            affected = await self._symbols.resolve_affected(title, text)
        symbols = mentioned + [s for s in affected if s not in mentioned]
        logger.info(f"Symbols: mentioned={mentioned} affected={affected}")
        check_content(symbols, title, text, manual=manual)

        # extracting-claims
        await report(progress, 35, "Extracting claims")
        extracted = await self._verifier.extract_claims(text, title)

        # verifying-claims
        async def on_verify(fraction: float) -> None:
            await report(progress, 45 + int(round(35 * fraction)), "Verifying claims")

        claims = await self._verifier.verify_claims(extracted, text, fetched.source_domain, on_verify)

        # scoring
        await report(progress, 85, "Scoring article")
        score = article_scoring.truth_score(claims)
        sentiment = article_scoring.impact_sentiment(text)
        explanation = article_scoring.explanation(claims, score)
        forecast_summary = await self._forecasts.summarize(title, text, score, symbols)
        logger.info(f"Truth score: {score:.2f} ({sentiment})")

        # policy-check
        await report(progress, 88, "Checking admission policy")
        await self._policy.check_title(title)
        image_url = await self._policy.select_image(fetched.image_url, title, symbols, manual=manual)

        await report(progress, 92, "Fetching stock quotes")
        quotes = await self._fetch_quotes(symbols)

        # persisting
        await report(progress, 95, "Saving article")
        article = Article(
            id=new_id("art"),
            url=key_url,
            title=title,
            summary=fix_summary(title, fetched.summary, text),
            forecast_summary=forecast_summary,
            image_url=image_url,
            published_at=fetched.published_at or datetime.now(timezone.utc),
            truth_score=score,
            impact_sentiment=sentiment,
            explanation=explanation,
            symbols_mentioned=mentioned,
            symbols_affected=[s for s in affected if s not in mentioned],
            claims=claims,
        )
        stored = await self._repo.persist_article(article, build_source(fetched.source_domain), quotes)
        if stored.created:
            await report(progress, 100, "Article ingested")
        else:
            await report(progress, 100, "Article already exists")
        return stored

    async def _fetch_quotes(self, symbols: Sequence[str]) -> Dict[str, Optional[StockQuote]]:
        results = await asyncio.gather(*(self._quotes.get_quote(s) for s in symbols), return_exceptions=True)
        quotes: Dict[str, Optional[StockQuote]] = {}
        for symbol, result in zip(symbols, results):
            if isinstance(result, Exception):
                logger.warning(f"Failed to fetch price for {symbol}: {result}")
                result = None
            quotes[symbol] = result
        return quotes

    async def rescore(self, article_id: str, progress: Optional[ProgressCallback] = None) -> Article:
        """Re-verify stored claims without the cache and update the score."""
        await report(progress, 0, "Loading article")
        article = await self._repo.get_article(article_id)
        if article is None:
            raise PipelineError(f"Article not found: {article_id}")

        async def on_verify(fraction: float) -> None:
            await report(progress, 10 + int(round(80 * fraction)), "Verifying claims")

        extracted = [ExtractedClaim(text=c.text, confidence=c.confidence) for c in article.claims]
        context = f"{article.title}\n\n{article.summary}"
        claims = await self._verifier.verify_claims(
            extracted, context, source_domain(article.url), on_verify, use_cache=False
        )
        for old, new in zip(article.claims, claims):
            new.id = old.id

        score = article_scoring.truth_score(claims)
        explanation = article_scoring.explanation(claims, score)
        await self._repo.update_article_score(article.id, score, explanation, claims)
        article.truth_score = score
        article.explanation = explanation
        article.claims = claims
        article.created = False
        await report(progress, 100, f"Truth score {score:.2f}")
        return article
