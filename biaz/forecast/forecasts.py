"""Per-symbol forecasts and the article-level market impact summary."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Sequence

from biaz.cache.redis_cache import RedisCache, ai_cache_key
from biaz.errors import PipelineError
from biaz.llm import prompts
from biaz.llm.gateway import GenerativeGateway
from biaz.llm.json_parse import parse_json_object
from biaz.market.quotes import QuoteService
from biaz.storage.records import SENTIMENTS, TIME_HORIZONS, Forecast, new_id

logger = logging.getLogger(__name__)

PARSE_FAILURE_REASONING = "Unable to generate forecast due to parsing error."


def _unit(value: Any, default: float) -> float:
    try:
        v = float(value)
    except (TypeError, ValueError):
        return default
    return max(0.0, min(1.0, v))


def default_forecast(article_id: str, symbol: str, current_price: float) -> Forecast:
    return Forecast(
        id=new_id("fct"),
        article_id=article_id,
        symbol=symbol,
        sentiment="neutral",
        impact_score=0.5,
        price_target=current_price,
        time_horizon="1_week",
        confidence=0.5,
        reasoning=PARSE_FAILURE_REASONING,
    )


def forecast_from_payload(payload: Dict[str, Any], article_id: str, symbol: str, current_price: float) -> Forecast:
    sentiment = str(payload.get("sentiment") or "neutral").lower()
    horizon = str(payload.get("timeHorizon") or payload.get("time_horizon") or "1_week")
    try:
        price_target = float(payload.get("priceTarget", payload.get("price_target")))
    except (TypeError, ValueError):
        price_target = current_price
    return Forecast(
        id=new_id("fct"),
        article_id=article_id,
        symbol=symbol,
        sentiment=sentiment if sentiment in SENTIMENTS else "neutral",
        impact_score=_unit(payload.get("impactScore", payload.get("impact_score")), 0.5),
        price_target=price_target,
        time_horizon=horizon if horizon in TIME_HORIZONS else "1_week",
        confidence=_unit(payload.get("confidence"), 0.5),
        reasoning=str(payload.get("reasoning") or "").strip() or PARSE_FAILURE_REASONING,
    )


class ForecastService:
    def __init__(
        self,
        gateway: GenerativeGateway,
        cache: RedisCache,
        repo: Any,
        quotes: QuoteService,
        *,
        ttl_seconds: int = 24 * 3600,
    ):
        self._gateway = gateway
        self._cache = cache
        self._repo = repo
        self._quotes = quotes
        self.ttl_seconds = ttl_seconds

    async def summarize(self, title: str, text: str, truth_score: float, symbols: Sequence[str]) -> Optional[str]:
        """Short market-impact paragraph; None when generation fails."""
        if not symbols:
            return None
        key = ai_cache_key("forecast-summary", f"{','.join(symbols)}\n{truth_score:.2f}\n{title}\n{text[:3000]}")
        cached = await self._cache.get(key)
        if cached:
            return cached
        try:
            summary = await self._gateway.complete(
                prompts.forecast_summary(title, text, truth_score, symbols), temperature=0.5
            )
        except PipelineError as e:
            logger.warning(f"Forecast summary unavailable: {e}")
            return None
        summary = summary.strip()
        if summary:
            await self._cache.set(key, summary, self.ttl_seconds)
        return summary or None

    async def create(self, article_id: str, symbol: str) -> Forecast:
        symbol = symbol.strip().upper()
        existing = await self._repo.get_forecast(article_id, symbol)
        if existing is not None:
            return existing

        article = await self._repo.get_article(article_id)
        if article is None:
            raise PipelineError(f"Article not found: {article_id}")

        quote = await self._quotes.get_quote(symbol)
        current_price = quote.current_price if quote and quote.current_price is not None else 0.0

        response = await self._gateway.complete(
            prompts.forecast(article.title, article.summary, article.truth_score, symbol, current_price),
            temperature=0.5,
        )
        payload = parse_json_object(response, None)
        if payload is None:
            logger.warning(f"Failed to parse forecast for {article_id}/{symbol}, using neutral default")
            forecast = default_forecast(article_id, symbol, current_price)
        else:
            forecast = forecast_from_payload(payload, article_id, symbol, current_price)
        stored = await self._repo.insert_forecast(forecast)
        logger.info(f"Forecast {stored.id} for {symbol}: {stored.sentiment} ({stored.confidence:.2f})")
        return stored
