"""Domain records persisted by the pipeline."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

TIME_HORIZONS = ("1_day", "1_week", "1_month", "3_months")
SENTIMENTS = ("positive", "neutral", "negative")


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex}"


@dataclass
class Claim:
    text: str
    verified: bool
    confidence: float
    evidence_links: List[str] = field(default_factory=list)
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "verified": self.verified,
            "confidence": self.confidence,
            "evidence_links": list(self.evidence_links),
        }


@dataclass
class Source:
    id: str
    domain: str
    name: str
    credibility_score: float
    category: str = "news"
    verified: bool = False


@dataclass
class StockQuote:
    symbol: str
    name: str
    exchange: str
    sector: str
    current_price: Optional[float] = None
    change_percent: Optional[float] = None
    updated_at: Optional[datetime] = None


@dataclass
class Article:
    id: str
    url: str
    title: str
    summary: str
    truth_score: float
    impact_sentiment: str
    explanation: str
    source_id: Optional[str] = None
    image_url: Optional[str] = None
    published_at: Optional[datetime] = None
    forecast_summary: Optional[str] = None
    symbols_mentioned: List[str] = field(default_factory=list)
    symbols_affected: List[str] = field(default_factory=list)
    claims: List[Claim] = field(default_factory=list)
    created_at: Optional[datetime] = None
    # False when an ingest call returned an already-stored article
    created: bool = field(default=True, compare=False)

    @property
    def symbols(self) -> List[str]:
        out = list(self.symbols_mentioned)
        out.extend(s for s in self.symbols_affected if s not in out)
        return out

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "url": self.url,
            "title": self.title,
            "summary": self.summary,
            "forecast_summary": self.forecast_summary,
            "image_url": self.image_url,
            "published_at": self.published_at.isoformat() if self.published_at else None,
            "source_id": self.source_id,
            "symbols": self.symbols,
            "symbols_mentioned": list(self.symbols_mentioned),
            "symbols_affected": list(self.symbols_affected),
            "truth_score": self.truth_score,
            "impact_sentiment": self.impact_sentiment,
            "explanation": self.explanation,
            "claims": [c.to_dict() for c in self.claims],
        }


@dataclass
class Forecast:
    id: str
    article_id: str
    symbol: str
    sentiment: str
    impact_score: float
    price_target: float
    time_horizon: str
    confidence: float
    reasoning: str
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "article_id": self.article_id,
            "symbol": self.symbol,
            "sentiment": self.sentiment,
            "impact_score": self.impact_score,
            "price_target": self.price_target,
            "time_horizon": self.time_horizon,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
        }


class TaskStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class Task:
    id: str
    type: str
    status: str
    input: Dict[str, Any]
    result: Optional[Dict[str, Any]] = None
    progress: int = 0
    message: Optional[str] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
