"""Prompt templates for generative calls."""

from __future__ import annotations

from typing import Dict, List, Sequence

Message = Dict[str, str]


def _messages(system: str, user: str) -> List[Message]:
    return [{"role": "system", "content": system}, {"role": "user", "content": user}]


def extract_claims(title: str, text: str) -> List[Message]:
    user = f"""Extract factual claims from this financial news article. Return ONLY a JSON array of claims.

Title: {title}

Article: {text}

Extract specific, verifiable factual claims (numbers, dates, events, statements). For each claim, provide:
- text: the exact claim
- confidence: 0.0-1.0 based on how specific and verifiable it is

Return format: [{{"text": "claim text", "confidence": 0.95}}, ...]"""
    return _messages(
        "You are a financial analyst extracting factual claims from news articles. Return only valid JSON.",
        user,
    )


def verify_claims(claims: Sequence[str], context: str, source_domain: str = "") -> List[Message]:
    numbered = "\n".join(f"{i + 1}. {c}" for i, c in enumerate(claims))
    exclude = (
        f"\nDo not cite {source_domain} or any of its subdomains as evidence; the article itself is not evidence."
        if source_domain
        else ""
    )
    user = f"""Verify these financial claims. Return ONLY a JSON array.

Context: {context}

Claims to verify:
{numbered}

For each claim, determine:
- verified: true if claim can be reasonably verified, false if speculative/unverified
- confidence: 0.0-1.0 confidence in verification
- evidenceLinks: array of relevant URLs (use official sources, SEC filings, company IR pages){exclude}

Return format: [{{"text": "claim", "verified": true, "confidence": 0.9, "evidenceLinks": ["url1", "url2"]}}, ...]"""
    return _messages("You are a fact-checker for financial news. Return only valid JSON.", user)


def mentioned_symbols(title: str, text: str) -> List[Message]:
    user = f"""List the stock ticker symbols of publicly traded companies explicitly mentioned in this article.

Title: {title}

Text: {text[:500]}

Return ONLY a JSON array of uppercase ticker symbols, at most 5, e.g. ["AAPL", "MSFT"]. Return [] if none are mentioned."""
    return _messages(
        "You identify US-listed stock tickers named in financial news. Return only valid JSON.",
        user,
    )


def affected_symbols(title: str, text: str) -> List[Message]:
    user = f"""No company is named directly in this article. Which publicly traded companies would be most affected by the news it describes (suppliers, competitors, sector leaders)?

Title: {title}

Text: {text[:1500]}

Return ONLY a JSON array of uppercase ticker symbols, at most 7, most affected first. Return [] if no listed company is plausibly affected."""
    return _messages(
        "You are an equity analyst mapping news to affected US-listed stocks. Return only valid JSON.",
        user,
    )


def forecast_summary(title: str, text: str, truth_score: float, symbols: Sequence[str]) -> List[Message]:
    user = f"""Write a short market-impact summary for this news.

Stocks: {", ".join(symbols)}
Article Truth Score: {truth_score:.2f}

Title: {title}

Article: {text[:3000]}

In 2-3 sentences, explain the likely near-term effect on the listed stocks and how confident an investor should be given the truth score. Plain text only."""
    return _messages("You are a financial analyst summarizing market impact of news.", user)


def forecast(title: str, summary: str, truth_score: float, symbol: str, current_price: float) -> List[Message]:
    user = f"""Analyze this financial news and forecast stock impact. Return ONLY valid JSON.

Stock: {symbol}
Current Price: ${current_price}
Article Truth Score: {truth_score:.2f}

Title: {title}
Summary: {summary}

Provide forecast with:
- sentiment: "positive", "neutral", or "negative"
- impactScore: 0.0-1.0 (magnitude of expected impact)
- priceTarget: predicted price in dollars
- timeHorizon: "1_day", "1_week", "1_month", or "3_months"
- confidence: 0.0-1.0 confidence in forecast
- reasoning: 2-3 sentence explanation

Return format: {{"sentiment": "positive", "impactScore": 0.75, "priceTarget": 185.50, "timeHorizon": "1_week", "confidence": 0.82, "reasoning": "..."}}"""
    return _messages(
        "You are a financial analyst forecasting stock price movements. Return only valid JSON.",
        user,
    )


def image_prompt(symbol: str) -> str:
    return (
        f"Professional business photography for {symbol} stock market news. High-quality corporate photo "
        "featuring modern office environment, financial technology, stock market displays, or business "
        "professionals. Photorealistic, sharp focus, professional lighting, corporate aesthetic."
    )
