"""Ticker symbol resolution: deterministic pass first, generative fallback second."""

from __future__ import annotations

import logging
import re
from typing import Iterable, List, Optional

from biaz.errors import PipelineError
from biaz.llm import prompts
from biaz.llm.gateway import GenerativeGateway
from biaz.llm.json_parse import parse_json_array
from biaz.symbols.known_symbols import KNOWN_SYMBOLS

logger = logging.getLogger(__name__)

MAX_DETERMINISTIC = 5
MAX_MENTIONED = 5
MAX_AFFECTED = 7

_PATTERNS = [
    re.compile(r"\$([A-Z]{1,5}(?:\.[A-Z])?)\b"),
    re.compile(r"\b(?:NASDAQ|NYSE|AMEX|NYSEARCA)\s*:\s*([A-Z]{1,5}(?:\.[A-Z])?)\b"),
    re.compile(r"\b([A-Z]{2,5})\b"),
]
_TICKER_RE = re.compile(r"^[A-Z]{1,5}(?:\.[A-Z])?$")


def _dedup(symbols: Iterable[str], limit: int) -> List[str]:
    out: List[str] = []
    for s in symbols:
        if s not in out:
            out.append(s)
        if len(out) >= limit:
            break
    return out


def deterministic_symbols(text: str) -> List[str]:
    """Tickers written out in the text that appear in the allow-list."""
    found = []
    for pattern in _PATTERNS:
        for m in pattern.finditer(text or ""):
            sym = m.group(1)
            if sym in KNOWN_SYMBOLS:
                found.append(sym)
    return _dedup(found, MAX_DETERMINISTIC)


def _clean(values, limit: int) -> List[str]:
    if not isinstance(values, list):
        return []
    symbols = []
    for v in values:
        if not isinstance(v, str):
            continue
        sym = v.strip().lstrip("$").upper()
        if _TICKER_RE.match(sym):
            symbols.append(sym)
    return _dedup(symbols, limit)


class SymbolResolver:
    def __init__(self, gateway: GenerativeGateway):
        self._gateway = gateway

    async def resolve_symbols(self, title: str, text: str, manual_override: Optional[str] = None) -> List[str]:
        if manual_override and manual_override.strip():
            return [manual_override.strip().upper()]

        found = deterministic_symbols(f"{title} {text}")
        if found:
            return found

        try:
            response = await self._gateway.complete(prompts.mentioned_symbols(title, text), temperature=0.3)
        except PipelineError as e:
            logger.warning(f"Symbol extraction failed: {e}")
            return []
        return _clean(parse_json_array(response, []), MAX_MENTIONED)

    async def resolve_affected(self, title: str, text: str) -> List[str]:
        try:
            response = await self._gateway.complete(prompts.affected_symbols(title, text), temperature=0.3)
        except PipelineError as e:
            logger.warning(f"Affected symbol inference failed: {e}")
            return []
        return _clean(parse_json_array(response, []), MAX_AFFECTED)
