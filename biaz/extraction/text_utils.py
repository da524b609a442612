"""Plain-text helpers shared by acquisition and ingestion."""

from __future__ import annotations

import re
from typing import Optional

from lxml import html as lxml_html
from lxml.etree import ParserError

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_WS_RE = re.compile(r"\s+")


def collapse_ws(text: Optional[str]) -> str:
    return _WS_RE.sub(" ", text or "").strip()


def html_to_text(markup: Optional[str]) -> str:
    """Visible text of an HTML fragment, one block per line."""
    if not markup or not markup.strip():
        return ""
    try:
        tree = lxml_html.fromstring(markup)
    except (ParserError, ValueError):
        return collapse_ws(markup)
    lines = [line.strip() for line in tree.text_content().splitlines() if line.strip()]
    return "\n".join(lines)


def leading_sentences(text: str, count: int = 2, min_length: int = 20) -> str:
    """First `count` sentences longer than `min_length` characters."""
    sentences = [s.strip() for s in _SENTENCE_SPLIT_RE.split(text or "") if len(s.strip()) > min_length]
    if not sentences:
        return ""
    return collapse_ws(". ".join(sentences[:count])) + "."


def truncate(text: str, max_length: int = 300) -> str:
    cleaned = collapse_ws(text)
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length].strip() + "..."
