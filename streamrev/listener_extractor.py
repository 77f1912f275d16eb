"""
listener_extractor.py — Monthly Listener Extraction
=====================================================
Finds the "monthly listeners" figure on a rendered artist page.  The
page layout and language vary, so three strategies are tried in order
and the first validated value wins:

A. **PhraseStrategy** — short text containing a known phrase
   ("monthly listeners", "auditeurs mensuels", ...); the number right
   before the phrase.
B. **LargestNumberStrategy** — any large grouped number in short texts,
   kept between 100 000 and 100 000 000; the largest is assumed to be
   the listener count.
C. **LocalizedKeywordStrategy** — very short texts mentioning
   "auditeurs" with a dedicated French pattern.
"""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from streamrev.page_session import PageSession
from streamrev.utils import get_logger, parse_int, shorten

logger = get_logger("streamrev.listener_extractor")


# ── constants ───────────────────────────────────────────────────────────────

MAX_LISTENERS = 100_000_000        # exclusive upper bound
BARE_NUMBER_MIN = 100_000          # strategy B lower bound (exclusive)
TEXT_LENGTH_CEILING = 100          # ignore big text blocks
KEYWORD_TEXT_CEILING = 50

LISTENER_PHRASES = (
    "auditeurs mensuels",
    "monthly listeners",
    "écoutes mensuelles",
    "mensuel",
    "listeners",
)

CANDIDATE_TEXTS_SCRIPT = """
maxLength => Array.from(
    document.querySelectorAll('span, div, p, h1, h2, h3'),
    el => el.textContent
).filter(text => text && text.length < maxLength)
"""

_PHRASE_PATTERN = re.compile(
    r"(\d[\d\s,.]*\d|\d+)\s*(?:"
    + "|".join(re.escape(p) for p in sorted(LISTENER_PHRASES, key=len, reverse=True))
    + r")",
    re.IGNORECASE,
)
_BIG_NUMBER = re.compile(r"\d[\d\s,.]{4,}")
_KEYWORD_PATTERN = re.compile(r"(\d{1,3}(?:\s\d{3})*)\s*auditeurs")


def is_valid_listener_count(value: Optional[int]) -> bool:
    return value is not None and 0 < value < MAX_LISTENERS


# ── strategies ──────────────────────────────────────────────────────────────

class ListenerStrategy:
    """Attempt extraction from candidate texts; ``None`` when nothing fits."""

    name = "base"

    def extract(self, texts: Sequence[str]) -> Optional[int]:
        raise NotImplementedError


class PhraseStrategy(ListenerStrategy):
    name = "phrase"

    def __init__(self, phrases: Sequence[str] = LISTENER_PHRASES) -> None:
        self.phrases = tuple(p.lower() for p in phrases)

    def extract(self, texts: Sequence[str]) -> Optional[int]:
        for text in texts:
            if len(text) >= TEXT_LENGTH_CEILING:
                continue
            lowered = text.lower()
            if not any(p in lowered for p in self.phrases):
                continue

            match = _PHRASE_PATTERN.search(text)
            if not match:
                continue
            value = parse_int(match.group(1))
            if is_valid_listener_count(value):
                logger.debug("Phrase match %r → %s", shorten(text), value)
                return value
            logger.debug("Rejected %s next to listener phrase", value)
        return None


class LargestNumberStrategy(ListenerStrategy):
    name = "largest-number"

    def extract(self, texts: Sequence[str]) -> Optional[int]:
        candidates: List[int] = []
        for text in texts:
            if len(text) >= TEXT_LENGTH_CEILING:
                continue
            for token in _BIG_NUMBER.findall(text):
                value = parse_int(token)
                if value is not None and BARE_NUMBER_MIN < value < MAX_LISTENERS:
                    logger.debug("Candidate %s in %r", f"{value:,}", shorten(text))
                    candidates.append(value)
        return max(candidates) if candidates else None


class LocalizedKeywordStrategy(ListenerStrategy):
    name = "localized-keyword"

    def extract(self, texts: Sequence[str]) -> Optional[int]:
        for text in texts:
            if len(text) >= KEYWORD_TEXT_CEILING or "auditeurs" not in text:
                continue
            match = _KEYWORD_PATTERN.search(text)
            if not match:
                continue
            value = parse_int(match.group(1))
            if is_valid_listener_count(value):
                return value
        return None


DEFAULT_STRATEGIES = (PhraseStrategy(), LargestNumberStrategy(), LocalizedKeywordStrategy())


# ── public entry points ─────────────────────────────────────────────────────

def candidate_texts(session: PageSession) -> List[str]:
    return list(session.evaluate(CANDIDATE_TEXTS_SCRIPT, TEXT_LENGTH_CEILING) or [])


def find_listeners(
    texts: Sequence[str],
    strategies: Sequence[ListenerStrategy] = DEFAULT_STRATEGIES,
) -> Optional[int]:
    """Run *strategies* in order over *texts*; first validated value wins."""
    for strategy in strategies:
        value = strategy.extract(texts)
        if is_valid_listener_count(value):
            logger.info("Monthly listeners via %s: %s", strategy.name, f"{value:,}")
            return value
        logger.debug("Listener strategy %s found nothing", strategy.name)
    return None


def extract_monthly_listeners(session: PageSession) -> Optional[int]:
    """Monthly listener count from the page, or ``None`` if not found."""
    texts = candidate_texts(session)
    logger.debug("%d candidate texts under %d chars", len(texts), TEXT_LENGTH_CEILING)
    value = find_listeners(texts)
    if value is None:
        logger.warning("No monthly listener figure found on the page")
    return value
