"""
track_extractor.py — Per-Track Play Count Extraction
======================================================
Builds a :class:`TrackSample` from the popular-tracks list of an artist
page (ideally after :mod:`streamrev.interaction` revealed the extra
rows).

Strategies
----------
**TrackRowStrategy (primary)**
    For every ``tracklist-row`` take the first descendant text that looks
    like a play count: digit groups separated by spaces / commas, no
    colon (``3:21`` is a duration), ``100 < n < 50M``.

**PopularSectionStrategy (fallback, only when no row is rendered)**
    Locate the ``h2`` titled "Populaires" / "Popular", read the whole
    section text and regex out space-grouped numbers above 10 000.

Post-processing
---------------
Fewer than three values means no usable sample.  Otherwise values are
sorted descending, the top one gets an 80 % haircut, and the mean of
the adjusted sequence becomes the *hit average*::

    [1.8M, 900k, 600k, 400k, 300k] → top 1.44M → hit average 728k
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from streamrev.interaction import TRACK_ROW_SELECTOR
from streamrev.page_session import PageSession
from streamrev.utils import get_logger, parse_int, shorten

logger = get_logger("streamrev.track_extractor")


# ── constants ───────────────────────────────────────────────────────────────

MIN_PLAYS = 100                # exclusive
MAX_PLAYS = 50_000_000         # exclusive
SECTION_MIN_PLAYS = 10_000     # exclusive; fallback text scan is noisier
MIN_SAMPLE_SIZE = 3
TOP_TRACK_WEIGHT = 0.8         # haircut applied to the single biggest hit

POPULAR_HEADINGS = ("Populaires", "Popular", "Populares", "Beliebt")

# Grouped ("1 791 149", "12,345") or bare 4–8 digit counts.
_PLAY_COUNT_SHAPE = re.compile(r"^(?:\d{1,3}(?:[\s,]\d{3})+|\d{4,8}|\d{1,3})$")
_SECTION_NUMBER = re.compile(r"\b(\d{1,3}(?:\s\d{3}){1,2})\b")

ROW_TEXTS_SCRIPT = """
([rowSelector, cellSelector]) => Array.from(
    document.querySelectorAll(rowSelector),
    row => Array.from(row.querySelectorAll(cellSelector), el => el.textContent.trim())
)
"""

POPULAR_SECTION_SCRIPT = """
headings => {
    for (const h2 of document.querySelectorAll('h2')) {
        if (headings.includes(h2.textContent.trim())) {
            const section = h2.closest('section') || h2.parentElement;
            return section ? section.textContent : null;
        }
    }
    return null;
}
"""

# Stream counts live in Encore text cells inside each row.
ROW_CELL_SELECTOR = 'div[class*="encore-text"]'


# ── value object ────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TrackSample:
    """
    Play counts of the currently rendered popular tracks.

    ``plays`` is sorted descending; ``weighted`` is the same sequence
    with the top entry haircut.
    """

    plays: Tuple[int, ...]
    weighted: Tuple[int, ...]
    hit_average: float

    @property
    def count(self) -> int:
        return len(self.plays)

    def to_dict(self) -> dict:
        return {
            "tracks": list(self.plays),
            "weighted": list(self.weighted),
            "average": self.hit_average,
            "count": self.count,
        }


def is_plausible_play_count(value: int, minimum: int = MIN_PLAYS) -> bool:
    return minimum < value < MAX_PLAYS


def parse_play_count(text: str) -> Optional[int]:
    """
    Parse one cell text as a play count.

    Returns ``None`` for durations (anything with a colon), other
    shapes, and values outside ``(100, 50M)``.
    """
    text = (text or "").strip()
    if not text or ":" in text or not _PLAY_COUNT_SHAPE.match(text):
        return None
    value = parse_int(text)
    if value is None or not is_plausible_play_count(value):
        return None
    return value


def build_track_sample(values: Iterable[int]) -> Optional[TrackSample]:
    """Sort, haircut the top entry, average. ``None`` below three values."""
    plays = sorted((int(v) for v in values), reverse=True)
    if len(plays) < MIN_SAMPLE_SIZE:
        return None

    weighted = np.array(plays, dtype=float)
    weighted[0] = np.floor(weighted[0] * TOP_TRACK_WEIGHT + 0.5)
    hit_average = float(weighted.mean())

    return TrackSample(
        plays=tuple(plays),
        weighted=tuple(int(v) for v in weighted),
        hit_average=hit_average,
    )


# ── strategies ──────────────────────────────────────────────────────────────

class TrackRowStrategy:
    """First plausible play count per rendered track row."""

    name = "track-rows"

    def __init__(
        self,
        row_selector: str = TRACK_ROW_SELECTOR,
        cell_selector: str = ROW_CELL_SELECTOR,
    ) -> None:
        self.row_selector = row_selector
        self.cell_selector = cell_selector

    def row_texts(self, session: PageSession) -> List[List[str]]:
        return session.evaluate(ROW_TEXTS_SCRIPT, [self.row_selector, self.cell_selector]) or []

    @staticmethod
    def parse_rows(rows: Sequence[Sequence[str]]) -> List[int]:
        found: List[int] = []
        for index, cells in enumerate(rows, start=1):
            for text in cells:
                value = parse_play_count(text)
                if value is not None:
                    logger.debug("Row %d: %s plays (%r)", index, f"{value:,}", text)
                    found.append(value)
                    break
        return found


class PopularSectionStrategy:
    """Regex scan of the "Popular" section text."""

    name = "popular-section"

    def __init__(self, headings: Sequence[str] = POPULAR_HEADINGS) -> None:
        self.headings = list(headings)

    def section_text(self, session: PageSession) -> Optional[str]:
        return session.evaluate(POPULAR_SECTION_SCRIPT, self.headings)

    @staticmethod
    def parse_section(text: str) -> List[int]:
        found: List[int] = []
        for token in _SECTION_NUMBER.findall(text or ""):
            value = parse_int(token)
            if value is not None and is_plausible_play_count(value, SECTION_MIN_PLAYS):
                found.append(value)
        return found


# ── public entry point ──────────────────────────────────────────────────────

def collect_play_counts(
    session: PageSession,
    rows: TrackRowStrategy | None = None,
    section: PopularSectionStrategy | None = None,
) -> List[int]:
    """Raw validated play counts, before sample-size policy."""
    rows = rows or TrackRowStrategy()
    section = section or PopularSectionStrategy()

    row_texts = rows.row_texts(session)
    logger.info("%d track rows rendered", len(row_texts))
    if row_texts:
        return rows.parse_rows(row_texts)

    logger.info("No track rows — falling back to the popular section text")
    text = section.section_text(session)
    if not text:
        logger.info("Popular section not found")
        return []
    logger.debug("Popular section text: %s", shorten(text, 300))
    return section.parse_section(text)


def extract_track_sample(session: PageSession) -> Optional[TrackSample]:
    """
    Build a fresh :class:`TrackSample` from the page, or ``None`` when
    fewer than three play counts were found.
    """
    values = collect_play_counts(session)
    sample = build_track_sample(values)

    if sample is None:
        logger.warning(
            "Only %d play counts found (%d needed) — no track sample",
            len(values), MIN_SAMPLE_SIZE,
        )
        return None

    logger.info(
        "Track sample: %d tracks, top %s → %s after haircut, hit average %s",
        sample.count,
        f"{sample.plays[0]:,}",
        f"{sample.weighted[0]:,}",
        f"{sample.hit_average:,.0f}",
    )
    return sample
