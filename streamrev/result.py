"""
result.py — Result Assembly & Display Formatting
==================================================
Pure functions: raw numbers in, immutable :class:`AnalysisResult` and
display strings out.
"""

from __future__ import annotations

import copy
import math
from types import MappingProxyType
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from babel.numbers import format_currency, format_decimal

from streamrev.interaction import ExpansionReport
from streamrev.revenue_model import RevenueEstimate
from streamrev.track_extractor import TrackSample

DEFAULT_LOCALE = "fr_FR"
DEFAULT_CURRENCY = "EUR"


# ── formatting ──────────────────────────────────────────────────────────────

def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def format_compact_number(value: float) -> str:
    """
    ``1_234_567 → "1,2M"``, ``45_600 → "46K"``, ``999 → "999"``.

    Millions keep one decimal with a decimal comma.
    """
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}".replace(".", ",") + "M"
    if value >= 1_000:
        return f"{_round_half_up(value / 1_000)}K"
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def format_revenue(value: float, locale: str = DEFAULT_LOCALE) -> str:
    """Whole-unit amount with locale thousands grouping (``"2 208"``)."""
    return format_decimal(_round_half_up(value), locale=locale)


def format_currency_display(
    value: float,
    currency: str = DEFAULT_CURRENCY,
    locale: str = DEFAULT_LOCALE,
) -> str:
    """Currency string of the whole-unit amount (``"2 208,00 €"`` in fr_FR)."""
    return format_currency(_round_half_up(value), currency, locale=locale)


# ── result objects ──────────────────────────────────────────────────────────

@dataclass(frozen=True)
class FormattedFigures:
    listeners: str
    streams: str
    revenue: str
    revenue_display: str
    ratio: str

    def to_dict(self) -> Dict[str, str]:
        return {
            "listeners": self.listeners,
            "streams": self.streams,
            "revenue": self.revenue,
            "revenue_display": self.revenue_display,
            "ratio": self.ratio,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Everything one pipeline run produced.  Never cached."""

    artist_id: str
    url: str
    monthly_listeners: int
    estimate: RevenueEstimate
    formatted: FormattedFigures
    track_sample: Optional[TrackSample] = None
    artist: Optional[Mapping[str, Any]] = None    # read-only view
    expansion: Optional[ExpansionReport] = None
    notes: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "artist_id": self.artist_id,
            "url": self.url,
            "monthly_listeners": self.monthly_listeners,
            "estimates": self.estimate.to_dict(),
            "top_tracks": self.track_sample.to_dict() if self.track_sample else None,
            "formatted": self.formatted.to_dict(),
            "artist": copy.deepcopy(dict(self.artist)) if self.artist is not None else None,
            "expansion": self.expansion.to_dict() if self.expansion else None,
            "notes": list(self.notes),
        }


def format_figures(
    listeners: int,
    estimate: RevenueEstimate,
    locale: str = DEFAULT_LOCALE,
) -> FormattedFigures:
    return FormattedFigures(
        listeners=format_compact_number(listeners),
        streams=format_compact_number(estimate.monthly_streams),
        revenue=format_revenue(estimate.monthly_revenue, locale),
        revenue_display=format_currency_display(estimate.monthly_revenue, locale=locale),
        ratio=f"{estimate.streams_per_listener:.2f}",
    )


def assemble_result(
    *,
    artist_id: str,
    url: str,
    listeners: int,
    estimate: RevenueEstimate,
    track_sample: TrackSample | None = None,
    artist: Dict[str, Any] | None = None,
    expansion: ExpansionReport | None = None,
    notes: Tuple[str, ...] | list = (),
    locale: str = DEFAULT_LOCALE,
) -> AnalysisResult:
    return AnalysisResult(
        artist_id=artist_id,
        url=url,
        monthly_listeners=listeners,
        estimate=estimate,
        formatted=format_figures(listeners, estimate, locale),
        track_sample=track_sample,
        artist=MappingProxyType(copy.deepcopy(artist)) if artist is not None else None,
        expansion=expansion,
        notes=tuple(notes),
    )


def format_report(result: AnalysisResult) -> str:
    """Multi-line report block for stdout."""
    name = (result.artist or {}).get("name") or result.artist_id
    est = result.estimate
    lines = [
        "=" * 64,
        f"  STREAMREV ESTIMATE — {name}",
        "=" * 64,
        f"  Monthly listeners     : {result.monthly_listeners:>15,}  ({result.formatted.listeners})",
        f"  Audience tier         : {est.tier:>15}",
        f"  Method                : {est.method:>15}",
        f"  Streams / listener    : {est.streams_per_listener:>15.2f}",
        f"  Monthly streams       : {est.monthly_streams:>15,.0f}  ({result.formatted.streams})",
        f"  Monthly revenue       : {result.formatted.revenue_display:>15}",
    ]
    if result.track_sample is not None:
        sample = result.track_sample
        lines.append("-" * 64)
        lines.append(f"  Top tracks ({sample.count}), hit average {sample.hit_average:,.0f}")
        for rank, plays in enumerate(sample.plays, start=1):
            weighted = f"  (weighted {sample.weighted[0]:,})" if rank == 1 else ""
            lines.append(f"    {rank:>2}. {plays:>12,}{weighted}")
    if result.notes:
        lines.append("-" * 64)
        lines.extend(f"  note: {note}" for note in result.notes)
    lines.append("=" * 64)
    return "\n".join(lines)
