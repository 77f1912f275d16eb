#!/usr/bin/env python3
"""
main.py — Streamrev: Artist Revenue Estimator
===============================================
Scrapes a public artist page for monthly listeners and popular-track
play counts, then estimates monthly streams and revenue.

Modes
-----
    python main.py https://open.spotify.com/artist/<id>   # single artist report
    python main.py <id> --json                            # JSON response body
    python main.py --batch artists.txt --out report.csv   # sequential scan
    python main.py --search "Daft Punk"                   # Web API autocomplete
    python main.py --trending                             # popular artists by genre
    python main.py <id> --seed 42 --no-enrich             # reproducible fallback
"""

from __future__ import annotations

import argparse
import dataclasses
import datetime
import json
import logging
import pathlib
import random
import sys
import time as _time
import traceback
from typing import Any, Dict, List

import pandas as pd

from streamrev.config import Settings, load_settings
from streamrev.errors import AnalysisError
from streamrev.pipeline import analyse_artist
from streamrev.result import AnalysisResult, format_report
from streamrev.spotify_client import SpotifyAuthError, SpotifyAPIError, SpotifyWebClient
from streamrev.utils import get_logger, set_log_level

logger = get_logger("streamrev.main")


def _timestamp() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


# ═════════════════════════════════════════════════════════════════════════════
#  SINGLE ARTIST
# ═════════════════════════════════════════════════════════════════════════════

def _print_failure(exc: BaseException) -> None:
    print(json.dumps({
        "success": False,
        "error": str(exc),
        "error_type": type(exc).__name__,
        "timestamp": _timestamp(),
    }, indent=2, ensure_ascii=False))


def run_single(
    identifier: str,
    settings: Settings,
    *,
    enrich: bool = True,
    rng: random.Random | None = None,
    as_json: bool = False,
) -> int:
    """Analyse one artist, print the report / JSON body, return exit code."""
    started = _time.perf_counter()
    try:
        result = analyse_artist(identifier, settings=settings, enrich=enrich, rng=rng)
    except AnalysisError as exc:
        logger.error("Analysis failed: %s", exc)
        if as_json:
            _print_failure(exc)
        return 1
    except Exception as exc:
        logger.error("Pipeline crashed:\n%s", traceback.format_exc())
        if as_json:
            _print_failure(exc)
        return 1
    duration_ms = (_time.perf_counter() - started) * 1000

    logger.info("Analysis finished in %.0fms", duration_ms)
    if as_json:
        print(json.dumps({
            "success": True,
            "duration": f"{duration_ms:.0f}ms",
            "url": result.url,
            "data": result.to_dict(),
            "timestamp": _timestamp(),
        }, indent=2, ensure_ascii=False))
    else:
        print(format_report(result))
    return 0


# ═════════════════════════════════════════════════════════════════════════════
#  BATCH SCAN
# ═════════════════════════════════════════════════════════════════════════════

def read_identifiers(path: pathlib.Path) -> List[str]:
    """One identifier per line; blank lines and ``#`` comments skipped."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [ln.strip() for ln in lines if ln.strip() and not ln.strip().startswith("#")]


def summary_row(identifier: str, result: AnalysisResult | None, error: str = "") -> Dict[str, Any]:
    if result is None:
        return {"input": identifier, "artist_id": None, "name": None,
                "listeners": None, "tier": None, "method": None, "ratio": None,
                "monthly_streams": None, "monthly_revenue_eur": None,
                "tracks_sampled": 0, "error": error}
    est = result.estimate
    return {
        "input": identifier,
        "artist_id": result.artist_id,
        "name": (result.artist or {}).get("name"),
        "listeners": result.monthly_listeners,
        "tier": est.tier,
        "method": est.method,
        "ratio": round(est.streams_per_listener, 3),
        "monthly_streams": round(est.monthly_streams),
        "monthly_revenue_eur": round(est.monthly_revenue, 2),
        "tracks_sampled": result.track_sample.count if result.track_sample else 0,
        "error": error,
    }


def run_batch(
    identifiers: List[str],
    settings: Settings,
    *,
    enrich: bool = True,
    rng: random.Random | None = None,
) -> pd.DataFrame:
    """
    Analyse artists one after another (one browser session each) and
    return a summary DataFrame sorted by estimated revenue.
    """
    logger.info("=" * 64)
    logger.info("BATCH SCAN — %d artists", len(identifiers))
    logger.info("=" * 64)

    rows: List[Dict[str, Any]] = []
    for i, identifier in enumerate(identifiers, start=1):
        logger.info("[%d/%d] %s", i, len(identifiers), identifier)
        try:
            result = analyse_artist(identifier, settings=settings, enrich=enrich, rng=rng)
        except AnalysisError as exc:
            logger.warning("  %s — %s", identifier, exc)
            rows.append(summary_row(identifier, None, str(exc)))
            continue
        except Exception as exc:
            logger.error("  %s crashed:\n%s", identifier, traceback.format_exc())
            rows.append(summary_row(identifier, None, f"{type(exc).__name__}: {exc}"))
            continue
        rows.append(summary_row(identifier, result))

    df = pd.DataFrame(rows)
    if not df.empty:
        df = df.sort_values("monthly_revenue_eur", ascending=False, na_position="last")
        df = df.reset_index(drop=True)

    ok = int((df["error"] == "").sum()) if not df.empty else 0
    logger.info("Batch done: %d/%d analysed", ok, len(identifiers))
    return df


def print_batch_table(df: pd.DataFrame) -> None:
    print()
    print("  ESTIMATED MONTHLY REVENUE")
    print("  " + "-" * 72)
    if df.empty:
        print("  (no artists)")
        return
    cols = ["artist_id", "name", "listeners", "tier", "ratio", "monthly_revenue_eur", "error"]
    print(df[cols].to_string(index=False))
    print("  " + "-" * 72)


# ═════════════════════════════════════════════════════════════════════════════
#  SEARCH
# ═════════════════════════════════════════════════════════════════════════════

def _print_artists(artists: List[Dict[str, Any]]) -> None:
    for a in artists:
        followers = f"{a['followers']:,}" if a.get("followers") is not None else "—"
        print(f"  {a['id']}  {a['name']:<30s}  followers {followers:>12s}  pop {a.get('popularity')}")


def run_search(query: str, settings: Settings, limit: int = 10) -> int:
    try:
        client = SpotifyWebClient(settings)
        artists = client.search_artists(query, limit=limit)
    except (SpotifyAuthError, SpotifyAPIError) as exc:
        logger.error("Search failed: %s", exc)
        return 1

    _print_artists(artists)
    return 0


def run_trending(settings: Settings) -> int:
    try:
        client = SpotifyWebClient(settings)
        artists = client.trending_artists()
    except (SpotifyAuthError, SpotifyAPIError) as exc:
        logger.error("Trending lookup failed: %s", exc)
        return 1

    _print_artists(artists)
    return 0


# ═════════════════════════════════════════════════════════════════════════════
#  CLI
# ═════════════════════════════════════════════════════════════════════════════

def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Streamrev — monthly streaming revenue estimator",
    )

    # ── Mode switches ────────────────────────────────────────────────
    parser.add_argument(
        "artist",
        nargs="?",
        default=None,
        help="Artist page URL, spotify:artist: URI or 22-character id.",
    )
    parser.add_argument(
        "--batch",
        type=pathlib.Path,
        default=None,
        help="File with one artist URL / id per line; analysed sequentially.",
    )
    parser.add_argument(
        "--out",
        type=pathlib.Path,
        default=None,
        help="Write the --batch summary table to this CSV file.",
    )
    parser.add_argument(
        "--search",
        type=str,
        default=None,
        help="Look up artists by name via the Spotify Web API (needs credentials).",
    )
    parser.add_argument(
        "--trending",
        action="store_true",
        default=False,
        help="List popular artists from a few genre searches (needs credentials).",
    )

    # ── Output / behaviour ───────────────────────────────────────────
    parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Print a JSON response body instead of the text report.",
    )
    parser.add_argument(
        "--no-enrich",
        action="store_true",
        default=False,
        help="Skip the Spotify Web API profile lookup.",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed the fallback-ratio jitter (overrides RANDOM_SEED in .env).",
    )
    parser.add_argument(
        "--no-jitter",
        action="store_true",
        default=False,
        help="Use the tier base ratio without jitter when no track sample exists.",
    )
    parser.add_argument(
        "--headful",
        action="store_true",
        default=False,
        help="Show the browser window.",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        default=False,
        help="DEBUG logging (includes page console output).",
    )

    args = parser.parse_args(argv)
    if not (args.artist or args.batch or args.search or args.trending):
        parser.error("give an artist, --batch FILE, --search QUERY or --trending")
    return args


def build_settings(args: argparse.Namespace) -> Settings:
    settings = load_settings(require_secrets=False)
    overrides: Dict[str, Any] = {}
    if args.seed is not None:
        overrides["random_seed"] = args.seed
    if args.no_jitter:
        overrides["fallback_jitter"] = False
    if args.headful:
        overrides["browser_headless"] = False
    return dataclasses.replace(settings, **overrides) if overrides else settings


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    if args.verbose:
        set_log_level(logging.DEBUG)

    settings = build_settings(args)
    enrich = not args.no_enrich
    rng = random.Random(settings.random_seed)

    if args.trending:
        sys.exit(run_trending(settings))

    if args.search:
        sys.exit(run_search(args.search, settings))

    if args.batch:
        df = run_batch(read_identifiers(args.batch), settings, enrich=enrich, rng=rng)
        print_batch_table(df)
        if args.out:
            df.to_csv(args.out, index=False)
            logger.info("Summary written to %s", args.out)
        sys.exit(0)

    sys.exit(run_single(args.artist, settings, enrich=enrich, rng=rng, as_json=args.json))


if __name__ == "__main__":
    main()
