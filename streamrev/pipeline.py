"""
pipeline.py — Artist Revenue Analysis Pipeline
================================================
One call, one page session, strictly sequential:

    resolve id → navigate → settle → reveal tracks → track sample
      → monthly listeners → revenue estimate → result

The Spotify Web API profile lookup is the only step that runs
concurrently (in a worker thread); it is best-effort and its failure
never fails the run.

Failure policy
--------------
Terminal: :class:`InvalidArtistInput`, :class:`NavigationError`,
:class:`ListenersUnavailable`.  Non-terminal (recorded in
``AnalysisResult.notes``): list not expanded, no track sample,
enrichment failure.  Nothing is retried here.
"""

from __future__ import annotations

import random
import re
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, List, Optional

from streamrev.config import Settings, load_settings
from streamrev.errors import InvalidArtistInput, ListenersUnavailable
from streamrev.interaction import InteractionDriver
from streamrev.listener_extractor import extract_monthly_listeners
from streamrev.page_session import PageSession, open_page_session
from streamrev.result import AnalysisResult, assemble_result
from streamrev.revenue_model import estimate_revenue
from streamrev.spotify_client import SpotifyWebClient
from streamrev.track_extractor import extract_track_sample
from streamrev.utils import get_logger

logger = get_logger("streamrev.pipeline")

ENRICHMENT_TIMEOUT_S = 10.0

_URL_ID = re.compile(r"/artist/([A-Za-z0-9]+)")
_URI_ID = re.compile(r"^spotify:artist:([A-Za-z0-9]+)$")
_BARE_ID = re.compile(r"^[A-Za-z0-9]{22}$")

SessionFactory = Callable[[Settings], ContextManager[PageSession]]


# ── input resolution ────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ArtistTarget:
    artist_id: str
    url: str


def resolve_artist_target(
    identifier: str,
    base_url: str = "https://open.spotify.com/artist",
) -> ArtistTarget:
    """
    Accept an artist page URL, a ``spotify:artist:`` URI or a bare id.

    Raises :class:`InvalidArtistInput` for anything else.
    """
    text = (identifier or "").strip()
    if not text:
        raise InvalidArtistInput("Provide an artist URL or id")

    match = _URI_ID.match(text)
    if match is None and "/" in text:
        match = _URL_ID.search(text)
    if match is not None:
        artist_id = match.group(1)
    elif _BARE_ID.match(text):
        artist_id = text
    else:
        raise InvalidArtistInput(
            f"Invalid artist identifier {text!r}. "
            "Expected https://open.spotify.com/artist/<id> or a 22-character id."
        )

    return ArtistTarget(artist_id=artist_id, url=f"{base_url.rstrip('/')}/{artist_id}")


# ── enrichment side-channel ─────────────────────────────────────────────────

def _start_enrichment(
    executor: ThreadPoolExecutor,
    client: SpotifyWebClient | None,
    settings: Settings,
    artist_id: str,
) -> Optional[Future]:
    if client is None:
        if not settings.has_spotify_credentials:
            logger.debug("No Spotify credentials — skipping enrichment")
            return None
        client = SpotifyWebClient(settings)
    return executor.submit(client.get_artist_profile, artist_id)


def _collect_enrichment(future: Optional[Future], notes: List[str]) -> Optional[Dict[str, Any]]:
    if future is None:
        return None
    try:
        return future.result(timeout=ENRICHMENT_TIMEOUT_S)
    except Exception as exc:
        logger.warning("Enrichment failed: %s", exc)
        notes.append(f"enrichment unavailable: {exc}")
        return None


# ── entry point ─────────────────────────────────────────────────────────────

def analyse_artist(
    identifier: str,
    *,
    settings: Settings | None = None,
    session_factory: SessionFactory | None = None,
    enrichment_client: SpotifyWebClient | None = None,
    enrich: bool = True,
    driver: InteractionDriver | None = None,
    rng: random.Random | None = None,
) -> AnalysisResult:
    """
    Run the full scrape-and-estimate pipeline for one artist.

    Parameters
    ----------
    identifier : str
        Artist page URL, ``spotify:artist:`` URI or bare id.
    settings : Settings, optional
        Loaded from ``.env`` when omitted.
    session_factory : callable, optional
        ``settings -> context manager yielding a PageSession``;
        defaults to :func:`open_page_session`.
    enrichment_client : SpotifyWebClient, optional
        Overrides the client built from ``settings``.
    enrich : bool
        Set False to skip the Web API lookup entirely.
    driver : InteractionDriver, optional
        Custom reveal strategies / polling.
    rng : random.Random, optional
        Jitter source for the fallback ratio; defaults to a generator
        seeded with ``settings.random_seed`` (unseeded when unset).
    """
    settings = settings or load_settings(require_secrets=False)
    session_factory = session_factory or open_page_session
    driver = driver or InteractionDriver()
    if rng is None:
        rng = random.Random(settings.random_seed)

    target = resolve_artist_target(identifier, settings.artist_page_url)
    logger.info("Analysing %s", target.url)

    notes: List[str] = []
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="enrich")
    try:
        future = None
        if enrich:
            try:
                future = _start_enrichment(executor, enrichment_client, settings, target.artist_id)
            except Exception as exc:
                logger.warning("Enrichment not started: %s", exc)
                notes.append(f"enrichment unavailable: {exc}")

        with session_factory(settings) as session:
            session.navigate(target.url, settings.navigation_timeout_ms)
            session.wait(settings.settle_delay_ms)

            expansion = driver.expand(session)
            if not expansion.expanded:
                notes.append(
                    f"track list not expanded; using {expansion.after.tracks} rendered rows"
                )

            track_sample = extract_track_sample(session)
            if track_sample is None:
                notes.append("track sample unavailable; fallback ratio curve used")

            listeners = extract_monthly_listeners(session)

        if listeners is None:
            raise ListenersUnavailable(
                f"Could not find the monthly listener count on {target.url}"
            )

        estimate = estimate_revenue(
            listeners,
            track_sample,
            rng=rng,
            jitter=settings.fallback_jitter,
        )
        logger.info(
            "%s listeners (%s, %s) × %.2f streams/listener → %s streams, %.0f EUR",
            f"{listeners:,}", estimate.tier, estimate.method,
            estimate.streams_per_listener, f"{estimate.monthly_streams:,.0f}",
            estimate.monthly_revenue,
        )
        artist = _collect_enrichment(future, notes)
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    for note in notes:
        logger.info("Note: %s", note)

    return assemble_result(
        artist_id=target.artist_id,
        url=target.url,
        listeners=listeners,
        estimate=estimate,
        track_sample=track_sample,
        artist=artist,
        expansion=expansion,
        notes=notes,
        locale=settings.display_locale,
    )
