"""
test_pipeline.py — End-to-end pipeline over a fake page session
=================================================================
"""

from __future__ import annotations

import random
import unittest
from contextlib import contextmanager

from streamrev.config import Settings
from streamrev.errors import InvalidArtistInput, ListenersUnavailable, NavigationError
from streamrev.interaction import InteractionDriver, PollConfig
from streamrev.pipeline import analyse_artist, resolve_artist_target
from tests.fakes import FakeClock, FakePageSession

ARTIST_ID = "4tZwfgrHOc3mvqYlEYSvVi"
ARTIST_URL = f"https://open.spotify.com/artist/{ARTIST_ID}"


def _row(title: str, plays: str) -> list[str]:
    return [title, "E", plays, "3:21"]


def _popular_page(**overrides) -> FakePageSession:
    params = dict(
        row_texts=[
            _row("A", "1 800 000"),
            _row("B", "900 000"),
            _row("C", "600 000"),
            _row("D", "400 000"),
            _row("E", "300 000"),
        ],
        texts=["Artiste vérifié", "1 200 000 auditeurs mensuels"],
    )
    params.update(overrides)
    return FakePageSession(**params)


def _factory(page: FakePageSession):
    @contextmanager
    def open_session(settings):
        try:
            yield page
        finally:
            page.close()
    return open_session


def _driver() -> InteractionDriver:
    clock = FakeClock()
    return InteractionDriver(poll=PollConfig(), clock=clock, sleep=clock.sleep)


class _Profile:
    def __init__(self, profile=None, error=None):
        self.profile = profile
        self.error = error
        self.calls = []

    def get_artist_profile(self, artist_id):
        self.calls.append(artist_id)
        if self.error is not None:
            raise self.error
        return self.profile


class TestResolveArtistTarget(unittest.TestCase):

    def test_page_url(self):
        target = resolve_artist_target(f"{ARTIST_URL}?si=abc123")
        self.assertEqual(target.artist_id, ARTIST_ID)
        self.assertEqual(target.url, ARTIST_URL)

    def test_localised_url(self):
        target = resolve_artist_target(f"https://open.spotify.com/intl-fr/artist/{ARTIST_ID}")
        self.assertEqual(target.artist_id, ARTIST_ID)

    def test_uri(self):
        self.assertEqual(resolve_artist_target(f"spotify:artist:{ARTIST_ID}").artist_id, ARTIST_ID)

    def test_bare_id(self):
        self.assertEqual(resolve_artist_target(f"  {ARTIST_ID} ").url, ARTIST_URL)

    def test_invalid_inputs(self):
        for bad in ("", "   ", "daft punk", "https://open.spotify.com/album/", "abc"):
            with self.subTest(bad=bad), self.assertRaises(InvalidArtistInput):
                resolve_artist_target(bad)

    def test_invalid_input_is_value_error(self):
        with self.assertRaises(ValueError):
            resolve_artist_target("nope")


class TestAnalyseArtist(unittest.TestCase):

    def setUp(self) -> None:
        self.settings = Settings(settle_delay_ms=1_000, fallback_jitter=False)

    def test_reference_run(self):
        page = _popular_page()
        result = analyse_artist(
            ARTIST_URL, settings=self.settings, session_factory=_factory(page),
            driver=_driver(),
        )

        self.assertEqual(page.navigated, [ARTIST_URL])
        self.assertIn(1_000, page.waits)
        self.assertTrue(page.closed)

        self.assertEqual(result.artist_id, ARTIST_ID)
        self.assertEqual(result.monthly_listeners, 1_200_000)
        self.assertEqual(result.estimate.method, "adaptive")
        self.assertEqual(result.estimate.streams_per_listener, 0.5)
        self.assertAlmostEqual(result.estimate.monthly_revenue, 2_208.0)
        self.assertEqual(result.track_sample.hit_average, 728_000.0)
        self.assertTrue(result.expansion.expanded)
        self.assertIsNone(result.artist)
        self.assertEqual(result.notes, ())

    def test_fallback_when_no_track_sample(self):
        page = _popular_page(row_texts=[], texts=["20 000 auditeurs mensuels"])
        result = analyse_artist(
            ARTIST_ID, settings=self.settings, session_factory=_factory(page),
            driver=_driver(),
        )
        self.assertEqual(result.estimate.method, "fallback")
        self.assertEqual(result.estimate.streams_per_listener, 4.0)
        self.assertIn("track sample unavailable; fallback ratio curve used", result.notes)

    def test_seeded_fallback_is_reproducible(self):
        settings = Settings()
        runs = [
            analyse_artist(
                ARTIST_ID, settings=settings,
                session_factory=_factory(_popular_page(row_texts=[])),
                driver=_driver(), rng=random.Random(5),
            )
            for _ in range(2)
        ]
        self.assertEqual(runs[0].estimate, runs[1].estimate)

    def test_unexpanded_list_is_noted_not_fatal(self):
        page = _popular_page(script_click_works=False, label_click_works=False)
        result = analyse_artist(
            ARTIST_ID, settings=self.settings, session_factory=_factory(page),
            driver=_driver(),
        )
        self.assertFalse(result.expansion.expanded)
        self.assertIn("track list not expanded; using 5 rendered rows", result.notes)
        self.assertEqual(result.estimate.method, "adaptive")

    def test_missing_listeners_is_terminal(self):
        page = _popular_page(texts=["Suivre", "Populaires"])
        with self.assertRaises(ListenersUnavailable):
            analyse_artist(
                ARTIST_ID, settings=self.settings, session_factory=_factory(page),
                driver=_driver(),
            )
        self.assertTrue(page.closed)

    def test_navigation_error_propagates_and_closes_session(self):
        page = _popular_page(navigate_error=NavigationError("timeout"))
        with self.assertRaises(NavigationError):
            analyse_artist(
                ARTIST_ID, settings=self.settings, session_factory=_factory(page),
                driver=_driver(),
            )
        self.assertTrue(page.closed)
        self.assertEqual(page.navigated, [])

    def test_invalid_input_never_opens_a_session(self):
        opened = []

        @contextmanager
        def factory(settings):
            opened.append(True)
            yield _popular_page()

        with self.assertRaises(InvalidArtistInput):
            analyse_artist("not an artist", settings=self.settings, session_factory=factory)
        self.assertEqual(opened, [])

    def test_enrichment_attached(self):
        client = _Profile(profile={"id": ARTIST_ID, "name": "Daft Punk"})
        result = analyse_artist(
            ARTIST_ID, settings=self.settings, session_factory=_factory(_popular_page()),
            enrichment_client=client, driver=_driver(),
        )
        self.assertEqual(client.calls, [ARTIST_ID])
        self.assertEqual(result.artist["name"], "Daft Punk")

    def test_enrichment_failure_is_non_terminal(self):
        client = _Profile(error=RuntimeError("503 from API"))
        result = analyse_artist(
            ARTIST_ID, settings=self.settings, session_factory=_factory(_popular_page()),
            enrichment_client=client, driver=_driver(),
        )
        self.assertIsNone(result.artist)
        self.assertIn("enrichment unavailable: 503 from API", result.notes)
        self.assertEqual(result.monthly_listeners, 1_200_000)

    def test_enrich_disabled_skips_client(self):
        client = _Profile(profile={"name": "x"})
        result = analyse_artist(
            ARTIST_ID, settings=self.settings, session_factory=_factory(_popular_page()),
            enrichment_client=client, enrich=False, driver=_driver(),
        )
        self.assertEqual(client.calls, [])
        self.assertIsNone(result.artist)


if __name__ == "__main__":
    unittest.main()
