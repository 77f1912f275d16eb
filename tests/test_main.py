"""
test_main.py — CLI argument handling and batch summary
=======================================================
"""

from __future__ import annotations

import contextlib
import io
import json
import pathlib
import tempfile
import unittest
from unittest import mock

import main
from streamrev.config import Settings
from streamrev.errors import ListenersUnavailable
from streamrev.result import assemble_result
from streamrev.revenue_model import estimate_revenue


def _result(artist_id: str, listeners: int):
    return assemble_result(
        artist_id=artist_id,
        url=f"https://open.spotify.com/artist/{artist_id}",
        listeners=listeners,
        estimate=estimate_revenue(listeners, jitter=False),
    )


class TestParseArgs(unittest.TestCase):

    def test_requires_a_mode(self):
        with mock.patch("sys.stderr"), self.assertRaises(SystemExit):
            main.parse_args([])

    def test_overrides_applied(self):
        args = main.parse_args(["abc", "--seed", "7", "--no-jitter", "--headful"])
        with mock.patch.object(main, "load_settings", return_value=Settings()):
            settings = main.build_settings(args)
        self.assertEqual(settings.random_seed, 7)
        self.assertFalse(settings.fallback_jitter)
        self.assertFalse(settings.browser_headless)


class TestBatch(unittest.TestCase):

    def test_read_identifiers_skips_comments(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = pathlib.Path(tmp) / "artists.txt"
            path.write_text("# watchlist\nabc\n\n  def  \n", encoding="utf-8")
            self.assertEqual(main.read_identifiers(path), ["abc", "def"])

    def test_batch_sorted_by_revenue_and_failures_kept(self):
        outcomes = {
            "small": _result("small", 20_000),
            "big": _result("big", 3_000_000),
        }

        def fake_analyse(identifier, **kwargs):
            if identifier == "broken":
                raise ListenersUnavailable("no listeners")
            return outcomes[identifier]

        with mock.patch.object(main, "analyse_artist", side_effect=fake_analyse):
            df = main.run_batch(["small", "broken", "big"], Settings())

        self.assertEqual(list(df["input"]), ["big", "small", "broken"])
        self.assertEqual(df.loc[2, "error"], "no listeners")
        self.assertEqual(df.loc[0, "tier"], "mainstream")
        self.assertEqual(df.loc[1, "ratio"], 4.0)


class TestRunSingle(unittest.TestCase):

    def _run_json(self, error: Exception) -> dict:
        out = io.StringIO()
        with mock.patch.object(main, "analyse_artist", side_effect=error), \
                contextlib.redirect_stdout(out):
            code = main.run_single("abc", Settings(), as_json=True)
        self.assertEqual(code, 1)
        return json.loads(out.getvalue())

    def test_analysis_error_json_body(self):
        body = self._run_json(ListenersUnavailable("no listeners"))
        self.assertFalse(body["success"])
        self.assertEqual(body["error_type"], "ListenersUnavailable")

    def test_unexpected_crash_still_prints_json_body(self):
        body = self._run_json(RuntimeError("browser died"))
        self.assertFalse(body["success"])
        self.assertEqual(body["error"], "browser died")
        self.assertEqual(body["error_type"], "RuntimeError")
        self.assertIn("timestamp", body)


class TestTrending(unittest.TestCase):

    def test_trending_mode_accepted(self):
        self.assertTrue(main.parse_args(["--trending"]).trending)

    def test_trending_prints_ranked_artists(self):
        client = mock.Mock()
        client.trending_artists.return_value = [
            {"id": "b", "name": "Justice", "followers": 1_000, "popularity": 90},
        ]
        out = io.StringIO()
        with mock.patch.object(main, "SpotifyWebClient", return_value=client), \
                contextlib.redirect_stdout(out):
            code = main.run_trending(Settings())
        self.assertEqual(code, 0)
        self.assertIn("Justice", out.getvalue())

    def test_trending_without_credentials(self):
        self.assertEqual(main.run_trending(Settings()), 1)


if __name__ == "__main__":
    unittest.main()
