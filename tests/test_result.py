"""
test_result.py — Display formatting and result assembly
========================================================
"""

from __future__ import annotations

import dataclasses
import json
import unittest

from streamrev.interaction import DomSnapshot, ExpansionReport
from streamrev.result import (
    assemble_result,
    format_compact_number,
    format_currency_display,
    format_report,
    format_revenue,
)
from streamrev.revenue_model import estimate_revenue
from streamrev.track_extractor import build_track_sample


def _plain(text: str) -> str:
    """Normalise locale spacing (NBSP / narrow NBSP) to ASCII spaces."""
    return text.replace("\u202f", " ").replace("\xa0", " ")


class TestCompactNumber(unittest.TestCase):

    def test_millions_one_decimal_with_comma(self):
        self.assertEqual(format_compact_number(1_234_567), "1,2M")
        self.assertEqual(format_compact_number(600_000_000), "600,0M")

    def test_thousands_rounded(self):
        self.assertEqual(format_compact_number(45_600), "46K")
        self.assertEqual(format_compact_number(600_000), "600K")
        self.assertEqual(format_compact_number(1_000), "1K")

    def test_small_values_plain(self):
        self.assertEqual(format_compact_number(999), "999")
        self.assertEqual(format_compact_number(0), "0")
        self.assertEqual(format_compact_number(12.5), "12.5")


class TestRevenueFormatting(unittest.TestCase):

    def test_french_grouping(self):
        self.assertEqual(_plain(format_revenue(2_208.0)), "2 208")

    def test_rounds_half_up(self):
        self.assertEqual(_plain(format_revenue(1_234_567.5)), "1 234 568")
        self.assertEqual(format_revenue(0.4), "0")

    def test_english_locale(self):
        self.assertEqual(format_revenue(2_208.4, locale="en_US"), "2,208")

    def test_currency_display(self):
        display = _plain(format_currency_display(2_208.0))
        self.assertIn("2 208", display)
        self.assertIn("€", display)


class TestAssembleResult(unittest.TestCase):

    def setUp(self) -> None:
        self.sample = build_track_sample([1_800_000, 900_000, 600_000, 400_000, 300_000])
        self.estimate = estimate_revenue(1_200_000, self.sample)
        self.expansion = ExpansionReport(
            expanded=True, strategy="script-click",
            before=DomSnapshot(5, 20_000), after=DomSnapshot(10, 36_000),
            attempts=("script-click",),
        )

    def test_formatted_strings(self):
        result = assemble_result(
            artist_id="4tZwfgrHOc3mvqYlEYSvVi",
            url="https://open.spotify.com/artist/4tZwfgrHOc3mvqYlEYSvVi",
            listeners=1_200_000,
            estimate=self.estimate,
            track_sample=self.sample,
        )
        self.assertEqual(result.formatted.listeners, "1,2M")
        self.assertEqual(result.formatted.streams, "600K")
        self.assertEqual(_plain(result.formatted.revenue), "2 208")
        self.assertEqual(result.formatted.ratio, "0.50")

    def test_to_dict_is_json_serialisable(self):
        result = assemble_result(
            artist_id="abc", url="https://open.spotify.com/artist/abc",
            listeners=1_200_000, estimate=self.estimate,
            track_sample=self.sample, expansion=self.expansion,
            artist={"name": "Daft Punk"}, notes=["something degraded"],
        )
        payload = json.loads(json.dumps(result.to_dict()))
        self.assertEqual(payload["monthly_listeners"], 1_200_000)
        self.assertEqual(payload["top_tracks"]["count"], 5)
        self.assertEqual(payload["expansion"]["tracks_after"], 10)
        self.assertEqual(payload["notes"], ["something degraded"])

    def test_result_without_sample(self):
        est = estimate_revenue(20_000, jitter=False)
        result = assemble_result(artist_id="abc", url="u", listeners=20_000, estimate=est)
        self.assertIsNone(result.to_dict()["top_tracks"])
        self.assertEqual(result.formatted.streams, "80K")

    def test_report_mentions_key_figures(self):
        result = assemble_result(
            artist_id="abc", url="u", listeners=1_200_000,
            estimate=self.estimate, track_sample=self.sample,
            artist={"name": "Daft Punk"},
        )
        report = format_report(result)
        self.assertIn("Daft Punk", report)
        self.assertIn("1,200,000", report)
        self.assertIn("established", report)
        self.assertIn("1,440,000", report)

    def test_result_is_read_only(self):
        profile = {"name": "Daft Punk", "genres": ["french house"]}
        result = assemble_result(
            artist_id="abc", url="u", listeners=1_200_000, estimate=self.estimate,
            expansion=self.expansion, artist=profile,
        )
        with self.assertRaises(dataclasses.FrozenInstanceError):
            result.expansion.expanded = False
        with self.assertRaises(TypeError):
            result.artist["name"] = "Someone else"

        profile["genres"].append("disco")
        exported = result.to_dict()
        exported["artist"]["genres"].append("pop")
        self.assertEqual(list(result.artist["genres"]), ["french house"])


if __name__ == "__main__":
    unittest.main()
