"""
errors.py — Terminal failure taxonomy for one analysis run
============================================================
Non-terminal conditions (missing track sample, enrichment failure) are
not exceptions; they degrade the result and are recorded in
``AnalysisResult.notes``.
"""

from __future__ import annotations


class AnalysisError(Exception):
    """Base class for every condition that aborts an analysis run."""


class InvalidArtistInput(AnalysisError, ValueError):
    """The identifier cannot be resolved to an artist page."""


class NavigationError(AnalysisError):
    """The artist page could not be reached (timeout / network)."""


class ListenersUnavailable(AnalysisError):
    """Every listener-extraction strategy came back empty."""
