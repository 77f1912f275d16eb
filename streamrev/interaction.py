"""
interaction.py — "Show more" Interaction Driver
=================================================
An artist page renders only the first five popular tracks.  This module
tries to reveal the rest by activating the list's "show more" control
and watching the DOM for growth.

Strategy order
--------------
1. :class:`ScriptClickStrategy` — programmatic ``element.click()`` on
   the control found by the structural selector.
2. :class:`LabelClickStrategy`  — scan every ``button`` for a known
   label ("Afficher plus", "Show more", ...) and click the first hit.

After each attempt :func:`wait_for_growth` polls a :class:`DomSnapshot`
until either the list container's markup grew by more than
``PollConfig.growth_threshold`` characters or the rendered row count
increased.  If nothing changes the driver gives up quietly and the
caller works with the rows already on screen.

The control is a toggle.  The script click refuses a button that
reports the list open (``aria-expanded`` or a "show less" label), and
if a click still collapses the list the driver presses it once more to
restore the rows, so running the driver twice leaves the page as it was.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from streamrev.page_session import PageSession
from streamrev.utils import get_logger

logger = get_logger("streamrev.interaction")


# ── selectors ───────────────────────────────────────────────────────────────

TRACK_ROW_SELECTOR = '[data-testid="tracklist-row"]'

# Popular-tracks container on the artist page; the reveal button is its
# direct child.
TRACKLIST_CONTAINER_SELECTOR = (
    "#main-view > div > div.main-view-container__scroll-node > div:nth-child(1)"
    " > div > main > section > div > div > div.contentSpacing"
    " > div:nth-child(1) > div > div:has(> button)"
)
REVEAL_BUTTON_SELECTOR = f"{TRACKLIST_CONTAINER_SELECTOR} > button"

REVEAL_LABELS = ("Afficher plus", "Show more", "See more", "Ver más", "Mehr anzeigen")
# The same toggle once the list is open.
COLLAPSE_LABELS = ("Afficher moins", "Show less", "See less", "Ver menos", "Weniger anzeigen")

# Settle time after scrolling the control into view.
SCROLL_SETTLE_MS = 500


SNAPSHOT_SCRIPT = """
([rowSelector, containerSelector]) => {
    const container = document.querySelector(containerSelector);
    return {
        html: container ? container.innerHTML.length : 0,
        tracks: document.querySelectorAll(rowSelector).length,
    };
}
"""

SCRIPT_CLICK_SCRIPT = """
([selector, collapseLabels]) => {
    const button = document.querySelector(selector);
    if (!button) return false;
    const text = (button.textContent || '').trim();
    if (button.getAttribute('aria-expanded') === 'true'
        || collapseLabels.some(label => text.includes(label))) {
        return false;
    }
    button.click();
    return true;
}
"""


# ── polling ─────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class PollConfig:
    """Bounded wait used after each activation attempt."""

    deadline_s: float = 1.0        # give up on a strategy after this long
    interval_s: float = 0.05       # sampling period
    growth_threshold: int = 1_000  # container markup growth (chars) that counts as success


@dataclass(frozen=True)
class DomSnapshot:
    """Observable size of the track list at one instant."""

    tracks: int
    html: int

    def grew_from(self, baseline: "DomSnapshot", threshold: int) -> bool:
        return (self.html - baseline.html) > threshold or self.tracks > baseline.tracks

    def shrank_from(self, baseline: "DomSnapshot") -> bool:
        return self.tracks < baseline.tracks


def take_snapshot(
    session: PageSession,
    row_selector: str = TRACK_ROW_SELECTOR,
    container_selector: str = TRACKLIST_CONTAINER_SELECTOR,
) -> DomSnapshot:
    raw = session.evaluate(SNAPSHOT_SCRIPT, [row_selector, container_selector]) or {}
    return DomSnapshot(tracks=int(raw.get("tracks", 0)), html=int(raw.get("html", 0)))


@dataclass(frozen=True)
class GrowthResult:
    grew: bool
    snapshot: DomSnapshot
    elapsed_s: float
    polls: int
    shrank: bool = False


def wait_for_growth(
    probe: Callable[[], DomSnapshot],
    baseline: DomSnapshot,
    config: PollConfig = PollConfig(),
    *,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> GrowthResult:
    """
    Poll *probe* every ``config.interval_s`` until the DOM grows past
    *baseline* or ``config.deadline_s`` elapses.  Stops early with
    ``shrank=True`` when rows disappear (the control collapsed the list).

    *clock* and *sleep* are injectable so the loop can be driven by a
    fake clock in tests.
    """
    start = clock()
    current = baseline
    polls = 0

    while clock() - start < config.deadline_s:
        sleep(config.interval_s)
        current = probe()
        polls += 1
        if current.grew_from(baseline, config.growth_threshold):
            return GrowthResult(True, current, clock() - start, polls)
        if current.shrank_from(baseline):
            return GrowthResult(False, current, clock() - start, polls, shrank=True)

    return GrowthResult(False, current, clock() - start, polls)


# ── activation strategies ───────────────────────────────────────────────────

class RevealStrategy:
    """One way of activating the reveal control."""

    name = "base"

    def activate(self, session: PageSession) -> bool:
        """Trigger the control; return False if nothing was clicked."""
        raise NotImplementedError


class ScriptClickStrategy(RevealStrategy):
    """Programmatic click; refuses a control that already reports the list open."""

    name = "script-click"

    def __init__(
        self,
        selector: str = REVEAL_BUTTON_SELECTOR,
        collapse_labels: Sequence[str] = COLLAPSE_LABELS,
    ) -> None:
        self.selector = selector
        self.collapse_labels = tuple(collapse_labels)

    def activate(self, session: PageSession) -> bool:
        return bool(session.evaluate(SCRIPT_CLICK_SCRIPT, [self.selector, list(self.collapse_labels)]))


class LabelClickStrategy(RevealStrategy):
    name = "label-click"

    def __init__(self, labels: Sequence[str] = REVEAL_LABELS) -> None:
        self.labels = tuple(labels)

    def activate(self, session: PageSession) -> bool:
        button = find_button_by_label(session, self.labels)
        if button is None:
            return False
        session.click(button)
        return True


def find_button_by_label(session: PageSession, labels: Sequence[str]) -> Optional[object]:
    for button in session.query_all("button"):
        text = session.text_content(button)
        if text and any(label in text for label in labels):
            return button
    return None


# ── driver ──────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ExpansionReport:
    """Outcome of one expansion attempt (degraded mode is not an error)."""

    expanded: bool
    strategy: Optional[str]
    before: DomSnapshot
    after: DomSnapshot
    elapsed_s: float = 0.0
    attempts: Tuple[str, ...] = ()

    @property
    def tracks_added(self) -> int:
        return self.after.tracks - self.before.tracks

    def to_dict(self) -> dict:
        return {
            "expanded": self.expanded,
            "strategy": self.strategy,
            "tracks_before": self.before.tracks,
            "tracks_after": self.after.tracks,
            "html_growth": self.after.html - self.before.html,
            "attempts": list(self.attempts),
        }


class InteractionDriver:
    """
    Reveal additional popular tracks on an already-loaded artist page.

    Parameters
    ----------
    strategies : sequence of RevealStrategy
        Tried in order; the first that produces DOM growth wins.  Defaults
        to script click then label click on the given selector / labels.
    poll : PollConfig
        Deadline / interval / growth threshold for the post-click wait.
    clock, sleep : callables
        Time sources for :func:`wait_for_growth`.
    """

    def __init__(
        self,
        strategies: Sequence[RevealStrategy] | None = None,
        poll: PollConfig = PollConfig(),
        *,
        button_selector: str = REVEAL_BUTTON_SELECTOR,
        row_selector: str = TRACK_ROW_SELECTOR,
        container_selector: str = TRACKLIST_CONTAINER_SELECTOR,
        labels: Sequence[str] = REVEAL_LABELS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if strategies is None:
            strategies = (ScriptClickStrategy(button_selector), LabelClickStrategy(labels))
        self.strategies = list(strategies)
        self.poll = poll
        self.button_selector = button_selector
        self.row_selector = row_selector
        self.container_selector = container_selector
        self.labels = tuple(labels)
        self._clock = clock
        self._sleep = sleep

    def _snapshot(self, session: PageSession) -> DomSnapshot:
        return take_snapshot(session, self.row_selector, self.container_selector)

    def _bring_into_view(self, session: PageSession) -> None:
        button = session.query(self.button_selector)
        if button is None:
            button = find_button_by_label(session, self.labels)
        if button is None:
            logger.info("No reveal control found — keeping the rendered rows")
            return

        visible = session.is_in_viewport(button)
        logger.debug(
            "Reveal control found (in viewport: %s, text: %r)",
            visible, session.text_content(button).strip(),
        )
        if not visible:
            session.scroll_into_view(button)
            session.wait(SCROLL_SETTLE_MS)

    def _restore(
        self,
        session: PageSession,
        strategy: RevealStrategy,
        collapsed: DomSnapshot,
    ) -> GrowthResult:
        """Press the toggle once more and wait for the rows to come back."""
        try:
            activated = strategy.activate(session)
        except Exception as exc:
            logger.warning("Could not re-open the track list via %s: %s", strategy.name, exc)
            return GrowthResult(False, collapsed, 0.0, 0)
        if not activated:
            logger.warning("Reveal control vanished after collapsing the track list")
            return GrowthResult(False, collapsed, 0.0, 0)

        outcome = wait_for_growth(
            lambda: self._snapshot(session),
            collapsed,
            self.poll,
            clock=self._clock,
            sleep=self._sleep,
        )
        if not outcome.grew:
            logger.warning("Track list stayed collapsed at %d rows", outcome.snapshot.tracks)
        return outcome

    def expand(self, session: PageSession) -> ExpansionReport:
        """
        Try each strategy until the track list visibly grows.

        Never raises for a strategy failure; an unchanged page yields
        ``ExpansionReport(expanded=False)``.
        """
        try:
            self._bring_into_view(session)
        except Exception as exc:
            logger.warning("Could not scroll to the reveal control: %s", exc)

        baseline = self._snapshot(session)
        logger.info(
            "Before reveal: %d rows, container %d chars",
            baseline.tracks, baseline.html,
        )

        attempts: List[str] = []
        latest = baseline
        total_elapsed = 0.0

        for strategy in self.strategies:
            attempts.append(strategy.name)
            try:
                activated = strategy.activate(session)
            except Exception as exc:
                logger.warning("Reveal strategy %s failed: %s", strategy.name, exc)
                continue

            if not activated:
                logger.debug("Reveal strategy %s found nothing to click", strategy.name)
                continue

            outcome = wait_for_growth(
                lambda: self._snapshot(session),
                baseline,
                self.poll,
                clock=self._clock,
                sleep=self._sleep,
            )
            total_elapsed += outcome.elapsed_s
            latest = outcome.snapshot

            if outcome.grew:
                logger.info(
                    "Reveal via %s: +%d rows, +%d chars after %.0fms",
                    strategy.name,
                    outcome.snapshot.tracks - baseline.tracks,
                    outcome.snapshot.html - baseline.html,
                    outcome.elapsed_s * 1000,
                )
                return ExpansionReport(
                    expanded=True,
                    strategy=strategy.name,
                    before=baseline,
                    after=outcome.snapshot,
                    elapsed_s=total_elapsed,
                    attempts=tuple(attempts),
                )

            if outcome.shrank:
                # The control was a "show less" toggle: the list was already open.
                logger.info(
                    "Reveal via %s collapsed the list (%d → %d rows) — restoring",
                    strategy.name, baseline.tracks, outcome.snapshot.tracks,
                )
                restored = self._restore(session, strategy, outcome.snapshot)
                total_elapsed += restored.elapsed_s
                latest = restored.snapshot
                break

            logger.debug(
                "Reveal strategy %s — no change after %.0fms",
                strategy.name, outcome.elapsed_s * 1000,
            )

        logger.info("Track list unchanged — using the %d rendered rows", latest.tracks)
        return ExpansionReport(
            expanded=False,
            strategy=None,
            before=baseline,
            after=latest,
            elapsed_s=total_elapsed,
            attempts=tuple(attempts),
        )


def expand_track_list(session: PageSession, driver: InteractionDriver | None = None) -> ExpansionReport:
    """Convenience wrapper around :meth:`InteractionDriver.expand`."""
    return (driver or InteractionDriver()).expand(session)
