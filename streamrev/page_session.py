"""
page_session.py — Browser Page Session
========================================
The extraction pipeline only talks to a :class:`PageSession`: a small
capability contract (navigate, evaluate a script, query / click
elements, read text).  The production implementation drives headless
Chromium through Playwright's sync API; tests substitute an in-memory
fake.

Lifecycle
---------
Sessions are scoped resources.  Always acquire them through
:func:`open_page_session`, which tears down the browser and the
Playwright driver on every exit path::

    with open_page_session(settings) as session:
        session.navigate(url, timeout_ms=15_000)
"""

from __future__ import annotations

import contextlib
from typing import Any, Iterator, List, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from streamrev.config import Settings, load_settings
from streamrev.errors import NavigationError
from streamrev.utils import get_logger

logger = get_logger("streamrev.page_session")

# Chromium flags trimmed for short-lived headless runs in containers.
_CHROMIUM_ARGS = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-accelerated-2d-canvas",
    "--disable-gpu",
    "--disable-background-timer-throttling",
    "--disable-backgrounding-occluded-windows",
    "--disable-renderer-backgrounding",
]

_IN_VIEWPORT_JS = """
el => {
    const r = el.getBoundingClientRect();
    return r.top >= 0 && r.left >= 0
        && r.bottom <= (window.innerHeight || document.documentElement.clientHeight)
        && r.right <= (window.innerWidth || document.documentElement.clientWidth);
}
"""

_CLICK_JS = "el => el.click()"


class PageSession(Protocol):
    """Capability contract consumed by the extraction pipeline."""

    def navigate(self, url: str, timeout_ms: int) -> None: ...

    def wait(self, ms: int) -> None: ...

    def evaluate(self, script: str, arg: Any = None) -> Any: ...

    def query(self, selector: str) -> Optional[Any]: ...

    def query_all(self, selector: str) -> List[Any]: ...

    def text_content(self, handle: Any) -> str: ...

    def is_in_viewport(self, handle: Any) -> bool: ...

    def scroll_into_view(self, handle: Any) -> None: ...

    def click(self, handle: Any) -> None: ...

    def close(self) -> None: ...


class PlaywrightPageSession:
    """
    :class:`PageSession` backed by a Playwright ``Page``.

    Parameters
    ----------
    page : playwright.sync_api.Page
        An open page.  The session does not own the browser; closing it
        only closes the page.
    """

    def __init__(self, page: Any) -> None:
        self._page = page
        self._page.on("console", self._forward_console)

    @staticmethod
    def _forward_console(msg: Any) -> None:
        logger.debug("PAGE LOG: %s", msg.text)

    # ── navigation ──────────────────────────────────────────────────────

    def navigate(self, url: str, timeout_ms: int) -> None:
        try:
            self._page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
        except PlaywrightTimeoutError as exc:
            raise NavigationError(
                f"Timed out after {timeout_ms}ms loading {url}"
            ) from exc
        except PlaywrightError as exc:
            raise NavigationError(f"Cannot load {url}: {exc.message}") from exc

    def wait(self, ms: int) -> None:
        self._page.wait_for_timeout(ms)

    # ── DOM access ──────────────────────────────────────────────────────

    def evaluate(self, script: str, arg: Any = None) -> Any:
        return self._page.evaluate(script, arg)

    def query(self, selector: str) -> Optional[Any]:
        return self._page.query_selector(selector)

    def query_all(self, selector: str) -> List[Any]:
        return self._page.query_selector_all(selector)

    def text_content(self, handle: Any) -> str:
        return handle.text_content() or ""

    def is_in_viewport(self, handle: Any) -> bool:
        return bool(handle.evaluate(_IN_VIEWPORT_JS))

    def scroll_into_view(self, handle: Any) -> None:
        handle.scroll_into_view_if_needed()

    def click(self, handle: Any) -> None:
        # DOM-level click: Playwright's actionability checks reject
        # controls covered by sticky headers.
        handle.evaluate(_CLICK_JS)

    def close(self) -> None:
        with contextlib.suppress(PlaywrightError):
            self._page.close()


@contextlib.contextmanager
def open_page_session(settings: Settings | None = None) -> Iterator[PlaywrightPageSession]:
    """
    Launch Chromium and yield a fresh :class:`PlaywrightPageSession`.

    Browser and driver are released on every exit path, exceptions
    included.
    """
    settings = settings or load_settings(require_secrets=False)

    with sync_playwright() as pw:
        logger.debug("Launching Chromium (headless=%s)", settings.browser_headless)
        browser = pw.chromium.launch(
            headless=settings.browser_headless,
            args=_CHROMIUM_ARGS,
        )
        try:
            context = browser.new_context(
                user_agent=settings.browser_user_agent,
                locale=settings.browser_locale,
                viewport={"width": 1280, "height": 900},
            )
            session = PlaywrightPageSession(context.new_page())
            try:
                yield session
            finally:
                session.close()
                context.close()
        finally:
            browser.close()
            logger.debug("Browser closed")
