"""
config.py — Environment Configuration Loader
==============================================
Reads Spotify credentials and runtime knobs from a ``.env`` file (via
python-dotenv) so that credentials never appear in source code.

Usage
-----
>>> from streamrev.config import settings
>>> settings.navigation_timeout_ms
15000
"""

from __future__ import annotations

import os
import pathlib
from dataclasses import dataclass

from dotenv import load_dotenv


# ── locate .env relative to project root ────────────────────────────────────

_PROJECT_ROOT = pathlib.Path(__file__).resolve().parent.parent
_ENV_PATH = _PROJECT_ROOT / ".env"

load_dotenv(dotenv_path=_ENV_PATH)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


# ── typed settings object ───────────────────────────────────────────────────

@dataclass(frozen=True)
class Settings:
    """Immutable container for all environment-sourced config."""

    # Spotify Web API (optional enrichment side-channel)
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_market: str = "FR"
    spotify_api_url: str = "https://api.spotify.com/v1"
    spotify_token_url: str = "https://accounts.spotify.com/api/token"
    artist_page_url: str = "https://open.spotify.com/artist"

    # Browser session
    browser_headless: bool = True
    browser_user_agent: str = DEFAULT_USER_AGENT
    browser_locale: str = "fr-FR"
    navigation_timeout_ms: int = 15_000
    settle_delay_ms: int = 1_000

    # Estimation / display
    display_locale: str = "fr_FR"
    fallback_jitter: bool = True
    random_seed: int | None = None

    # Paths
    project_root: pathlib.Path = _PROJECT_ROOT

    @property
    def has_spotify_credentials(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int | None) -> int | None:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise EnvironmentError(f"{name} must be an integer, got {raw!r}")


def load_settings(*, require_secrets: bool = False) -> Settings:
    """
    Build a ``Settings`` instance from the environment.

    Parameters
    ----------
    require_secrets : bool
        If True, raise if the Spotify client credentials are missing.
        Scraping alone never needs them.
    """
    client_id = os.getenv("SPOTIFY_CLIENT_ID", "")
    client_secret = os.getenv("SPOTIFY_CLIENT_SECRET", "")

    if require_secrets and (not client_id or not client_secret):
        raise EnvironmentError(
            "Missing SPOTIFY_CLIENT_ID and/or SPOTIFY_CLIENT_SECRET. "
            "Copy .env.example → .env and fill in your credentials."
        )

    return Settings(
        spotify_client_id=client_id,
        spotify_client_secret=client_secret,
        spotify_market=os.getenv("SPOTIFY_MARKET", "FR"),
        browser_headless=_env_bool("BROWSER_HEADLESS", True),
        browser_user_agent=os.getenv("BROWSER_USER_AGENT", DEFAULT_USER_AGENT),
        browser_locale=os.getenv("BROWSER_LOCALE", "fr-FR"),
        navigation_timeout_ms=_env_int("NAVIGATION_TIMEOUT_MS", 15_000),
        settle_delay_ms=_env_int("SETTLE_DELAY_MS", 1_000),
        display_locale=os.getenv("DISPLAY_LOCALE", "fr_FR"),
        fallback_jitter=_env_bool("FALLBACK_JITTER", True),
        random_seed=_env_int("RANDOM_SEED", None),
    )


# Convenience: pre-loaded instance (secrets optional at import time)
settings = load_settings(require_secrets=False)
