"""
spotify_client.py — Spotify Web API Enrichment Client
=======================================================
Optional side-channel: display name, image, followers, popularity and
top tracks for an artist id, plus a name search for autocomplete.  The
revenue estimate never depends on it.

Authentication
--------------
Client-credentials flow:

1.  POST ``accounts.spotify.com/api/token`` with
    ``grant_type=client_credentials`` and HTTP basic auth.
2.  Response: ``{"access_token": "...", "expires_in": 3600}``
3.  Subsequent requests use ``Authorization: Bearer <token>``.
4.  The token is reused until five minutes before expiry.

Endpoints Used
--------------
- ``GET /artists/{id}``                — profile
- ``GET /artists/{id}/top-tracks``     — top tracks for a market
- ``GET /search?type=artist``          — name search (also feeds the
  trending list: a few genre searches merged by popularity)
"""

from __future__ import annotations

import time
from typing import Any, Dict, List, Sequence, Tuple

import requests

from streamrev.config import Settings, load_settings
from streamrev.utils import get_logger

logger = get_logger("streamrev.spotify")

_TOKEN_SAFETY_MARGIN_S = 5 * 60
_SEARCH_CACHE_TTL_S = 5 * 60
_SEARCH_LIMIT_MAX = 50

TRENDING_QUERIES = ("rap français", "pop française", "electro", "rock")


class SpotifyAuthError(Exception):
    """Raised when the client-credentials exchange fails."""


class SpotifyAPIError(Exception):
    """Raised on unexpected Web API responses."""


def _first_image(images: List[Dict[str, Any]]) -> str | None:
    return images[0].get("url") if images else None


def _artist_summary(artist: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": artist.get("id"),
        "name": artist.get("name"),
        "url": (artist.get("external_urls") or {}).get("spotify"),
        "image": _first_image(artist.get("images") or []),
        "followers": (artist.get("followers") or {}).get("total"),
        "popularity": artist.get("popularity"),
        "genres": list(artist.get("genres") or []),
    }


class SpotifyWebClient:
    """
    Minimal Spotify Web API client.

    Parameters
    ----------
    settings : Settings, optional
        If not supplied, loaded from ``.env`` automatically.
    timeout : float
        Per-request timeout in seconds.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        timeout: float = 10,
        session: requests.Session | None = None,
    ) -> None:
        self._settings = settings or load_settings(require_secrets=False)
        self._timeout = timeout
        self._session = session or requests.Session()

        if not self._settings.has_spotify_credentials:
            raise SpotifyAuthError(
                "Missing SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET in .env."
            )

        self._access_token: str = ""
        self._token_expires_at: float = 0.0
        self._search_cache: Dict[Tuple[str, int], Tuple[float, List[Dict[str, Any]]]] = {}

    # ═════════════════════════════════════════════════════════════════════
    #  Authentication
    # ═════════════════════════════════════════════════════════════════════

    def _ensure_token(self) -> None:
        if self._access_token and time.time() < self._token_expires_at:
            return
        self._refresh_access_token()

    def _refresh_access_token(self) -> None:
        logger.info("Requesting Spotify access token...")
        try:
            resp = self._session.post(
                self._settings.spotify_token_url,
                data={"grant_type": "client_credentials"},
                auth=(self._settings.spotify_client_id, self._settings.spotify_client_secret),
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SpotifyAuthError(f"Cannot reach Spotify accounts service: {exc}")

        if resp.status_code != 200:
            raise SpotifyAuthError(
                f"Token exchange failed ({resp.status_code}): {resp.text[:300]}"
            )

        data = resp.json()
        self._access_token = data.get("access_token", "")
        expires_in = int(data.get("expires_in", 3600))
        self._token_expires_at = time.time() + expires_in - _TOKEN_SAFETY_MARGIN_S

        if not self._access_token:
            raise SpotifyAuthError("Token exchange returned an empty token.")

        logger.info("Spotify token acquired (expires in %ds)", expires_in)

    # ═════════════════════════════════════════════════════════════════════
    #  HTTP
    # ═════════════════════════════════════════════════════════════════════

    def _send(self, url: str, path: str, params: Dict[str, Any] | None) -> requests.Response:
        try:
            return self._session.get(
                url,
                headers={"Authorization": f"Bearer {self._access_token}"},
                params=params,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            raise SpotifyAPIError(f"Network failure on GET {path}: {exc}")

    def _get(self, path: str, params: Dict[str, Any] | None = None) -> Dict[str, Any]:
        self._ensure_token()
        url = f"{self._settings.spotify_api_url}{path}"
        resp = self._send(url, path, params)

        if resp.status_code == 401:
            # Token revoked early; one refresh, no further retries.
            logger.warning("401 Unauthorized on GET %s — refreshing token", path)
            self._access_token = ""
            self._ensure_token()
            resp = self._send(url, path, params)

        if resp.status_code != 200:
            raise SpotifyAPIError(
                f"GET {path} returned {resp.status_code}: {resp.text[:300]}"
            )
        return resp.json()

    # ═════════════════════════════════════════════════════════════════════
    #  Public API
    # ═════════════════════════════════════════════════════════════════════

    def get_artist_profile(self, artist_id: str, top_tracks: int = 5) -> Dict[str, Any]:
        """
        Profile of one artist plus its top tracks in the configured market.

        Returns ``{"id", "name", "url", "image", "followers",
        "popularity", "genres", "top_tracks": [{"name", "popularity",
        "preview_url"}, ...]}``.
        """
        logger.debug("Fetching Spotify profile for %s", artist_id)
        profile = _artist_summary(self._get(f"/artists/{artist_id}"))

        tracks = self._get(
            f"/artists/{artist_id}/top-tracks",
            params={"market": self._settings.spotify_market},
        ).get("tracks", [])
        profile["top_tracks"] = [
            {
                "name": t.get("name"),
                "popularity": t.get("popularity"),
                "preview_url": t.get("preview_url"),
            }
            for t in tracks[:top_tracks]
        ]
        return profile

    def search_artists(self, query: str, limit: int = 10) -> List[Dict[str, Any]]:
        """
        Name search for autocomplete.  Results are cached in memory for
        five minutes per ``(query, limit)``.
        """
        query = query.strip()
        if not query:
            return []
        limit = max(1, min(limit, _SEARCH_LIMIT_MAX))
        key = (query.lower(), limit)

        cached = self._search_cache.get(key)
        if cached and time.time() - cached[0] < _SEARCH_CACHE_TTL_S:
            logger.debug("Search cache hit for %r", query)
            return list(cached[1])

        data = self._get(
            "/search",
            params={
                "q": query,
                "type": "artist",
                "limit": limit,
                "market": self._settings.spotify_market,
            },
        )
        artists = [_artist_summary(a) for a in (data.get("artists") or {}).get("items", [])]
        now = time.time()
        self._evict_stale_searches(now)
        self._search_cache[key] = (now, artists)
        logger.info("%d artists found for %r", len(artists), query)
        return list(artists)

    def _evict_stale_searches(self, now: float) -> None:
        stale = [k for k, (at, _) in self._search_cache.items() if now - at >= _SEARCH_CACHE_TTL_S]
        for k in stale:
            del self._search_cache[k]
        if stale:
            logger.debug("Evicted %d expired search entries", len(stale))

    def trending_artists(
        self,
        queries: Sequence[str] = TRENDING_QUERIES,
        per_query: int = 5,
        limit: int = 12,
    ) -> List[Dict[str, Any]]:
        """
        Popular artists across a few genre searches: merged, de-duplicated
        by id, sorted by popularity (highest first), top *limit* kept.
        """
        seen: Dict[str, Dict[str, Any]] = {}
        for query in queries:
            for artist in self.search_artists(query, limit=per_query):
                if artist.get("id") and artist["id"] not in seen:
                    seen[artist["id"]] = artist

        ranked = sorted(seen.values(), key=lambda a: a.get("popularity") or 0, reverse=True)
        logger.info("%d trending artists from %d searches", min(len(ranked), limit), len(queries))
        return ranked[:limit]
