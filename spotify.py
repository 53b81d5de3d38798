"""Spotify Web API access: the OAuth code/refresh relay and a per-token REST client."""
import base64
import logging
import time
from dataclasses import dataclass
from urllib.parse import urlencode

import requests

from errors import SpotifyError

log = logging.getLogger(__name__)

AUTH_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"
API_BASE = "https://api.spotify.com/v1"
SCOPES = "user-read-email playlist-modify-private playlist-modify-public user-read-private"

# Spotify caps recommendation seeds at 5 and playlist additions at 100 per call.
MAX_SEEDS = 5
MAX_TRACKS_PER_ADD = 100
# Treat a token as expired slightly early so it cannot lapse mid-request.
EXPIRY_MARGIN_MS = 60 * 1000


def _now_ms():
    return int(time.time() * 1000)


def is_expired(expires_at, now_ms=None):
    now_ms = _now_ms() if now_ms is None else now_ms
    return now_ms >= int(expires_at) - EXPIRY_MARGIN_MS


@dataclass(frozen=True)
class SpotifyTokens:
    access_token: str
    refresh_token: str
    expires_at: int  # epoch milliseconds

    @classmethod
    def from_token_response(cls, tok_json, refresh_token=None, now_ms=None):
        """Build tokens from a /api/token payload.

        Spotify only sometimes rotates the refresh token; keep the old one otherwise.
        """
        now_ms = _now_ms() if now_ms is None else now_ms
        expires_in = int(tok_json.get("expires_in", 3600))
        return cls(
            access_token=tok_json["access_token"],
            refresh_token=tok_json.get("refresh_token") or refresh_token or "",
            expires_at=now_ms + expires_in * 1000,
        )

    def is_expired(self, now_ms=None):
        return is_expired(self.expires_at, now_ms)

    def to_dict(self):
        return {
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": self.expires_at,
        }


class SpotifyAuth:
    """Authorization-code flow against accounts.spotify.com. Holds no tokens."""

    def __init__(self, client_id, client_secret, redirect_uri, session=None, timeout=15):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.session = session or requests.Session()
        self.timeout = timeout

    def _basic_auth_header(self):
        creds = f"{self.client_id}:{self.client_secret}".encode()
        return {"Authorization": "Basic " + base64.b64encode(creds).decode()}

    def authorize_url(self, state):
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": self.redirect_uri,
            "scope": SCOPES,
            "state": state,
            "show_dialog": "true",  # forces account chooser each login
        }
        return f"{AUTH_URL}?{urlencode(params)}"

    def _token_request(self, data):
        try:
            tok = self.session.post(TOKEN_URL, data=data, headers=self._basic_auth_header(), timeout=self.timeout)
        except requests.RequestException as e:
            raise SpotifyError(f"POST {TOKEN_URL} failed: {e}") from e
        if tok.status_code >= 400:
            raise SpotifyError(f"POST {TOKEN_URL} -> {tok.status_code}: {tok.text}", tok.status_code)
        return tok.json()

    def exchange_code(self, code, now_ms=None):
        data = {"grant_type": "authorization_code", "code": code, "redirect_uri": self.redirect_uri}
        return SpotifyTokens.from_token_response(self._token_request(data), now_ms=now_ms)

    def refresh(self, refresh_token, now_ms=None):
        data = {"grant_type": "refresh_token", "refresh_token": refresh_token}
        tok_json = self._token_request(data)
        log.debug("Refreshed Spotify access token")
        return SpotifyTokens.from_token_response(tok_json, refresh_token=refresh_token, now_ms=now_ms)


class SpotifyClient:
    """Thin REST wrapper bound to one user's access token.

    Built per request; never shared between callers.
    """

    def __init__(self, access_token, session=None, timeout=15, api_base=API_BASE):
        self.access_token = access_token
        self.session = session or requests.Session()
        self.timeout = timeout
        self.api_base = api_base

    def _headers(self):
        return {"Authorization": "Bearer " + self.access_token}

    def _request(self, method, endpoint, params=None, payload=None):
        url = self.api_base + endpoint
        try:
            r = self.session.request(
                method, url, headers=self._headers(), params=params, json=payload, timeout=self.timeout
            )
        except requests.RequestException as e:
            raise SpotifyError(f"{method} {url} failed: {e}") from e
        if r.status_code >= 400:
            raise SpotifyError(f"{method} {url} -> {r.status_code}: {r.text}", r.status_code)
        return r.json() if r.content else {}

    def get(self, endpoint, params=None):
        return self._request("GET", endpoint, params=params)

    def post(self, endpoint, payload):
        return self._request("POST", endpoint, payload=payload)

    def me(self):
        return self.get("/me")

    def create_playlist(self, name, description="", public=False):
        return self.post("/me/playlists", {"name": name, "description": description, "public": public})

    def recommendations(self, seed_genres, limit=20, **targets):
        """GET /recommendations seeded by genres; ``targets`` become ``target_<name>``."""
        params = {"limit": limit, "seed_genres": ",".join(list(seed_genres)[:MAX_SEEDS])}
        for name, value in targets.items():
            if value is not None:
                params[f"target_{name}"] = value
        return self.get("/recommendations", params=params).get("tracks", [])

    def add_tracks(self, playlist_id, uris):
        uris = list(uris)
        for i in range(0, len(uris), MAX_TRACKS_PER_ADD):
            self.post(f"/playlists/{playlist_id}/tracks", {"uris": uris[i:i + MAX_TRACKS_PER_ADD]})

    def get_playlist(self, playlist_id):
        return self.get(f"/playlists/{playlist_id}")
