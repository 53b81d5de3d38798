import json

import pytest

from app import Services, create_app
from boardgamegeek import GameAttributes
from config import Config
from errors import GameNotFound, SpotifyError
from models import Profile, db
from spotify import SpotifyTokens

FAR_FUTURE_MS = 32503680000000  # year 3000


class FakeResponse:
    def __init__(self, status_code=200, text="", payload=None):
        self.status_code = status_code
        if payload is not None:
            text = json.dumps(payload)
        self.text = text
        self.content = text.encode()

    def json(self):
        return json.loads(self.text)


class FakeCatalog:
    def __init__(self, games=None, search_results=None):
        self.games = games or {}
        self.search_results = search_results or []
        self.calls = []

    def search(self, query):
        self.calls.append(("search", query))
        return self.search_results

    def get_game_attributes(self, game_id):
        self.calls.append(("get_game_attributes", game_id))
        if game_id not in self.games:
            raise GameNotFound()
        return self.games[game_id]


class FakeAuth:
    def __init__(self):
        self.calls = []
        self.fail = False

    def authorize_url(self, state):
        return f"https://accounts.spotify.com/authorize?state={state}"

    def exchange_code(self, code):
        self.calls.append(("exchange_code", code))
        if self.fail:
            raise SpotifyError("invalid_grant", 400)
        return SpotifyTokens("access-1", "refresh-1", FAR_FUTURE_MS)

    def refresh(self, refresh_token):
        self.calls.append(("refresh", refresh_token))
        if self.fail:
            raise SpotifyError("invalid_grant", 400)
        return SpotifyTokens("access-2", refresh_token, FAR_FUTURE_MS)


def make_track(n):
    return {
        "id": f"t{n}",
        "name": f"Track {n}",
        "uri": f"spotify:track:t{n}",
        "artists": [{"id": f"a{n}", "name": f"Artist {n}"}],
        "album": {"id": f"al{n}", "name": f"Album {n}", "images": [{"url": f"http://img/{n}", "height": 64, "width": 64}]},
        "duration_ms": 180000,
        "preview_url": None,
        "popularity": 50,
    }


class FakeSpotify:
    def __init__(self, token, tracks=None, fail_on=None):
        self.token = token
        self.tracks = [make_track(i) for i in range(3)] if tracks is None else tracks
        self.fail_on = fail_on
        self.calls = []
        self.added = []

    def _call(self, name, *args):
        self.calls.append((name,) + args)
        if self.fail_on == name:
            raise SpotifyError(f"{name} failed", 502)

    def me(self):
        self._call("me")
        return {"id": "spotify-ada", "display_name": "Ada", "images": [{"url": "http://avatar"}]}

    def create_playlist(self, name, description="", public=False):
        self._call("create_playlist", name)
        return {"id": "pl1", "name": name, "description": description}

    def recommendations(self, seed_genres, limit=20, **targets):
        self._call("recommendations", tuple(seed_genres), limit, targets)
        return self.tracks[:limit]

    def add_tracks(self, playlist_id, uris):
        self._call("add_tracks", playlist_id)
        self.added.extend(uris)

    def get_playlist(self, playlist_id):
        self._call("get_playlist", playlist_id)
        return {
            "id": playlist_id,
            "name": "Catan - Board Game Music",
            "description": None,
            "images": [{"url": "http://cover", "height": None, "width": None}],
            "external_urls": {"spotify": f"https://open.spotify.com/playlist/{playlist_id}"},
            "tracks": {
                "total": len(self.added),
                "items": [{"track": make_track(i)} for i in range(len(self.added))] + [{"track": None}],
            },
            "uri": f"spotify:playlist:{playlist_id}",
            "followers": {"total": 0},
        }


CATAN = GameAttributes(
    name="Catan",
    categories=("Economic", "Negotiation"),
    mechanics=("Dice Rolling", "Trading"),
    weight=2.5,
    year_published=1995,
    min_players=3,
    max_players=4,
    playing_time=120,
)


@pytest.fixture
def catalog():
    return FakeCatalog(
        games={"13": CATAN},
        search_results=[{"id": "13", "name": "Catan", "yearpublished": "1995", "thumbnail": ""}],
    )


@pytest.fixture
def auth():
    return FakeAuth()


@pytest.fixture
def spotify_clients():
    # every SpotifyClient the app builds, in order
    return []


@pytest.fixture
def services(catalog, auth, spotify_clients):
    def spotify_for(token):
        client = FakeSpotify(token)
        spotify_clients.append(client)
        return client

    return Services(catalog=catalog, auth=auth, spotify_for=spotify_for)


@pytest.fixture
def app(services):
    config = Config().with_overrides(database_url="sqlite://", secret_key="test", testing=True)
    app = create_app(config, services_override=services)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def add_profile(app, spotify_id="spotify-ada"):
    with app.app_context():
        profile = Profile(spotify_id=spotify_id, display_name=spotify_id)
        db.session.add(profile)
        db.session.commit()
        return profile.id


def sign_in(client, user_id, token_expires_at=FAR_FUTURE_MS):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["token_expires_at"] = token_expires_at


@pytest.fixture
def user_id(app, client):
    uid = add_profile(app)
    sign_in(client, uid)
    return uid
