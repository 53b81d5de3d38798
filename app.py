import functools
import logging
import secrets
from dataclasses import dataclass
from typing import Callable
from urllib.parse import urlencode

from flask import Flask, current_app, jsonify, redirect, render_template, request, session, url_for

from boardgamegeek import BoardGameGeekClient
from config import Config
from errors import ApiError, BadRequest, NotFound, Unauthorized, UpstreamError
from models import Playlist, Profile, db
from music_mapping import MoodSettings, MusicParameters
from playlist_generator import generate_playlist, validate_track_count
from spotify import SpotifyAuth, SpotifyClient, is_expired

log = logging.getLogger(__name__)


@dataclass
class Services:
    """Outbound API clients. Swapped for fakes in tests."""

    catalog: BoardGameGeekClient
    auth: SpotifyAuth
    spotify_for: Callable[[str], SpotifyClient]


def build_services(config):
    return Services(
        catalog=BoardGameGeekClient(config.bgg_api_base, timeout=config.http_timeout),
        auth=SpotifyAuth(
            config.spotify_client_id,
            config.spotify_client_secret,
            config.spotify_redirect_uri,
            timeout=config.http_timeout,
        ),
        spotify_for=lambda token: SpotifyClient(token, timeout=config.http_timeout),
    )


def services():
    return current_app.extensions["playlist_services"]


# ---------- Helper functions ----------
def _current_user_id():
    user_id = session.get("user_id")
    if not user_id or db.session.get(Profile, user_id) is None:
        raise Unauthorized()
    return user_id


def _bearer_token():
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
        raise Unauthorized("Authorization header is required")
    expires_at = session.get("token_expires_at")
    if expires_at and is_expired(expires_at):
        raise Unauthorized("Spotify token expired")
    return auth_header[7:].strip()


def _json_body():
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise BadRequest("Request body must be a JSON object")
    return body


def json_errors(generic_message):
    """Turn unexpected failures into a generic 500; ApiErrors pass through."""

    def decorator(view):
        @functools.wraps(view)
        def wrapper(*args, **kwargs):
            try:
                return view(*args, **kwargs)
            except Exception as e:
                # client errors (4xx) go out as raised
                if isinstance(e, ApiError) and not isinstance(e, UpstreamError):
                    raise
                db.session.rollback()
                log.exception("%s", generic_message)
                raise ApiError(generic_message) from e

        return wrapper

    return decorator


def _redirect_home(error):
    return redirect(url_for("home", error=error))


def _save_playlist(user_id, body):
    playlist = body.get("playlist")
    attributes = body.get("gameAttributes")
    if not playlist or not attributes or not body.get("musicParameters"):
        raise BadRequest("Playlist, game attributes, and music parameters are required")
    if not isinstance(playlist, dict) or not playlist.get("id"):
        raise BadRequest("playlist.id is required")
    if not isinstance(attributes, dict) or not attributes.get("name"):
        raise BadRequest("gameAttributes.name is required")

    params = MusicParameters.from_dict(body["musicParameters"])
    mood = MoodSettings.from_dict(body.get("moodSettings"))
    rec = Playlist(
        user_id=user_id,
        spotify_playlist_id=playlist["id"],
        game_id=str(body.get("gameId") or attributes.get("id") or ""),
        game_name=attributes["name"],
        mood_settings=mood.to_dict(),
        music_parameters=params.to_dict(),
    )
    db.session.add(rec)
    db.session.commit()
    log.info("Saved playlist %s for user %s", rec.id, user_id)
    return rec


def register_routes(app):
    # ---------- Pages & OAuth ----------
    @app.route("/")
    def home():
        user_id = session.get("user_id")
        if user_id:
            if db.session.get(Profile, user_id) is not None:
                return redirect(url_for("dashboard"))
            session.clear()
        return render_template("home.html", error=request.args.get("error"))

    @app.route("/login")
    def login():
        state = secrets.token_urlsafe(16)
        session["oauth_state"] = state
        return redirect(services().auth.authorize_url(state))

    @app.route("/callback")
    def callback():
        if "error" in request.args:
            return _redirect_home(request.args["error"])
        code = request.args.get("code")
        if not code:
            return _redirect_home("missing_code")
        expected_state = session.pop("oauth_state", None)
        if not expected_state or request.args.get("state") != expected_state:
            return _redirect_home("state_mismatch")

        try:
            tokens = services().auth.exchange_code(code)
            me = services().spotify_for(tokens.access_token).me()
            profile = Profile.upsert_from_spotify(me)
        except Exception:
            db.session.rollback()
            log.exception("Spotify callback failed")
            return _redirect_home("spotify_callback_error")

        session["user_id"] = profile.id
        session["token_expires_at"] = tokens.expires_at
        log.info("Signed in Spotify user %s as profile %s", profile.spotify_id, profile.id)
        # The page reads these out of the query string into local storage.
        return redirect(url_for("dashboard") + "?" + urlencode(tokens.to_dict()))

    @app.route("/logout")
    def logout():
        session.clear()
        return redirect(url_for("home", signed_out=1))

    @app.route("/dashboard")
    def dashboard():
        user_id = session.get("user_id")
        profile = db.session.get(Profile, user_id) if user_id else None
        if profile is None:
            # a stale session pointing at a removed profile is dropped
            session.clear()
            return redirect(url_for("home"))
        history = Playlist.list_owned(profile.id)
        return render_template("dashboard.html", display_name=profile.display_name, history=history)

    @app.route("/refresh-token", methods=["POST"])
    @json_errors("Failed to refresh token")
    def refresh_token():
        refresh = _json_body().get("refresh_token")
        if not refresh:
            raise BadRequest("Refresh token is required")
        tokens = services().auth.refresh(refresh)
        if "user_id" in session:
            session["token_expires_at"] = tokens.expires_at
        return jsonify(tokens.to_dict())

    # ---------- Board games ----------
    @app.route("/boardgame/search")
    @json_errors("Failed to search board games")
    def boardgame_search():
        query = (request.args.get("query") or "").strip()
        if not query:
            raise BadRequest("Search query is required")
        return jsonify(services().catalog.search(query))

    @app.route("/boardgame/details")
    @json_errors("Failed to get board game details")
    def boardgame_details():
        game_id = (request.args.get("id") or "").strip()
        if not game_id:
            raise BadRequest("Game ID is required")
        return jsonify(services().catalog.get_game_attributes(game_id).to_dict())

    # ---------- Playlists ----------
    @app.route("/playlist/generate", methods=["POST"])
    @json_errors("Failed to generate playlist")
    def playlist_generate():
        _current_user_id()
        token = _bearer_token()
        body = _json_body()
        game_id, game_name = body.get("gameId"), body.get("gameName")
        if not game_id or not game_name:
            raise BadRequest("Game ID and name are required")
        mood = MoodSettings.from_dict(body.get("moodSettings"))
        track_count = validate_track_count(body.get("trackCount"), current_app.config["DEFAULT_TRACK_COUNT"])

        result = generate_playlist(
            services().spotify_for(token),
            services().catalog,
            str(game_id),
            str(game_name),
            mood=mood,
            track_count=track_count,
        )
        return jsonify(result)

    @app.route("/playlist/save", methods=["POST"])
    @app.route("/playlist/saved", methods=["POST"])
    @json_errors("Failed to save playlist")
    def playlist_save():
        user_id = _current_user_id()
        rec = _save_playlist(user_id, _json_body())
        return jsonify(rec.to_dict())

    @app.route("/playlist/saved", methods=["GET"])
    @json_errors("Failed to get saved playlists")
    def playlist_saved():
        user_id = _current_user_id()
        return jsonify([p.to_dict() for p in Playlist.list_owned(user_id)])

    @app.route("/playlist/<playlist_id>", methods=["GET"])
    @json_errors("Failed to get playlist")
    def playlist_get(playlist_id):
        user_id = _current_user_id()
        rec = Playlist.get_owned(playlist_id, user_id)
        if rec is None:
            raise NotFound("Playlist not found")
        return jsonify(rec.to_dict())

    @app.route("/playlist/<playlist_id>", methods=["DELETE"])
    @json_errors("Failed to delete playlist")
    def playlist_delete(playlist_id):
        user_id = _current_user_id()
        rec = Playlist.get_owned(playlist_id, user_id)
        if rec is None:
            raise NotFound("Playlist not found")
        # Only our record goes; the playlist stays in the user's Spotify library.
        db.session.delete(rec)
        db.session.commit()
        log.info("Deleted playlist %s for user %s", playlist_id, user_id)
        return jsonify({"success": True})

    @app.errorhandler(ApiError)
    def handle_api_error(err):
        return jsonify({"error": err.message}), err.status


def create_app(config=None, services_override=None):
    config = config or Config.from_env()

    # ---------- Flask setup ----------
    app = Flask(__name__)
    app.secret_key = config.secret_key
    app.config["SQLALCHEMY_DATABASE_URI"] = config.database_url
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["DEFAULT_TRACK_COUNT"] = config.default_track_count
    app.config["TESTING"] = config.testing

    db.init_app(app)
    with app.app_context():
        db.create_all()

    app.extensions["playlist_services"] = services_override or build_services(config)
    register_routes(app)
    return app


if __name__ == "__main__":
    cfg = Config.from_env()
    logging.basicConfig(level=cfg.log_level)
    create_app(cfg).run(debug=True)
