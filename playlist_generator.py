import logging
from datetime import datetime, timezone

from errors import BadRequest
from music_mapping import map_game_to_music_parameters

log = logging.getLogger(__name__)

MIN_TRACKS = 1
MAX_TRACKS = 100


def validate_track_count(value, default=20):
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequest("trackCount must be an integer")
    if not MIN_TRACKS <= value <= MAX_TRACKS:
        raise BadRequest(f"trackCount must be between {MIN_TRACKS} and {MAX_TRACKS}")
    return value


def _images(images):
    return [
        {"url": img.get("url"), "height": img.get("height") or 0, "width": img.get("width") or 0}
        for img in images or []
    ]


def _format_track(t):
    album = t.get("album") or {}
    return {
        "id": t.get("id"),
        "name": t.get("name"),
        "artists": [{"id": a.get("id"), "name": a.get("name")} for a in t.get("artists") or []],
        "album": {"id": album.get("id"), "name": album.get("name"), "images": _images(album.get("images"))},
        "uri": t.get("uri"),
        "duration_ms": t.get("duration_ms"),
        "preview_url": t.get("preview_url"),
    }


def shape_playlist(pl):
    """Trim a full Spotify playlist object to what the front end renders."""
    tracks = pl.get("tracks") or {}
    return {
        "id": pl.get("id"),
        "name": pl.get("name"),
        "description": pl.get("description") or "",
        "images": _images(pl.get("images")),
        "external_urls": pl.get("external_urls") or {},
        "tracks": {
            "total": tracks.get("total", 0),
            # local files and removed tracks come back as null
            "items": [{"track": _format_track(it["track"])} for it in tracks.get("items") or [] if it and it.get("track")],
        },
        "uri": pl.get("uri"),
    }


def generate_playlist(spotify, catalog, game_id, game_name, mood=None, track_count=20):
    """Build a Spotify playlist for a board game.

    Steps run in order and any failure aborts the rest. A playlist that was
    already created on Spotify is left there (possibly empty).
    """
    attributes = catalog.get_game_attributes(game_id)
    params = map_game_to_music_parameters(attributes, mood)

    pl = spotify.create_playlist(
        f"{game_name} - Board Game Music",
        description=f"A playlist for {game_name} based on the game's attributes and your mood settings.",
        public=False,
    )
    log.info("Created Spotify playlist %s for game %s", pl["id"], game_id)

    tracks = spotify.recommendations(
        params.genres,
        limit=track_count,
        energy=params.energy,
        valence=params.valence,
        tempo=params.tempo,
        instrumentalness=params.instrumentalness,
        acousticness=params.acousticness,
    )
    uris = [t["uri"] for t in tracks if t and t.get("uri")]
    if uris:
        spotify.add_tracks(pl["id"], uris)

    hydrated = spotify.get_playlist(pl["id"])
    return {
        "playlist": shape_playlist(hydrated),
        "gameAttributes": attributes.to_dict(),
        "musicParameters": params.to_dict(),
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }
