import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def _new_id():
    return str(uuid.uuid4())


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class Profile(db.Model):
    __tablename__ = "profiles"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    spotify_id = db.Column(db.String(128), unique=True, nullable=False)
    display_name = db.Column(db.String(256))
    avatar_url = db.Column(db.String(1024))
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=_utcnow, onupdate=_utcnow)

    @classmethod
    def upsert_from_spotify(cls, me):
        """Create or refresh the profile row for a Spotify ``/me`` payload."""
        profile = cls.query.filter_by(spotify_id=me["id"]).first()
        if not profile:
            profile = cls(spotify_id=me["id"])
            db.session.add(profile)
        images = me.get("images") or []
        profile.display_name = me.get("display_name") or me["id"]
        profile.avatar_url = images[0].get("url") if images else None
        profile.updated_at = _utcnow()
        db.session.commit()
        return profile

    def to_dict(self):
        return {
            "id": self.id,
            "spotify_id": self.spotify_id,
            "display_name": self.display_name,
            "avatar_url": self.avatar_url,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


class Playlist(db.Model):
    __tablename__ = "playlists"

    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("profiles.id"), nullable=False, index=True)
    spotify_playlist_id = db.Column(db.String(128), nullable=False)
    game_id = db.Column(db.String(64), default="")
    game_name = db.Column(db.String(256), nullable=False)
    mood_settings = db.Column(db.JSON, default=dict)
    music_parameters = db.Column(db.JSON, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow)

    # Every read and delete goes through here so rows are always scoped to their owner.
    @classmethod
    def owned_by(cls, user_id):
        return cls.query.filter_by(user_id=user_id)

    @classmethod
    def get_owned(cls, playlist_id, user_id):
        return cls.owned_by(user_id).filter_by(id=playlist_id).first()

    @classmethod
    def list_owned(cls, user_id):
        return cls.owned_by(user_id).order_by(cls.created_at.desc()).all()

    def to_dict(self):
        return {
            "id": self.id,
            "user_id": self.user_id,
            "spotify_playlist_id": self.spotify_playlist_id,
            "game_id": self.game_id,
            "game_name": self.game_name,
            "mood_settings": self.mood_settings or {},
            "music_parameters": self.music_parameters,
            "created_at": _iso(self.created_at),
        }
