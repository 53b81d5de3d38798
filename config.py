import os
from dataclasses import dataclass, replace

from dotenv import load_dotenv

# ---------- Load environment ----------
load_dotenv()

basedir = os.path.abspath(os.path.dirname(__file__))


def _int_env(name, default):
    raw = os.getenv(name)
    try:
        return int(raw) if raw else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Config:
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    spotify_redirect_uri: str = ""
    secret_key: str = "dev"
    database_url: str = f"sqlite:///{os.path.join(basedir, 'app.db')}"
    bgg_api_base: str = "https://boardgamegeek.com/xmlapi2"
    http_timeout: int = 15
    default_track_count: int = 20
    log_level: str = "INFO"
    testing: bool = False

    @classmethod
    def from_env(cls):
        """Build the app configuration from the process environment (and .env)."""
        return cls(
            spotify_client_id=os.getenv("SPOTIFY_CLIENT_ID", ""),
            spotify_client_secret=os.getenv("SPOTIFY_CLIENT_SECRET", ""),
            spotify_redirect_uri=os.getenv("SPOTIFY_REDIRECT_URI") or os.getenv("REDIRECT_URI", ""),
            secret_key=os.getenv("SECRET_KEY", "dev"),
            database_url=os.getenv("DATABASE_URL") or cls.database_url,
            bgg_api_base=os.getenv("BGG_API_BASE") or cls.bgg_api_base,
            http_timeout=_int_env("HTTP_TIMEOUT", 15),
            default_track_count=_int_env("DEFAULT_TRACK_COUNT", 20),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def with_overrides(self, **overrides):
        return replace(self, **overrides)
