"""Turn a board game's attributes into Spotify recommendation targets.

The mapping is deliberately simple: the game's complexity (BGG "weight")
drives energy, and its categories pick seed genres from a fixed table.
Anything the user sets on the mood sliders wins over the derived values.
"""
import math
from dataclasses import dataclass, fields, replace
from typing import Optional, Tuple

from errors import BadRequest

DEFAULT_ENERGY = 0.5
DEFAULT_VALENCE = 0.5
DEFAULT_TEMPO = 120.0
DEFAULT_INSTRUMENTALNESS = 0.5
DEFAULT_ACOUSTICNESS = 0.5

MIN_ENERGY = 0.3
MAX_ENERGY = 0.9
MAX_WEIGHT = 5.0

# Ordered: for each game category the FIRST key that is a case-insensitive
# substring of it wins, so earlier rows take precedence over later ones.
CATEGORY_GENRES = (
    ("Fantasy", ("fantasy", "folk", "celtic")),
    ("Science Fiction", ("electronic", "ambient", "synth-pop")),
    ("Economic", ("classical", "jazz", "lounge")),
    ("Wargame", ("rock", "metal", "orchestral")),
    ("Adventure", ("soundtrack", "world", "folk")),
    ("Fighting", ("rock", "metal", "electronic")),
    ("Medieval", ("classical", "folk", "world")),
    ("Civilization", ("world", "classical", "new-age")),
    ("Horror", ("dark-ambient", "industrial", "experimental")),
    ("Party Game", ("pop", "dance", "funk")),
    ("Puzzle", ("ambient", "classical", "jazz")),
    ("Abstract Strategy", ("minimal", "ambient", "classical")),
    ("Dice", ("jazz", "funk", "pop")),
    ("Card Game", ("acoustic", "folk", "pop")),
)

_UNIT_FIELDS = ("energy", "valence", "instrumentalness", "acousticness")


def _number(key, value, prefix="moodSettings"):
    # bool is an int subclass; a slider never sends one
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise BadRequest(f"{prefix}.{key} must be a number")
    if not math.isfinite(value):
        raise BadRequest(f"{prefix}.{key} must be finite")
    return float(value)


@dataclass(frozen=True)
class MoodSettings:
    energy: Optional[float] = None
    valence: Optional[float] = None
    tempo: Optional[float] = None
    instrumentalness: Optional[float] = None
    acousticness: Optional[float] = None

    @classmethod
    def from_dict(cls, data, prefix="moodSettings"):
        """Validate a ``moodSettings`` JSON object. Unknown keys are ignored."""
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise BadRequest(f"{prefix} must be an object")
        values = {}
        for key in _UNIT_FIELDS:
            if data.get(key) is None:
                continue
            v = _number(key, data[key], prefix)
            if not 0.0 <= v <= 1.0:
                raise BadRequest(f"{prefix}.{key} must be between 0 and 1")
            values[key] = v
        if data.get("tempo") is not None:
            tempo = _number("tempo", data["tempo"], prefix)
            if tempo <= 0:
                raise BadRequest(f"{prefix}.tempo must be a positive BPM")
            values["tempo"] = tempo
        return cls(**values)

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self) if getattr(self, f.name) is not None}


@dataclass(frozen=True)
class MusicParameters:
    genres: Tuple[str, ...] = ()
    energy: float = DEFAULT_ENERGY
    valence: float = DEFAULT_VALENCE
    tempo: float = DEFAULT_TEMPO
    instrumentalness: float = DEFAULT_INSTRUMENTALNESS
    acousticness: float = DEFAULT_ACOUSTICNESS

    @classmethod
    def from_dict(cls, data):
        """Validate a ``musicParameters`` object coming back from the client on save."""
        if not isinstance(data, dict):
            raise BadRequest("musicParameters must be an object")
        genres = data.get("genres") or []
        if not isinstance(genres, list) or not all(isinstance(g, str) for g in genres):
            raise BadRequest("musicParameters.genres must be a list of strings")
        mood = MoodSettings.from_dict({k: data.get(k) for k in (*_UNIT_FIELDS, "tempo")}, "musicParameters")
        return cls(genres=tuple(dict.fromkeys(genres))).with_mood(mood)

    def with_mood(self, mood):
        """Return a copy with every field set in ``mood`` applied."""
        if mood is None:
            return self
        return replace(self, **mood.to_dict())

    def to_dict(self):
        return {
            "genres": list(self.genres),
            "energy": self.energy,
            "valence": self.valence,
            "tempo": self.tempo,
            "instrumentalness": self.instrumentalness,
            "acousticness": self.acousticness,
        }


def energy_for_weight(weight):
    """Linear in complexity: weight 0 -> 0.3, capped at 0.9."""
    try:
        w = float(weight or 0)
    except (TypeError, ValueError):
        w = 0.0
    w = min(max(w, 0.0), MAX_WEIGHT)
    return min(MAX_ENERGY, MIN_ENERGY + (w / MAX_WEIGHT) * 0.6)


def genres_for_categories(categories):
    genres = []
    for category in categories or ():
        lowered = str(category).lower()
        for key, mapped in CATEGORY_GENRES:
            if key.lower() in lowered:
                genres.extend(mapped)
                break
    # dict keeps first-seen order
    return tuple(dict.fromkeys(genres))


def map_game_to_music_parameters(attributes, mood=None):
    params = MusicParameters(
        genres=genres_for_categories(attributes.categories),
        energy=energy_for_weight(attributes.weight),
    )
    return params.with_mood(mood)
