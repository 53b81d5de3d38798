import pytest

from boardgamegeek import GameAttributes
from errors import BadRequest
from music_mapping import (
    CATEGORY_GENRES,
    MoodSettings,
    MusicParameters,
    energy_for_weight,
    genres_for_categories,
    map_game_to_music_parameters,
)


def test_fantasy_economic_example():
    game = GameAttributes(name="Example", categories=("Fantasy", "Economic"), weight=3.5)
    params = map_game_to_music_parameters(game)
    assert params.energy == pytest.approx(0.72)
    assert list(params.genres) == ["fantasy", "folk", "celtic", "classical", "jazz", "lounge"]
    assert params.valence == 0.5
    assert params.tempo == 120
    assert params.instrumentalness == 0.5
    assert params.acousticness == 0.5


@pytest.mark.parametrize("weight", [0, 0.5, 1, 1.7, 2.5, 3.33, 4, 4.99, 5])
def test_energy_stays_between_floor_and_cap(weight):
    energy = energy_for_weight(weight)
    assert 0.3 <= energy <= 0.9
    assert energy == pytest.approx(min(0.9, 0.3 + weight / 5 * 0.6))


def test_energy_for_out_of_range_or_missing_weight():
    assert energy_for_weight(None) == pytest.approx(0.3)
    assert energy_for_weight("junk") == pytest.approx(0.3)
    assert energy_for_weight(-2) == pytest.approx(0.3)
    assert energy_for_weight(12) == pytest.approx(0.9)


def test_genres_deduplicated_in_first_seen_order():
    genres = genres_for_categories(["Medieval", "Fantasy", "Adventure", "Card Game"])
    assert genres == ("classical", "folk", "world", "fantasy", "celtic", "soundtrack", "acoustic", "pop")
    assert len(genres) == len(set(genres))


def test_category_match_is_case_insensitive_substring():
    assert genres_for_categories(["Science Fiction / Space"]) == ("electronic", "ambient", "synth-pop")
    assert genres_for_categories(["PARTY GAME"]) == ("pop", "dance", "funk")


def test_first_table_entry_wins_for_a_category():
    # matches both "Fantasy" and "Fighting"; only the earlier row is used
    assert genres_for_categories(["Fantasy Fighting"]) == ("fantasy", "folk", "celtic")


def test_unknown_categories_give_no_genres():
    assert genres_for_categories(["Negotiation", "Trains"]) == ()
    assert genres_for_categories([]) == ()


def test_table_has_fourteen_entries():
    assert len(CATEGORY_GENRES) == 14


def test_mood_override_wins_over_derived_energy():
    game = GameAttributes(weight=0)
    params = map_game_to_music_parameters(game, MoodSettings(energy=0.8))
    assert params.energy == 0.8


def test_absent_mood_fields_keep_defaults():
    game = GameAttributes(categories=("Horror",), weight=5)
    params = map_game_to_music_parameters(game, MoodSettings(valence=0.1, tempo=90))
    assert params.energy == pytest.approx(0.9)
    assert params.valence == 0.1
    assert params.tempo == 90
    assert params.acousticness == 0.5


def test_with_mood_returns_new_value():
    base = MusicParameters(genres=("jazz",), energy=0.4)
    changed = base.with_mood(MoodSettings(energy=0.9))
    assert changed is not base
    assert base.energy == 0.4
    assert changed.energy == 0.9
    assert changed.genres == ("jazz",)


def test_mood_settings_from_dict():
    mood = MoodSettings.from_dict({"energy": 1, "tempo": 140, "ignored": "x"})
    assert mood == MoodSettings(energy=1.0, tempo=140.0)
    assert mood.to_dict() == {"energy": 1.0, "tempo": 140.0}
    assert MoodSettings.from_dict(None) == MoodSettings()


@pytest.mark.parametrize(
    "data",
    [
        {"energy": 1.2},
        {"valence": -0.1},
        {"acousticness": "loud"},
        {"instrumentalness": True},
        {"tempo": 0},
        {"tempo": -60},
        ["energy", 0.5],
    ],
)
def test_mood_settings_rejects_bad_values(data):
    with pytest.raises(BadRequest):
        MoodSettings.from_dict(data)


def test_music_parameters_from_dict_dedupes_and_validates():
    params = MusicParameters.from_dict({"genres": ["jazz", "pop", "jazz"], "energy": 0.7, "tempo": 100})
    assert params.genres == ("jazz", "pop")
    assert params.energy == 0.7
    assert params.valence == 0.5
    with pytest.raises(BadRequest):
        MusicParameters.from_dict({"genres": "jazz"})
    with pytest.raises(BadRequest):
        MusicParameters.from_dict({"genres": [], "energy": 3})
