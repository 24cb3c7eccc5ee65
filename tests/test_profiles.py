"""Tests for wellmate.profiles: loading, caching and missing profiles."""

import pytest

from wellmate.profiles import MissingProfileError, ProfileSource


def test_packaged_profile_loads(profiles) -> None:
    profile = profiles.get_profile("baiqi")
    assert profile is not None
    assert profile.display_name() == "Bai Qi"
    assert profile.templates.persona_dialogue["doctor"]


def test_every_packaged_pool_is_filled(profiles) -> None:
    templates = profiles.get_profile("baiqi").templates
    for bucket in ("morning", "afternoon", "evening", "night"):
        assert templates.greetings[bucket]
    for state in ("sad", "stressed", "lonely", "happy", "neutral"):
        assert templates.responses[state]
    for chart_type in ("health", "nutrition", "emotion"):
        assert templates.data_interpretation[chart_type]


def test_available_ids(profiles) -> None:
    assert "baiqi" in profiles.available_ids()


def test_unknown_id_returns_none(profiles) -> None:
    assert profiles.get_profile("nobody") is None


@pytest.mark.parametrize("bad_id", ["", "../baiqi", "characters/baiqi"])
def test_path_like_ids_return_none(profiles, bad_id: str) -> None:
    assert profiles.get_profile(bad_id) is None


def test_require_profile_raises(profiles) -> None:
    with pytest.raises(MissingProfileError) as exc:
        profiles.require_profile("nobody")
    assert exc.value.character_id == "nobody"


def test_cached_until_cleared(write_profile, profiles_dir) -> None:
    source = write_profile("cached", default_mood="happy")
    assert source.get_profile("cached").default_mood == "happy"
    (profiles_dir / "cached.json").unlink()
    assert source.get_profile("cached") is not None
    source.clear_cache()
    assert source.get_profile("cached") is None


def test_invalid_json_returns_none(profiles_dir) -> None:
    (profiles_dir / "broken.json").write_text("{not json", encoding="utf-8")
    assert ProfileSource(profiles_dir).get_profile("broken") is None


def test_invalid_fields_return_none(write_profile) -> None:
    source = write_profile("odd", default_mood="furious")
    assert source.get_profile("odd") is None


def test_mismatched_id_returns_none(profiles_dir) -> None:
    (profiles_dir / "alias.json").write_text('{"id": "other", "name": {"en": "X"}}', encoding="utf-8")
    assert ProfileSource(profiles_dir).get_profile("alias") is None
