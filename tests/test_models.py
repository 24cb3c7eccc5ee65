"""Tests for wellmate.models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from wellmate.models import (
    ActivityEntry,
    CharacterProfile,
    CharacterState,
    ChartPoint,
    ChartStats,
    ConversationMessage,
    MessageMetadata,
    ensure_aware,
)


class TestCharacterState:
    def test_defaults(self) -> None:
        s = CharacterState(id="baiqi")
        assert s.mood == "calm"
        assert s.closeness == 0
        assert s.energy == "medium"
        assert s.relationship_stage == "stranger"
        assert s.last_interaction_time.tzinfo is not None

    @pytest.mark.parametrize("closeness", [-1, 101])
    def test_closeness_bounds(self, closeness: int) -> None:
        with pytest.raises(ValidationError):
            CharacterState(id="baiqi", closeness=closeness)

    def test_invalid_mood_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CharacterState(id="baiqi", mood="grumpy")


class TestConversationMessage:
    def test_ids_are_unique(self) -> None:
        a = ConversationMessage(character_id="baiqi", sender="user", content="a")
        b = ConversationMessage(character_id="baiqi", sender="user", content="b")
        assert a.id != b.id

    def test_frozen(self) -> None:
        m = ConversationMessage(character_id="baiqi", sender="user", content="a")
        with pytest.raises(ValidationError):
            m.content = "changed"

    def test_metadata_defaults(self) -> None:
        m = ConversationMessage(character_id="baiqi", sender="character", content="hi")
        assert m.metadata == MessageMetadata()
        assert m.metadata.is_proactive is False

    def test_naive_timestamp_assumed_utc(self) -> None:
        m = ConversationMessage(
            character_id="baiqi", sender="user", content="a", timestamp=datetime(2025, 1, 1, 12)
        )
        assert m.timestamp == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)

    def test_invalid_sender_rejected(self) -> None:
        with pytest.raises(ValidationError):
            ConversationMessage(character_id="baiqi", sender="narrator", content="a")


class TestChartStats:
    def test_from_points(self) -> None:
        points = [ChartPoint(x="mon", y=4), ChartPoint(x="tue", y=8), ChartPoint(x="wed", y=6)]
        stats = ChartStats.from_points("health", points)
        assert stats.mean == 6
        assert stats.minimum == 4
        assert stats.maximum == 8
        assert stats.trend == "increasing"

    def test_decreasing(self) -> None:
        stats = ChartStats.from_points("emotion", [ChartPoint(x=1, y=9), ChartPoint(x=2, y=3)])
        assert stats.trend == "decreasing"

    def test_single_point_is_stable(self) -> None:
        assert ChartStats.from_points("nutrition", [ChartPoint(x=1, y=5)]).trend == "stable"

    def test_empty(self) -> None:
        stats = ChartStats.from_points("health", [])
        assert (stats.mean, stats.minimum, stats.maximum, stats.trend) == (0, 0, 0, "stable")


class TestCharacterProfile:
    def test_display_name_language(self) -> None:
        p = CharacterProfile(id="baiqi", name={"en": "Bai Qi", "zh": "白起"})
        assert p.display_name() == "Bai Qi"
        assert p.display_name("zh") == "白起"
        assert p.display_name("fr") == "Bai Qi"

    def test_display_name_without_english(self) -> None:
        assert CharacterProfile(id="x", name={"zh": "白起"}).display_name() == "白起"

    def test_default_thresholds(self) -> None:
        p = CharacterProfile(id="x", name={"en": "X"})
        assert p.thresholds["intimate"] == 81
        assert p.energy_by_time["morning"] == "high"


class TestActivityEntry:
    def test_invalid_kind(self) -> None:
        with pytest.raises(ValidationError):
            ActivityEntry(kind="sleep")

    def test_ensure_aware_keeps_zone(self) -> None:
        aware = datetime(2025, 1, 1, tzinfo=timezone.utc)
        assert ensure_aware(aware) is aware
