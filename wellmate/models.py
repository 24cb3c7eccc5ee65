"""Core domain models.

Relationship state, conversation messages, and the ephemeral request/result
types passed through the dialogue pipeline. Pydantic is used for validation
and serialisation at every data boundary.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

Mood = Literal["happy", "concerned", "energetic", "tired", "calm"]
Energy = Literal["low", "medium", "high"]
TimeOfDay = Literal["morning", "afternoon", "evening", "night"]
EmotionalState = Literal["sad", "stressed", "lonely", "happy", "neutral"]
IntegrationHint = Literal["health", "nutrition", "emotion"]
ChartType = Literal["health", "nutrition", "emotion"]
MessageType = Literal["text", "image", "choice_prompt"]
Sender = Literal["user", "character"]

TriggerType = Literal[
    "user_initiated",
    "morning_greeting",
    "evening_greeting",
    "inactivity",
    "activity_acknowledgment",
]

MOODS: tuple[str, ...] = ("happy", "concerned", "energetic", "tired", "calm")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def local_now() -> datetime:
    """Timezone-aware wall-clock time; its .hour drives time-of-day buckets."""
    return datetime.now().astimezone()


# ---------------------------------------------------------------------------
# Relationship state
# ---------------------------------------------------------------------------

class CharacterState(BaseModel):
    """Persistent relationship record, one per character."""

    id: str
    mood: Mood = "calm"
    closeness: int = Field(default=0, ge=0, le=100)
    energy: Energy = "medium"
    relationship_stage: str = "stranger"  # derived from closeness, never set directly
    last_interaction_time: datetime = Field(default_factory=utcnow)
    total_interactions: int = 0
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Conversation messages (append-only)
# ---------------------------------------------------------------------------

class MessageContext(BaseModel):
    """Snapshot of the character state at the moment a message was sent."""

    model_config = ConfigDict(frozen=True)

    mood: Mood
    closeness: int
    energy: Energy
    time_of_day: TimeOfDay
    relationship_stage: str


class MessageMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    is_proactive: bool = False
    trigger_type: TriggerType | None = None
    ai_generated: bool | None = None
    template_id: str | None = None


class ConversationMessage(BaseModel):
    """A single entry in a character's conversation log."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    timestamp: datetime = Field(default_factory=utcnow)
    character_id: str
    sender: Sender
    content: str
    message_type: MessageType = "text"
    choices: list[str] | None = None
    image_url: str | None = None
    context: MessageContext | None = None
    metadata: MessageMetadata = Field(default_factory=MessageMetadata)

    @field_validator("timestamp")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)


# ---------------------------------------------------------------------------
# Dialogue request / result (ephemeral)
# ---------------------------------------------------------------------------

class DialogueRequest(BaseModel):
    character_id: str
    character_state: CharacterState
    history: list[ConversationMessage] = Field(default_factory=list)
    user_message: str | None = None
    trigger_type: TriggerType | None = None
    user_emotional_state: EmotionalState | None = None
    integration_hint: IntegrationHint | None = None


class ResultMetadata(BaseModel):
    ai_generated: bool
    template_id: str | None = None
    processing_time_ms: int = 0


class DialogueResult(BaseModel):
    content: str
    message_type: MessageType = "text"
    suggested_mood: Mood | None = None
    metadata: ResultMetadata


# ---------------------------------------------------------------------------
# Chart interpretation
# ---------------------------------------------------------------------------

class ChartPoint(BaseModel):
    x: float | str
    y: float


class ChartStats(BaseModel):
    """Aggregate statistics of a chart series, fed to the interpretation prompt."""

    chart_type: ChartType
    mean: float
    minimum: float
    maximum: float
    trend: Literal["increasing", "decreasing", "stable"]

    @classmethod
    def from_points(cls, chart_type: ChartType, points: list[ChartPoint]) -> ChartStats:
        values = [p.y for p in points]
        if not values:
            return cls(chart_type=chart_type, mean=0.0, minimum=0.0, maximum=0.0, trend="stable")
        delta = values[-1] - values[0] if len(values) > 1 else 0
        if delta > 0:
            trend = "increasing"
        elif delta < 0:
            trend = "decreasing"
        else:
            trend = "stable"
        return cls(
            chart_type=chart_type,
            mean=sum(values) / len(values),
            minimum=min(values),
            maximum=max(values),
            trend=trend,
        )


# ---------------------------------------------------------------------------
# Character profiles (read-only presets)
# ---------------------------------------------------------------------------

class Personality(BaseModel):
    traits: list[str] = Field(default_factory=list)
    communication_style: str = ""
    background: str = ""


class TemplatePools(BaseModel):
    """Pre-authored lines keyed by category and sub-key."""

    greetings: dict[str, list[str]] = Field(default_factory=dict)
    responses: dict[str, list[str]] = Field(default_factory=dict)
    proactive: dict[str, list[str]] = Field(default_factory=dict)
    persona_dialogue: dict[str, list[str]] = Field(default_factory=dict)
    data_interpretation: dict[str, list[str]] = Field(default_factory=dict)


DEFAULT_STAGE_THRESHOLDS: dict[str, int] = {
    "stranger": 0,
    "acquaintance": 21,
    "friend": 41,
    "close_friend": 61,
    "intimate": 81,
}

DEFAULT_ENERGY_BY_TIME: dict[str, str] = {
    "morning": "high",
    "afternoon": "medium",
    "evening": "low",
    "night": "low",
}


class CharacterProfile(BaseModel):
    id: str
    name: dict[str, str]
    personality: Personality = Field(default_factory=Personality)
    templates: TemplatePools = Field(default_factory=TemplatePools)
    thresholds: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_STAGE_THRESHOLDS))
    energy_by_time: dict[TimeOfDay, Energy] = Field(
        default_factory=lambda: dict(DEFAULT_ENERGY_BY_TIME)
    )
    default_mood: Mood = "calm"
    default_energy: Energy = "medium"

    def display_name(self, language: str = "en") -> str:
        return self.name.get(language) or self.name.get("en") or next(iter(self.name.values()), "Companion")


# ---------------------------------------------------------------------------
# Domain activity log (symptom / food entries)
# ---------------------------------------------------------------------------

class ActivityEntry(BaseModel):
    kind: Literal["symptom", "food"]
    logged_at: datetime = Field(default_factory=utcnow)
    note: str = ""

    @field_validator("logged_at")
    @classmethod
    def _aware(cls, value: datetime) -> datetime:
        return ensure_aware(value)
