"""Pydantic request models for API endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from wellmate.models import ChartPoint, ChartType, Energy, IntegrationHint, Mood


class ClosenessBody(BaseModel):
    delta: int = 1


class MoodBody(BaseModel):
    mood: Mood


class ResetBody(BaseModel):
    preserve_closeness: bool = False


class ChatBody(BaseModel):
    message: str
    integration_hint: IntegrationHint | None = None


class ProactiveBody(BaseModel):
    event: Literal["mount", "visible"] = "mount"


class ChartBody(BaseModel):
    chart_type: ChartType
    points: list[ChartPoint]


class ActivityBody(BaseModel):
    kind: Literal["symptom", "food"]
    logged_at: datetime | None = None
    note: str = ""


class SymptomBody(BaseModel):
    symptoms: str
    notes: str = ""
    language: Literal["en", "zh"] = "en"


class MealSuggestionBody(BaseModel):
    ingredients: str
    health_conditions: list[str] = []
    energy_level: Energy | None = None
    language: Literal["en", "zh"] = "en"
    time_aware: bool = False
    flexible: bool = True
    max_suggestions: int = Field(default=3, ge=1, le=5)


class FoodReflectionBody(BaseModel):
    reflection: Literal["light", "normal", "indulgent"]
    notes: str = ""
    health_conditions: list[str] = []
    recent_symptoms: list[str] | None = None
    language: Literal["en", "zh"] = "en"
