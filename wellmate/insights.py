"""Structured wellness analyses: symptoms, meal ideas and food reflections.

The model is asked for JSON, but whatever comes back goes through the
normalizer and every field gets an explicit default, so a partial answer
still yields a complete result. Meal suggestions are the one mode that
expects a JSON array; a reply with no recoverable dish raises
UnstructuredReplyError. Model failures are not masked here: LLMError
propagates to the caller.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from wellmate.llm import LLM, LLMError, call_with_deadline
from wellmate.models import Energy, local_now
from wellmate.normalizer import (
    RAW_RESPONSE_KEY,
    Payload,
    field_list,
    field_str,
    is_raw_response,
    normalize_response,
)
from wellmate.prompts import (
    FOOD_REFLECTION_PROMPT,
    MEAL_PROMPT,
    SYMPTOM_PROMPT,
    render_prompt,
    to_messages,
)

logger = logging.getLogger(__name__)

Language = Literal["en", "zh"]
Severity = Literal["mild", "moderate", "severe"]
Reflection = Literal["light", "normal", "indulgent"]

DEFAULT_DISCLAIMERS: dict[str, str] = {
    "en": "This is observational analysis for general guidance only. NOT a medical diagnosis.",
    "zh": "这是仅供一般指导的观察性分析，不是医疗诊断或治疗建议。",
}

MEAL_DISCLAIMERS: dict[str, str] = {
    "en": "This is a meal suggestion for general guidance only and is not a substitute "
          "for professional dietary advice.",
    "zh": "这是仅供一般指导的餐食建议，不能替代专业饮食建议。",
}

MEAL_NAMES: dict[str, str] = {"en": "Meal Suggestion", "zh": "餐食建议"}

REFLECTION_DEFAULTS: dict[str, dict[str, str]] = {
    "en": {
        "encouragement": "Thank you for recording your food today!",
        "suitability": "This choice seems reasonable.",
        "disclaimer": "This is general guidance only, not medical advice. "
                      "Please consult a healthcare professional for medical concerns.",
    },
    "zh": {
        "encouragement": "感谢您记录今天的饮食！",
        "suitability": "这个选择看起来是合理的。",
        "disclaimer": "这是仅供一般指导的建议，不是医疗建议。如有医疗问题，请咨询医疗专业人员。",
    },
}

REFLECTION_LABELS: dict[str, dict[str, str]] = {
    "en": {"light": "light", "normal": "normal", "indulgent": "indulgent"},
    "zh": {"light": "清淡", "normal": "正常", "indulgent": "放纵"},
}

SEVERITIES: tuple[str, ...] = ("mild", "moderate", "severe")
LATE_NIGHT_HOUR = 21
MAX_MEAL_SUGGESTIONS = 3


class UnstructuredReplyError(LLMError):
    """The model answered, but nothing usable could be recovered from it."""


# ---------------------------------------------------------------------------
# Symptom analysis
# ---------------------------------------------------------------------------

class SymptomAnalysis(BaseModel):
    observations: str
    possible_causes: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    when_to_seek_help: str = ""
    severity: Severity | None = None
    disclaimer: str
    ai_structured: bool = True


async def analyze_symptoms(
    llm: LLM,
    symptoms: str,
    notes: str = "",
    language: Language = "en",
    *,
    timeout: float = 60.0,
) -> SymptomAnalysis:
    prompt = render_prompt(
        SYMPTOM_PROMPT,
        {"symptoms": symptoms.strip(), "notes": notes.strip(), "zh": language == "zh"},
    )
    reply = await call_with_deadline(llm, "symptom_analysis", to_messages(prompt), timeout)
    payload = normalize_response(reply)

    if is_raw_response(payload):
        logger.warning("Symptom analysis was not structured, returning prose")
        observations = payload[RAW_RESPONSE_KEY] or "..."
    else:
        observations = field_str(payload, "observations", "...")

    severity = field_str(payload, "severity").lower()
    return SymptomAnalysis(
        observations=observations,
        possible_causes=field_list(payload, "possibleCauses"),
        suggestions=field_list(payload, "suggestions"),
        when_to_seek_help=field_str(payload, "whenToSeekHelp"),
        severity=severity if severity in SEVERITIES else None,
        disclaimer=field_str(payload, "disclaimer", DEFAULT_DISCLAIMERS[language]),
        ai_structured=not is_raw_response(payload),
    )


# ---------------------------------------------------------------------------
# Meal suggestions
# ---------------------------------------------------------------------------

class MealSuggestion(BaseModel):
    meal_name: str
    description: str = ""
    ingredients: list[str] = Field(default_factory=list)
    preparation_notes: str = ""
    adapted_for_conditions: bool = False
    adapted_for_energy_level: bool = False
    disclaimer: str
    time_aware_guidance: str | None = None
    is_flexible: bool = True


def is_late_night(now: datetime | None = None) -> bool:
    return (now or local_now()).hour >= LATE_NIGHT_HOUR


def _meal_items(payload: Payload) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        items = payload
    elif is_raw_response(payload):
        items = []
    elif isinstance(payload.get("meals"), list):
        items = payload["meals"]
    else:
        items = [payload]
    return [item for item in items if isinstance(item, dict)]


def _field_bool(item: dict[str, Any], name: str) -> bool:
    return item.get(name) is True


async def generate_meal_suggestions(
    llm: LLM,
    ingredients: str,
    *,
    health_conditions: Iterable[str] = (),
    energy_level: Energy | None = None,
    language: Language = "en",
    time_aware: bool = False,
    flexible: bool = True,
    max_suggestions: int = MAX_MEAL_SUGGESTIONS,
    now: datetime | None = None,
    timeout: float = 60.0,
) -> list[MealSuggestion]:
    """Up to `max_suggestions` dishes built from free-form ingredient text.

    Blank ingredient text returns [] without calling the model. A root-level
    "timeAwareGuidance" applies to every dish that lacks its own.
    """
    text = ingredients.strip()
    if not text:
        return []

    conditions = ", ".join(c.strip() for c in health_conditions if c.strip())
    late_night = time_aware and is_late_night(now)
    prompt = render_prompt(
        MEAL_PROMPT,
        {
            "ingredients": text,
            "conditions": conditions,
            "energy_level": energy_level or "",
            "low_energy": energy_level == "low",
            "late_night": late_night,
            "flexible": flexible,
            "count": max_suggestions,
            "zh": language == "zh",
        },
    )
    reply = await call_with_deadline(llm, "meal_suggestions", to_messages(prompt), timeout)
    payload = normalize_response(reply)

    items = _meal_items(payload)
    if not items:
        raise UnstructuredReplyError("No meal suggestions found in the model reply")
    if len(items) < max_suggestions:
        logger.warning("Received %d meal suggestions, expected %d", len(items), max_suggestions)

    shared_guidance = field_str(payload, "timeAwareGuidance") or None
    return [
        MealSuggestion(
            meal_name=field_str(item, "mealName", MEAL_NAMES[language]),
            description=field_str(item, "description"),
            ingredients=field_list(item, "ingredients"),
            preparation_notes=field_str(item, "preparationNotes"),
            adapted_for_conditions=_field_bool(item, "adaptedForConditions"),
            adapted_for_energy_level=_field_bool(item, "adaptedForEnergyLevel"),
            disclaimer=field_str(item, "disclaimer", MEAL_DISCLAIMERS[language]),
            time_aware_guidance=field_str(item, "timeAwareGuidance") or shared_guidance,
            is_flexible=flexible,
        )
        for item in items[:max_suggestions]
    ]


# ---------------------------------------------------------------------------
# Food reflection
# ---------------------------------------------------------------------------

class FoodReflectionAnalysis(BaseModel):
    encouragement: str
    suggestions: list[str] = Field(default_factory=list)
    suitability: str
    disclaimer: str


async def analyze_food_reflection(
    llm: LLM,
    reflection: Reflection,
    *,
    notes: str = "",
    health_conditions: Iterable[str] = (),
    recent_symptoms: Iterable[str] = (),
    language: Language = "en",
    timeout: float = 60.0,
) -> FoodReflectionAnalysis:
    """Encouragement and gentle suggestions for a logged meal."""
    prompt = render_prompt(
        FOOD_REFLECTION_PROMPT,
        {
            "reflection": REFLECTION_LABELS[language][reflection],
            "conditions": ", ".join(c.strip() for c in health_conditions if c.strip()),
            "symptoms": ", ".join(s.strip() for s in recent_symptoms if s.strip()),
            "notes": notes.strip(),
            "zh": language == "zh",
        },
    )
    reply = await call_with_deadline(llm, "food_reflection", to_messages(prompt), timeout)
    payload = normalize_response(reply)
    if is_raw_response(payload):
        logger.warning("Food reflection was not structured, using defaults")

    defaults = REFLECTION_DEFAULTS[language]
    return FoodReflectionAnalysis(
        encouragement=field_str(payload, "encouragement", defaults["encouragement"]),
        suggestions=field_list(payload, "suggestions"),
        suitability=field_str(payload, "suitability", defaults["suitability"]),
        disclaimer=field_str(payload, "disclaimer", defaults["disclaimer"]),
    )
