"""Template fallback: pre-authored lines used when generation is unavailable.

Resolution order for select_template():
  1. trigger present and persona pools exist → pick a persona uniformly,
     then a line uniformly from that persona's pool
  2. otherwise resolve (category, key):
       morning_greeting / evening_greeting     → greetings[morning|evening]
       inactivity / activity_acknowledgment    → proactive[trigger]
       user emotional state                    → responses[state]
       anything else                           → greetings[current bucket]
  3. empty pool → greetings[current bucket] → greetings[morning] → DEFAULT_GREETING

Time buckets (local clock hour):
  [6, 12) morning   [12, 18) afternoon   [18, 22) evening   otherwise night

All randomness comes from the injected random.Random, so a seeded resolver
is fully deterministic.
"""

import logging
import random
from datetime import datetime

from wellmate.models import CharacterProfile, DialogueRequest, TimeOfDay, local_now
from wellmate.profiles import ProfileSource

logger = logging.getLogger(__name__)

DEFAULT_GREETING = "Hello! How can I help you today?"
DEFAULT_CHART_INTERPRETATION = "数据看起来不错，继续保持。"

PERSONAS = ("doctor", "nutritionist", "psychologist")


def time_of_day(now: datetime | None = None) -> TimeOfDay:
    hour = (now or local_now()).hour
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def _resolve_category(request: DialogueRequest, bucket: TimeOfDay) -> tuple[str, str]:
    trigger = request.trigger_type
    if trigger == "morning_greeting":
        return "greetings", "morning"
    if trigger == "evening_greeting":
        return "greetings", "evening"
    if trigger in ("inactivity", "activity_acknowledgment"):
        return "proactive", trigger
    if request.user_emotional_state:
        return "responses", request.user_emotional_state
    return "greetings", bucket


class TemplateResolver:
    """Select fallback lines for a character from its profile's template pools."""

    def __init__(self, profiles: ProfileSource, rng: random.Random | None = None) -> None:
        self._profiles = profiles
        self._rng = rng or random.Random()

    def _pick(self, pool: list[str] | None) -> str | None:
        lines = [line for line in (pool or []) if line]
        if not lines:
            return None
        return self._rng.choice(lines)

    def _persona_line(self, profile: CharacterProfile) -> str | None:
        pools = profile.templates.persona_dialogue
        if not any(pools.get(p) for p in PERSONAS):
            return None
        persona = self._rng.choice(PERSONAS)
        return self._pick(pools.get(persona))

    def select_template(self, request: DialogueRequest, now: datetime | None = None) -> str:
        """Return a fallback line for the request. Never raises."""
        profile = self._profiles.get_profile(request.character_id)
        if profile is None:
            return DEFAULT_GREETING

        bucket = time_of_day(now)

        if request.trigger_type:
            line = self._persona_line(profile)
            if line:
                return line

        category, key = _resolve_category(request, bucket)
        pools: dict[str, list[str]] = getattr(profile.templates, category)
        line = self._pick(pools.get(key))
        if line:
            return line

        logger.debug("Empty template pool %s[%s], using greeting", category, key)
        greetings = profile.templates.greetings
        return (
            self._pick(greetings.get(bucket))
            or self._pick(greetings.get("morning"))
            or DEFAULT_GREETING
        )

    def select_chart_template(self, character_id: str, chart_type: str) -> str:
        """Return a chart interpretation line for chart_type. Never raises."""
        profile = self._profiles.get_profile(character_id)
        if profile is None:
            return DEFAULT_CHART_INTERPRETATION
        line = self._pick(profile.templates.data_interpretation.get(chart_type))
        return line or DEFAULT_CHART_INTERPRETATION
