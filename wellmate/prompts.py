"""Handlebars prompt rendering for the dialogue, chart and analysis modes.

Templates use triple-stash ({{{...}}}) for free text so user words reach the
model unescaped. The `last` helper bounds the history window:

  {{#last history window}}...{{/last}}: iterate over the last `window` messages
"""

from collections.abc import Callable
from datetime import datetime
from typing import Any

import pybars

from wellmate.models import CharacterProfile, ChartStats, DialogueRequest
from wellmate.templates import time_of_day

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}

HISTORY_WINDOW = 20

SAFETY_GUARDRAILS = """\
IMPORTANT SAFETY GUIDELINES:
- You are a supportive companion character, NOT a medical professional
- Do NOT provide medical diagnoses, prescriptions, or treatment recommendations
- Maintain a supportive, empathetic, non-judgmental tone
- All suggestions are emotional support and gentle guidance only
- If you detect any crisis indicators, provide supportive resources\
"""

PERSONA_CONTEXT: dict[str, dict[str, str]] = {
    "doctor": {"role": "doctor", "focus": "health monitoring and symptom reminders"},
    "nutritionist": {"role": "nutritionist", "focus": "nutrition and eating habits"},
    "psychologist": {"role": "counselor", "focus": "emotional support and care"},
}

HINT_PHRASES = {
    "health": "log your symptoms",
    "nutrition": "write down what you ate",
    "emotion": "check in on how you are feeling",
}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


# ── Custom Handlebars helpers ────────────────────────────


def _helper_last(this, options, items, count):
    """{{#last array N}}...{{/last}}: iterate over the last N items."""
    result = []
    for item in list(items or [])[-int(count):]:
        result.extend(options["fn"](item))
    return result


_HELPERS: dict[str, Callable] = {
    "last": _helper_last,
}


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────

DIALOGUE_PROMPT = """\
You are {{{char.name}}}, a caring companion character in a health and wellness \
app. You speak in a warm, conversational, first-person tone, like a partner who \
cares, never like a manual. You can switch naturally between several roles; \
right now you are speaking as a {{persona.role}}, focusing on {{persona.focus}}. \
You offer emotional support and gentle guidance, not diagnoses or prescriptions.

## Personality
Traits: {{{char.traits}}}
Communication style: {{{char.style}}}
{{#if char.background}}Background: {{{char.background}}}
{{/if}}
## Character State
- Mood: {{state.mood}}
- Closeness: {{state.closeness}}/100 ({{state.stage}} stage)
- Energy: {{state.energy}}
- Time of day: {{state.time_of_day}}
{{#if history}}

## Recent Conversation
{{#last history window}}{{{speaker}}}: {{{content}}}
{{/last}}
Refer back to topics from earlier in this conversation when it helps the \
user feel remembered.
{{/if}}

{{#if user_message}}## User's Current Message
"{{{user_message}}}"
{{else}}## Trigger
{{trigger}}{{#if trigger_note}}: {{{trigger_note}}}{{/if}}
{{/if}}
{{#if emotional_state}}
User's emotional state: {{emotional_state}}
{{/if}}
{{#if hint}}
Gentle guidance: if it fits, you might invite the user to {{hint}} with you. \
Frame it as something you do together ("Let's {{hint}} together"), a \
suggestion, never an instruction.
{{/if}}

## Guidelines
- Reflect your {{state.mood}} mood and {{state.energy}} energy
- Match the warmth to a {{state.stage}} relationship
- Keep the reply to 1-3 sentences
- Use first-person language ("I noticed...", "Let's...")
{{#if needs_warmth}}- Be especially warm and understanding
{{/if}}
Reply as {{{char.name}}} with the spoken words only:\
"""

CHART_PROMPT = """\
You are {{{char.name}}}, a supportive companion character.

Character State:
- Mood: {{state.mood}}
- Closeness: {{state.closeness}}/100 ({{state.stage}} stage)
- Time of day: {{state.time_of_day}}

Chart Data Analysis:
- Chart Type: {{chart.type}}
- Average Value: {{chart.mean}}
- Maximum: {{chart.maximum}}
- Minimum: {{chart.minimum}}
- Trend: {{chart.trend}}

Guidelines:
- Give a brief, encouraging interpretation (1-2 sentences)
- If the trend is positive, celebrate it; if it needs attention, gently suggest care
- Keep it concise and personal

Interpretation:\
"""

SYMPTOM_PROMPT = """\
You are a caring companion helping the user reflect on how they feel. Speak \
conversationally in the first person.

{{#if zh}}请用中文回答。{{else}}Answer in English.{{/if}}

Symptoms described by the user:
{{{symptoms}}}
{{#if notes}}
Notes: {{{notes}}}
{{/if}}

Assess the severity from the description (mild, moderate or severe).

Respond with JSON only:
{
  "observations": "what you notice, in plain language",
  "possibleCauses": ["..."],
  "suggestions": ["..."],
  "whenToSeekHelp": "...",
  "severity": "mild | moderate | severe | null",
  "disclaimer": "..."
}\
"""

MEAL_PROMPT = """\
You are a supportive nutrition companion helping the user find simple, \
practical meal ideas from what they have at home.

{{#if zh}}请用中文回答。{{else}}Answer in English.{{/if}}

Available ingredients (free-form text; identify the individual ingredients):
{{{ingredients}}}
{{#if conditions}}
The user's health conditions: {{{conditions}}}
Reflect general dietary adjustments, NOT medical prescriptions.
{{/if}}
{{#if energy_level}}
The user's energy level: {{energy_level}}
{{/if}}
{{#if low_energy}}
Energy is low: prefer very simple meals that need minimal effort.
{{/if}}
{{#if late_night}}
It is late at night (after 9 PM). Suggest light, comforting, easy options \
and never judge eating late. Include a "timeAwareGuidance" field with a \
gentle self-care note.
{{/if}}
{{#if flexible}}
Ingredients are suggestions, not requirements. Spread them across the \
dishes, reuse them if needed, and add common staples (salt, oil, \
seasonings). Keep every dish practical with no special equipment.
{{/if}}

Suggest exactly {{count}} different dishes. These are meal ideas, NOT medical \
dietary prescriptions; each one carries a disclaimer.

Respond with a JSON array only:
[
  {
    "mealName": "specific dish name",
    "description": "taste and character of the dish",
    "ingredients": ["..."],
    "preparationNotes": "short steps or key tips",
    "adaptedForConditions": {{#if conditions}}true{{else}}false{{/if}},
    "adaptedForEnergyLevel": {{#if energy_level}}true{{else}}false{{/if}},
    "disclaimer": "..."{{#if late_night}},
    "timeAwareGuidance": "..."{{/if}}
  }
]\
"""

FOOD_REFLECTION_PROMPT = """\
You are a supportive nutrition companion offering encouragement and gentle \
guidance about food choices.

{{#if zh}}请用中文回答。{{else}}Answer in English.{{/if}}

The user's food record:
- Type: {{reflection}}
{{#if conditions}}
- Health conditions: {{{conditions}}}
{{/if}}
{{#if symptoms}}
- Recent symptoms (last 7 days): {{{symptoms}}}
{{/if}}
{{#if notes}}
- Notes: {{{notes}}}
{{/if}}

Be encouraging and never judgmental. Consider the health context when \
judging whether the choice suits the user, supportively rather than \
restrictively. Offer 2-3 gentle suggestions, not prescriptions.

Respond with JSON only:
{
  "encouragement": "...",
  "suggestions": ["..."],
  "suitability": "...",
  "disclaimer": "..."
}\
"""


# ── Context builders ─────────────────────────────────────


def _state_context(request_state, now: datetime | None) -> dict[str, Any]:
    return {
        "mood": request_state.mood,
        "closeness": request_state.closeness,
        "energy": request_state.energy,
        "stage": request_state.relationship_stage,
        "time_of_day": time_of_day(now),
    }


def _char_context(profile: CharacterProfile) -> dict[str, Any]:
    return {
        "name": profile.display_name(),
        "traits": ", ".join(profile.personality.traits),
        "style": profile.personality.communication_style,
        "background": profile.personality.background,
    }


def build_dialogue_context(
    request: DialogueRequest,
    profile: CharacterProfile,
    persona: str,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Assemble template variables for DIALOGUE_PROMPT."""
    char = _char_context(profile)
    history = [
        {
            "speaker": char["name"] if m.sender == "character" else "User",
            "content": m.content,
        }
        for m in request.history
    ]
    trigger = request.trigger_type or "user_initiated"
    trigger_note = ""
    if trigger == "activity_acknowledgment":
        area = request.integration_hint or "app"
        trigger_note = (
            f"the user recently completed an activity in the {area} area; "
            "acknowledge it warmly"
        )
    elif trigger == "inactivity":
        trigger_note = "you have not heard from the user in a while"

    hint = HINT_PHRASES.get(request.integration_hint or "", "")
    ctx: dict[str, Any] = {
        "char": char,
        "persona": PERSONA_CONTEXT.get(persona, PERSONA_CONTEXT["psychologist"]),
        "state": _state_context(request.character_state, now),
        "history": history,
        "window": HISTORY_WINDOW,
        "user_message": (request.user_message or "").strip(),
        "trigger": trigger,
        "trigger_note": trigger_note,
        "emotional_state": request.user_emotional_state or "",
        "hint": hint,
        "needs_warmth": request.user_emotional_state in ("sad", "stressed", "lonely"),
    }
    return ctx


def build_chart_context(
    stats: ChartStats,
    state,
    profile: CharacterProfile,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Assemble template variables for CHART_PROMPT."""
    return {
        "char": _char_context(profile),
        "state": _state_context(state, now),
        "chart": {
            "type": stats.chart_type,
            "mean": f"{stats.mean:.1f}",
            "maximum": f"{stats.maximum:g}",
            "minimum": f"{stats.minimum:g}",
            "trend": stats.trend,
        },
    }


def to_messages(prompt: str) -> list[dict[str, str]]:
    """Wrap a rendered prompt with the guardrail system message."""
    return [
        {"role": "system", "content": SAFETY_GUARDRAILS},
        {"role": "user", "content": prompt},
    ]
