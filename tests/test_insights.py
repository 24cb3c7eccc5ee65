"""Tests for wellmate.insights: symptom, meal and food reflection analyses."""

import json

import pytest

from wellmate.insights import (
    DEFAULT_DISCLAIMERS,
    MEAL_DISCLAIMERS,
    REFLECTION_DEFAULTS,
    UnstructuredReplyError,
    analyze_food_reflection,
    analyze_symptoms,
    generate_meal_suggestions,
)
from wellmate.llm import TransportError


async def test_structured_reply(make_llm) -> None:
    reply = "```json\n" + json.dumps({
        "observations": "You mention headaches after long screen time.",
        "possibleCauses": ["eye strain", "dehydration"],
        "suggestions": ["take breaks", "drink water"],
        "whenToSeekHelp": "If it lasts more than a week.",
        "severity": "Mild",
        "disclaimer": "Not a diagnosis.",
    }) + "\n```"
    llm = make_llm(reply=reply)
    result = await analyze_symptoms(llm, "headache", "since noon")
    assert result.observations == "You mention headaches after long screen time."
    assert result.possible_causes == ["eye strain", "dehydration"]
    assert result.suggestions == ["take breaks", "drink water"]
    assert result.when_to_seek_help == "If it lasts more than a week."
    assert result.severity == "mild"
    assert result.disclaimer == "Not a diagnosis."
    assert result.ai_structured is True
    assert llm.calls[0][0] == "symptom_analysis"
    assert "headache" in llm.last_prompt
    assert "Notes: since noon" in llm.last_prompt


async def test_missing_fields_get_defaults(make_llm) -> None:
    result = await analyze_symptoms(make_llm(reply='{"observations": "ok", "severity": "extreme"}'), "tired")
    assert result.possible_causes == []
    assert result.suggestions == []
    assert result.when_to_seek_help == ""
    assert result.severity is None
    assert result.disclaimer == DEFAULT_DISCLAIMERS["en"]


async def test_chinese_defaults(make_llm) -> None:
    llm = make_llm(reply="观察：睡眠不足\n建议：早睡，少喝咖啡")
    result = await analyze_symptoms(llm, "失眠", language="zh")
    assert result.observations == "睡眠不足"
    assert result.suggestions == ["早睡", "少喝咖啡"]
    assert result.disclaimer == DEFAULT_DISCLAIMERS["zh"]
    assert "请用中文回答" in llm.last_prompt


async def test_prose_reply_kept_as_observations(make_llm) -> None:
    result = await analyze_symptoms(make_llm(reply="Sounds like a rough day, rest up."), "sore")
    assert result.observations == "Sounds like a rough day, rest up."
    assert result.ai_structured is False


async def test_model_errors_propagate(make_llm) -> None:
    with pytest.raises(TransportError):
        await analyze_symptoms(make_llm(error=TransportError("down")), "cough")


# ---------------------------------------------------------------------------
# Meal suggestions
# ---------------------------------------------------------------------------

def _meal(name: str, **fields) -> dict:
    return {"mealName": name, "ingredients": ["egg"], **fields}


class TestMealSuggestions:
    async def test_array_reply(self, make_llm, clock) -> None:
        reply = "Here you go:\n" + json.dumps([
            _meal("Tomato Egg Noodles", description="Comforting", preparationNotes="Boil, stir",
                  adaptedForEnergyLevel=True, disclaimer="Just an idea."),
            _meal("Egg Fried Rice"),
            _meal("Steamed Egg"),
        ]) + "\nEnjoy!"
        llm = make_llm(reply=reply)
        meals = await generate_meal_suggestions(llm, "eggs, tomatoes, noodles", energy_level="low", now=clock(12))

        assert [m.meal_name for m in meals] == ["Tomato Egg Noodles", "Egg Fried Rice", "Steamed Egg"]
        first = meals[0]
        assert first.description == "Comforting"
        assert first.ingredients == ["egg"]
        assert first.preparation_notes == "Boil, stir"
        assert first.adapted_for_energy_level is True
        assert first.adapted_for_conditions is False
        assert first.disclaimer == "Just an idea."
        assert meals[1].disclaimer == MEAL_DISCLAIMERS["en"]
        assert llm.calls[0][0] == "meal_suggestions"
        assert "eggs, tomatoes, noodles" in llm.last_prompt
        assert "Energy is low" in llm.last_prompt

    async def test_per_item_defaults(self, make_llm) -> None:
        llm = make_llm(reply='[{"ingredients": "not a list"}, "stray", {"mealName": "  "}]')
        meals = await generate_meal_suggestions(llm, "rice", language="zh")
        assert [m.meal_name for m in meals] == ["餐食建议", "餐食建议"]
        assert meals[0].ingredients == []
        assert meals[0].description == ""
        assert meals[0].disclaimer == MEAL_DISCLAIMERS["zh"]

    async def test_truncated_to_max(self, make_llm) -> None:
        reply = json.dumps([_meal(f"Dish {i}") for i in range(5)])
        meals = await generate_meal_suggestions(make_llm(reply=reply), "rice", max_suggestions=2)
        assert [m.meal_name for m in meals] == ["Dish 0", "Dish 1"]

    async def test_wrapped_in_meals_object(self, make_llm) -> None:
        reply = json.dumps({"meals": [_meal("Congee")], "timeAwareGuidance": "Go easy tonight."})
        meals = await generate_meal_suggestions(make_llm(reply=reply), "rice")
        assert meals[0].meal_name == "Congee"
        assert meals[0].time_aware_guidance == "Go easy tonight."

    async def test_late_night_guidance_requested(self, make_llm, clock) -> None:
        llm = make_llm(reply=json.dumps([_meal("Warm Milk Oats", timeAwareGuidance="Rest well.")]))
        meals = await generate_meal_suggestions(llm, "oats, milk", time_aware=True, now=clock(22))
        assert "late at night" in llm.last_prompt
        assert meals[0].time_aware_guidance == "Rest well."

    async def test_daytime_has_no_late_night_note(self, make_llm, clock) -> None:
        llm = make_llm(reply=json.dumps([_meal("Salad")]))
        await generate_meal_suggestions(llm, "lettuce", time_aware=True, now=clock(13))
        assert "late at night" not in llm.last_prompt

    async def test_conditions_in_prompt(self, make_llm) -> None:
        llm = make_llm(reply=json.dumps([_meal("Soup")]))
        await generate_meal_suggestions(llm, "carrots", health_conditions=["diabetes", " "])
        assert "health conditions: diabetes" in llm.last_prompt

    async def test_blank_ingredients_skip_model(self, make_llm) -> None:
        llm = make_llm()
        assert await generate_meal_suggestions(llm, "   ") == []
        assert llm.calls == []

    async def test_prose_reply_raises(self, make_llm) -> None:
        with pytest.raises(UnstructuredReplyError):
            await generate_meal_suggestions(make_llm(reply="Try something warm."), "rice")


# ---------------------------------------------------------------------------
# Food reflection
# ---------------------------------------------------------------------------

class TestFoodReflection:
    async def test_structured_reply(self, make_llm) -> None:
        reply = json.dumps({
            "encouragement": "Nice balanced choice!",
            "suggestions": ["add greens", "drink water"],
            "suitability": "Suits you well.",
        })
        llm = make_llm(reply=reply)
        result = await analyze_food_reflection(
            llm, "normal", notes="pasta", health_conditions=["IBS"], recent_symptoms=["bloating"],
        )
        assert result.encouragement == "Nice balanced choice!"
        assert result.suggestions == ["add greens", "drink water"]
        assert result.suitability == "Suits you well."
        assert result.disclaimer == REFLECTION_DEFAULTS["en"]["disclaimer"]
        assert llm.calls[0][0] == "food_reflection"
        prompt = llm.last_prompt
        assert "- Type: normal" in prompt
        assert "Health conditions: IBS" in prompt
        assert "Recent symptoms (last 7 days): bloating" in prompt
        assert "Notes: pasta" in prompt

    async def test_prose_reply_uses_defaults(self, make_llm) -> None:
        result = await analyze_food_reflection(make_llm(reply="Looks yummy"), "indulgent", language="zh")
        assert result.encouragement == REFLECTION_DEFAULTS["zh"]["encouragement"]
        assert result.suitability == REFLECTION_DEFAULTS["zh"]["suitability"]
        assert result.suggestions == []

    async def test_reflection_label_localized(self, make_llm) -> None:
        llm = make_llm(reply="{}")
        await analyze_food_reflection(llm, "light", language="zh")
        assert "- Type: 清淡" in llm.last_prompt
        assert "Recent symptoms" not in llm.last_prompt
