"""Tests for wellmate.prompts: Handlebars rendering and context builders."""

import pytest

from wellmate.models import CharacterState, ChartStats, DialogueRequest
from wellmate.prompts import (
    CHART_PROMPT,
    DIALOGUE_PROMPT,
    SYMPTOM_PROMPT,
    PromptError,
    build_chart_context,
    build_dialogue_context,
    render_prompt,
    to_messages,
)


class TestRenderPrompt:
    def test_simple_substitution(self) -> None:
        assert render_prompt("Hi {{name}}", {"name": "Bai Qi"}) == "Hi Bai Qi"

    def test_triple_stash_is_not_escaped(self) -> None:
        assert render_prompt("{{{text}}}", {"text": "<b>&'"}) == "<b>&'"

    def test_last_helper(self) -> None:
        out = render_prompt("{{#last items 2}}[{{this}}]{{/last}}", {"items": ["a", "b", "c"]})
        assert out == "[b][c]"

    def test_last_helper_with_short_list(self) -> None:
        out = render_prompt("{{#last items 5}}[{{this}}]{{/last}}", {"items": ["a"]})
        assert out == "[a]"

    def test_missing_partial_raises_prompt_error(self) -> None:
        with pytest.raises(PromptError):
            render_prompt("{{> missing_partial}}", {})


class TestDialogueContext:
    def _request(self, **fields) -> DialogueRequest:
        return DialogueRequest(character_id="baiqi", character_state=CharacterState(id="baiqi"), **fields)

    def test_user_turn(self, profiles, clock) -> None:
        ctx = build_dialogue_context(
            self._request(user_message="  hello  "), profiles.get_profile("baiqi"), "doctor", clock(9)
        )
        assert ctx["user_message"] == "hello"
        assert ctx["trigger"] == "user_initiated"
        assert ctx["persona"]["role"] == "doctor"
        assert ctx["state"]["time_of_day"] == "morning"
        assert ctx["hint"] == ""
        assert ctx["needs_warmth"] is False

    def test_psychologist_speaks_as_counselor(self, profiles, clock) -> None:
        ctx = build_dialogue_context(self._request(), profiles.get_profile("baiqi"), "psychologist", clock(9))
        assert ctx["persona"]["role"] == "counselor"

    def test_inactivity_note(self, profiles, clock) -> None:
        ctx = build_dialogue_context(
            self._request(trigger_type="inactivity"), profiles.get_profile("baiqi"), "doctor", clock(9)
        )
        rendered = render_prompt(DIALOGUE_PROMPT, ctx)
        assert "inactivity: you have not heard from the user in a while" in rendered

    def test_no_history_section_when_empty(self, profiles, clock) -> None:
        ctx = build_dialogue_context(self._request(user_message="hi"), profiles.get_profile("baiqi"), "doctor", clock(9))
        assert "Recent Conversation" not in render_prompt(DIALOGUE_PROMPT, ctx)

    def test_no_hint_section_without_hint(self, profiles, clock) -> None:
        ctx = build_dialogue_context(self._request(user_message="hi"), profiles.get_profile("baiqi"), "doctor", clock(9))
        assert "Gentle guidance" not in render_prompt(DIALOGUE_PROMPT, ctx)


class TestOtherPrompts:
    def test_chart_prompt(self, profiles, clock) -> None:
        stats = ChartStats(chart_type="emotion", mean=3.0, minimum=1, maximum=5, trend="decreasing")
        ctx = build_chart_context(stats, CharacterState(id="baiqi", mood="concerned"), profiles.get_profile("baiqi"), clock(20))
        rendered = render_prompt(CHART_PROMPT, ctx)
        assert "Chart Type: emotion" in rendered
        assert "Average Value: 3.0" in rendered
        assert "Maximum: 5" in rendered
        assert "Trend: decreasing" in rendered
        assert "Mood: concerned" in rendered
        assert "Time of day: evening" in rendered

    def test_symptom_prompt_language(self) -> None:
        zh = render_prompt(SYMPTOM_PROMPT, {"symptoms": "头疼", "notes": "", "zh": True})
        en = render_prompt(SYMPTOM_PROMPT, {"symptoms": "headache", "notes": "since noon", "zh": False})
        assert "请用中文回答" in zh
        assert "Answer in English." in en
        assert "Notes: since noon" in en
        assert "Notes:" not in zh

    def test_to_messages(self) -> None:
        messages = to_messages("prompt")
        assert [m["role"] for m in messages] == ["system", "user"]
        assert messages[1]["content"] == "prompt"
