"""Dialogue orchestrator: turns a DialogueRequest into a DialogueResult.

Dialogue flow:
  1. Resolve the character profile. A missing profile is fatal
     (MissingProfileError), never a fallback case.
  2. Render the prompt: guardrails, personality, state snapshot, the last
     20 messages, the trigger or user utterance, emotional state, and an
     optional "let's do it together" integration hint.
  3. Call the model under the dialogue deadline (60s by default).
  4. Success → trimmed reply, ai_generated=True.
     Any failure (transport, timeout, empty reply, template error) → a
     template line, ai_generated=False, template_id="fallback".

Chart interpretation runs the same way with its own 2s deadline and the
per-chart-type template pools as fallback.

Only ConfigError and MissingProfileError escape. The orchestrator never
touches relationship state; applying deltas is the caller's job.
"""

import logging
import random
import time
from datetime import datetime

from wellmate.llm import LLM, ConfigError, NoContentError, call_with_deadline
from wellmate.models import CharacterState, ChartStats, DialogueRequest, DialogueResult, ResultMetadata
from wellmate.profiles import ProfileSource
from wellmate.prompts import (
    CHART_PROMPT,
    DIALOGUE_PROMPT,
    build_chart_context,
    build_dialogue_context,
    render_prompt,
    to_messages,
)
from wellmate.templates import PERSONAS, TemplateResolver

logger = logging.getLogger(__name__)

FALLBACK_TEMPLATE_ID = "fallback"
DEFAULT_DIALOGUE_TIMEOUT = 60.0
DEFAULT_CHART_TIMEOUT = 2.0


class Orchestrator:
    def __init__(
        self,
        llm: LLM,
        profiles: ProfileSource,
        resolver: TemplateResolver,
        *,
        dialogue_timeout: float = DEFAULT_DIALOGUE_TIMEOUT,
        chart_timeout: float = DEFAULT_CHART_TIMEOUT,
        rng: random.Random | None = None,
    ) -> None:
        self._llm = llm
        self._profiles = profiles
        self._resolver = resolver
        self._dialogue_timeout = dialogue_timeout
        self._chart_timeout = chart_timeout
        self._rng = rng or random.Random()

    async def generate(self, request: DialogueRequest, now: datetime | None = None) -> DialogueResult:
        """Produce a reply for the request. Falls back to a template on any model failure."""
        started = time.monotonic()
        profile = self._profiles.require_profile(request.character_id)

        try:
            persona = self._rng.choice(PERSONAS)
            prompt = render_prompt(
                DIALOGUE_PROMPT, build_dialogue_context(request, profile, persona, now)
            )
            reply = await call_with_deadline(
                self._llm, "dialogue", to_messages(prompt), self._dialogue_timeout
            )
            content = reply.strip()
            if not content:
                raise NoContentError("Model returned an empty reply")
            return DialogueResult(
                content=content,
                metadata=ResultMetadata(
                    ai_generated=True,
                    processing_time_ms=_elapsed_ms(started),
                ),
            )
        except ConfigError:
            raise
        except Exception as e:
            logger.warning(
                "Dialogue generation failed for %s (%s: %s), using template fallback",
                request.character_id, type(e).__name__, e,
            )

        return DialogueResult(
            content=self._resolver.select_template(request, now),
            metadata=ResultMetadata(
                ai_generated=False,
                template_id=FALLBACK_TEMPLATE_ID,
                processing_time_ms=_elapsed_ms(started),
            ),
        )

    async def interpret_chart(
        self,
        stats: ChartStats,
        state: CharacterState,
        now: datetime | None = None,
    ) -> str:
        """One or two sentences about a chart; template line if the model misses its deadline."""
        profile = self._profiles.require_profile(state.id)

        try:
            prompt = render_prompt(CHART_PROMPT, build_chart_context(stats, state, profile, now))
            reply = await call_with_deadline(
                self._llm, "chart_interpretation", to_messages(prompt), self._chart_timeout
            )
            if reply.strip():
                return reply.strip()
            logger.warning("Chart interpretation came back empty, using template")
        except ConfigError:
            raise
        except Exception as e:
            logger.warning(
                "Chart interpretation failed (%s: %s), using template", type(e).__name__, e
            )

        return self._resolver.select_chart_template(state.id, stats.chart_type)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)
