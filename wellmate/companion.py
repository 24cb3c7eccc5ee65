"""Companion service: the caller side of the dialogue pipeline.

The orchestrator only produces text. This module owns everything around it:

  user turn
    1. append the user message
    2. detect the user's emotional state from keywords
    3. generate a reply from the 20 most recent messages
    4. append the character reply with a state snapshot and metadata
    5. apply the suggested mood, closeness +1, mirror the user's mood

  proactive turn
    same as steps 3-5 over the 10 most recent messages, with
    is_proactive=True; the trigger comes from the per-character
    ProactiveSession or one of the domain-activity detectors

Session objects (proactive latch, detectors) live in memory for the life of
the Companion.
"""

import logging
from datetime import datetime

from wellmate.models import (
    CharacterState,
    ChartPoint,
    ChartStats,
    ChartType,
    ConversationMessage,
    DialogueRequest,
    EmotionalState,
    IntegrationHint,
    MessageContext,
    MessageMetadata,
    TriggerType,
    local_now,
    utcnow,
)
from wellmate.orchestrator import Orchestrator
from wellmate.proactive import (
    ActivityAcknowledgmentDetector,
    DomainInactivityDetector,
    ProactiveSession,
    ProactiveTrigger,
)
from wellmate.prompts import HISTORY_WINDOW
from wellmate.relationship import RelationshipStateMachine
from wellmate.storage import Storage
from wellmate.templates import time_of_day

logger = logging.getLogger(__name__)

USER_TURN_HISTORY = HISTORY_WINDOW
PROACTIVE_HISTORY = 10

_EMOTION_KEYWORDS: list[tuple[EmotionalState, tuple[str, ...]]] = [
    ("sad", ("sad", "unhappy", "depressed", "难过", "伤心")),
    ("stressed", ("stress", "worried", "anxious", "压力", "焦虑")),
    ("lonely", ("lonely", "alone", "孤独", "寂寞")),
    ("happy", ("happy", "glad", "great", "开心", "高兴")),
]


def detect_emotional_state(text: str) -> EmotionalState | None:
    """Keyword match, first category wins. None when nothing matches."""
    lowered = text.lower()
    for state, keywords in _EMOTION_KEYWORDS:
        if any(k in lowered for k in keywords):
            return state
    return None


def snapshot(state: CharacterState, now: datetime | None = None) -> MessageContext:
    return MessageContext(
        mood=state.mood,
        closeness=state.closeness,
        energy=state.energy,
        time_of_day=time_of_day(now),
        relationship_stage=state.relationship_stage,
    )


class Companion:
    def __init__(
        self,
        storage: Storage,
        orchestrator: Orchestrator,
        states: RelationshipStateMachine,
        *,
        history_limit: int = USER_TURN_HISTORY,
        proactive_history_limit: int = PROACTIVE_HISTORY,
    ) -> None:
        self.storage = storage
        self.orchestrator = orchestrator
        self.states = states
        self.history_limit = history_limit
        self.proactive_history_limit = proactive_history_limit
        self._sessions: dict[str, ProactiveSession] = {}
        self._inactivity: dict[str, DomainInactivityDetector] = {}
        self._acknowledgment: dict[str, ActivityAcknowledgmentDetector] = {}

    def session(self, character_id: str) -> ProactiveSession:
        if character_id not in self._sessions:
            self._sessions[character_id] = ProactiveSession()
        return self._sessions[character_id]

    def _last_message_time(self, character_id: str) -> datetime | None:
        latest = self.storage.query_messages(character_id, limit=1, order="desc")
        return latest[0].timestamp if latest else None

    # ------------------------------------------------------------------
    # State load
    # ------------------------------------------------------------------

    async def load(self, character_id: str, now: datetime | None = None) -> CharacterState:
        """Load a character for a new session: energy follows the clock and
        the domain-activity detectors are re-armed."""
        state = await self.states.update_energy_by_time_of_day(character_id, now)
        self._inactivity[character_id] = DomainInactivityDetector()
        self._acknowledgment[character_id] = ActivityAcknowledgmentDetector()
        return state

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    async def _reply(
        self,
        state: CharacterState,
        *,
        user_message: str | None = None,
        trigger_type: TriggerType = "user_initiated",
        emotional_state: EmotionalState | None = None,
        hint: IntegrationHint | None = None,
        now: datetime | None = None,
    ) -> ConversationMessage:
        request = DialogueRequest(
            character_id=state.id,
            character_state=state,
            history=self.storage.recent_messages(
                state.id,
                self.history_limit if trigger_type == "user_initiated" else self.proactive_history_limit,
            ),
            user_message=user_message,
            trigger_type=trigger_type,
            user_emotional_state=emotional_state,
            integration_hint=hint,
        )
        result = await self.orchestrator.generate(request, now)

        message = ConversationMessage(
            character_id=state.id,
            sender="character",
            content=result.content,
            message_type=result.message_type,
            timestamp=now or utcnow(),
            context=snapshot(state, now),
            metadata=MessageMetadata(
                is_proactive=trigger_type != "user_initiated",
                trigger_type=trigger_type,
                ai_generated=result.metadata.ai_generated,
                template_id=result.metadata.template_id,
            ),
        )
        self.storage.append_message(message)

        if result.suggested_mood:
            await self.states.update_mood(state.id, result.suggested_mood)
        await self.states.increment_closeness(state.id, 1)
        return message

    async def handle_user_message(
        self,
        character_id: str,
        content: str,
        *,
        hint: IntegrationHint | None = None,
        now: datetime | None = None,
    ) -> ConversationMessage:
        """Record the user's message and return the character's reply."""
        text = content.strip()
        if not text:
            raise ValueError("Message content is empty")

        state = await self.states.get(character_id)
        self.storage.append_message(
            ConversationMessage(
                character_id=character_id,
                sender="user",
                content=text,
                timestamp=now or utcnow(),
                context=snapshot(state, now),
            )
        )

        emotional_state = detect_emotional_state(text)
        reply = await self._reply(
            state,
            user_message=text,
            emotional_state=emotional_state,
            hint=hint,
            now=now,
        )

        if emotional_state in ("sad", "stressed"):
            await self.states.update_mood(character_id, "concerned")
        elif emotional_state == "happy":
            await self.states.update_mood(character_id, "happy")
        return reply

    async def run_proactive(
        self,
        character_id: str,
        trigger_type: TriggerType,
        hint: IntegrationHint | None = None,
        now: datetime | None = None,
    ) -> ConversationMessage:
        state = await self.states.get(character_id)
        message = await self._reply(state, trigger_type=trigger_type, hint=hint, now=now)
        logger.info("Proactive %s message sent for %s", trigger_type, character_id)
        return message

    # ------------------------------------------------------------------
    # Proactive checks
    # ------------------------------------------------------------------

    async def check_proactive(
        self, character_id: str, event: str = "mount", now: datetime | None = None
    ) -> list[ConversationMessage]:
        """Evaluate every proactive policy for a lifecycle event.

        `event` is "mount" (new session; the character is (re)loaded) or
        "visible" (the app came back to the foreground). Returns the
        messages sent, possibly none.
        """
        if event not in ("mount", "visible"):
            raise ValueError(f"Unknown lifecycle event: {event!r}")
        now = now or local_now()

        if event == "mount" or character_id not in self._inactivity:
            state = await self.load(character_id, now)
        else:
            state = await self.states.get(character_id)

        sent: list[ConversationMessage] = []
        session = self.session(character_id)
        trigger = session.on_mount(state, now) if event == "mount" else session.on_visible(state, now)
        if trigger:
            try:
                sent.append(await self.run_proactive(character_id, trigger, now=now))
            except Exception:
                session.record_error()
                raise
            session.record_sent(now)

        # Recheck after any message above; a fresh message silences both detectors.
        for detector in (self._inactivity[character_id], self._acknowledgment[character_id]):
            message = await self._run_detector(character_id, detector, now)
            if message is not None:
                sent.append(message)
        return sent

    async def _run_detector(
        self,
        character_id: str,
        detector: DomainInactivityDetector | ActivityAcknowledgmentDetector,
        now: datetime,
    ) -> ConversationMessage | None:
        if not detector.latch.armed:
            return None
        detector.latch.mark_checked()
        try:
            last_message_time = self._last_message_time(character_id)
            entries = self.storage.get_activity(since=now - detector.lookback)
            found: ProactiveTrigger | None = detector.evaluate(entries, last_message_time, now)
            if found is None:
                return None
            return await self.run_proactive(
                character_id, found.trigger_type, found.integration_hint, now
            )
        except Exception:
            detector.latch.mark_error()
            raise

    # ------------------------------------------------------------------
    # Charts
    # ------------------------------------------------------------------

    async def interpret_chart(
        self,
        character_id: str,
        chart_type: ChartType,
        points: list[ChartPoint],
        now: datetime | None = None,
    ) -> str:
        state = await self.states.get(character_id)
        stats = ChartStats.from_points(chart_type, points)
        return await self.orchestrator.interpret_chart(stats, state, now)

