"""Proactive trigger evaluation: when should the character speak unprompted?

Conversation policy (determine_trigger), in order:
  1. a proactive message went out less than 4h ago → nothing (hard cooldown)
  2. morning / evening bucket → morning_greeting / evening_greeting
  3. ≥ 4h since the last real interaction → inactivity
  4. otherwise nothing

ProactiveSession wraps that policy with the one-shot latch evaluated on
mount and when the app becomes visible again. A visibility event only
re-arms the latch once the cooldown has elapsed, so brief visibility flaps
never re-trigger.

Two detectors look at the domain activity log (symptom / food entries)
instead of the conversation. They are separate policies with their own
windows:

  DomainInactivityDetector        nothing logged in 3 days and ≥ 24h since
                                  the last message → inactivity, hint health
  ActivityAcknowledgmentDetector  something logged 30min..24h ago and ≥ 5min
                                  since the last message → activity_acknowledgment

Each detector fires at most once per character-state load. Its latch goes
to ERROR when the check fails so a later load can retry.

Nothing here persists; last_proactive_time lives for the process only.
"""

import enum
import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from pydantic import BaseModel, ConfigDict

from wellmate.models import ActivityEntry, CharacterState, IntegrationHint, TriggerType, local_now
from wellmate.templates import time_of_day

logger = logging.getLogger(__name__)

PROACTIVE_COOLDOWN = timedelta(hours=4)
INACTIVITY_THRESHOLD = timedelta(hours=4)


class LatchState(enum.Enum):
    UNCHECKED = "unchecked"
    CHECKED = "checked"
    ERROR = "error"


class Latch:
    """One-shot guard against duplicate triggers within a session."""

    def __init__(self) -> None:
        self.state = LatchState.UNCHECKED

    @property
    def armed(self) -> bool:
        return self.state is not LatchState.CHECKED

    def mark_checked(self) -> None:
        self.state = LatchState.CHECKED

    def mark_error(self) -> None:
        self.state = LatchState.ERROR

    def rearm(self) -> None:
        self.state = LatchState.UNCHECKED


class ProactiveTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    trigger_type: TriggerType
    integration_hint: IntegrationHint | None = None


# ---------------------------------------------------------------------------
# Conversation-based policy
# ---------------------------------------------------------------------------

def _in_cooldown(
    last_proactive_time: datetime | None, now: datetime, cooldown: timedelta
) -> bool:
    return last_proactive_time is not None and now - last_proactive_time < cooldown


def determine_trigger(
    state: CharacterState | None,
    last_proactive_time: datetime | None,
    now: datetime | None = None,
    *,
    cooldown: timedelta = PROACTIVE_COOLDOWN,
    inactivity: timedelta = INACTIVITY_THRESHOLD,
) -> TriggerType | None:
    """Which proactive trigger applies right now, if any."""
    if state is None:
        return None
    now = now or local_now()
    if _in_cooldown(last_proactive_time, now, cooldown):
        return None

    bucket = time_of_day(now)
    if bucket == "morning":
        return "morning_greeting"
    if bucket == "evening":
        return "evening_greeting"

    if now - state.last_interaction_time >= inactivity:
        return "inactivity"
    return None


def should_trigger(
    state: CharacterState | None,
    last_proactive_time: datetime | None,
    now: datetime | None = None,
    **windows: timedelta,
) -> bool:
    return determine_trigger(state, last_proactive_time, now, **windows) is not None


class ProactiveSession:
    """Process-lifetime bookkeeping for one character's proactive messages."""

    def __init__(
        self,
        cooldown: timedelta = PROACTIVE_COOLDOWN,
        inactivity: timedelta = INACTIVITY_THRESHOLD,
    ) -> None:
        self.cooldown = cooldown
        self.inactivity = inactivity
        self.last_proactive_time: datetime | None = None
        self.latch = Latch()

    def _check(self, state: CharacterState | None, now: datetime) -> TriggerType | None:
        if not self.latch.armed:
            return None
        return determine_trigger(
            state,
            self.last_proactive_time,
            now,
            cooldown=self.cooldown,
            inactivity=self.inactivity,
        )

    def on_mount(self, state: CharacterState | None, now: datetime | None = None) -> TriggerType | None:
        """A fresh mount always re-arms; the cooldown still applies."""
        self.latch.rearm()
        return self._check(state, now or local_now())

    def on_visible(self, state: CharacterState | None, now: datetime | None = None) -> TriggerType | None:
        """Re-arm only if the cooldown has passed (or nothing was ever sent), then check."""
        now = now or local_now()
        if not _in_cooldown(self.last_proactive_time, now, self.cooldown):
            self.latch.rearm()
        return self._check(state, now)

    def record_sent(self, now: datetime | None = None) -> None:
        self.last_proactive_time = now or local_now()
        self.latch.mark_checked()

    def record_error(self) -> None:
        self.latch.mark_error()


# ---------------------------------------------------------------------------
# Domain-activity detectors
# ---------------------------------------------------------------------------

class DomainInactivityDetector:
    """Gentle reminder when nothing has been logged for a few days."""

    def __init__(
        self,
        activity_window: timedelta = timedelta(days=3),
        quiet_period: timedelta = timedelta(hours=24),
    ) -> None:
        self.activity_window = activity_window
        self.quiet_period = quiet_period
        self.latch = Latch()

    @property
    def lookback(self) -> timedelta:
        return self.activity_window

    def evaluate(
        self,
        entries: Iterable[ActivityEntry],
        last_message_time: datetime | None,
        now: datetime | None = None,
    ) -> ProactiveTrigger | None:
        """No conversation yet counts as a quiet period that has long elapsed."""
        now = now or local_now()
        cutoff = now - self.activity_window
        if any(e.logged_at >= cutoff for e in entries):
            return None
        if last_message_time is not None and now - last_message_time < self.quiet_period:
            return None
        return ProactiveTrigger(trigger_type="inactivity", integration_hint="health")


class ActivityAcknowledgmentDetector:
    """Acknowledge symptom or food entries the user logged recently."""

    def __init__(
        self,
        min_age: timedelta = timedelta(minutes=30),
        max_age: timedelta = timedelta(hours=24),
        min_silence: timedelta = timedelta(minutes=5),
    ) -> None:
        self.min_age = min_age
        self.max_age = max_age
        self.min_silence = min_silence
        self.latch = Latch()

    @property
    def lookback(self) -> timedelta:
        return self.max_age

    def evaluate(
        self,
        entries: Iterable[ActivityEntry],
        last_message_time: datetime | None,
        now: datetime | None = None,
    ) -> ProactiveTrigger | None:
        now = now or local_now()
        if last_message_time is not None and now - last_message_time <= self.min_silence:
            return None

        kinds = {
            e.kind for e in entries
            if self.min_age <= now - e.logged_at <= self.max_age
        }
        if not kinds:
            return None
        if kinds == {"symptom"}:
            hint = "health"
        elif kinds == {"food"}:
            hint = "nutrition"
        else:
            hint = None
        return ProactiveTrigger(trigger_type="activity_acknowledgment", integration_hint=hint)
