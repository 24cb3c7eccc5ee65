"""Relationship state machine: mood, closeness, energy and stage per character.

Closeness is an integer clamped to [0, 100]. The relationship stage is never
stored independently of closeness: it is recomputed on every closeness
change as the highest entry of the character's ascending threshold table
that is <= the new value.

  stranger 0 · acquaintance 21 · friend 41 · close_friend 61 · intimate 81
  (default table; each profile may supply its own)

Every mutation is a read-modify-write against the store, serialized per
character id with an asyncio.Lock so concurrent turns cannot lose updates.
"""

import asyncio
import logging
from datetime import datetime

from wellmate.models import MOODS, CharacterProfile, CharacterState, Mood, utcnow
from wellmate.profiles import ProfileSource
from wellmate.storage import Storage
from wellmate.templates import time_of_day

logger = logging.getLogger(__name__)

MIN_CLOSENESS = 0
MAX_CLOSENESS = 100


def clamp_closeness(value: int) -> int:
    return max(MIN_CLOSENESS, min(MAX_CLOSENESS, int(value)))


def derive_stage(closeness: int, thresholds: dict[str, int]) -> str:
    """Return the stage whose threshold is the highest one <= closeness.

    Below every threshold, the lowest stage is returned.
    """
    ordered = sorted(thresholds.items(), key=lambda item: item[1])
    if not ordered:
        return "stranger"
    stage = ordered[0][0]
    for name, minimum in ordered:
        if minimum <= closeness:
            stage = name
        else:
            break
    return stage


def new_character_state(profile: CharacterProfile, now: datetime | None = None) -> CharacterState:
    """Initial state for a character on first use."""
    now = now or utcnow()
    return CharacterState(
        id=profile.id,
        mood=profile.default_mood,
        closeness=0,
        energy=profile.default_energy,
        relationship_stage=derive_stage(0, profile.thresholds),
        last_interaction_time=now,
        total_interactions=0,
        created_at=now,
        updated_at=now,
    )


class RelationshipStateMachine:
    def __init__(self, storage: Storage, profiles: ProfileSource) -> None:
        self._storage = storage
        self._profiles = profiles
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock(self, character_id: str) -> asyncio.Lock:
        lock = self._locks.get(character_id)
        if lock is None:
            lock = self._locks[character_id] = asyncio.Lock()
        return lock

    def _load_or_create(self, character_id: str) -> tuple[CharacterState, CharacterProfile]:
        profile = self._profiles.require_profile(character_id)
        state = self._storage.get_state(character_id)
        if state is None:
            state = new_character_state(profile)
            self._storage.save_state(state)
            logger.info("Created initial state for character %s", character_id)
        return state, profile

    def _save(self, state: CharacterState, **changes) -> CharacterState:
        updated = state.model_copy(update={**changes, "updated_at": utcnow()})
        self._storage.save_state(updated)
        return updated

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def get(self, character_id: str) -> CharacterState:
        """Current state, created with profile defaults on first use."""
        async with self._lock(character_id):
            state, _ = self._load_or_create(character_id)
            return state

    async def increment_closeness(self, character_id: str, delta: int = 1) -> CharacterState:
        """Add delta (clamped), recompute stage, and count one interaction.

        At maximum closeness the interaction is still recorded.
        """
        async with self._lock(character_id):
            state, profile = self._load_or_create(character_id)
            closeness = clamp_closeness(state.closeness + delta)
            return self._save(
                state,
                closeness=closeness,
                relationship_stage=derive_stage(closeness, profile.thresholds),
                last_interaction_time=utcnow(),
                total_interactions=state.total_interactions + 1,
            )

    async def update_mood(self, character_id: str, mood: Mood) -> CharacterState:
        if mood not in MOODS:
            raise ValueError(f"Unknown mood: {mood!r}")
        async with self._lock(character_id):
            state, _ = self._load_or_create(character_id)
            return self._save(state, mood=mood)

    async def update_energy_by_time_of_day(
        self, character_id: str, now: datetime | None = None
    ) -> CharacterState:
        async with self._lock(character_id):
            state, profile = self._load_or_create(character_id)
            bucket = time_of_day(now)
            energy = profile.energy_by_time.get(bucket, profile.default_energy)
            return self._save(state, energy=energy)

    async def reset(self, character_id: str, preserve_closeness: bool = False) -> CharacterState:
        """Revert mood/energy to profile defaults and clear the interaction count.

        Closeness is kept when preserve_closeness is set, otherwise zeroed;
        the stage is recomputed either way.
        """
        async with self._lock(character_id):
            state, profile = self._load_or_create(character_id)
            closeness = state.closeness if preserve_closeness else 0
            return self._save(
                state,
                mood=profile.default_mood,
                energy=profile.default_energy,
                closeness=closeness,
                relationship_stage=derive_stage(closeness, profile.thresholds),
                last_interaction_time=utcnow(),
                total_interactions=0,
            )
