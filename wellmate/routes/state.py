"""Relationship state endpoints."""

from fastapi import APIRouter, Depends

from wellmate.companion import Companion

from .deps import get_companion
from .models import ClosenessBody, MoodBody, ResetBody

router = APIRouter()


@router.get("/characters/{character_id}/state")
async def get_state(character_id: str, companion: Companion = Depends(get_companion)):
    """Current relationship state, created from the profile on first use."""
    return await companion.states.get(character_id)


@router.post("/characters/{character_id}/state/closeness")
async def increment_closeness(
    character_id: str, body: ClosenessBody, companion: Companion = Depends(get_companion)
):
    """Add a closeness delta (clamped to 0..100) and count one interaction."""
    return await companion.states.increment_closeness(character_id, body.delta)


@router.patch("/characters/{character_id}/state/mood")
async def update_mood(
    character_id: str, body: MoodBody, companion: Companion = Depends(get_companion)
):
    return await companion.states.update_mood(character_id, body.mood)


@router.post("/characters/{character_id}/state/energy")
async def update_energy(character_id: str, companion: Companion = Depends(get_companion)):
    """Set energy from the current time of day."""
    return await companion.states.update_energy_by_time_of_day(character_id)


@router.post("/characters/{character_id}/state/reset")
async def reset_state(
    character_id: str, body: ResetBody, companion: Companion = Depends(get_companion)
):
    return await companion.states.reset(character_id, body.preserve_closeness)
