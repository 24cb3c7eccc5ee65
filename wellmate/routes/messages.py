"""Conversation log endpoints."""

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Request

from wellmate.companion import Companion

from .deps import get_companion

router = APIRouter()


@router.get("/characters/{character_id}/messages")
async def list_messages(
    character_id: str,
    request: Request,
    limit: int | None = None,
    order: Literal["asc", "desc"] = "asc",
    since: datetime | None = None,
    until: datetime | None = None,
    companion: Companion = Depends(get_companion),
):
    """Conversation messages, optionally limited and bounded by date."""
    request.app.state.profiles.require_profile(character_id)
    return companion.storage.query_messages(
        character_id, limit=limit, order=order, since=since, until=until
    )


@router.delete("/characters/{character_id}/messages")
async def delete_messages(
    character_id: str, request: Request, companion: Companion = Depends(get_companion)
):
    """Clear a character's conversation log."""
    request.app.state.profiles.require_profile(character_id)
    companion.storage.delete_all_messages(character_id)
    return {"ok": True}
