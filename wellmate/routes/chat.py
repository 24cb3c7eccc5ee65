"""Dialogue endpoints: user turns, proactive checks and chart interpretation."""

from fastapi import APIRouter, Depends, HTTPException

from wellmate.companion import Companion

from .deps import get_companion
from .models import ChartBody, ChatBody, ProactiveBody

router = APIRouter()


@router.post("/characters/{character_id}/chat")
async def chat(character_id: str, body: ChatBody, companion: Companion = Depends(get_companion)):
    """Send a user message and return the character's reply."""
    if not body.message.strip():
        raise HTTPException(422, "Message is empty")
    return await companion.handle_user_message(
        character_id, body.message, hint=body.integration_hint
    )


@router.post("/characters/{character_id}/proactive")
async def proactive(
    character_id: str, body: ProactiveBody, companion: Companion = Depends(get_companion)
):
    """Run the proactive checks for a lifecycle event; returns the messages sent."""
    return await companion.check_proactive(character_id, body.event)


@router.post("/characters/{character_id}/chart-interpretation")
async def chart_interpretation(
    character_id: str, body: ChartBody, companion: Companion = Depends(get_companion)
):
    """One or two sentences about a chart, from the model or a template."""
    text = await companion.interpret_chart(character_id, body.chart_type, body.points)
    return {"interpretation": text}
