"""Activity log and structured analysis endpoints."""

from datetime import timedelta

from fastapi import APIRouter, Depends, Request

from wellmate.companion import Companion
from wellmate.insights import analyze_food_reflection, analyze_symptoms, generate_meal_suggestions
from wellmate.models import ActivityEntry, utcnow

from .deps import get_companion
from .models import ActivityBody, FoodReflectionBody, MealSuggestionBody, SymptomBody

router = APIRouter()

RECENT_SYMPTOM_WINDOW = timedelta(days=7)


@router.get("/activity")
async def list_activity(companion: Companion = Depends(get_companion)):
    return companion.storage.get_activity()


@router.post("/activity", status_code=201)
async def log_activity(body: ActivityBody, companion: Companion = Depends(get_companion)):
    """Record a symptom or food entry (feeds the proactive detectors)."""
    entry = ActivityEntry(kind=body.kind, logged_at=body.logged_at or utcnow(), note=body.note)
    companion.storage.append_activity(entry)
    return entry


@router.post("/analyze-symptoms")
async def analyze(body: SymptomBody, request: Request):
    """Structured, non-diagnostic reflection on described symptoms."""
    settings = request.app.state.settings
    return await analyze_symptoms(
        request.app.state.llm,
        body.symptoms,
        body.notes,
        body.language,
        timeout=settings.dialogue_timeout,
    )


@router.post("/meal-suggestions")
async def meal_suggestions(body: MealSuggestionBody, request: Request):
    """Dish ideas from free-form ingredient text; [] when no ingredients are given."""
    return await generate_meal_suggestions(
        request.app.state.llm,
        body.ingredients,
        health_conditions=body.health_conditions,
        energy_level=body.energy_level,
        language=body.language,
        time_aware=body.time_aware,
        flexible=body.flexible,
        max_suggestions=body.max_suggestions,
        timeout=request.app.state.settings.dialogue_timeout,
    )


@router.post("/food-reflection")
async def food_reflection(
    body: FoodReflectionBody, request: Request, companion: Companion = Depends(get_companion)
):
    """Encouragement for a logged meal. Without explicit recent symptoms, the
    notes of symptom entries from the last 7 days are used."""
    symptoms = body.recent_symptoms
    if symptoms is None:
        since = utcnow() - RECENT_SYMPTOM_WINDOW
        symptoms = [
            e.note for e in companion.storage.get_activity(since=since)
            if e.kind == "symptom" and e.note
        ]
    return await analyze_food_reflection(
        request.app.state.llm,
        body.reflection,
        notes=body.notes,
        health_conditions=body.health_conditions,
        recent_symptoms=symptoms,
        language=body.language,
        timeout=request.app.state.settings.dialogue_timeout,
    )
