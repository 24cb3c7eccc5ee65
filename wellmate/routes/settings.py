"""Health check and character listing."""

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/characters")
async def list_characters(request: Request):
    """Ids of every character profile that can be loaded."""
    return request.app.state.profiles.available_ids()
