"""FastAPI API endpoints under /api.

Endpoint groups: health, character state, messages, chat (user and
proactive turns, chart interpretation), activity log and structured analyses.
Per-character resources are nested under /api/characters/{character_id}/.
"""

from fastapi import APIRouter

from .chat import router as chat_router
from .insights import router as insights_router
from .messages import router as messages_router
from .settings import router as settings_router
from .state import router as state_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(state_router)
router.include_router(messages_router)
router.include_router(chat_router)
router.include_router(insights_router)
