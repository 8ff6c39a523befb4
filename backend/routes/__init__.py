"""FastAPI API endpoints under /api.

Endpoint groups: settings/health, model catalog, chat sessions (messages,
video persona, card saves), collections. Everything belonging to one open
chat screen is nested under /api/chat/sessions/{session_id}/.
"""

from fastapi import APIRouter

from .catalog import router as catalog_router
from .chat import router as chat_router
from .collections import router as collections_router
from .settings import router as settings_router

router = APIRouter()
router.include_router(settings_router)
router.include_router(catalog_router)
router.include_router(chat_router)
router.include_router(collections_router)
