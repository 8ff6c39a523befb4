"""Health check, settings, and webhook check endpoints."""

from fastapi import APIRouter

from backend import storage
from backend.sessions import build_gateway

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.get("/check-webhook")
async def check_webhook():
    """Probe the configured AI webhook."""
    gateway = build_gateway()
    return {"using_ai": gateway.is_using_ai, "ok": await gateway.check_health()}


@router.get("/settings")
async def get_settings():
    """Get global app settings (webhook, fallback, chat timers)."""
    return storage.get_config()


@router.patch("/settings")
async def update_settings(body: dict):
    """Update global app settings (partial merge). Applies to newly opened chats."""
    return storage.update_config(body)
