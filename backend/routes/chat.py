"""Chat session endpoints: open/close, messages, video persona, card saves."""

from fastapi import APIRouter, HTTPException

from backend import sessions, storage
from onlynex.session import ChatSession

from .models import ChatBody, OpenSessionBody, ReplyView, SessionView

router = APIRouter()


def _session_or_404(session_id: str) -> ChatSession:
    session = sessions.get_session(session_id)
    if session is None or not session.is_open:
        raise HTTPException(404, "Chat session not found")
    return session


def _view(session_id: str, session: ChatSession) -> SessionView:
    return SessionView(
        session_id=session_id,
        model_id=session.model.id,
        typing=session.typing,
        messages=session.messages,
        state=session.state(),
    )


@router.post("/chat/sessions", status_code=201)
async def open_chat(body: OpenSessionBody):
    """Open a chat screen with a model."""
    model = storage.store().get_model(body.model_id)
    if not model:
        raise HTTPException(404, "Model not found")
    if not body.user_identity.strip():
        raise HTTPException(400, "user_identity is required")
    session_id, session = await sessions.open_session(
        model, body.user_identity, body.user_display_name,
    )
    return _view(session_id, session)


@router.get("/chat/sessions/{session_id}")
async def get_chat(session_id: str):
    """Timeline, typing indicator and playback state."""
    return _view(session_id, _session_or_404(session_id))


@router.delete("/chat/sessions/{session_id}")
async def close_chat(session_id: str):
    """Close a chat screen; timers stop and the timeline is discarded."""
    if not await sessions.close_session(session_id):
        raise HTTPException(404, "Chat session not found")
    return {"ok": True}


@router.post("/chat/sessions/{session_id}/messages")
async def send_message(session_id: str, body: ChatBody):
    """Send a user message and wait for the peer reply."""
    session = _session_or_404(session_id)
    if not body.message.strip():
        raise HTTPException(400, "Message is empty")
    reply = await session.send(body.message)
    return ReplyView(reply=reply, typing=session.typing)


@router.post("/chat/sessions/{session_id}/clips/{clip_id}")
async def trigger_clip(session_id: str, clip_id: str):
    """Play an action clip once."""
    session = _session_or_404(session_id)
    try:
        return session.trigger_clip(clip_id)
    except KeyError:
        raise HTTPException(404, "Clip not found")


@router.post("/chat/sessions/{session_id}/playback-ended")
async def playback_ended(session_id: str):
    """The video element finished playing its clip."""
    return _session_or_404(session_id).playback_ended()


@router.post("/chat/sessions/{session_id}/cards/{message_id}/save")
async def save_card(session_id: str, message_id: int):
    """Save a dropped card to the user's collection."""
    session = _session_or_404(session_id)
    try:
        result = await session.save_card(message_id)
    except KeyError:
        raise HTTPException(404, "Message not found")
    except ValueError as e:
        raise HTTPException(400, str(e))
    if result.retryable:
        raise HTTPException(503, result.error or "Collection store unavailable")
    return result
