"""Registry of open chat sessions for the API process.

Each POST /chat/sessions opens a ChatSession and files it under a random id.
Sessions live in memory only; restarting the server drops them, like
navigating away from the chat screen does.
"""

import logging
import uuid

from backend import storage
from onlynex.gateway import AIReplyGateway
from onlynex.ledger import CollectionLedger
from onlynex.models import ModelRecord
from onlynex.session import ChatSession

logger = logging.getLogger(__name__)

_sessions: dict[str, ChatSession] = {}


def build_gateway(config: dict | None = None) -> AIReplyGateway:
    config = config or storage.get_config()
    return AIReplyGateway(
        webhook_url=config["webhook_url"],
        use_local_fallback=config["use_local_fallback"],
        timeout=config["ai_timeout"],
    )


def build_ledger() -> CollectionLedger:
    return CollectionLedger(storage.store())


async def open_session(model: ModelRecord, user_identity: str, user_display_name: str) -> tuple[str, ChatSession]:
    config = storage.get_config()
    session = ChatSession(
        model=model,
        user_identity=user_identity,
        user_display_name=user_display_name,
        gateway=build_gateway(config),
        ledger=build_ledger(),
        greeting_delay=config["greeting_delay_seconds"],
        card_period=config["card_drop_period_seconds"],
        card_dwell=config["card_drop_dwell_seconds"],
    )
    await session.open()
    session_id = uuid.uuid4().hex
    _sessions[session_id] = session
    return session_id, session


def get_session(session_id: str) -> ChatSession | None:
    return _sessions.get(session_id)


async def close_session(session_id: str) -> bool:
    session = _sessions.pop(session_id, None)
    if session is None:
        return False
    await session.close()
    return True


async def close_all() -> None:
    for session_id in list(_sessions):
        await close_session(session_id)
    logger.debug("all chat sessions closed")
