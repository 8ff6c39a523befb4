"""Pydantic request/response models for API endpoints."""

from pydantic import BaseModel

from onlynex.models import ChatSessionState, Message


class OpenSessionBody(BaseModel):
    model_id: str
    user_identity: str
    user_display_name: str = ""


class ChatBody(BaseModel):
    message: str


class SessionView(BaseModel):
    session_id: str
    model_id: str
    typing: bool
    messages: list[Message]
    state: ChatSessionState


class ReplyView(BaseModel):
    reply: Message | None
    typing: bool
