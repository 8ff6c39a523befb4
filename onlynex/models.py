"""Core domain models.

The chat engine, the storage layer and the HTTP routes all exchange these
types. Pydantic validates every record read from the catalog so that the
camelCase catalog documents (videosDigitando, videoUrl, ...) load as-is.
"""

from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Literal

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator

Sender = Literal["user", "peer"]
MessageKind = Literal["text", "card"]
MediaType = Literal["photo", "video"]
PlaybackMode = Literal["idle", "one_shot", "no_media"]

_VIDEO_EXTENSIONS = re.compile(r"\.(mp4|webm|mov|avi)$", re.IGNORECASE)


def media_type_for(url: str) -> MediaType:
    """Guess a card's media type from its file name.

    Query strings (signed storage URLs) are ignored.
    """
    path = url.split("?", 1)[0]
    return "video" if _VIDEO_EXTENSIONS.search(path) else "photo"


class CardRef(BaseModel):
    """An exclusive photo or video that can be dropped into a chat."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    media_url: str = Field(validation_alias=AliasChoices("media_url", "mediaUrl", "url"))
    media_type: MediaType = Field(
        default="photo", validation_alias=AliasChoices("media_type", "mediaType", "type"),
    )

    @model_validator(mode="before")
    @classmethod
    def _infer_media_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if any(data.get(key) for key in ("media_type", "mediaType", "type")):
            return data
        url = data.get("media_url") or data.get("mediaUrl") or data.get("url") or ""
        return {**data, "media_type": media_type_for(url)}


class IdleClip(BaseModel):
    """Ambient "typing" video, looped while nothing else plays."""

    model_config = ConfigDict(populate_by_name=True)

    id: str | None = None
    media_url: str = Field(validation_alias=AliasChoices("media_url", "mediaUrl", "videoUrl"))


class ActionClip(BaseModel):
    """Button-triggered video, played once."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    label: str
    media_url: str = Field(validation_alias=AliasChoices("media_url", "mediaUrl", "videoUrl"))


class ModelRecord(BaseModel):
    """A model persona as read from the catalog."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    username: str = ""
    idle_clips: list[IdleClip] = Field(
        default_factory=list,
        validation_alias=AliasChoices("idle_clips", "videosDigitando"),
    )
    action_clips: list[ActionClip] = Field(
        default_factory=list,
        validation_alias=AliasChoices("action_clips", "videosChat"),
    )
    cards: list[CardRef] = Field(default_factory=list)


class Message(BaseModel):
    """A single entry in a chat session's timeline."""

    id: int
    sender: Sender
    kind: MessageKind = "text"
    text: str = ""
    card: CardRef | None = None
    timestamp: datetime
    reply_to: int | None = None  # id of the user message a peer reply answers
    saved: bool = False  # card messages only


class ReplyContext(BaseModel):
    """Everything the reply gateway needs to answer one user message."""

    model_id: str = ""
    model_name: str = ""
    user_message: str = ""
    user_identity: str = ""
    user_display_name: str = "amor"
    recent_history: list[Message] = Field(default_factory=list)


class PlaybackState(BaseModel):
    mode: PlaybackMode
    active_clip_id: str | None = None
    media_url: str | None = None
    loop: bool = False


class ClaimResult(BaseModel):
    claimed: bool
    already_held: bool


class SaveCardResult(BaseModel):
    """Outcome of a "save card" click, always returned to the caller."""

    card_id: str
    saved: bool = False
    already_held: bool = False
    retryable: bool = False
    error: str | None = None


class ChatSessionState(BaseModel):
    session_start: datetime
    playback: PlaybackState
    claimed_card_ids: set[str] = Field(default_factory=set)
    last_card_emission: datetime | None = None
