"""Chat session orchestrator: one open chat screen, end to end.

Lifecycle:
  1. open()   Start the idle video loop, load the user's saved cards for this
              model, schedule the greeting, start the card drip.
  2. send()   Append the user message, hold "typing" while the gateway
              answers, append the peer reply. Replies are produced one at a
              time and land in the order the user messages were sent.
  3. trigger_clip() / playback_ended()
              Drive the video persona; no timeline entries.
  4. save_card()
              Claim a dropped card in the collection ledger; the message is
              marked saved only once the store confirms.
  5. close()  Cancel timers, drop the timeline. Replies still in flight are
              discarded when they arrive.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
import random
from datetime import datetime, timezone
from typing import Awaitable, Callable

from onlynex.cards import DEFAULT_DWELL_SECONDS, DEFAULT_PERIOD_SECONDS, CardDropScheduler
from onlynex.gateway import APOLOGY, AIReplyGateway
from onlynex.ledger import CollectionLedger, LedgerError
from onlynex.models import (
    CardRef,
    ChatSessionState,
    Message,
    MessageKind,
    ModelRecord,
    PlaybackState,
    ReplyContext,
    SaveCardResult,
    Sender,
)
from onlynex.playback import VideoPlaybackController

logger = logging.getLogger(__name__)

GREETING = "Oi {name}! 💕 Que bom te ver por aqui! Como posso te ajudar hoje?"


class SessionClosedError(RuntimeError):
    """Raised when a closed session is asked to do something."""


class ChatSession:
    """Owns the timeline and wires user actions through the chat components.

    Args:
        model:              The model persona being viewed.
        user_identity:      Stable user id (the account e-mail).
        user_display_name:  Name used in the greeting and sent to the webhook.
        gateway:            Reply source.
        ledger:             Collection ledger for saved cards.
        rng:                Random source shared by playback and card drops.
        greeting_delay:     Seconds before the greeting appears.
        card_period:        Seconds between card-drop ticks.
        card_dwell:         Seconds the chat must be open before cards drop.
        sleep:              Coroutine used for the greeting and card timers.
    """

    def __init__(
        self,
        model: ModelRecord,
        user_identity: str,
        user_display_name: str,
        gateway: AIReplyGateway,
        ledger: CollectionLedger,
        rng: random.Random | None = None,
        greeting_delay: float = 1.0,
        card_period: float = DEFAULT_PERIOD_SECONDS,
        card_dwell: float = DEFAULT_DWELL_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.model = model
        self.user_identity = user_identity
        self.user_display_name = user_display_name or "amor"
        self._gateway = gateway
        self._ledger = ledger
        self._rng = rng or random.Random()
        self._greeting_delay = greeting_delay
        self._sleep = sleep

        self.playback = VideoPlaybackController(model.idle_clips, model.action_clips, rng=self._rng)
        self.scheduler = CardDropScheduler(
            model.cards, self._on_card_drop,
            period=card_period, dwell=card_dwell, rng=self._rng, sleep=sleep,
        )

        self._messages: list[Message] = []
        self._ids = itertools.count(1)
        self._claimed: set[str] = set()
        self._reply_lock = asyncio.Lock()
        self._pending_replies = 0
        self._greeting_task: asyncio.Task | None = None
        self._opened_at: datetime | None = None
        self._last_card_emission: datetime | None = None
        self._closed = False

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._opened_at is not None and not self._closed

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    @property
    def typing(self) -> bool:
        """True while at least one peer reply is pending."""
        return self._pending_replies > 0

    @property
    def claimed_card_ids(self) -> set[str]:
        return set(self._claimed)

    def state(self) -> ChatSessionState:
        return ChatSessionState(
            session_start=self._opened_at or datetime.now(timezone.utc),
            playback=self.playback.state,
            claimed_card_ids=set(self._claimed),
            last_card_emission=self._last_card_emission,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def open(self) -> None:
        if self._opened_at is not None:
            return
        self._opened_at = datetime.now(timezone.utc)
        self.playback.start()

        try:
            self._claimed = await self._ledger.query(self.user_identity, self.model.id)
        except LedgerError as e:
            logger.warning("could not load saved cards for model=%s: %s", self.model.id, e)
            self._claimed = set()

        self._greeting_task = asyncio.create_task(self._greet())
        if self.model.cards:
            self.scheduler.start()
        logger.info(
            "chat opened model=%s cards=%d saved=%d",
            self.model.id, len(self.model.cards), len(self._claimed),
        )

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self.scheduler.stop()
        if self._greeting_task is not None:
            self._greeting_task.cancel()
            try:
                await self._greeting_task
            except asyncio.CancelledError:
                pass
            self._greeting_task = None
        self._messages.clear()
        logger.info("chat closed model=%s", self.model.id)

    async def _greet(self) -> None:
        await self._sleep(self._greeting_delay)
        if not self._closed:
            self._append("peer", "text", GREETING.format(name=self.user_display_name))

    # ------------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------------

    def _append(
        self,
        sender: Sender,
        kind: MessageKind,
        text: str,
        card: CardRef | None = None,
        reply_to: int | None = None,
    ) -> Message:
        msg = Message(
            id=next(self._ids),
            sender=sender,
            kind=kind,
            text=text,
            card=card,
            timestamp=datetime.now(timezone.utc),
            reply_to=reply_to,
            saved=card is not None and card.id in self._claimed,
        )
        self._messages.append(msg)
        return msg

    def _ensure_open(self) -> None:
        if not self.is_open:
            raise SessionClosedError("Chat session is not open")

    # ------------------------------------------------------------------
    # Text exchange
    # ------------------------------------------------------------------

    async def send(self, text: str) -> Message | None:
        """Send a user message and return the peer reply appended for it.

        Returns None for blank input or when the session closed before the
        reply arrived.
        """
        self._ensure_open()
        text = text.strip()
        if not text:
            return None

        user_msg = self._append("user", "text", text)
        self._pending_replies += 1
        try:
            async with self._reply_lock:
                if self._closed:
                    return None
                # messages queued behind this one are not part of its context
                history = [
                    m for m in self._messages
                    if m.id < user_msg.id or m.sender != "user"
                ]
                reply = await self._reply_for(user_msg, history)
        finally:
            self._pending_replies -= 1

        if self._closed:
            logger.debug("discarding reply to message=%d, session closed", user_msg.id)
            return None
        return self._append("peer", "text", reply, reply_to=user_msg.id)

    async def _reply_for(self, user_msg: Message, history: list[Message]) -> str:
        ctx = ReplyContext(
            model_id=self.model.id,
            model_name=self.model.name,
            user_message=user_msg.text,
            user_identity=self.user_identity,
            user_display_name=self.user_display_name,
            recent_history=history,
        )
        try:
            return await self._gateway.get_reply(ctx)
        except Exception:
            logger.exception("reply failed for model=%s", self.model.id)
            return APOLOGY

    # ------------------------------------------------------------------
    # Video persona
    # ------------------------------------------------------------------

    def trigger_clip(self, clip_id: str) -> PlaybackState:
        """Play an action clip once. Raises KeyError for an unknown clip."""
        self._ensure_open()
        return self.playback.trigger_by_id(clip_id)

    def playback_ended(self) -> PlaybackState:
        self._ensure_open()
        return self.playback.on_playback_ended()

    # ------------------------------------------------------------------
    # Reward cards
    # ------------------------------------------------------------------

    def _on_card_drop(self, card: CardRef, caption: str) -> None:
        if self._closed:
            return
        self._append("peer", "card", caption, card=card)
        self._last_card_emission = datetime.now(timezone.utc)

    async def save_card(self, message_id: int) -> SaveCardResult:
        """Save the card carried by `message_id` to the user's collection.

        Raises KeyError for an unknown message and ValueError when the
        message carries no card. Store failures come back as a retryable
        result; the saved marker is left untouched.
        """
        self._ensure_open()
        msg = next((m for m in self._messages if m.id == message_id), None)
        if msg is None:
            raise KeyError(message_id)
        if msg.kind != "card" or msg.card is None:
            raise ValueError(f"Message {message_id} carries no card")

        card_id = msg.card.id
        if card_id in self._claimed:
            self._mark_saved(card_id)
            return SaveCardResult(card_id=card_id, saved=True, already_held=True)

        try:
            result = await self._ledger.claim(self.user_identity, self.model.id, card_id)
        except LedgerError as e:
            logger.warning("card save failed card=%s: %s", card_id, e)
            return SaveCardResult(card_id=card_id, retryable=True, error=str(e))
        except Exception:
            logger.exception("card save failed card=%s", card_id)
            return SaveCardResult(card_id=card_id, retryable=True, error=APOLOGY)

        self._claimed.add(card_id)
        self._mark_saved(card_id)
        return SaveCardResult(card_id=card_id, saved=True, already_held=result.already_held)

    def _mark_saved(self, card_id: str) -> None:
        for m in self._messages:
            if m.card is not None and m.card.id == card_id:
                m.saved = True
