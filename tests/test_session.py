"""Tests for onlynex.session: ChatSession orchestration."""

import asyncio
import random

import pytest

from onlynex.gateway import APOLOGY, AIReplyGateway
from onlynex.ledger import CollectionLedger, LedgerError, MemoryLedgerStore
from onlynex.matcher import RESPONSE_CATEGORIES, ResponseMatcher
from onlynex.models import ModelRecord, ReplyContext
from onlynex.session import GREETING, ChatSession, SessionClosedError

USER = "ana@example.com"

GOOD_MORNING = next(c.replies for c in RESPONSE_CATEGORIES if c.name == "goodMorning")

MODEL = ModelRecord.model_validate({
    "id": "luna",
    "name": "Luna Rocha",
    "videosDigitando": [
        {"id": "d1", "videoUrl": "https://cdn/typing-1.mp4"},
        {"id": "d2", "videoUrl": "https://cdn/typing-2.mp4"},
    ],
    "videosChat": [
        {"id": "intro", "label": "Oi!", "videoUrl": "https://cdn/intro.mp4"},
    ],
    "cards": [
        {"id": "card_beach", "url": "https://cdn/cards/beach.jpg"},
    ],
})
IDLE_URLS = {"https://cdn/typing-1.mp4", "https://cdn/typing-2.mp4"}


# ---------------------------------------------------------------------------
# Test doubles
# ---------------------------------------------------------------------------

class ScriptedGateway:
    """Answers "<text>!" after a per-message delay and records concurrency."""

    def __init__(self, delays: dict[str, float] | None = None) -> None:
        self.delays = delays or {}
        self.contexts: list[ReplyContext] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def get_reply(self, ctx: ReplyContext) -> str:
        self.contexts.append(ctx)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(ctx.user_message, 0))
        finally:
            self.in_flight -= 1
        return f"{ctx.user_message}!"


class BlockingGateway:
    def __init__(self) -> None:
        self.release = asyncio.Event()
        self.called = asyncio.Event()

    async def get_reply(self, ctx: ReplyContext) -> str:
        self.called.set()
        await self.release.wait()
        return "late"


class ExplodingGateway:
    async def get_reply(self, ctx: ReplyContext) -> str:
        raise RuntimeError("boom")


class FlakyStore(MemoryLedgerStore):
    """Fails the first `failures` writes."""

    def __init__(self, failures: int = 1, read_fails: bool = False) -> None:
        super().__init__()
        self.failures = failures
        self.read_fails = read_fails
        self.writes = 0

    async def read_collection(self, doc_id):
        if self.read_fails:
            raise LedgerError("store offline")
        return await super().read_collection(doc_id)

    async def add_saved_card(self, doc_id, model_id, card_id, *, email, timestamp):
        self.writes += 1
        if self.failures > 0:
            self.failures -= 1
            raise LedgerError("store offline")
        return await super().add_saved_card(doc_id, model_id, card_id, email=email, timestamp=timestamp)


def _session(gateway=None, store=None, model=MODEL, **kwargs) -> ChatSession:
    return ChatSession(
        model=model,
        user_identity=USER,
        user_display_name="Ana",
        gateway=gateway or AIReplyGateway(matcher=ResponseMatcher(rng=random.Random(2))),
        ledger=CollectionLedger(store or MemoryLedgerStore()),
        rng=random.Random(4),
        greeting_delay=0,
        card_period=3600,
        **kwargs,
    )


async def _opened(**kwargs) -> ChatSession:
    session = _session(**kwargs)
    await session.open()
    await asyncio.wait_for(session._greeting_task, timeout=1)
    return session


# ---------------------------------------------------------------------------
# Open / close
# ---------------------------------------------------------------------------

class TestLifecycle:
    async def test_open_greets_and_starts_idle_loop(self) -> None:
        session = await _opened()
        messages = session.messages
        assert len(messages) == 1
        assert messages[0].sender == "peer"
        assert messages[0].text == GREETING.format(name="Ana")
        state = session.state()
        assert state.playback.mode == "idle"
        assert state.playback.media_url in IDLE_URLS
        assert session.scheduler.running
        await session.close()

    async def test_greeting_is_delayed(self) -> None:
        session = _session()
        session._greeting_delay = 0.05
        await session.open()
        assert session.messages == []
        await asyncio.wait_for(session._greeting_task, timeout=1)
        assert len(session.messages) == 1
        await session.close()

    async def test_no_cards_no_scheduler(self) -> None:
        model = MODEL.model_copy(update={"cards": []})
        session = await _opened(model=model)
        assert not session.scheduler.running
        await session.close()

    async def test_no_idle_clips_is_no_media(self) -> None:
        model = MODEL.model_copy(update={"idle_clips": []})
        session = await _opened(model=model)
        assert session.state().playback.mode == "no_media"
        await session.close()

    async def test_open_loads_saved_cards(self) -> None:
        store = MemoryLedgerStore()
        await CollectionLedger(store).claim(USER, "luna", "card_beach")
        session = await _opened(store=store)
        assert session.claimed_card_ids == {"card_beach"}
        await session.close()

    async def test_open_survives_ledger_outage(self) -> None:
        session = await _opened(store=FlakyStore(read_fails=True))
        assert session.claimed_card_ids == set()
        assert session.is_open
        await session.close()

    async def test_close_stops_timers_and_discards_timeline(self) -> None:
        session = await _opened()
        await session.close()
        assert not session.is_open
        assert not session.scheduler.running
        assert session.messages == []
        session.scheduler.tick(10_000)
        assert session.messages == []

    async def test_close_before_greeting(self) -> None:
        session = _session()
        session._greeting_delay = 10
        await session.open()
        await session.close()
        assert session.messages == []

    async def test_close_is_idempotent(self) -> None:
        session = await _opened()
        await session.close()
        await session.close()

    async def test_actions_after_close_raise(self) -> None:
        session = await _opened()
        await session.close()
        with pytest.raises(SessionClosedError):
            await session.send("oi")
        with pytest.raises(SessionClosedError):
            session.trigger_clip("intro")


# ---------------------------------------------------------------------------
# Text exchange
# ---------------------------------------------------------------------------

class TestSend:
    async def test_bom_dia_end_to_end(self) -> None:
        session = await _opened()
        reply = await session.send("bom dia")
        messages = session.messages
        assert [m.sender for m in messages] == ["peer", "user", "peer"]
        assert messages[1].text == "bom dia"
        assert reply is messages[2]
        assert reply.text in GOOD_MORNING
        assert reply.reply_to == messages[1].id
        await session.close()

    async def test_blank_message_ignored(self) -> None:
        session = await _opened()
        assert await session.send("   ") is None
        assert len(session.messages) == 1
        await session.close()

    async def test_history_sent_to_gateway(self) -> None:
        gateway = ScriptedGateway()
        session = await _opened(gateway=gateway)
        await session.send("first")
        await session.send("second")
        ctx = gateway.contexts[-1]
        assert ctx.user_message == "second"
        assert ctx.model_id == "luna"
        assert ctx.user_identity == USER
        assert [m.text for m in ctx.recent_history] == [GREETING.format(name="Ana"), "first", "first!"]
        await session.close()

    async def test_typing_visible_while_pending(self) -> None:
        gateway = BlockingGateway()
        session = await _opened(gateway=gateway)
        task = asyncio.create_task(session.send("oi"))
        await gateway.called.wait()
        assert session.typing
        assert session.messages[-1].sender == "user"
        gateway.release.set()
        await task
        assert not session.typing
        await session.close()

    async def test_replies_follow_request_order(self) -> None:
        gateway = ScriptedGateway(delays={"slow": 0.05, "fast": 0})
        session = await _opened(gateway=gateway)
        slow_reply, fast_reply = await asyncio.gather(session.send("slow"), session.send("fast"))
        texts = [m.text for m in session.messages[1:]]
        assert texts == ["slow", "fast", "slow!", "fast!"]
        assert slow_reply.reply_to == session.messages[1].id
        assert fast_reply.reply_to == session.messages[2].id
        assert gateway.max_in_flight == 1
        await session.close()

    async def test_queued_message_context_excludes_later_user_messages(self) -> None:
        gateway = ScriptedGateway(delays={"slow": 0.02})
        session = await _opened(gateway=gateway)
        await asyncio.gather(session.send("slow"), session.send("fast"))
        first_ctx = gateway.contexts[0]
        assert "fast" not in [m.text for m in first_ctx.recent_history]
        await session.close()

    async def test_reply_after_close_is_discarded(self) -> None:
        gateway = BlockingGateway()
        session = await _opened(gateway=gateway)
        task = asyncio.create_task(session.send("oi"))
        await gateway.called.wait()
        await session.close()
        gateway.release.set()
        assert await task is None
        assert session.messages == []

    async def test_unexpected_error_degrades_to_apology(self) -> None:
        session = await _opened(gateway=ExplodingGateway())
        reply = await session.send("oi")
        assert reply.text == APOLOGY
        await session.close()


# ---------------------------------------------------------------------------
# Video persona
# ---------------------------------------------------------------------------

class TestVideo:
    async def test_intro_clip_plays_once_then_idle(self) -> None:
        session = await _opened()
        state = session.trigger_clip("intro")
        assert state.mode == "one_shot"
        assert state.media_url == "https://cdn/intro.mp4"
        assert state.active_clip_id == "intro"

        state = session.playback_ended()
        assert state.mode == "idle"
        assert state.loop is True
        assert state.media_url in IDLE_URLS
        assert state.active_clip_id is None
        await session.close()

    async def test_clip_click_adds_no_message(self) -> None:
        session = await _opened()
        session.trigger_clip("intro")
        assert len(session.messages) == 1
        await session.close()

    async def test_unknown_clip(self) -> None:
        session = await _opened()
        with pytest.raises(KeyError):
            session.trigger_clip("nope")
        await session.close()


# ---------------------------------------------------------------------------
# Reward cards
# ---------------------------------------------------------------------------

class TestCards:
    async def _with_card(self, store=None) -> tuple[ChatSession, int]:
        session = await _opened(store=store)
        session.scheduler.tick(300)
        card_msg = session.messages[-1]
        assert card_msg.kind == "card"
        assert card_msg.card.id == "card_beach"
        assert card_msg.saved is False
        return session, card_msg.id

    async def test_card_drop_appends_message(self) -> None:
        session, _ = await self._with_card()
        assert session.state().last_card_emission is not None
        await session.close()

    async def test_save_card(self) -> None:
        store = MemoryLedgerStore()
        session, msg_id = await self._with_card(store)
        result = await session.save_card(msg_id)
        assert result.saved is True
        assert result.already_held is False
        assert session.messages[-1].saved is True
        assert session.claimed_card_ids == {"card_beach"}
        assert await CollectionLedger(store).query(USER, "luna") == {"card_beach"}
        await session.close()

    async def test_second_save_skips_store(self) -> None:
        store = FlakyStore(failures=0)
        session, msg_id = await self._with_card(store)
        await session.save_card(msg_id)
        result = await session.save_card(msg_id)
        assert result.already_held is True
        assert store.writes == 1
        await session.close()

    async def test_new_drop_of_saved_card_is_marked(self) -> None:
        session, msg_id = await self._with_card()
        await session.save_card(msg_id)
        session.scheduler.tick(600)
        assert session.messages[-1].saved is True
        await session.close()

    async def test_store_failure_is_retryable(self) -> None:
        store = FlakyStore(failures=1)
        session, msg_id = await self._with_card(store)
        result = await session.save_card(msg_id)
        assert result.saved is False
        assert result.retryable is True
        assert "offline" in result.error
        assert session.messages[-1].saved is False
        assert session.claimed_card_ids == set()

        retry = await session.save_card(msg_id)
        assert retry.saved is True
        assert session.messages[-1].saved is True
        await session.close()

    async def test_unknown_message(self) -> None:
        session = await _opened()
        with pytest.raises(KeyError):
            await session.save_card(999)
        await session.close()

    async def test_text_message_has_no_card(self) -> None:
        session = await _opened()
        with pytest.raises(ValueError):
            await session.save_card(session.messages[0].id)
        await session.close()
