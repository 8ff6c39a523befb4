"""Reward-card drip for an open chat.

Every `period` seconds after start, the scheduler checks how long the chat has
been open. Once that reaches `dwell`, each tick drops one random card from the
model's catalog, paired with a caption chosen for its media type. The same
card may come up again; there is no cap on drops.

Ticks fall on whole multiples of the period since start, so with the default
five-minute period and five-minute dwell the first card arrives at minute 5
and then every five minutes. Changing either value alone keeps that rule:
period 2 min / dwell 5 min gives the first card at minute 6.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from typing import Awaitable, Callable

from onlynex.models import CardRef

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_SECONDS = 300.0
DEFAULT_DWELL_SECONDS = 300.0

PHOTO_CAPTIONS = [
    "Separei essa foto só pra você, amor! 📸💕",
    "Olha o que eu tenho aqui... uma foto exclusiva! 😏",
    "Tirei essa pensando em você! 📸😘",
    "Presentinho pra você guardar na sua coleção! 💖",
]

VIDEO_CAPTIONS = [
    "Gravei esse vídeo especialmente pra você! 🎥💕",
    "Um vídeo exclusivo só pros meus favoritos... 😏🎬",
    "Aperta o play, amor! Esse é só nosso 🎥😘",
    "Vídeo novinho pra sua coleção! 💖🎬",
]

CAPTIONS = {"photo": PHOTO_CAPTIONS, "video": VIDEO_CAPTIONS}

EmitCallback = Callable[[CardRef, str], None]


class CardDropScheduler:
    """Timer-driven card emitter.

    Args:
        cards:   The model's card catalog. Empty means no drops.
        emit:    Called with (card, caption) for every drop.
        period:  Seconds between ticks.
        dwell:   Minimum seconds since start before the first drop.
        rng:     Random source for card and caption choice.
        clock:   Monotonic clock in seconds.
        sleep:   Coroutine used to wait between ticks.
    """

    def __init__(
        self,
        cards: list[CardRef],
        emit: EmitCallback,
        period: float = DEFAULT_PERIOD_SECONDS,
        dwell: float = DEFAULT_DWELL_SECONDS,
        rng: random.Random | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        self.cards = list(cards)
        self.period = period
        self.dwell = dwell
        self._emit = emit
        self._rng = rng or random.Random()
        self._clock = clock
        self._sleep = sleep
        self._started_at: float | None = None
        self._task: asyncio.Task | None = None
        self._stopped = False
        self.drops = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the session clock and the tick loop on the running event loop."""
        if self._task is not None:
            return
        self._started_at = self._clock()
        self._stopped = False
        if not self.cards:
            logger.debug("empty card catalog, no drops scheduled")
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the tick loop and wait for it to finish."""
        self._stopped = True
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def tick(self, elapsed: float) -> CardRef | None:
        """Evaluate one tick `elapsed` seconds after start; drop a card if due."""
        if self._stopped or not self.cards or elapsed < self.dwell:
            return None
        card = self._rng.choice(self.cards)
        caption = self._rng.choice(CAPTIONS[card.media_type])
        self.drops += 1
        logger.debug("card drop card=%s elapsed=%.0fs", card.id, elapsed)
        self._emit(card, caption)
        return card

    async def _run(self) -> None:
        assert self._started_at is not None
        n = 0
        while True:
            n += 1
            delay = self._started_at + n * self.period - self._clock()
            if delay > 0:
                await self._sleep(delay)
            # scheduled time, not the measured one
            self.tick(n * self.period)
