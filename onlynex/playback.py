"""Video persona driver.

Two playing states plus a fallback:

  idle      a random "typing" clip from the idle pool, looped
  one_shot  a button-triggered clip, played exactly once
  no_media  the idle pool is empty; the caller shows the static fallback image

When a one-shot clip ends, a fresh idle clip is drawn and the highlighted
button is cleared. End-of-clip signals in any other state are ignored.
"""

from __future__ import annotations

import logging
import random

from onlynex.models import ActionClip, IdleClip, PlaybackMode, PlaybackState

logger = logging.getLogger(__name__)


class VideoPlaybackController:
    def __init__(
        self,
        idle_pool: list[IdleClip] | None = None,
        action_pool: list[ActionClip] | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.idle_pool: list[IdleClip] = list(idle_pool or [])
        self.action_pool: list[ActionClip] = list(action_pool or [])
        self._rng = rng or random.Random()
        self.mode: PlaybackMode = "no_media"
        self.current: IdleClip | ActionClip | None = None
        self.active_clip_id: str | None = None

    @property
    def state(self) -> PlaybackState:
        return PlaybackState(
            mode=self.mode,
            active_clip_id=self.active_clip_id,
            media_url=self.current.media_url if self.current else None,
            loop=self.mode == "idle",
        )

    def start(self, idle_pool: list[IdleClip] | None = None) -> PlaybackState:
        """Enter the idle loop with a random clip, or no_media if the pool is empty."""
        if idle_pool is not None:
            self.idle_pool = list(idle_pool)
        self.active_clip_id = None
        if not self.idle_pool:
            self.mode = "no_media"
            self.current = None
            logger.debug("idle pool empty, showing fallback image")
            return self.state
        self.mode = "idle"
        self.current = self._rng.choice(self.idle_pool)
        return self.state

    def trigger(self, clip: ActionClip) -> PlaybackState:
        """Play `clip` once, replacing whatever is on screen."""
        self.mode = "one_shot"
        self.current = clip
        self.active_clip_id = clip.id
        logger.debug("one-shot clip=%s", clip.id)
        return self.state

    def trigger_by_id(self, clip_id: str) -> PlaybackState:
        for clip in self.action_pool:
            if clip.id == clip_id:
                return self.trigger(clip)
        raise KeyError(clip_id)

    def on_playback_ended(self) -> PlaybackState:
        if self.mode != "one_shot":
            return self.state
        return self.start()
