# ruff: noqa: PLW0603
"""YouTube lesson playback.

The IFrame player has no time-update event, so `YouTubePoller` reads the
player position every second while it is playing and feeds the tracker.
The player API itself is loaded once per process through the
`YouTubeApiLoader` singleton.
"""

from __future__ import annotations

import asyncio
import math
import re
from collections.abc import Awaitable, Callable
from enum import IntEnum
from typing import Protocol

import structlog

from learnmate.config.settings import get_settings
from learnmate.core.timers import TimerHandle, Timers
from learnmate.playback.gateway import WatchRecord
from learnmate.playback.tracker import (
    LessonContext,
    MediaPlayer,
    WatchProgressTracker,
    whole_seconds,
)


logger = structlog.get_logger(__name__)

YOUTUBE_ID_PATTERN = re.compile(
    r"(?:youtube\.com/(?:[^/]+/.+/|(?:v|e(?:mbed)?)/|.*[?&]v=)|youtu\.be/)"
    r"([^\"&?/\s]{11})"
)


def extract_youtube_video_id(url: str | None) -> str | None:
    """Extract the 11-character video id from a YouTube URL.

    Handles watch, embed, short and youtu.be links. Returns None when the
    URL is not a YouTube video URL.
    """
    if not url or not isinstance(url, str):
        return None
    match = YOUTUBE_ID_PATTERN.search(url)
    return match.group(1) if match else None


class PlayerState(IntEnum):
    """IFrame player states."""

    UNSTARTED = -1
    ENDED = 0
    PLAYING = 1
    PAUSED = 2
    BUFFERING = 3
    CUED = 5


STOP_STATES = frozenset(
    {PlayerState.PAUSED, PlayerState.ENDED, PlayerState.BUFFERING, PlayerState.CUED}
)


class YouTubePlayer(MediaPlayer, Protocol):
    def get_player_state(self) -> int: ...


PlayerFactory = Callable[[str], Awaitable[YouTubePlayer]]
ApiLoadFn = Callable[[], Awaitable[PlayerFactory]]


# ==============================================================================
# API Loader
# ==============================================================================


class YouTubeApiLoader:
    """Loads the player API once; concurrent callers share the same load.

    A failed load is forgotten so that a later call can retry.
    """

    def __init__(self, load: ApiLoadFn) -> None:
        self._load = load
        self._future: asyncio.Future[PlayerFactory] | None = None
        self._factory: PlayerFactory | None = None

    @property
    def is_loaded(self) -> bool:
        return self._factory is not None

    async def ensure_loaded(self) -> PlayerFactory:
        if self._factory is not None:
            return self._factory
        if self._future is None:
            self._future = asyncio.ensure_future(self._run())
        # One cancelled waiter must not cancel the shared load
        return await asyncio.shield(self._future)

    async def _run(self) -> PlayerFactory:
        try:
            factory = await self._load()
        except Exception as e:
            self._future = None
            logger.warning("youtube_api_load_failed", error=str(e))
            raise
        self._factory = factory
        logger.info("youtube_api_loaded")
        return factory


_loader: YouTubeApiLoader | None = None


def configure_youtube_loader(load: ApiLoadFn) -> YouTubeApiLoader:
    """Install the process-wide loader."""
    global _loader
    _loader = YouTubeApiLoader(load)
    return _loader


def get_youtube_loader() -> YouTubeApiLoader:
    """Get the process-wide loader."""
    if _loader is None:
        raise RuntimeError("YouTube API loader not configured")
    return _loader


def reset_youtube_loader() -> None:
    global _loader
    _loader = None


# ==============================================================================
# Poller
# ==============================================================================


class YouTubePoller:
    """Feeds a tracker from an IFrame player while it is playing."""

    def __init__(
        self,
        tracker: WatchProgressTracker,
        player: YouTubePlayer,
        timers: Timers,
        interval: float = 1.0,
    ) -> None:
        self.tracker = tracker
        self.player: YouTubePlayer | None = player
        self.timers = timers
        self.interval = interval
        self._handle: TimerHandle | None = None

    @property
    def is_polling(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def on_ready(self) -> None:
        if self.player is None:
            return
        self.tracker.on_metadata(self._read(self.player.get_duration))

    async def on_state_change(self, state: int) -> None:
        if state == PlayerState.PLAYING:
            self._start()
        elif state in STOP_STATES:
            self.stop()
            if state == PlayerState.ENDED:
                await self.tracker.on_ended()

    def _start(self) -> None:
        if self.is_polling or self.player is None:
            return
        self._handle = self.timers.call_every(self.interval, self._tick)

    async def _tick(self) -> None:
        player = self.player
        if player is None:
            self.stop()
            return
        current = whole_seconds(self._read(player.get_current_time))
        duration = whole_seconds(self._read(player.get_duration))
        await self.tracker.on_time_update(current, duration)

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def close(self) -> None:
        """Stop polling and forget the player."""
        self.stop()
        self.player = None

    @staticmethod
    def _read(getter: Callable[[], float]) -> float:
        """Player reading, 0.0 when it fails or is not a finite number."""
        try:
            value = float(getter() or 0)
        except Exception as e:
            logger.debug("youtube_player_read_failed", error=str(e))
            return 0.0
        return value if math.isfinite(value) else 0.0


async def open_youtube_lesson(
    tracker: WatchProgressTracker,
    context: LessonContext,
    video_id: str,
    timers: Timers,
    *,
    watch_record: WatchRecord | None = None,
    interval: float | None = None,
    loader: YouTubeApiLoader | None = None,
) -> YouTubePoller | None:
    """Start tracking a lesson, then create its player.

    The previous lesson's poller and player are torn down before the new
    player exists. Returns None when another lesson was opened while the
    player was being created; that player is destroyed.
    """
    tracker.mount(context, None, watch_record)

    loader = loader or get_youtube_loader()
    factory = await loader.ensure_loaded()
    player = await factory(video_id)

    if not tracker.attach_player(context, player):
        logger.debug("youtube_player_discarded", lesson_id=str(context.lesson_id))
        player.destroy()
        return None

    interval = interval or get_settings().playback_poll_interval_seconds
    poller = YouTubePoller(tracker, player, timers, interval)
    tracker.bind_poller(poller)
    return poller
