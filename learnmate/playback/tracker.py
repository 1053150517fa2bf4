"""Watch-progress tracking for media lessons.

`WatchProgressTracker` keeps the furthest continuously watched second of the
active lesson, forces the player back when the learner seeks past it, sends
throttled progress reports and completes the lesson once enough of it has
been watched.

Progress reports are best-effort: they run as background tasks, are sent at
most once, and a failed report is only logged.
"""

from __future__ import annotations

import asyncio
import inspect
import math
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol
from uuid import UUID

import structlog

from learnmate.config.settings import Settings, get_settings
from learnmate.playback.gateway import ProgressGateway, ProgressReport, WatchRecord
from learnmate.utils import percentage


if TYPE_CHECKING:
    from learnmate.playback.youtube import YouTubePoller

logger = structlog.get_logger(__name__)

CompletionCallback = Callable[[UUID], Awaitable[Any] | Any]


def whole_seconds(value: float | None) -> int:
    """Floor a player reading; missing, negative or non-finite readings are 0.

    Browsers report NaN as the duration until metadata has loaded.
    """
    if value is None:
        return 0
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        return 0
    return math.floor(value)


class MediaPlayer(Protocol):
    """Player surface the tracker drives (HTML5 video or YouTube iframe)."""

    def get_current_time(self) -> float: ...

    def get_duration(self) -> float: ...

    def seek_to(self, seconds: float) -> None: ...

    def destroy(self) -> None: ...


@dataclass(frozen=True)
class LessonContext:
    """Lesson being played.

    `course_id` is None when the learner is not enrolled (preview); nothing
    is persisted or completed in that case.
    """

    lesson_id: UUID
    course_id: UUID | None = None
    completed: bool = False


@dataclass
class WatchState:
    watched_until: int = 0
    video_duration: int = 0
    progress_pct: int = 0


class CompletionState(str, Enum):
    """Lesson completion as seen by the tracker."""

    PENDING = "pending"
    COMPLETING = "completing"
    COMPLETED = "completed"


class WatchProgressTracker:
    """Tracks one media lesson at a time."""

    def __init__(
        self,
        gateway: ProgressGateway,
        *,
        clock: Callable[[], float] = time.monotonic,
        seek_slack: int = 2,
        persist_interval: float = 4.0,
        resume_min: int = 5,
        completion_ratio: float = 0.9,
        early_finish_ratio: float = 0.6,
        on_complete: CompletionCallback | None = None,
    ) -> None:
        self.gateway = gateway
        self.seek_slack = seek_slack
        self.persist_interval = persist_interval
        self.resume_min = resume_min
        self.completion_ratio = completion_ratio
        self.early_finish_ratio = early_finish_ratio
        self.on_complete = on_complete
        self._clock = clock

        self.state = WatchState()
        self.context: LessonContext | None = None
        self.completion = CompletionState.PENDING
        self._player: MediaPlayer | None = None
        self._poller: YouTubePoller | None = None
        self._last_reported_second = 0
        self._last_persist_at: float | None = None
        self._pending: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(
        cls,
        gateway: ProgressGateway,
        settings: Settings | None = None,
        **kwargs: Any,
    ) -> WatchProgressTracker:
        settings = settings or get_settings()
        return cls(
            gateway,
            seek_slack=settings.playback_seek_slack_seconds,
            persist_interval=settings.playback_persist_interval_seconds,
            resume_min=settings.playback_resume_min_seconds,
            completion_ratio=settings.playback_completion_ratio,
            early_finish_ratio=settings.playback_early_finish_ratio,
            **kwargs,
        )

    # ==========================================================================
    # Lesson Lifecycle
    # ==========================================================================

    @property
    def player(self) -> MediaPlayer | None:
        return self._player

    def mount(
        self,
        context: LessonContext,
        player: MediaPlayer | None = None,
        watch_record: WatchRecord | None = None,
    ) -> None:
        """Start tracking a lesson, tearing down the previous one first."""
        self._teardown()

        self.context = context
        self._player = player
        self.state = WatchState()
        if watch_record is not None:
            self.state.watched_until = max(0, int(watch_record.watched_seconds))
            self.state.video_duration = max(0, int(watch_record.duration_seconds))
        self.completion = (
            CompletionState.COMPLETED if context.completed else CompletionState.PENDING
        )
        self._last_reported_second = 0
        self._last_persist_at = None

        logger.debug(
            "lesson_tracking_started",
            lesson_id=str(context.lesson_id),
            watched_until=self.state.watched_until,
            video_duration=self.state.video_duration,
        )

    def attach_player(self, context: LessonContext, player: MediaPlayer) -> bool:
        """Attach a player created after `mount`.

        Returns False, leaving the player to the caller, when another lesson
        was mounted while the player was being created.
        """
        if self.context is not context:
            return False
        self._player = player
        return True

    def bind_poller(self, poller: YouTubePoller) -> None:
        """Attach the poller feeding this lesson; stopped on the next mount."""
        if self._poller is not None and self._poller is not poller:
            self._poller.close()
        self._poller = poller

    def on_metadata(self, duration: float) -> None:
        """Player knows its duration: resume from the saved position."""
        total = whole_seconds(duration)
        if self.context is None or total <= 0:
            return

        self.state.video_duration = total
        watched = self.state.watched_until
        if self.resume_min < watched < total and self._player is not None:
            self._player.seek_to(watched)
            logger.debug("playback_resumed", lesson_id=str(self.context.lesson_id), at=watched)
        self.state.progress_pct = percentage(min(watched, total), total)

    async def on_time_update(self, player_time: float, duration: float | None = None) -> None:
        """Handle one playback tick."""
        if self.context is None:
            return

        total = whole_seconds(duration)
        if total > 0:
            self.state.video_duration = total

        current = whole_seconds(player_time)
        watched = self.state.watched_until
        if current > watched + self.seek_slack:
            if self._player is not None:
                self._player.seek_to(watched)
            logger.debug(
                "playback_seek_reverted",
                lesson_id=str(self.context.lesson_id),
                attempted=current,
                watched_until=watched,
            )
            return

        self.state.watched_until = max(watched, current)

        total = self.state.video_duration
        if total <= 0:
            return

        furthest = max(current, self.state.watched_until)
        self.state.progress_pct = min(100, percentage(furthest, total))
        self._maybe_persist(current, total)

        if current >= total - 1:
            await self.check_completion()

    async def on_ended(self) -> None:
        await self.check_completion()

    # ==========================================================================
    # Completion
    # ==========================================================================

    @property
    def watch_ratio(self) -> float:
        total = self.state.video_duration
        if total <= 0:
            return 0.0
        return self.state.watched_until / total

    @property
    def is_completed(self) -> bool:
        return self.completion is CompletionState.COMPLETED

    @property
    def can_finish_early(self) -> bool:
        """Enough was watched to offer "finish early", but not to auto-complete."""
        if self.is_completed or self.state.video_duration <= 0:
            return False
        return self.early_finish_ratio <= self.watch_ratio < self.completion_ratio

    @property
    def remaining_locked_seconds(self) -> int:
        return max(0, self.state.video_duration - self.state.watched_until)

    async def check_completion(self) -> bool:
        """Complete the lesson once the watch ratio reaches the threshold.

        Returns True if this call completed the lesson.
        """
        context = self.context
        if context is None or context.course_id is None:
            return False
        if self.completion is not CompletionState.PENDING:
            return False
        if self.state.video_duration <= 0 or self.watch_ratio < self.completion_ratio:
            return False

        completed = await self._complete(context)
        if completed:
            logger.info(
                "lesson_auto_completed",
                lesson_id=str(context.lesson_id),
                course_id=str(context.course_id),
                watched_until=self.state.watched_until,
                video_duration=self.state.video_duration,
            )
        return completed

    async def finish_early(self) -> bool:
        """Report progress with the threshold flag, then complete the lesson.

        Raises:
            GatewayError: If the progress report or completion call fails
        """
        context = self.context
        if context is None or context.course_id is None or not self.can_finish_early:
            return False
        if self.completion is not CompletionState.PENDING:
            return False

        self.completion = CompletionState.COMPLETING
        completed = False
        try:
            await self.gateway.report_progress(
                context.course_id,
                context.lesson_id,
                ProgressReport(
                    watched_seconds=self.state.watched_until,
                    duration_seconds=self.state.video_duration,
                    mark_if_threshold=True,
                ),
            )
            await self.gateway.mark_lesson_complete(context.course_id, context.lesson_id)
            completed = True
        finally:
            self._settle_completion(context, completed)

        logger.info(
            "lesson_finished_early",
            lesson_id=str(context.lesson_id),
            course_id=str(context.course_id),
            watch_ratio=round(self.watch_ratio, 3),
        )
        await self._notify_complete(context)
        return True

    async def _complete(self, context: LessonContext) -> bool:
        if context.course_id is None:
            return False
        self.completion = CompletionState.COMPLETING
        completed = False
        try:
            await self.gateway.mark_lesson_complete(context.course_id, context.lesson_id)
            completed = True
        except Exception as e:
            logger.warning(
                "lesson_completion_failed",
                lesson_id=str(context.lesson_id),
                course_id=str(context.course_id),
                error=str(e),
            )
        finally:
            self._settle_completion(context, completed)

        if completed:
            await self._notify_complete(context)
        return completed

    def _settle_completion(self, context: LessonContext, completed: bool) -> None:
        # The lesson may have changed while the call was in flight
        if self.context is context:
            self.completion = (
                CompletionState.COMPLETED if completed else CompletionState.PENDING
            )

    async def _notify_complete(self, context: LessonContext) -> None:
        if self.on_complete is None:
            return
        result = self.on_complete(context.lesson_id)
        if inspect.isawaitable(result):
            await result

    # ==========================================================================
    # Persistence
    # ==========================================================================

    def _maybe_persist(self, current: int, total: int) -> None:
        context = self.context
        if context is None or context.course_id is None:
            return
        if current <= self._last_reported_second:
            return

        now = self._clock()
        throttled = (
            self._last_persist_at is not None
            and now - self._last_persist_at < self.persist_interval
        )
        if throttled and current != total:
            return

        self._last_reported_second = current
        self._last_persist_at = now
        report = ProgressReport(
            watched_seconds=max(current, self.state.watched_until),
            duration_seconds=total,
        )
        task = asyncio.ensure_future(self._persist(context, report))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _persist(self, context: LessonContext, report: ProgressReport) -> None:
        if context.course_id is None:
            return
        try:
            await self.gateway.report_progress(context.course_id, context.lesson_id, report)
        except Exception as e:
            logger.warning(
                "progress_persist_failed",
                lesson_id=str(context.lesson_id),
                course_id=str(context.course_id),
                watched_seconds=report.watched_seconds,
                error=str(e),
            )

    @property
    def pending_reports(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight progress reports."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    # ==========================================================================
    # Teardown
    # ==========================================================================

    def _teardown(self) -> None:
        if self._poller is not None:
            self._poller.close()
            self._poller = None
        if self._player is not None:
            try:
                self._player.destroy()
            except Exception as e:
                logger.warning("player_destroy_failed", error=str(e))
            self._player = None

    async def close(self) -> None:
        """Stop polling, destroy the player and flush pending reports."""
        self._teardown()
        self.context = None
        await self.drain()
