"""Tests for the watch-progress tracker."""

import asyncio
import math
import random
from uuid import uuid4

import pytest

from learnmate.playback.gateway import GatewayError, ProgressReport, WatchRecord
from learnmate.playback.tracker import (
    CompletionState,
    LessonContext,
    WatchProgressTracker,
    whole_seconds,
)


@pytest.fixture
def context(course_id) -> LessonContext:
    return LessonContext(lesson_id=uuid4(), course_id=course_id)


@pytest.fixture
def tracker(gateway, clock) -> WatchProgressTracker:
    return WatchProgressTracker(gateway, clock=clock)


async def play(tracker: WatchProgressTracker, clock, start: int, stop: int, duration: int):
    """Feed one tick per second from `start` to `stop` inclusive."""
    for second in range(start, stop + 1):
        clock.now = float(second)
        await tracker.on_time_update(second + 0.4, duration)


class TestAntiSkip:
    async def test_normal_playback_advances_high_water_mark(
        self, tracker, context, player, clock
    ) -> None:
        tracker.mount(context, player)
        await play(tracker, clock, 0, 30, duration=600)

        assert tracker.state.watched_until == 30
        assert player.seeks == []

    async def test_jitter_within_slack_is_accepted(self, tracker, context, player) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=10, duration_seconds=600))

        # Not continuous, but within the 2 second slack
        await tracker.on_time_update(12.9, 600)

        assert tracker.state.watched_until == 12
        assert player.seeks == []

    async def test_seek_past_high_water_mark_is_reverted(
        self, tracker, context, player, clock
    ) -> None:
        tracker.mount(context, player)
        await play(tracker, clock, 0, 20, duration=600)

        await tracker.on_time_update(300, 600)

        assert player.seeks == [20]
        assert tracker.state.watched_until == 20

    async def test_reverted_tick_is_not_persisted(
        self, tracker, context, player, gateway, clock
    ) -> None:
        tracker.mount(context, player)
        await tracker.on_time_update(1, 600)
        await tracker.drain()
        gateway.report_progress.reset_mock()

        clock.now = 100.0
        await tracker.on_time_update(500, 600)
        await tracker.drain()

        gateway.report_progress.assert_not_awaited()
        assert tracker.state.progress_pct == 0

    async def test_seeking_backwards_keeps_high_water_mark(
        self, tracker, context, player, clock
    ) -> None:
        tracker.mount(context, player)
        await play(tracker, clock, 0, 40, duration=600)

        await tracker.on_time_update(5, 600)

        assert tracker.state.watched_until == 40
        assert player.seeks == []

    async def test_random_ticks_never_lower_watched_until(
        self, tracker, context, player
    ) -> None:
        rng = random.Random(1234)
        tracker.mount(context, player)

        previous = 0
        for _ in range(500):
            before = tracker.state.watched_until
            player.seeks.clear()
            current = rng.randint(0, 120)
            await tracker.on_time_update(current, 120)

            assert tracker.state.watched_until >= previous
            if current > before + 2:
                assert player.seeks == [before]
                assert tracker.state.watched_until == before
            previous = tracker.state.watched_until

        await tracker.drain()


class TestResume:
    async def test_resume_seeks_to_saved_position(self, tracker, context, player) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=120, duration_seconds=600))

        tracker.on_metadata(600.7)

        assert player.seeks == [120]
        assert tracker.state.video_duration == 600
        assert tracker.state.progress_pct == 20

    @pytest.mark.parametrize("saved", [0, 5, 600, 700])
    async def test_no_resume_outside_window(self, tracker, context, player, saved) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=saved, duration_seconds=600))

        tracker.on_metadata(600)

        assert player.seeks == []

    async def test_playback_continues_from_resumed_position(
        self, tracker, context, player, clock
    ) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=120, duration_seconds=600))
        tracker.on_metadata(600)

        await play(tracker, clock, 120, 125, duration=600)

        assert tracker.state.watched_until == 125
        assert player.seeks == [120]


class TestPersistence:
    async def test_reports_are_throttled(self, tracker, context, player, gateway, clock) -> None:
        tracker.mount(context, player)

        await play(tracker, clock, 1, 10, duration=100)
        await tracker.drain()

        calls = gateway.report_progress.await_args_list
        reported = [call.args[2].watched_seconds for call in calls]
        assert reported == [1, 5, 9]

    async def test_report_payload(self, tracker, context, player, gateway, clock) -> None:
        tracker.mount(context, player)

        await play(tracker, clock, 1, 1, duration=100)
        await tracker.drain()

        gateway.report_progress.assert_awaited_once_with(
            context.course_id,
            context.lesson_id,
            ProgressReport(watched_seconds=1, duration_seconds=100, mark_if_threshold=False),
        )

    async def test_final_second_always_persisted(
        self, tracker, context, player, gateway, clock
    ) -> None:
        tracker.mount(context, player)
        await play(tracker, clock, 1, 9, duration=10)
        await tracker.drain()
        gateway.report_progress.reset_mock()

        # Within the throttle window, but this is the last second
        clock.now = 9.5
        await tracker.on_time_update(10, 10)
        await tracker.drain()

        gateway.report_progress.assert_awaited_once()
        assert gateway.report_progress.await_args.args[2].watched_seconds == 10

    async def test_only_forward_seconds_are_reported(
        self, tracker, context, player, gateway, clock
    ) -> None:
        tracker.mount(context, player)
        await play(tracker, clock, 1, 20, duration=100)
        await tracker.drain()
        gateway.report_progress.reset_mock()

        clock.now = 100.0
        await tracker.on_time_update(3, 100)
        await tracker.drain()

        gateway.report_progress.assert_not_awaited()

    async def test_persist_failure_is_dropped(
        self, tracker, context, player, gateway, clock
    ) -> None:
        gateway.report_progress.side_effect = GatewayError("boom", status_code=503)
        tracker.mount(context, player)

        await play(tracker, clock, 1, 6, duration=100)
        await tracker.drain()

        assert gateway.report_progress.await_count == 2
        assert tracker.state.watched_until == 6
        assert tracker.pending_reports == 0

    async def test_unknown_duration_skips_everything(
        self, tracker, context, player, gateway, clock
    ) -> None:
        tracker.mount(context, player)

        await play(tracker, clock, 0, 10, duration=0)
        await tracker.on_ended()
        await tracker.drain()

        gateway.report_progress.assert_not_awaited()
        gateway.mark_lesson_complete.assert_not_awaited()
        assert tracker.state.progress_pct == 0

    async def test_nothing_persisted_without_enrollment(
        self, tracker, player, gateway, clock
    ) -> None:
        tracker.mount(LessonContext(lesson_id=uuid4()), player)

        await play(tracker, clock, 0, 10, duration=10)
        await tracker.drain()

        gateway.report_progress.assert_not_awaited()
        gateway.mark_lesson_complete.assert_not_awaited()
        assert tracker.state.progress_pct == 100


class TestCompletion:
    async def test_completes_once_threshold_reached(
        self, tracker, context, player, gateway, clock
    ) -> None:
        tracker.mount(context, player)

        await play(tracker, clock, 0, 10, duration=10)
        await tracker.on_ended()
        await tracker.on_time_update(10, 10)
        await tracker.drain()

        gateway.mark_lesson_complete.assert_awaited_once_with(
            context.course_id, context.lesson_id
        )
        assert tracker.completion is CompletionState.COMPLETED

    async def test_end_without_enough_watched_does_not_complete(
        self, tracker, context, player, gateway
    ) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=50, duration_seconds=100))
        tracker.on_metadata(100)

        await tracker.on_ended()

        gateway.mark_lesson_complete.assert_not_awaited()

    async def test_already_completed_lesson_is_not_completed_again(
        self, tracker, course_id, player, gateway, clock
    ) -> None:
        tracker.mount(LessonContext(uuid4(), course_id, completed=True), player)

        await play(tracker, clock, 0, 10, duration=10)
        await tracker.on_ended()

        gateway.mark_lesson_complete.assert_not_awaited()

    async def test_concurrent_checks_complete_once(
        self, tracker, context, player, gateway
    ) -> None:
        release = asyncio.Event()

        async def slow_complete(*args):
            await release.wait()

        gateway.mark_lesson_complete.side_effect = slow_complete
        tracker.mount(context, player, WatchRecord(watched_seconds=95, duration_seconds=100))
        tracker.on_metadata(100)

        first = asyncio.ensure_future(tracker.check_completion())
        await asyncio.sleep(0)
        assert tracker.completion is CompletionState.COMPLETING
        second = await tracker.check_completion()
        release.set()

        assert await first is True
        assert second is False
        gateway.mark_lesson_complete.assert_awaited_once()

    async def test_failed_completion_can_be_retried(
        self, tracker, context, player, gateway
    ) -> None:
        gateway.mark_lesson_complete.side_effect = [GatewayError("down"), None]
        tracker.mount(context, player, WatchRecord(watched_seconds=95, duration_seconds=100))
        tracker.on_metadata(100)

        assert await tracker.check_completion() is False
        assert tracker.completion is CompletionState.PENDING
        assert await tracker.check_completion() is True
        assert gateway.mark_lesson_complete.await_count == 2

    async def test_on_complete_callback(self, gateway, context, player) -> None:
        completed = []
        tracker = WatchProgressTracker(gateway, on_complete=completed.append)
        tracker.mount(context, player, WatchRecord(watched_seconds=90, duration_seconds=100))
        tracker.on_metadata(100)

        await tracker.on_ended()

        assert completed == [context.lesson_id]


class TestFinishEarly:
    async def test_eligibility_window(self, tracker, context, player) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=59, duration_seconds=100))
        tracker.on_metadata(100)
        assert tracker.can_finish_early is False

        tracker.state.watched_until = 60
        assert tracker.can_finish_early is True

        tracker.state.watched_until = 90
        assert tracker.can_finish_early is False

    async def test_finish_early_reports_then_completes(
        self, tracker, context, player, gateway
    ) -> None:
        calls = []
        gateway.report_progress.side_effect = lambda *a: calls.append("report")
        gateway.mark_lesson_complete.side_effect = lambda *a: calls.append("complete")
        tracker.mount(context, player, WatchRecord(watched_seconds=70, duration_seconds=100))
        tracker.on_metadata(100)

        assert await tracker.finish_early() is True

        assert calls == ["report", "complete"]
        report = gateway.report_progress.await_args.args[2]
        assert report == ProgressReport(70, 100, mark_if_threshold=True)
        assert tracker.is_completed
        assert tracker.can_finish_early is False

    async def test_finish_early_not_eligible(self, tracker, context, player, gateway) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=10, duration_seconds=100))
        tracker.on_metadata(100)

        assert await tracker.finish_early() is False
        gateway.report_progress.assert_not_awaited()

    async def test_finish_early_failure_propagates(
        self, tracker, context, player, gateway
    ) -> None:
        gateway.mark_lesson_complete.side_effect = GatewayError("down", status_code=500)
        tracker.mount(context, player, WatchRecord(watched_seconds=70, duration_seconds=100))
        tracker.on_metadata(100)

        with pytest.raises(GatewayError):
            await tracker.finish_early()
        assert tracker.completion is CompletionState.PENDING

    async def test_remaining_locked_seconds(self, tracker, context, player) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=70, duration_seconds=100))
        assert tracker.remaining_locked_seconds == 30

        tracker.state.watched_until = 150
        assert tracker.remaining_locked_seconds == 0


class TestLessonSwitch:
    async def test_mount_resets_state_and_destroys_previous_player(
        self, tracker, context, player, clock, player_factory
    ) -> None:
        tracker.mount(context, player)
        await play(tracker, clock, 0, 30, duration=100)

        second = player_factory()
        tracker.mount(LessonContext(uuid4(), context.course_id), second)

        assert player.destroyed is True
        assert tracker.player is second
        assert tracker.state.watched_until == 0
        assert tracker.state.progress_pct == 0
        assert tracker.completion is CompletionState.PENDING

    async def test_close_tears_down(self, tracker, context, player) -> None:
        tracker.mount(context, player)

        await tracker.close()

        assert player.destroyed is True
        assert tracker.player is None
        assert tracker.context is None


class TestUnreadableDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [(None, 0), (math.nan, 0), (math.inf, 0), (-math.inf, 0), (-3.0, 0), (12.9, 12)],
    )
    def test_whole_seconds(self, value, expected) -> None:
        assert whole_seconds(value) == expected

    @pytest.mark.parametrize("duration", [math.nan, math.inf])
    async def test_metadata_before_load_is_ignored(
        self, tracker, context, player, duration
    ) -> None:
        tracker.mount(context, player, WatchRecord(watched_seconds=120, duration_seconds=0))

        tracker.on_metadata(duration)

        assert tracker.state.video_duration == 0
        assert player.seeks == []

    @pytest.mark.parametrize("duration", [math.nan, math.inf])
    async def test_ticks_without_duration_track_nothing_else(
        self, tracker, context, player, gateway, clock, duration
    ) -> None:
        tracker.mount(context, player)

        for second in range(4):
            clock.now = float(second)
            await tracker.on_time_update(second + 0.2, duration)
        await tracker.on_ended()
        await tracker.drain()

        assert tracker.state.watched_until == 3
        assert tracker.state.video_duration == 0
        gateway.report_progress.assert_not_awaited()
        gateway.mark_lesson_complete.assert_not_awaited()

    async def test_nan_position_counts_as_zero(self, tracker, context, player) -> None:
        tracker.mount(context, player)

        await tracker.on_time_update(math.nan, 100)

        assert tracker.state.watched_until == 0
        assert player.seeks == []
