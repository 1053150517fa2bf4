"""Tests for timestamp normalization."""

from datetime import UTC, datetime, timedelta, timezone

from learnmate.utils import ensure_utc_aware


def test_naive_becomes_utc() -> None:
    value = ensure_utc_aware(datetime(2024, 5, 1, 12, 0))
    assert value == datetime(2024, 5, 1, 12, 0, tzinfo=UTC)


def test_aware_untouched() -> None:
    offset = timezone(timedelta(hours=2))
    value = datetime(2024, 5, 1, 12, 0, tzinfo=offset)
    assert ensure_utc_aware(value) is value


def test_none() -> None:
    assert ensure_utc_aware(None) is None
