"""Tests for clock and window keying."""

from datetime import datetime, timezone

import pytest

from slidegate.windows import (
    bucket,
    day_bucket,
    day_label,
    key_bucket,
    minute_bucket,
    seconds_until_next_day,
    seconds_until_next_minute,
    window_key,
)


def _ts(*args: int) -> float:
    return datetime(*args, tzinfo=timezone.utc).timestamp()


def test_bucket_floors() -> None:
    assert bucket(119.9, 60) == 1
    assert bucket(120.0, 60) == 2
    assert bucket(0, 60) == 0


def test_minute_bucket_same_within_minute() -> None:
    assert minute_bucket(_ts(2026, 3, 10, 12, 0, 0)) == minute_bucket(
        _ts(2026, 3, 10, 12, 0, 59)
    )
    assert minute_bucket(_ts(2026, 3, 10, 12, 0, 59)) + 1 == minute_bucket(
        _ts(2026, 3, 10, 12, 1, 0)
    )


def test_calendar_day_changes_at_utc_midnight() -> None:
    before = _ts(2026, 3, 10, 23, 59, 59)
    after = _ts(2026, 3, 11, 0, 0, 0)
    assert day_label(before) == "2026-03-10"
    assert day_label(after) == "2026-03-11"
    assert day_bucket(after) == day_bucket(before) + 1


def test_calendar_day_respects_timezone() -> None:
    # 03:00 UTC on the 10th is still the evening of the 9th in New York.
    ts = _ts(2026, 3, 10, 3, 0, 0)
    assert day_label(ts, "calendar", "America/New_York") == "2026-03-09"
    assert day_label(ts, "calendar", "UTC") == "2026-03-10"


def test_rolling_day_bucket_is_epoch_days() -> None:
    ts = _ts(2026, 3, 10, 12, 0, 0)
    assert day_bucket(ts, "rolling") == int(ts // 86400)
    assert day_label(ts, "rolling") == str(int(ts // 86400))


def test_unknown_daily_mode_rejected() -> None:
    with pytest.raises(ValueError, match="Unknown daily window mode"):
        day_bucket(0, "weekly")


def test_window_key_round_trip_with_ipv6_identity() -> None:
    key = window_key("2001:db8::1", 42)
    assert key == "2001:db8::1:42"
    assert key_bucket(key) == 42


def test_seconds_until_next_minute() -> None:
    assert seconds_until_next_minute(_ts(2026, 3, 10, 12, 0, 30)) == 30
    assert seconds_until_next_minute(_ts(2026, 3, 10, 12, 0, 0)) == 60


def test_seconds_until_next_day() -> None:
    assert seconds_until_next_day(_ts(2026, 3, 10, 23, 59, 0)) == 60
    assert seconds_until_next_day(_ts(2026, 3, 10, 23, 59, 0), "rolling") == 60
