"""
Tests for schedule window evaluation.

2024-01-01 is a Monday; 2024-01-06/07 are Saturday/Sunday.
"""

from datetime import datetime, timedelta

import pytest

from core.privacy_types import ALL_BLOCKED, PolicySettings, Schedule, ScheduleType
from core.time_window import (
    describe_schedule,
    describe_settings,
    is_active,
    is_valid_time,
    next_change,
    parse_time,
)


def _schedule(start="08:00", end="22:00", type=ScheduleType.DAILY, days=None, enabled=True):
    return Schedule(
        enabled=enabled,
        type=type,
        start_time=start,
        end_time=end,
        days=set(days) if days is not None else set(range(7)),
        settings=ALL_BLOCKED,
    )


def _monday(hour, minute=0):
    return datetime(2024, 1, 1, hour, minute)


class TestIsActive:
    """Window membership."""

    @pytest.mark.parametrize(
        "hour,minute,expected",
        [(23, 0, True), (5, 59, True), (6, 0, False), (21, 59, False), (22, 0, True)],
    )
    def test_overnight_window(self, hour, minute, expected):
        """22:00-06:00 spans midnight."""
        assert is_active(_schedule("22:00", "06:00"), _monday(hour, minute)) is expected

    def test_same_day_start_inclusive(self):
        assert is_active(_schedule(), _monday(8, 0)) is True

    def test_same_day_end_exclusive(self):
        assert is_active(_schedule(), _monday(22, 0)) is False

    def test_before_start(self):
        assert is_active(_schedule(), _monday(7, 59)) is False

    def test_disabled_is_never_active(self):
        assert is_active(_schedule(enabled=False), _monday(12, 0)) is False

    def test_weekdays_inactive_on_saturday(self):
        schedule = _schedule(type=ScheduleType.WEEKDAYS)
        assert is_active(schedule, datetime(2024, 1, 6, 12, 0)) is False
        assert is_active(schedule, _monday(12, 0)) is True

    def test_non_custom_type_ignores_days_field(self):
        """A weekends schedule uses Sat/Sun even if days says otherwise."""
        schedule = _schedule(type=ScheduleType.WEEKENDS, days=[1, 2, 3])
        assert is_active(schedule, datetime(2024, 1, 7, 12, 0)) is True
        assert is_active(schedule, _monday(12, 0)) is False

    def test_custom_days_are_authoritative(self):
        schedule = _schedule(type=ScheduleType.CUSTOM, days=[1, 3])
        assert is_active(schedule, _monday(12, 0)) is True
        assert is_active(schedule, datetime(2024, 1, 2, 12, 0)) is False

    def test_malformed_time_is_inactive(self):
        assert is_active(_schedule(start="8am"), _monday(12, 0)) is False

    def test_equal_start_and_end_is_never_active(self):
        schedule = _schedule("10:00", "10:00")
        assert is_active(schedule, _monday(10, 0)) is False


class TestNextChange:
    """Next transition instant."""

    def test_disabled_returns_none(self):
        assert next_change(_schedule(enabled=False), _monday(12, 0)) is None

    def test_active_same_day_returns_end(self):
        assert next_change(_schedule(), _monday(10, 0)) == _monday(22, 0)

    def test_active_overnight_after_start_returns_next_morning(self):
        result = next_change(_schedule("22:00", "06:00"), _monday(23, 0))
        assert result == datetime(2024, 1, 2, 6, 0)

    def test_active_overnight_before_end_returns_same_morning(self):
        result = next_change(_schedule("22:00", "06:00"), _monday(5, 0))
        assert result == _monday(6, 0)

    def test_inactive_before_start_returns_today_start(self):
        assert next_change(_schedule(), _monday(7, 0)) == _monday(8, 0)

    def test_inactive_after_end_returns_tomorrow_start(self):
        result = next_change(_schedule(), _monday(22, 30))
        assert result == datetime(2024, 1, 2, 8, 0)

    def test_weekdays_friday_night_skips_weekend(self):
        schedule = _schedule(type=ScheduleType.WEEKDAYS)
        result = next_change(schedule, datetime(2024, 1, 5, 23, 0))
        assert result == datetime(2024, 1, 8, 8, 0)

    def test_single_custom_day_already_passed_rolls_to_next_week(self):
        schedule = _schedule(type=ScheduleType.CUSTOM, days=[1])
        result = next_change(schedule, _monday(23, 0))
        assert result == datetime(2024, 1, 8, 8, 0)

    def test_empty_custom_days_returns_none(self):
        schedule = _schedule(type=ScheduleType.CUSTOM, days=[])
        assert next_change(schedule, _monday(12, 0)) is None

    @pytest.mark.parametrize(
        "start,end,schedule_type",
        [
            ("08:00", "22:00", ScheduleType.DAILY),
            ("22:00", "06:00", ScheduleType.DAILY),
            ("00:00", "23:59", ScheduleType.WEEKDAYS),
            ("23:30", "00:15", ScheduleType.WEEKENDS),
        ],
    )
    def test_always_strictly_after_now(self, start, end, schedule_type):
        schedule = _schedule(start, end, type=schedule_type)
        now = datetime(2024, 1, 5, 0, 0, 30)
        for _ in range(0, 3 * 24 * 60, 7):
            result = next_change(schedule, now)
            assert result is not None
            assert result > now
            now += timedelta(minutes=7)


class TestParsingAndDescriptions:
    def test_parse_time(self):
        assert parse_time("00:00") == 0
        assert parse_time("23:59") == 1439

    @pytest.mark.parametrize("value", ["24:00", "12:60", "7:00", "", "noon"])
    def test_parse_time_rejects_invalid(self, value):
        with pytest.raises(ValueError):
            parse_time(value)
        assert is_valid_time(value) is False

    def test_is_valid_time_rejects_non_strings(self):
        assert is_valid_time(800) is False

    def test_describe_schedule(self):
        assert describe_schedule(_schedule("22:00", "06:00")) == "Daily 22:00-06:00"
        assert (
            describe_schedule(_schedule(type=ScheduleType.CUSTOM, days=[3, 1]))
            == "Custom (Mon, Wed) 08:00-22:00"
        )
        assert describe_schedule(_schedule(enabled=False)).endswith("(disabled)")

    def test_describe_settings(self):
        assert describe_settings(PolicySettings()) == "All allowed"
        assert describe_settings(ALL_BLOCKED) == "All BLOCKED"
        partial = PolicySettings(block_recording=True, block_streaming=True)
        assert describe_settings(partial) == "BLOCKED: Recording, Streaming"
