"""Tests for metric extractors and the extractor registry."""

import pytest
from datetime import date, datetime, timezone
from unittest.mock import Mock

from whistle_sync.sync.extractors import (
    DAYS,
    BatteryExtractor,
    DailyActivityExtractor,
    DailyAverageExtractor,
    ExtractContext,
    ExtractorRegistry,
    GoalStreakExtractor,
    LastCheckInExtractor,
    UnknownCommandError,
    UnknownParameterError,
)
from whistle_sync.sync.http_client import WhistleParseError
from whistle_sync.sync.models import DailyStat, DeviceInfo, GoalStats

NOW = datetime(2026, 10, 19, 15, 30, tzinfo=timezone.utc)
TODAY = date(2026, 10, 19)
TODAY_NUMBER = (date(2026, 10, 19) - date(1970, 1, 1)).days


def make_context(client, command, parameter):
    return ExtractContext(
        client=client,
        token="tok-1",
        dog_id="42",
        device_id="dev-1",
        command=command,
        parameter=parameter,
        now=lambda: NOW,
        today=lambda: TODAY,
    )


class TestDailyActivityExtractor:
    """Tests for activity / target."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        self.client.get_dailies.return_value = [
            DailyStat(day_number=TODAY_NUMBER - 2, minutes_active=30, activity_goal=60),
            DailyStat(day_number=TODAY_NUMBER - 1, minutes_active=75, activity_goal=60),
            DailyStat(day_number=TODAY_NUMBER, minutes_active=12, activity_goal=65),
        ]

    def test_activity_returns_minutes_active(self):
        """activity surfaces minutes_active of the matching day."""
        value = DailyActivityExtractor(0).extract(make_context(self.client, "activity", "1"))

        assert value == 75
        self.client.get_dailies.assert_called_once_with("42", 2, "tok-1")

    def test_target_returns_goal_of_same_day(self):
        """target surfaces activity_goal of the same element."""
        value = DailyActivityExtractor(1).extract(make_context(self.client, "target", "1"))

        assert value == 60

    def test_today_is_day_zero(self):
        """Parameter 0 selects today's entry with count=1."""
        value = DailyActivityExtractor(0).extract(make_context(self.client, "activity", "0"))

        assert value == 12
        self.client.get_dailies.assert_called_once_with("42", 1, "tok-1")

    def test_no_matching_day_returns_none(self):
        """A missing day is 'no data', not an error."""
        value = DailyActivityExtractor(0).extract(make_context(self.client, "activity", "7"))

        assert value is None

    def test_missing_field_in_match_is_parse_error(self):
        """A matching entry without minutes_active is a parse failure."""
        self.client.get_dailies.return_value = [
            DailyStat(day_number=TODAY_NUMBER, activity_goal=65),
        ]

        with pytest.raises(WhistleParseError):
            DailyActivityExtractor(0).extract(make_context(self.client, "activity", "0"))

    def test_non_numeric_parameter(self):
        """A parameter that is not a day count is an unknown parameter."""
        with pytest.raises(UnknownParameterError):
            DailyActivityExtractor(0).extract(make_context(self.client, "activity", "week"))
        self.client.get_dailies.assert_not_called()


class TestDailyAverageExtractor:
    """Tests for averageactive / averagerest."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        # Seven complete days plus today's partial day
        self.client.get_daily_totals.return_value = [
            DailyStat(minutes_active=active, minutes_rest=rest)
            for active, rest in zip(
                [10, 20, 30, 40, 50, 60, 70, 80],
                [700, 710, 720, 730, 740, 750, 760, 9999],
            )
        ]

    def test_average_active_excludes_today(self):
        """Sum of the first seven elements divided by seven."""
        value = DailyAverageExtractor(0).extract(make_context(self.client, "averageactive", "7"))

        assert value == 40
        self.client.get_daily_totals.assert_called_once_with("42", "2026-10-12", "tok-1")

    def test_average_rest(self):
        """averagerest averages minutes_rest the same way."""
        value = DailyAverageExtractor(1).extract(make_context(self.client, "averagerest", "7"))

        assert value == (700 + 710 + 720 + 730 + 740 + 750 + 760) // 7

    def test_short_history_still_divides_by_requested_days(self):
        """Fewer elements than requested still divide by the full window."""
        self.client.get_daily_totals.return_value = [
            DailyStat(minutes_active=30, minutes_rest=0),
            DailyStat(minutes_active=40, minutes_rest=0),
            DailyStat(minutes_active=99, minutes_rest=0),
        ]

        value = DailyAverageExtractor(0).extract(make_context(self.client, "averageactive", "7"))

        assert value == (30 + 40) // 7

    def test_integer_truncation(self):
        """Averages are truncated, not rounded."""
        self.client.get_daily_totals.return_value = [
            DailyStat(minutes_active=5, minutes_rest=0),
            DailyStat(minutes_active=4, minutes_rest=0),
            DailyStat(minutes_active=0, minutes_rest=0),
        ]

        value = DailyAverageExtractor(0).extract(make_context(self.client, "averageactive", "2"))

        assert value == 4

    def test_empty_response_averages_to_zero(self):
        """No elements means zero averages."""
        self.client.get_daily_totals.return_value = []

        value = DailyAverageExtractor(0).extract(make_context(self.client, "averageactive", "3"))

        assert value == 0

    def test_zero_days_rejected(self):
        """A zero-day window is an unknown parameter."""
        with pytest.raises(UnknownParameterError):
            DailyAverageExtractor(0).extract(make_context(self.client, "averageactive", "0"))


class TestDeviceExtractors:
    """Tests for device battery / last check-in."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        self.client.get_device.return_value = DeviceInfo(
            battery_level="87.5", last_check_in="2026-10-19T08:00:00Z"
        )

    def test_battery_formatted_two_decimals(self):
        """Battery level is a string with two decimals."""
        value = BatteryExtractor().extract(make_context(self.client, "device", "battery"))

        assert value == "87.50"
        self.client.get_device.assert_called_once_with("dev-1", "tok-1")

    def test_battery_not_numeric(self):
        """A battery level that is not a number is a parse failure."""
        self.client.get_device.return_value = DeviceInfo(battery_level="n/a", last_check_in=None)

        with pytest.raises(WhistleParseError):
            BatteryExtractor().extract(make_context(self.client, "device", "battery"))

    def test_last_check_in(self):
        """Last check-in is passed through unchanged."""
        value = LastCheckInExtractor().extract(make_context(self.client, "device", "lastcheckin"))

        assert value == "2026-10-19T08:00:00Z"


class TestGoalStreakExtractor:
    """Tests for goals:current / goals:longest."""

    def setup_method(self):
        """Set up test fixtures."""
        self.client = Mock()
        self.client.get_goals.return_value = GoalStats(current_streak=5, longest_streak=30)

    def test_current(self):
        value = GoalStreakExtractor("current_streak").extract(
            make_context(self.client, "goals", "current")
        )
        assert value == 5

    def test_longest(self):
        value = GoalStreakExtractor("longest_streak").extract(
            make_context(self.client, "goals", "longest")
        )
        assert value == 30


class TestExtractorRegistry:
    """Tests for ExtractorRegistry dispatch."""

    def setup_method(self):
        """Set up test fixtures."""
        self.registry = ExtractorRegistry.default()

    def test_default_commands(self):
        """Every binding command is registered."""
        assert self.registry.commands() == [
            "activity",
            "averageactive",
            "averagerest",
            "device",
            "goals",
            "target",
        ]

    def test_day_commands_accept_any_day_count(self):
        """Day-count commands resolve through the days parameter class."""
        assert self.registry.parameter_class("activity", "7") == DAYS
        assert isinstance(self.registry.lookup("activity", "7"), DailyActivityExtractor)
        assert isinstance(self.registry.lookup("target", "30"), DailyActivityExtractor)
        assert isinstance(self.registry.lookup("averagerest", "14"), DailyAverageExtractor)

    def test_literal_parameters(self):
        """device and goals dispatch on the literal parameter."""
        assert isinstance(self.registry.lookup("device", "battery"), BatteryExtractor)
        assert self.registry.lookup("goals", "longest").field_name == "longest_streak"

    def test_unknown_command(self):
        with pytest.raises(UnknownCommandError):
            self.registry.lookup("weight", "current")

    def test_unknown_parameter(self):
        with pytest.raises(UnknownParameterError):
            self.registry.lookup("goals", "average")

    def test_invalid_day_count(self):
        """Non-numeric and out-of-range day counts are rejected at lookup."""
        with pytest.raises(UnknownParameterError):
            self.registry.lookup("activity", "seven")
        with pytest.raises(UnknownParameterError):
            self.registry.lookup("activity", "-1")
        with pytest.raises(UnknownParameterError):
            self.registry.lookup("averageactive", "0")

    def test_last_check_in_not_wired_by_default(self):
        """device:lastcheckin needs explicit registration."""
        with pytest.raises(UnknownParameterError):
            self.registry.lookup("device", "lastcheckin")

        self.registry.register("device", "lastcheckin", LastCheckInExtractor())
        assert isinstance(self.registry.lookup("device", "lastcheckin"), LastCheckInExtractor)
