"""Metric extractors - turn Whistle API payloads into published values.

Each binding command maps to one extractor. An extractor fetches what it
needs through the client and returns a value, or None when the API has no
data for the requested window. Transport and payload problems propagate as
WhistleClientError subclasses.

Dispatch goes through ExtractorRegistry, keyed by ``(command,
parameter class)``. Commands that take a day count register under the
``days`` parameter class; the others register each literal parameter.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Protocol, runtime_checkable

from .http_client import WhistleParseError
from .models import DailyStat
from .protocols import MetricValue, WhistleClientProtocol

__all__ = [
    "BatteryExtractor",
    "DailyActivityExtractor",
    "DailyAverageExtractor",
    "ExtractContext",
    "Extractor",
    "ExtractorRegistry",
    "GoalStreakExtractor",
    "LastCheckInExtractor",
    "UnknownCommandError",
    "UnknownParameterError",
    "DAYS",
]

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400

# Parameter class for commands whose parameter is a day count
DAYS = "days"


class UnknownCommandError(LookupError):
    """No extractor is registered for the binding's command."""

    def __init__(self, command: str):
        self.command = command
        super().__init__(f"Unknown command '{command}'")


class UnknownParameterError(LookupError):
    """The command exists but does not accept the binding's parameter."""

    def __init__(self, command: str, parameter: str):
        self.command = command
        self.parameter = parameter
        super().__init__(f"Unknown parameter '{parameter}' for command '{command}'")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ExtractContext:
    """Everything an extractor needs for one binding refresh."""

    client: WhistleClientProtocol
    token: str
    dog_id: str
    device_id: str
    command: str
    parameter: str
    now: Callable[[], datetime] = field(default=_utc_now)
    today: Callable[[], date] = field(default=date.today)

    def days(self, minimum: int = 0) -> int:
        """The parameter as a day count.

        Raises:
            UnknownParameterError: If it is not an integer >= ``minimum``
        """
        try:
            days = int(self.parameter)
        except (TypeError, ValueError):
            raise UnknownParameterError(self.command, self.parameter) from None
        if days < minimum:
            raise UnknownParameterError(self.command, self.parameter)
        return days


@runtime_checkable
class Extractor(Protocol):
    """Turns one binding's API data into a value."""

    def extract(self, context: ExtractContext) -> Optional[MetricValue]: ...


def _required(stat: DailyStat, name: str, endpoint: str) -> int:
    value = getattr(stat, name)
    if value is None:
        raise WhistleParseError(f"Missing '{name}' in {endpoint} element")
    return value


def fetch_daily_activity(context: ExtractContext) -> Optional[tuple[int, int]]:
    """Return ``(minutes_active, activity_goal)`` for the day ``parameter`` days ago.

    Today is day 0. Returns None if the API has no entry for that day.
    """
    days = context.days(minimum=DailyActivityExtractor.min_days)
    day_number = int(context.now().timestamp()) // SECONDS_PER_DAY - days
    logger.debug(f"Activity for days since Epoch: {day_number}")

    for stat in context.client.get_dailies(context.dog_id, days + 1, context.token):
        if _required(stat, "day_number", "dailies") == day_number:
            activity = (
                _required(stat, "minutes_active", "dailies"),
                _required(stat, "activity_goal", "dailies"),
            )
            logger.debug(f"Active: {activity[0]}, Goal: {activity[1]}")
            return activity
    return None


def fetch_daily_averages(context: ExtractContext) -> tuple[int, int]:
    """Return the ``(active, rest)`` minutes averaged over the last ``parameter`` days.

    The last element of the response is today's partial day and is left out
    of the sums. Each sum is floor-divided by the requested day count, not
    by the number of elements summed.
    """
    days = context.days(minimum=DailyAverageExtractor.min_days)
    from_date = (context.today() - timedelta(days=days)).isoformat()
    logger.debug(f"fromdate: {from_date}")

    stats = context.client.get_daily_totals(context.dog_id, from_date, context.token)
    total_active = 0
    total_rest = 0
    for stat in stats[:-1]:
        active = _required(stat, "minutes_active", "daily_totals")
        rest = _required(stat, "minutes_rest", "daily_totals")
        logger.debug(f"Active / Rest, '{active}' / '{rest}'")
        total_active += active
        total_rest += rest

    averages = (total_active // days, total_rest // days)
    logger.debug(f"Active: {averages[0]}, Rest: {averages[1]}")
    return averages


class DailyActivityExtractor:
    """``activity`` (index 0, minutes active) and ``target`` (index 1, goal)."""

    min_days = 0

    def __init__(self, index: int):
        self.index = index

    def extract(self, context: ExtractContext) -> Optional[MetricValue]:
        activity = fetch_daily_activity(context)
        if activity is None:
            return None
        return activity[self.index]


class DailyAverageExtractor:
    """``averageactive`` (index 0) and ``averagerest`` (index 1)."""

    min_days = 1

    def __init__(self, index: int):
        self.index = index

    def extract(self, context: ExtractContext) -> Optional[MetricValue]:
        return fetch_daily_averages(context)[self.index]


class BatteryExtractor:
    """``device:battery`` - battery level formatted to two decimals."""

    def extract(self, context: ExtractContext) -> Optional[MetricValue]:
        device = context.client.get_device(context.device_id, context.token)
        try:
            level = float(device.battery_level)
        except (TypeError, ValueError) as e:
            raise WhistleParseError(
                f"Invalid battery_level {device.battery_level!r}"
            ) from e
        battery = f"{level:.2f}"
        logger.debug(f"Battery Level: {battery}")
        return battery


class LastCheckInExtractor:
    """``device:lastcheckin`` - last check-in timestamp, passed through as text."""

    def extract(self, context: ExtractContext) -> Optional[MetricValue]:
        device = context.client.get_device(context.device_id, context.token)
        if device.last_check_in is None:
            raise WhistleParseError("Missing 'last_check_in' in device payload")
        logger.debug(f"Last Check In: {device.last_check_in}")
        return device.last_check_in


class GoalStreakExtractor:
    """``goals:current`` and ``goals:longest``."""

    def __init__(self, field_name: str):
        self.field_name = field_name

    def extract(self, context: ExtractContext) -> Optional[MetricValue]:
        goals = context.client.get_goals(context.dog_id, context.token)
        streak = getattr(goals, self.field_name)
        logger.debug(f"Goal streak ({self.field_name}): {streak}")
        return streak


class ExtractorRegistry:
    """Maps ``(command, parameter class)`` to an extractor."""

    def __init__(self):
        self._extractors: dict[tuple[str, str], Extractor] = {}
        self._commands: set[str] = set()

    def register(self, command: str, parameter_class: str, extractor: Extractor) -> None:
        """Register (or replace) the extractor for a command / parameter class."""
        self._extractors[(command, parameter_class)] = extractor
        self._commands.add(command)

    def commands(self) -> list[str]:
        return sorted(self._commands)

    def parameter_class(self, command: str, parameter: str) -> str:
        if (command, DAYS) in self._extractors:
            return DAYS
        return parameter

    def lookup(self, command: str, parameter: str) -> Extractor:
        """Find the extractor for a binding.

        Raises:
            UnknownCommandError: If nothing is registered for the command
            UnknownParameterError: If the command does not take the parameter
        """
        if command not in self._commands:
            raise UnknownCommandError(command)
        parameter_class = self.parameter_class(command, parameter)
        extractor = self._extractors.get((command, parameter_class))
        if extractor is None:
            raise UnknownParameterError(command, parameter)
        if parameter_class == DAYS:
            min_days = getattr(extractor, "min_days", 0)
            try:
                valid = int(parameter) >= min_days
            except (TypeError, ValueError):
                valid = False
            if not valid:
                raise UnknownParameterError(command, parameter)
        return extractor

    @classmethod
    def default(cls) -> "ExtractorRegistry":
        """The dispatch table for every supported binding command.

        ``device:lastcheckin`` is not in it; register LastCheckInExtractor
        explicitly to expose it.
        """
        registry = cls()
        registry.register("activity", DAYS, DailyActivityExtractor(0))
        registry.register("target", DAYS, DailyActivityExtractor(1))
        registry.register("averageactive", DAYS, DailyAverageExtractor(0))
        registry.register("averagerest", DAYS, DailyAverageExtractor(1))
        registry.register("device", "battery", BatteryExtractor())
        registry.register("goals", "current", GoalStreakExtractor("current_streak"))
        registry.register("goals", "longest", GoalStreakExtractor("longest_streak"))
        return registry
