"""Data model for Whistle API payloads and resolved bindings."""

from dataclasses import dataclass
from typing import Any, Optional

__all__ = [
    "BindingConfig",
    "BindingConfigError",
    "BindingRecord",
    "DailyStat",
    "DeviceInfo",
    "Dog",
    "GoalStats",
]


def _as_int(value: Any) -> int:
    """Convert a JSON number (or numeric string) to int, truncating floats."""
    if value is None or isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    if isinstance(value, (int, float)):
        return int(value)
    return int(float(str(value)))


def _optional_int(data: dict, key: str) -> Optional[int]:
    value = data.get(key)
    return None if value is None else _as_int(value)


@dataclass
class Dog:
    """A dog visible to the account (element of ``dogs.json``)."""

    id: str
    name: str
    device_id: Optional[str]

    @classmethod
    def from_dict(cls, data: dict) -> "Dog":
        """Create Dog from API response."""
        device_id = data.get("device_id")
        return cls(
            id=str(data["id"]),
            name=str(data.get("name", "")),
            device_id=None if device_id is None else str(device_id),
        )


@dataclass
class DailyStat:
    """One day of activity from the dailies or daily_totals endpoints.

    The two endpoints return different subsets of fields, so every field
    is optional here; extractors check for the ones they need.
    """

    day_number: Optional[int] = None
    minutes_active: Optional[int] = None
    minutes_rest: Optional[int] = None
    activity_goal: Optional[int] = None

    @classmethod
    def from_dict(cls, data: dict) -> "DailyStat":
        """Create DailyStat from API response."""
        return cls(
            day_number=_optional_int(data, "day_number"),
            minutes_active=_optional_int(data, "minutes_active"),
            minutes_rest=_optional_int(data, "minutes_rest"),
            activity_goal=_optional_int(data, "activity_goal"),
        )


@dataclass
class GoalStats:
    """Goal streaks for a dog."""

    current_streak: int
    longest_streak: int

    @classmethod
    def from_dict(cls, data: dict) -> "GoalStats":
        """Create GoalStats from API response."""
        return cls(
            current_streak=_as_int(data["current_streak"]),
            longest_streak=_as_int(data["longest_streak"]),
        )


@dataclass
class DeviceInfo:
    """Tracker device information.

    ``battery_level`` is kept as the raw string; it is parsed when a
    battery reading is requested.
    """

    battery_level: Optional[str]
    last_check_in: Optional[str]

    @classmethod
    def from_dict(cls, data: dict) -> "DeviceInfo":
        """Create DeviceInfo from API response."""
        battery = data.get("battery_level")
        last_check_in = data.get("last_check_in")
        return cls(
            battery_level=None if battery is None else str(battery),
            last_check_in=None if last_check_in is None else str(last_check_in),
        )


class BindingConfigError(ValueError):
    """Binding configuration string is malformed."""

    pass


@dataclass(frozen=True)
class BindingConfig:
    """A parsed ``<dogID>:<command>:<parameter>`` binding string."""

    dog_id: str
    command: str
    parameter: str

    @classmethod
    def parse(cls, config_string: str) -> "BindingConfig":
        """Parse a binding configuration string.

        Examples: ``100000:device:battery``, ``100000:activity:7``,
        ``100000:goals:current``.

        Raises:
            BindingConfigError: Unless the string has exactly three non-empty parts
        """
        parts = [part.strip() for part in config_string.strip().split(":")]
        if len(parts) != 3:
            raise BindingConfigError(
                f"whistle binding configuration must contain three parts: {config_string!r}"
            )
        if not all(parts):
            raise BindingConfigError(
                f"whistle binding configuration has an empty part: {config_string!r}"
            )
        return cls(dog_id=parts[0], command=parts[1], parameter=parts[2])


@dataclass(frozen=True)
class BindingRecord:
    """A binding whose dog has been resolved to a tracker device."""

    binding_name: str
    dog_id: str
    device_id: str
    command: str
    parameter: str

    @classmethod
    def from_config(
        cls, binding_name: str, config: BindingConfig, device_id: str
    ) -> "BindingRecord":
        if not device_id:
            raise ValueError(f"Binding '{binding_name}' has no device id")
        return cls(
            binding_name=binding_name,
            dog_id=config.dog_id,
            device_id=device_id,
            command=config.command,
            parameter=config.parameter,
        )
