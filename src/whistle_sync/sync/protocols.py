"""Protocol types for the refresh engine's collaborators.

Defines the interfaces that the resolver, extractors and RefreshEngine
require, enabling easier testing and looser coupling with the host.
"""

from typing import Optional, Protocol, Union, runtime_checkable

from .models import BindingRecord, DailyStat, DeviceInfo, Dog, GoalStats

# What an extractor hands to the publisher
MetricValue = Union[int, float, str]


@runtime_checkable
class WhistleClientProtocol(Protocol):
    """Interface for reading data from the Whistle API."""

    def exchange_token(self, email: str, password: str) -> str: ...

    def get_dogs(self, token: str) -> list[Dog]: ...

    def get_dailies(self, dog_id: str, count: int, token: str) -> list[DailyStat]: ...

    def get_daily_totals(
        self, dog_id: str, start_date: str, token: str
    ) -> list[DailyStat]: ...

    def get_goals(self, dog_id: str, token: str) -> GoalStats: ...

    def get_device(self, device_id: str, token: str) -> DeviceInfo: ...


@runtime_checkable
class TokenProviderProtocol(Protocol):
    """Interface for obtaining the shared auth token."""

    def ensure_token(self) -> str: ...


@runtime_checkable
class PublisherProtocol(Protocol):
    """Interface for handing values to the host's item/event framework."""

    def post_update(self, binding_name: str, value: MetricValue) -> None: ...


@runtime_checkable
class BindingRegistryProtocol(Protocol):
    """Read side of the binding registry used by the refresh engine."""

    def get(self, binding_name: str) -> Optional[BindingRecord]: ...

    def snapshot(self) -> list[BindingRecord]: ...

    def __len__(self) -> int: ...
