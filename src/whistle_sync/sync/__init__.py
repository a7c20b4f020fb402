"""Sync module - reads the Whistle API and publishes binding values."""

from .http_client import (
    WhistleAuthError,
    WhistleClient,
    WhistleClientError,
    WhistleParseError,
    WhistleStatusError,
)
from .models import BindingConfig, BindingConfigError, BindingRecord
from .protocols import (
    BindingRegistryProtocol,
    MetricValue,
    PublisherProtocol,
    TokenProviderProtocol,
    WhistleClientProtocol,
)
from .registry import BindingRegistry
from .extractors import ExtractorRegistry, UnknownCommandError, UnknownParameterError
from .resolver import BindingResolver, DeviceNotFoundError, DeviceResolver
from .refresh_engine import RefreshEngine, RefreshOutcome, RefreshStats

__all__ = [
    "WhistleClient",
    "WhistleClientError",
    "WhistleAuthError",
    "WhistleStatusError",
    "WhistleParseError",
    "BindingConfig",
    "BindingConfigError",
    "BindingRecord",
    "BindingRegistry",
    "BindingRegistryProtocol",
    "MetricValue",
    "PublisherProtocol",
    "TokenProviderProtocol",
    "WhistleClientProtocol",
    "ExtractorRegistry",
    "UnknownCommandError",
    "UnknownParameterError",
    "BindingResolver",
    "DeviceNotFoundError",
    "DeviceResolver",
    "RefreshEngine",
    "RefreshOutcome",
    "RefreshStats",
]
