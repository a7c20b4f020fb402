"""Refresh engine - polls Whistle for every binding and publishes the values."""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Callable, Optional

from .extractors import (
    ExtractContext,
    ExtractorRegistry,
    UnknownCommandError,
    UnknownParameterError,
)
from .http_client import WhistleClientError
from .models import BindingRecord
from .protocols import (
    BindingRegistryProtocol,
    MetricValue,
    PublisherProtocol,
    TokenProviderProtocol,
    WhistleClientProtocol,
)

__all__ = ["RefreshEngine", "RefreshOutcome", "RefreshStats"]

logger = logging.getLogger(__name__)


class RefreshOutcome:
    """What happened to one binding during a refresh."""

    PUBLISHED = "published"
    NO_DATA = "no_data"
    SKIPPED = "skipped"  # unknown command / parameter
    FAILED = "failed"


@dataclass
class RefreshStats:
    """Statistics from a refresh cycle."""

    bindings: int = 0
    published: int = 0
    no_data: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    def record(self, outcome: str) -> None:
        self.bindings += 1
        if outcome == RefreshOutcome.PUBLISHED:
            self.published += 1
        elif outcome == RefreshOutcome.NO_DATA:
            self.no_data += 1
        elif outcome == RefreshOutcome.SKIPPED:
            self.skipped += 1
        else:
            self.failed += 1


class RefreshEngine:
    """Dispatches each binding to its extractor and publishes the result.

    Failures are contained to the binding that caused them: a binding whose
    refresh fails stays registered and is tried again next cycle. Bindings
    in a cycle are refreshed one after the other.
    """

    def __init__(
        self,
        client: WhistleClientProtocol,
        auth: TokenProviderProtocol,
        registry: BindingRegistryProtocol,
        publisher: PublisherProtocol,
        extractors: Optional[ExtractorRegistry] = None,
        now: Optional[Callable[[], datetime]] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.client = client
        self.auth = auth
        self.registry = registry
        self.publisher = publisher
        self.extractors = extractors or ExtractorRegistry.default()
        self._now = now or (lambda: datetime.now(timezone.utc))
        self._today = today or date.today

    def refresh_all(self) -> RefreshStats:
        """Run one refresh cycle over every registered binding."""
        stats = RefreshStats()
        records = self.registry.snapshot()
        if not records:
            logger.warning(
                "There is no existing Whistle binding configuration => refresh cycle aborted!"
            )
            return stats

        logger.debug(f"Refresh bindings {[r.binding_name for r in records]}")
        for record in records:
            outcome = self._refresh(record, stats)
            stats.record(outcome)

        logger.info(
            f"Refresh complete: {stats.published} published, {stats.no_data} without data, "
            f"{stats.skipped} skipped, {stats.failed} failed"
        )
        return stats

    def refresh_binding(self, binding_name: str) -> str:
        """Refresh a single binding now.

        Returns:
            One of the RefreshOutcome values
        """
        record = self.registry.get(binding_name)
        if record is None:
            logger.debug(f"No binding named '{binding_name}', nothing to refresh")
            return RefreshOutcome.SKIPPED
        return self._refresh(record, RefreshStats())

    def binding_changed(self, binding_name: str) -> str:
        """Handle a binding configuration change from the host.

        The new binding is refreshed at once and published when it yields a
        value, so its item does not stay empty until the next cycle.
        """
        logger.debug(f"bindingChanged - '{binding_name}'")
        return self.refresh_binding(binding_name)

    def _refresh(self, record: BindingRecord, stats: RefreshStats) -> str:
        """Refresh one binding, containing every failure."""
        name = record.binding_name
        logger.debug(f"Update item '{name}'")
        try:
            value = self._extract(record)
        except UnknownCommandError as e:
            logger.debug(f"{e} for binding '{name}'")
            return RefreshOutcome.SKIPPED
        except UnknownParameterError as e:
            logger.warning(f"{e} for binding '{name}'")
            return RefreshOutcome.SKIPPED
        except WhistleClientError as e:
            logger.warning(f"Failed to refresh binding '{name}': {e}")
            stats.errors.append(f"{name}: {e}")
            return RefreshOutcome.FAILED
        except Exception as e:
            logger.exception(f"Unexpected error refreshing binding '{name}': {e}")
            stats.errors.append(f"{name}: {e}")
            return RefreshOutcome.FAILED

        if value is None:
            logger.debug(
                f"No data for binding '{name}' ({record.command}:{record.parameter})"
            )
            return RefreshOutcome.NO_DATA

        self._publish(name, value)
        return RefreshOutcome.PUBLISHED

    def _extract(self, record: BindingRecord) -> Optional[MetricValue]:
        # Lookup first so unknown commands never touch the network
        extractor = self.extractors.lookup(record.command, record.parameter)
        context = ExtractContext(
            client=self.client,
            token=self.auth.ensure_token(),
            dog_id=record.dog_id,
            device_id=record.device_id,
            command=record.command,
            parameter=record.parameter,
            now=self._now,
            today=self._today,
        )
        return extractor.extract(context)

    def _publish(self, binding_name: str, value: MetricValue) -> None:
        logger.debug(f"Publishing '{value}' to '{binding_name}'")
        self.publisher.post_update(binding_name, value)
