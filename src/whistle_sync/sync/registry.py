"""Registry of resolved bindings, keyed by binding name."""

import logging
import threading
from typing import Iterator, Optional

from .models import BindingRecord

__all__ = ["BindingRegistry"]

logger = logging.getLogger(__name__)


class BindingRegistry:
    """Thread-safe store of BindingRecords.

    Written by binding resolution and removal, read by the refresh engine.
    Readers get a snapshot so a refresh cycle never sees the registry
    change underneath it.
    """

    def __init__(self):
        self._records: dict[str, BindingRecord] = {}
        self._lock = threading.Lock()

    def add(self, record: BindingRecord) -> None:
        """Add or replace the binding named ``record.binding_name``."""
        with self._lock:
            replaced = record.binding_name in self._records
            self._records[record.binding_name] = record
        action = "Replaced" if replaced else "Added"
        logger.debug(
            f"{action} binding '{record.binding_name}' - dogID: '{record.dog_id}' "
            f"deviceID: '{record.device_id}' command: '{record.command}' "
            f"parameter: '{record.parameter}'"
        )

    def remove(self, binding_name: str) -> Optional[BindingRecord]:
        """Remove a binding; returns the removed record, if any."""
        with self._lock:
            record = self._records.pop(binding_name, None)
        if record:
            logger.debug(f"Removed binding '{binding_name}'")
        return record

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def get(self, binding_name: str) -> Optional[BindingRecord]:
        with self._lock:
            return self._records.get(binding_name)

    def names(self) -> list[str]:
        with self._lock:
            return list(self._records)

    def snapshot(self) -> list[BindingRecord]:
        """All records in insertion order."""
        with self._lock:
            return list(self._records.values())

    def __contains__(self, binding_name: object) -> bool:
        with self._lock:
            return binding_name in self._records

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def __iter__(self) -> Iterator[BindingRecord]:
        return iter(self.snapshot())
