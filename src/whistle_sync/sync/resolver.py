"""Dog-to-device resolution and binding setup."""

import logging
from typing import Optional

from .http_client import WhistleClientError
from .models import BindingConfig, BindingConfigError, BindingRecord
from .protocols import TokenProviderProtocol, WhistleClientProtocol
from .registry import BindingRegistry

__all__ = ["BindingResolver", "DeviceNotFoundError", "DeviceResolver"]

logger = logging.getLogger(__name__)


class DeviceNotFoundError(Exception):
    """No dog with the requested id is visible to the account."""

    def __init__(self, dog_id: str):
        self.dog_id = dog_id
        super().__init__(f"Dog '{dog_id}' not found")


class DeviceResolver:
    """Maps a dog id to the id of the tracker it wears."""

    def __init__(self, client: WhistleClientProtocol):
        self.client = client

    def resolve_device_id(self, dog_id: str, token: str) -> str:
        """Scan ``dogs.json`` for ``dog_id`` and return its device id.

        Args:
            dog_id: Dog id from the binding configuration
            token: Auth token

        Returns:
            The device id of the first dog whose id matches exactly

        Raises:
            DeviceNotFoundError: If no dog matches (or the match has no device)
            WhistleClientError: If the dog list cannot be fetched
        """
        logger.debug(f"Looking for DogId: '{dog_id}'")
        for dog in self.client.get_dogs(token):
            logger.info(f"Found DogID: '{dog.id}' / '{dog.name}'")
            if dog.id == dog_id:
                if not dog.device_id:
                    break
                logger.debug(f"Match found: DogId: '{dog_id}', deviceId: '{dog.device_id}'")
                return dog.device_id
        raise DeviceNotFoundError(dog_id)


class BindingResolver:
    """Turns binding configuration strings into registered BindingRecords.

    Resolution needs a token, so it blocks until credentials are configured.
    It runs when bindings are loaded, never on the refresh path.
    """

    def __init__(
        self,
        auth: TokenProviderProtocol,
        device_resolver: DeviceResolver,
        registry: BindingRegistry,
    ):
        self.auth = auth
        self.device_resolver = device_resolver
        self.registry = registry

    def resolve(self, binding_name: str, config_string: str) -> Optional[BindingRecord]:
        """Parse, resolve and register one binding.

        A binding that cannot be resolved is logged and dropped; it is not
        retried until its configuration is loaded again.

        Returns:
            The registered record, or None if the binding was dropped

        Raises:
            BindingConfigError: If the configuration string is malformed
            WhistleShutdownError: If shut down while waiting for credentials
        """
        logger.debug(f"Creating binding for item: '{binding_name}'")
        config = BindingConfig.parse(config_string)

        try:
            token = self.auth.ensure_token()
            device_id = self.device_resolver.resolve_device_id(config.dog_id, token)
        except DeviceNotFoundError:
            logger.error(
                f"Dog '{config.dog_id}' not found. Failed to add binding "
                f"'{binding_name}'; command: '{config.command}' parameter: '{config.parameter}'"
            )
            return None
        except WhistleClientError as e:
            logger.error(f"Failed to resolve binding '{binding_name}': {e}")
            return None

        record = BindingRecord.from_config(binding_name, config, device_id)
        self.registry.add(record)
        logger.debug(
            f"binding configuration dogID: '{record.dog_id}' deviceID: '{record.device_id}' "
            f"command: '{record.command}' parameter: '{record.parameter}'"
        )
        return record

    def resolve_all(self, bindings: dict[str, str]) -> list[BindingRecord]:
        """Resolve every configured binding, skipping malformed ones."""
        records = []
        for binding_name, config_string in bindings.items():
            try:
                record = self.resolve(binding_name, config_string)
            except BindingConfigError as e:
                logger.error(f"Invalid binding '{binding_name}': {e}")
                continue
            if record:
                records.append(record)
        logger.info(f"Resolved {len(records)} of {len(bindings)} bindings")
        return records
