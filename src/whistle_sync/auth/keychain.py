"""Secure password storage using the system keychain."""

import logging
from typing import Optional

import keyring
from keyring.errors import KeyringError, PasswordDeleteError

__all__ = ["KeychainManager"]

logger = logging.getLogger(__name__)

SERVICE_NAME = "Whistle Sync"


class KeychainManager:
    """Stores the Whistle account password in the system keychain.

    Entries are keyed by the account's username (e-mail address), so the
    config file never has to hold the password.
    """

    def __init__(self, service_name: str = SERVICE_NAME):
        """Initialize keychain manager.

        Args:
            service_name: Service name for keychain entries
        """
        self.service_name = service_name

    def store(self, username: str, password: str) -> bool:
        """Store the password for ``username``.

        Returns:
            True if stored successfully
        """
        try:
            keyring.set_password(self.service_name, username, password)
            logger.info(f"Password stored for {username}")
            return True
        except KeyringError as e:
            logger.error(f"Failed to store password: {e}")
            return False

    def load(self, username: str) -> Optional[str]:
        """Load the password for ``username``.

        Returns:
            The password if found, None otherwise
        """
        try:
            return keyring.get_password(self.service_name, username) or None
        except KeyringError as e:
            logger.error(f"Failed to load password: {e}")
            return None

    def delete(self, username: str) -> bool:
        """Delete the stored password.

        Returns:
            True if deleted (or didn't exist)
        """
        try:
            keyring.delete_password(self.service_name, username)
            logger.info("Password deleted")
            return True
        except PasswordDeleteError:
            # Password didn't exist
            return True
        except KeyringError as e:
            logger.error(f"Failed to delete password: {e}")
            return False
