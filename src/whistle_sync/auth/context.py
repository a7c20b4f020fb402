"""Shared credential and token state."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from ..config import DEFAULT_CREDENTIAL_POLL_SECONDS

__all__ = ["AuthContext", "Credentials", "WhistleShutdownError"]

logger = logging.getLogger(__name__)


class WhistleShutdownError(Exception):
    """Raised to a task waiting for credentials when the service shuts down."""

    pass


@dataclass(frozen=True)
class Credentials:
    """Whistle account credentials."""

    username: str
    password: str = field(repr=False)


def _mask(token: Optional[str]) -> str:
    if not token:
        return "<none>"
    return f"{token[:4]}…" if len(token) > 8 else "****"


class AuthContext:
    """Credentials and auth token shared by every binding.

    One instance is created at startup and handed to the auth manager,
    the binding resolver and the refresh engine.

    Each credential field is write-once: the first non-blank value wins and
    later values are ignored. Tasks that need credentials block in
    ``wait_for_credentials`` until both fields are present or the context
    is shut down.
    """

    def __init__(self, poll_seconds: float = DEFAULT_CREDENTIAL_POLL_SECONDS):
        """Initialize the context.

        Args:
            poll_seconds: How often a waiting task wakes up to log that it
                is still waiting
        """
        self.poll_seconds = poll_seconds
        self._username: Optional[str] = None
        self._password: Optional[str] = None
        self._token: Optional[str] = None
        self._shutdown = False
        self._cond = threading.Condition()
        # Held for the whole token exchange so concurrent callers do one exchange
        self.token_lock = threading.Lock()

    # -- credentials ------------------------------------------------------

    def set_credentials(
        self, username: Optional[str] = None, password: Optional[str] = None
    ) -> None:
        """Set credential fields that are still blank."""
        with self._cond:
            if username and username.strip():
                if self._username is None:
                    self._username = username.strip()
                elif self._username != username.strip():
                    logger.warning("Username already set, ignoring new value")
            if password and password.strip():
                if self._password is None:
                    self._password = password
                elif self._password != password:
                    logger.warning("Password already set, ignoring new value")
            if self._has_credentials():
                self._cond.notify_all()

    def _has_credentials(self) -> bool:
        return self._username is not None and self._password is not None

    @property
    def has_credentials(self) -> bool:
        with self._cond:
            return self._has_credentials()

    @property
    def credentials(self) -> Optional[Credentials]:
        with self._cond:
            if not self._has_credentials():
                return None
            return Credentials(self._username, self._password)

    def wait_for_credentials(self) -> Credentials:
        """Block until both username and password are set.

        Raises:
            WhistleShutdownError: If ``shutdown`` is called while waiting
        """
        with self._cond:
            while not self._has_credentials():
                if self._shutdown:
                    raise WhistleShutdownError("Shut down while waiting for credentials")
                logger.info(
                    "Waiting here until we have username / password details from config"
                )
                self._cond.wait(self.poll_seconds)
            return Credentials(self._username, self._password)

    def shutdown(self) -> None:
        """Release every task blocked in ``wait_for_credentials``."""
        with self._cond:
            self._shutdown = True
            self._cond.notify_all()

    # -- token ------------------------------------------------------------

    @property
    def token(self) -> Optional[str]:
        with self._cond:
            return self._token

    def store_token(self, token: str) -> None:
        with self._cond:
            self._token = token
        logger.debug(f"got authToken '{_mask(token)}'")

    def clear_token(self) -> None:
        with self._cond:
            self._token = None
