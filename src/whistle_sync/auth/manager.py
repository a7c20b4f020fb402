"""Auth token lifecycle against the Whistle API."""

import logging

from ..sync.http_client import WhistleAuthError
from ..sync.protocols import WhistleClientProtocol
from .context import AuthContext

__all__ = ["AuthManager"]

logger = logging.getLogger(__name__)


class AuthManager:
    """Acquires the auth token lazily and caches it in the AuthContext.

    There is no expiry handling: once a token is cached it is returned as
    is until ``invalidate`` is called or the process restarts.
    """

    def __init__(self, client: WhistleClientProtocol, context: AuthContext):
        """Initialize auth manager.

        Args:
            client: Whistle API client used for the token exchange
            context: Shared credential / token state
        """
        self.client = client
        self.context = context

    def ensure_token(self) -> str:
        """Return the cached token, exchanging credentials for one if needed.

        Blocks until credentials are configured.

        Raises:
            WhistleAuthError: If the API rejects the credentials
            WhistleShutdownError: If the context shuts down while waiting
        """
        token = self.context.token
        if token:
            return token

        credentials = self.context.wait_for_credentials()

        with self.context.token_lock:
            # Another task may have finished an exchange while we waited
            token = self.context.token
            if token:
                return token

            logger.debug(f"Requesting auth token for '{credentials.username}'")
            try:
                token = self.client.exchange_token(
                    credentials.username, credentials.password
                )
            except WhistleAuthError:
                self.context.clear_token()
                raise
            self.context.store_token(token)
            logger.info(f"Auth token acquired for '{credentials.username}'")
            return token

    def invalidate(self) -> None:
        """Drop the cached token so the next call performs a new exchange."""
        self.context.clear_token()
        logger.info("Auth token invalidated")
