"""HTTP client for the Whistle API."""

import logging
from typing import Any, Callable, Optional, TypeVar
from urllib.parse import urlencode

import requests

from ..config import DEFAULT_API_URL, DEFAULT_REQUEST_TIMEOUT
from .models import DailyStat, DeviceInfo, Dog, GoalStats

__all__ = [
    "WhistleClient",
    "WhistleClientError",
    "WhistleAuthError",
    "WhistleStatusError",
    "WhistleParseError",
    "APP_ID",
    "USER_AGENT",
]

logger = logging.getLogger(__name__)

APP_ID = "com.whistle.WhistleApp"
USER_AGENT = "WhistleApp/102 (iPhone; iOS 7.0.4; Scale/2.00)"
AUTH_HEADER = "X-Whistle-AuthToken"

T = TypeVar("T")


class WhistleClientError(Exception):
    """Whistle client error."""

    pass


class WhistleAuthError(WhistleClientError):
    """Username / password combination was rejected."""

    pass


class WhistleStatusError(WhistleClientError):
    """The API answered with a non-200 status code."""

    def __init__(self, status_code: int, endpoint: str):
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(
            f"Failed to get requested data from '{endpoint}', response code: {status_code}"
        )


class WhistleParseError(WhistleClientError):
    """The API answered with a payload we could not interpret."""

    pass


class WhistleClient:
    """Client for the Whistle REST API.

    Handles:
    - Session management
    - Token exchange and the auth header
    - Status and payload-shape checking

    Every data call takes the auth token explicitly; the client holds no
    credential state of its own. There is no retry: a failed call is
    reported to the caller, which skips the binding for this cycle.
    """

    def __init__(
        self,
        api_url: str = DEFAULT_API_URL,
        timeout: int = DEFAULT_REQUEST_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """Initialize Whistle client.

        Args:
            api_url: Whistle API root
            timeout: Request timeout in seconds
            session: Optional requests session (for dependency injection/testing)
        """
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        self._owns_session = session is None

    def _get_headers(self, token: Optional[str] = None) -> dict:
        """Get request headers, with the auth token when given."""
        headers = {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
        }
        if token:
            headers[AUTH_HEADER] = token
        return headers

    def _request(
        self,
        method: str,
        endpoint: str,
        token: Optional[str] = None,
        data: Optional[dict] = None,
    ) -> Any:
        """Make request to the Whistle API.

        Args:
            method: HTTP method
            endpoint: API endpoint (relative to api_url)
            token: Auth token for the X-Whistle-AuthToken header
            data: JSON body

        Returns:
            Decoded JSON payload (list or dict)

        Raises:
            WhistleStatusError: For any status other than 200
            WhistleParseError: If the body is not valid JSON
            WhistleClientError: For connection errors and timeouts
        """
        url = f"{self.api_url}/{endpoint.lstrip('/')}"
        kwargs: dict = {"timeout": self.timeout, "headers": self._get_headers(token)}
        if data is not None:
            kwargs["json"] = data

        try:
            response = self._session.request(method, url, **kwargs)
        except requests.exceptions.ConnectionError as e:
            raise WhistleClientError("Cannot connect to Whistle API") from e
        except requests.exceptions.Timeout as e:
            raise WhistleClientError(f"Request to '{endpoint}' timed out") from e
        except requests.exceptions.RequestException as e:
            raise WhistleClientError(f"Request to '{endpoint}' failed: {e}") from e

        if response.status_code != 200:
            logger.error(
                f"Failed to get requested data, response code: '{response.status_code}'"
            )
            raise WhistleStatusError(response.status_code, endpoint)

        try:
            return response.json()
        except ValueError as e:
            raise WhistleParseError(f"Invalid JSON from '{endpoint}'") from e

    def get_array(self, endpoint: str, token: str) -> list:
        """GET an endpoint that answers with a JSON array."""
        payload = self._request("GET", endpoint, token=token)
        if not isinstance(payload, list):
            raise WhistleParseError(
                f"Expected a JSON array from '{endpoint}', got {type(payload).__name__}"
            )
        return payload

    def get_object(self, endpoint: str, token: str) -> dict:
        """GET an endpoint that answers with a JSON object."""
        payload = self._request("GET", endpoint, token=token)
        if not isinstance(payload, dict):
            raise WhistleParseError(
                f"Expected a JSON object from '{endpoint}', got {type(payload).__name__}"
            )
        return payload

    def exchange_token(self, email: str, password: str) -> str:
        """Exchange username / password for an auth token.

        Returns:
            The token string

        Raises:
            WhistleAuthError: If the API did not answer 200
            WhistleParseError: If the answer carries no token
        """
        payload = {"password": password, "email": email, "app_id": APP_ID}
        try:
            response = self._request("POST", "tokens.json", data=payload)
        except WhistleStatusError as e:
            logger.error(
                "Username / password combination didn't work. "
                "Failed to get AuthenticationToken"
            )
            raise WhistleAuthError(
                f"Token exchange rejected (response code {e.status_code})"
            ) from e

        token = response.get("token") if isinstance(response, dict) else None
        if not token or not isinstance(token, str):
            raise WhistleParseError("Token exchange answer carries no 'token' field")
        return token

    @staticmethod
    def _parse(endpoint: str, factory: Callable[[dict], T], item: Any) -> T:
        """Build a model from one payload element."""
        try:
            return factory(item)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise WhistleParseError(f"Unexpected payload from '{endpoint}': {e!r}") from e

    def get_dogs(self, token: str) -> list[Dog]:
        """List every dog visible to the account."""
        endpoint = "dogs.json"
        return [self._parse(endpoint, Dog.from_dict, item) for item in self.get_array(endpoint, token)]

    def get_dailies(self, dog_id: str, count: int, token: str) -> list[DailyStat]:
        """Get the last ``count`` daily activity summaries for a dog."""
        endpoint = f"dogs/{dog_id}/dailies?{urlencode({'count': count})}"
        return [
            self._parse(endpoint, DailyStat.from_dict, item)
            for item in self.get_array(endpoint, token)
        ]

    def get_daily_totals(self, dog_id: str, start_date: str, token: str) -> list[DailyStat]:
        """Get daily active / rest totals from ``start_date`` (YYYY-MM-DD) to today."""
        endpoint = f"dogs/{dog_id}/stats/daily_totals/?{urlencode({'start_time': start_date})}"
        return [
            self._parse(endpoint, DailyStat.from_dict, item)
            for item in self.get_array(endpoint, token)
        ]

    def get_goals(self, dog_id: str, token: str) -> GoalStats:
        """Get goal streak statistics for a dog."""
        endpoint = f"dogs/{dog_id}/stats/goals"
        return self._parse(endpoint, GoalStats.from_dict, self.get_object(endpoint, token))

    def get_device(self, device_id: str, token: str) -> DeviceInfo:
        """Get device information (battery level, last check-in)."""
        endpoint = f"devices/{device_id}.json"
        return self._parse(endpoint, DeviceInfo.from_dict, self.get_object(endpoint, token))

    def close(self) -> None:
        """Close the session if we own it."""
        if self._owns_session and self._session is not None:
            self._session.close()
            self._session = None

    def __del__(self) -> None:
        try:
            self.close()
        except Exception:
            pass

    def __enter__(self) -> "WhistleClient":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
