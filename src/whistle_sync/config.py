"""Configuration management for Whistle Sync."""

import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Mapping, Optional

from platformdirs import user_config_dir, user_log_dir

__all__ = [
    "Config",
    "ConfigError",
    "setup_logging",
    "DEFAULT_API_URL",
    "DEFAULT_REFRESH_MS",
]

logger = logging.getLogger(__name__)

APP_NAME = "Whistle Sync"
APP_AUTHOR = "Whistle Sync"

# API endpoints
DEFAULT_API_URL = "https://app.whistle.com/api/"

# Refresh settings
DEFAULT_REFRESH_MS = 900_000  # 15 minutes
MIN_REFRESH_MS = 1_000
DEFAULT_CREDENTIAL_POLL_SECONDS = 30.0
DEFAULT_REQUEST_TIMEOUT = 30  # seconds

# Environment overrides
ENV_USERNAME = "WHISTLE_USERNAME"
ENV_PASSWORD = "WHISTLE_PASSWORD"
ENV_REFRESH_MS = "WHISTLE_REFRESH_MS"


class ConfigError(Exception):
    """Invalid configuration value."""

    pass


# Expected JSON types for the remaining file keys
_FIELD_TYPES = {
    "api_url": (str,),
    "credential_poll_seconds": (int, float),
    "request_timeout": (int, float),
    "debug_mode": (bool,),
}


def _is_blank(value: Optional[str]) -> bool:
    return value is None or not str(value).strip()


@dataclass
class Config:
    """Main configuration object.

    ``bindings`` maps a binding name to its ``<dogID>:<command>:<parameter>``
    configuration string.
    """

    api_url: str = DEFAULT_API_URL
    username: Optional[str] = None
    password: Optional[str] = None
    refresh_ms: int = DEFAULT_REFRESH_MS
    credential_poll_seconds: float = DEFAULT_CREDENTIAL_POLL_SECONDS
    request_timeout: int = DEFAULT_REQUEST_TIMEOUT
    debug_mode: bool = False
    bindings: dict[str, str] = field(default_factory=dict)

    @classmethod
    def get_config_dir(cls) -> Path:
        """Get the configuration directory path."""
        return Path(user_config_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_log_dir(cls) -> Path:
        """Get the log directory path."""
        return Path(user_log_dir(APP_NAME, APP_AUTHOR))

    @classmethod
    def get_config_file(cls) -> Path:
        """Get the config file path."""
        return cls.get_config_dir() / "config.json"

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """Load config from file, or return defaults.

        Environment overrides are applied on top of whatever was loaded.
        """
        config_file = path or cls.get_config_file()
        config = cls()
        if config_file.exists():
            try:
                with open(config_file, "r") as f:
                    data = json.load(f)
                config = cls._from_dict(data)
            except (OSError, ValueError, TypeError, ConfigError) as e:
                logger.warning(f"Failed to load config: {e}, using defaults")
        config.apply_environment()
        return config

    @classmethod
    def _from_dict(cls, data: dict) -> "Config":
        """Create Config from dictionary.

        Credentials and the refresh interval go through the same checks as
        host settings.

        Raises:
            ConfigError: If a value has the wrong type or is out of range
        """
        if not isinstance(data, dict):
            raise ConfigError(f"Expected a JSON object, got {type(data).__name__}")

        bindings = data.pop("bindings", None) or {}
        if not isinstance(bindings, dict):
            raise ConfigError(
                f"'bindings' must be an object, got {type(bindings).__name__}"
            )

        for key, expected in _FIELD_TYPES.items():
            value = data.get(key)
            if value is not None and (
                not isinstance(value, expected)
                or (bool not in expected and isinstance(value, bool))
            ):
                raise ConfigError(f"Invalid value for '{key}': {value!r}")

        host_settings = {
            "username": data.pop("username", None),
            "password": data.pop("password", None),
            "refresh": data.pop("refresh_ms", None),
        }
        config = cls(
            bindings={str(k): str(v) for k, v in bindings.items()},
            **{
                k: v
                for k, v in data.items()
                if k in cls.__dataclass_fields__ and v is not None
            },
        )
        config.apply_host_config(host_settings)
        return config

    def save(self, path: Optional[Path] = None) -> None:
        """Save config to file.

        The password is left out; it belongs in the system keychain.
        """
        config_file = path or self.get_config_file()
        config_file.parent.mkdir(parents=True, exist_ok=True)

        data = asdict(self)
        data.pop("password", None)
        with open(config_file, "w") as f:
            json.dump(data, f, indent=2)
        logger.info(f"Config saved to {config_file}")

    def apply_environment(self, environ: Optional[Mapping[str, str]] = None) -> None:
        """Apply WHISTLE_* environment variables."""
        env = os.environ if environ is None else environ
        self.apply_host_config(
            {
                "username": env.get(ENV_USERNAME),
                "password": env.get(ENV_PASSWORD),
                "refresh": env.get(ENV_REFRESH_MS),
            }
        )

    def apply_host_config(self, settings: Mapping[str, Optional[str]]) -> None:
        """Update from host-style string settings.

        Recognised keys are ``username``, ``password`` and ``refresh``
        (milliseconds). Blank values leave the current setting untouched.

        Raises:
            ConfigError: If ``refresh`` is not a positive integer
        """
        username = settings.get("username")
        if not _is_blank(username):
            self.username = str(username).strip()

        password = settings.get("password")
        if not _is_blank(password):
            self.password = str(password)

        refresh = settings.get("refresh")
        if not _is_blank(refresh):
            try:
                refresh_ms = int(str(refresh).strip())
            except ValueError as e:
                raise ConfigError(f"Invalid refresh interval: {refresh!r}") from e
            if refresh_ms < MIN_REFRESH_MS:
                raise ConfigError(
                    f"Refresh interval must be at least {MIN_REFRESH_MS} ms, got {refresh_ms}"
                )
            self.refresh_ms = refresh_ms

        logger.debug(
            f"Loaded configuration - '{self.username}', refresh: '{self.refresh_ms}'"
        )

    @property
    def has_credentials(self) -> bool:
        return not _is_blank(self.username) and not _is_blank(self.password)

    @property
    def refresh_seconds(self) -> float:
        return self.refresh_ms / 1000.0


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None) -> None:
    """Configure logging."""
    log_dir = log_dir or Config.get_log_dir()
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "whistle-sync.log"

    level = logging.DEBUG if debug else logging.INFO
    format_str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=level,
        format=format_str,
        handlers=[
            logging.FileHandler(log_file),
            logging.StreamHandler(),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
