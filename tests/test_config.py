"""Tests for configuration loading and host settings."""

import json
import tempfile
import pytest
from pathlib import Path
from unittest.mock import patch

from whistle_sync.config import (
    DEFAULT_API_URL,
    DEFAULT_REFRESH_MS,
    Config,
    ConfigError,
)


class TestConfig:
    """Tests for Config."""

    def setup_method(self):
        """Set up test fixtures with a temp directory."""
        self.temp_dir = Path(tempfile.mkdtemp())
        self.config_file = self.temp_dir / "config.json"

    def test_defaults(self):
        config = Config()

        assert config.api_url == DEFAULT_API_URL
        assert config.refresh_ms == DEFAULT_REFRESH_MS == 900_000
        assert config.credential_poll_seconds == 30
        assert config.bindings == {}
        assert config.has_credentials is False

    def test_load_missing_file_uses_defaults(self):
        config = Config.load(self.config_file)

        assert config.refresh_ms == DEFAULT_REFRESH_MS

    def test_load_from_file(self):
        self.config_file.write_text(
            json.dumps(
                {
                    "username": "owner@example.com",
                    "refresh_ms": 60000,
                    "bindings": {"Rex_Battery": "100000:device:battery"},
                    "unknown_key": True,
                }
            )
        )

        config = Config.load(self.config_file)

        assert config.username == "owner@example.com"
        assert config.refresh_ms == 60000
        assert config.bindings == {"Rex_Battery": "100000:device:battery"}

    def test_load_invalid_json_uses_defaults(self):
        self.config_file.write_text("{not json")

        config = Config.load(self.config_file)

        assert config.username is None

    def test_save_leaves_out_password(self):
        config = Config(username="owner@example.com", password="secret")
        config.save(self.config_file)

        data = json.loads(self.config_file.read_text())
        assert data["username"] == "owner@example.com"
        assert "password" not in data

    def test_save_and_load_round_trip(self):
        config = Config(bindings={"Rex_Goal": "100000:goals:current"}, refresh_ms=120000)
        config.save(self.config_file)

        loaded = Config.load(self.config_file)

        assert loaded.bindings == {"Rex_Goal": "100000:goals:current"}
        assert loaded.refresh_ms == 120000

    def test_apply_host_config(self):
        config = Config()
        config.apply_host_config(
            {"username": "owner@example.com", "password": "secret", "refresh": "300000"}
        )

        assert config.username == "owner@example.com"
        assert config.password == "secret"
        assert config.refresh_ms == 300000
        assert config.has_credentials is True
        assert config.refresh_seconds == 300.0

    def test_apply_host_config_ignores_blank_values(self):
        config = Config(username="owner@example.com", refresh_ms=60000)
        config.apply_host_config({"username": "  ", "password": None, "refresh": ""})

        assert config.username == "owner@example.com"
        assert config.password is None
        assert config.refresh_ms == 60000

    def test_apply_host_config_invalid_refresh(self):
        config = Config()

        with pytest.raises(ConfigError):
            config.apply_host_config({"refresh": "fifteen minutes"})
        with pytest.raises(ConfigError):
            config.apply_host_config({"refresh": "10"})
        assert config.refresh_ms == DEFAULT_REFRESH_MS

    def test_apply_environment(self):
        config = Config()
        config.apply_environment(
            {
                "WHISTLE_USERNAME": "env@example.com",
                "WHISTLE_PASSWORD": "env-secret",
                "WHISTLE_REFRESH_MS": "60000",
            }
        )

        assert config.username == "env@example.com"
        assert config.password == "env-secret"
        assert config.refresh_ms == 60000

    @patch.dict("os.environ", {}, clear=True)
    def test_load_bindings_not_an_object_uses_defaults(self):
        self.config_file.write_text(
            json.dumps({"username": "owner@example.com", "bindings": ["42:goals:current"]})
        )

        config = Config.load(self.config_file)

        assert config.bindings == {}
        assert config.username is None

    @patch.dict("os.environ", {}, clear=True)
    def test_load_refresh_string_is_parsed(self):
        self.config_file.write_text(json.dumps({"refresh_ms": "60000"}))

        config = Config.load(self.config_file)

        assert config.refresh_ms == 60000
        assert isinstance(config.refresh_ms, int)

    @patch.dict("os.environ", {}, clear=True)
    def test_load_refresh_below_minimum_uses_defaults(self):
        self.config_file.write_text(
            json.dumps({"refresh_ms": 10, "bindings": {"Rex_Goal": "42:goals:current"}})
        )

        config = Config.load(self.config_file)

        assert config.refresh_ms == DEFAULT_REFRESH_MS
        assert config.bindings == {}

    @patch.dict("os.environ", {}, clear=True)
    def test_load_blank_password_in_file_ignored(self):
        self.config_file.write_text(
            json.dumps({"username": " owner@example.com ", "password": "   "})
        )

        config = Config.load(self.config_file)

        assert config.username == "owner@example.com"
        assert config.password is None

    @patch.dict("os.environ", {}, clear=True)
    def test_load_wrong_field_type_uses_defaults(self):
        self.config_file.write_text(json.dumps({"request_timeout": "slow"}))

        config = Config.load(self.config_file)

        assert config.request_timeout == 30

    @patch.dict("os.environ", {}, clear=True)
    def test_load_top_level_not_an_object_uses_defaults(self):
        self.config_file.write_text(json.dumps(["not", "a", "config"]))

        config = Config.load(self.config_file)

        assert config.refresh_ms == DEFAULT_REFRESH_MS
