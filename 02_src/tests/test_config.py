"""Tests for configuration and logging helpers."""

import json
import logging

import pytest

from messaging_core.config import MessagingSettings, load_settings
from messaging_core.logging_config import (
    PACKAGE_LOGGER,
    JSONFormatter,
    build_logging_config,
    redact_token,
    setup_logging,
)


@pytest.fixture
def no_env_file(tmp_path):
    return tmp_path / "missing.env"


class TestSettings:
    """Tests for load_settings()."""

    def test_defaults(self, monkeypatch, no_env_file):
        """Test defaults match the source reconnect policy."""
        for name in ("MESSAGING_RECONNECT_ATTEMPTS", "MESSAGING_RECONNECT_DELAY", "MESSAGING_REST_FALLBACK"):
            monkeypatch.delenv(name, raising=False)

        settings = load_settings(no_env_file)

        assert settings.reconnect_attempts == 5
        assert settings.reconnect_delay == 1.0
        assert settings.auth_timeout == 10.0
        assert not settings.rest_send_fallback

    def test_from_environment(self, monkeypatch, no_env_file):
        """Test reading values from the environment."""
        monkeypatch.setenv("MESSAGING_API_URL", "https://school.example/api")
        monkeypatch.setenv("MESSAGING_RECONNECT_ATTEMPTS", "3")
        monkeypatch.setenv("MESSAGING_AUTH_TIMEOUT", "2.5")
        monkeypatch.setenv("MESSAGING_REST_FALLBACK", "true")

        settings = load_settings(no_env_file)

        assert settings.api_base_url == "https://school.example/api"
        assert settings.reconnect_attempts == 3
        assert settings.auth_timeout == 2.5
        assert settings.rest_send_fallback

    def test_from_env_file(self, monkeypatch, tmp_path):
        """Test that a .env file is loaded."""
        monkeypatch.delenv("MESSAGING_SOCKET_URL", raising=False)
        env_file = tmp_path / ".env"
        env_file.write_text("MESSAGING_SOCKET_URL=http://chat.example:5000\n")

        settings = load_settings(env_file)

        assert settings.socket_url == "http://chat.example:5000"
        monkeypatch.delenv("MESSAGING_SOCKET_URL", raising=False)

    def test_invalid_number(self, monkeypatch, no_env_file):
        """Test that a malformed number is rejected at load time."""
        monkeypatch.setenv("MESSAGING_RECONNECT_ATTEMPTS", "five")

        with pytest.raises(ValueError):
            load_settings(no_env_file)

    def test_negative_value_rejected(self):
        """Test that negative timeouts are rejected."""
        with pytest.raises(ValueError):
            MessagingSettings(auth_timeout=-1)


class TestLogging:
    """Tests for logging helpers."""

    def test_json_formatter(self):
        """Test that records are rendered as JSON."""
        record = logging.LogRecord("messaging_core.test", logging.INFO, __file__, 10, "state %s", ("ready",), None)
        record.context = {"peer_id": "p1"}

        data = json.loads(JSONFormatter().format(record))

        assert data["level"] == "INFO"
        assert data["message"] == "state ready"
        assert data["context"] == {"peer_id": "p1"}

    def test_redact_token(self):
        """Test that tokens are shortened for logs."""
        assert redact_token("eyJhbGciOiJIUzI1NiJ9") == "eyJh..."
        assert redact_token(None) == "<none>"

    def test_json_formatter_collects_extras(self):
        """Test that extra= fields end up under context."""
        record = logging.LogRecord("messaging_core.test", logging.WARNING, __file__, 10, "send failed", None, None)
        record.correlation_token = "tok-1"

        data = json.loads(JSONFormatter().format(record))

        assert data["context"] == {"correlation_token": "tok-1"}
        assert "exception" not in data

    def test_console_only_without_file(self):
        """Test that no file handler is configured unless a path is given."""
        config = build_logging_config("debug")

        assert list(config["handlers"]) == ["console"]
        assert config["loggers"][PACKAGE_LOGGER]["level"] == "DEBUG"

    def test_setup_logging_writes_json_file(self, tmp_path, package_logger):
        """Test that setup_logging installs JSON handlers on the package logger."""
        log_file = tmp_path / "logs" / "messaging.log"

        setup_logging("INFO", log_file)
        logging.getLogger("messaging_core.transport").info("state %s", "ready", extra={"context": {"peer_id": "p1"}})
        for handler in package_logger.handlers:
            handler.flush()

        assert not package_logger.propagate
        assert all(isinstance(h.formatter, JSONFormatter) for h in package_logger.handlers)
        line = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
        assert line["message"] == "state ready"
        assert line["logger"] == "messaging_core.transport"
        assert line["context"] == {"peer_id": "p1"}

    def test_log_settings_from_environment(self, monkeypatch, no_env_file):
        """Test that logging is configured only when a level is set."""
        monkeypatch.delenv("MESSAGING_LOG_LEVEL", raising=False)
        assert load_settings(no_env_file).log_level is None

        monkeypatch.setenv("MESSAGING_LOG_LEVEL", "debug")
        monkeypatch.setenv("MESSAGING_LOG_FILE", "/tmp/messaging.log")
        settings = load_settings(no_env_file)

        assert settings.log_level == "debug"
        assert settings.log_file == "/tmp/messaging.log"

    def test_unknown_log_level_rejected(self):
        """Test that a misspelled level fails at load time."""
        with pytest.raises(ValueError):
            MessagingSettings(log_level="verbose")
