"""Project-level configuration and path helpers."""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class MessagingSettings:
    """Connection and retry settings for a messaging session."""

    api_base_url: str = "http://localhost:5000/api"
    socket_url: str = "http://localhost:5000"
    socket_path: str = "socket.io"
    reconnect_attempts: int = 5
    reconnect_delay: float = 1.0  # seconds, multiplied by the attempt number
    auth_timeout: float = 10.0
    http_timeout: float = 30.0
    echo_match_window: float = 30.0
    rest_send_fallback: bool = False
    log_level: str | None = None  # None leaves logging to the host application
    log_file: str | None = None

    def __post_init__(self) -> None:
        if self.reconnect_attempts < 0:
            raise ValueError("reconnect_attempts must be >= 0")
        for name in ("reconnect_delay", "auth_timeout", "http_timeout", "echo_match_window"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0")
        if self.log_level is not None and not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"unknown log level {self.log_level!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from e


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


def load_settings(env_file: str | Path | None = None) -> MessagingSettings:
    """Build settings from environment variables, loading a .env file first."""
    load_dotenv(env_file if env_file is not None else PROJECT_ROOT / ".env")

    defaults = MessagingSettings()
    return MessagingSettings(
        api_base_url=os.getenv("MESSAGING_API_URL", defaults.api_base_url),
        socket_url=os.getenv("MESSAGING_SOCKET_URL", defaults.socket_url),
        socket_path=os.getenv("MESSAGING_SOCKET_PATH", defaults.socket_path),
        reconnect_attempts=_env_int("MESSAGING_RECONNECT_ATTEMPTS", defaults.reconnect_attempts),
        reconnect_delay=_env_float("MESSAGING_RECONNECT_DELAY", defaults.reconnect_delay),
        auth_timeout=_env_float("MESSAGING_AUTH_TIMEOUT", defaults.auth_timeout),
        http_timeout=_env_float("MESSAGING_HTTP_TIMEOUT", defaults.http_timeout),
        echo_match_window=_env_float("MESSAGING_ECHO_WINDOW", defaults.echo_match_window),
        rest_send_fallback=os.getenv("MESSAGING_REST_FALLBACK", "").lower() in _TRUE_VALUES,
        log_level=os.getenv("MESSAGING_LOG_LEVEL") or None,
        log_file=os.getenv("MESSAGING_LOG_FILE") or None,
    )
