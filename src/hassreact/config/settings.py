"""Configuration settings using Pydantic Settings.

Provides typed connection configuration with environment variable support.

Usage:
    from hassreact.config import ConnectionSettings

    # Load from environment variables (HOME_ASSISTANT_*) or .env
    settings = ConnectionSettings()

    # Or override with explicit values
    settings = ConnectionSettings(url="http://homeassistant.local:8123", token="...")
"""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from hassreact.config.models import RetryPolicy
from hassreact.core.errors import ConfigMissingError


class ConnectionSettings(BaseSettings):  # type: ignore[misc]
    """Configuration for the Home Assistant connection.

    Attributes:
        url: Base URL of the instance, e.g. ``http://homeassistant.local:8123``.
        token: Long-lived access token.
        open_timeout: Seconds to wait for the websocket to open.
        connect_attempts: Connection attempts before giving up (1 = no retry).
        connect_backoff: Backoff between attempts (none, linear, exponential).
        connect_base_delay: Base delay in seconds for the backoff.

    Environment Variables:
        HOME_ASSISTANT_URL
        HOME_ASSISTANT_TOKEN
        HOME_ASSISTANT_OPEN_TIMEOUT
        HOME_ASSISTANT_CONNECT_ATTEMPTS
        HOME_ASSISTANT_CONNECT_BACKOFF
        HOME_ASSISTANT_CONNECT_BASE_DELAY
    """

    model_config = SettingsConfigDict(
        env_prefix="HOME_ASSISTANT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    url: str | None = None
    token: str | None = None
    open_timeout: float = 30.0
    connect_attempts: int = 1
    connect_backoff: Literal["none", "linear", "exponential"] = "none"
    connect_base_delay: float = 0.5

    def require(self) -> None:
        """Check that everything needed to connect is present.

        Raises:
            ConfigMissingError: If the URL or the token is not set.
        """
        if not self.url:
            raise ConfigMissingError("HOME_ASSISTANT_URL is not set")
        if not self.token:
            raise ConfigMissingError("HOME_ASSISTANT_TOKEN is not set")

    @property
    def websocket_url(self) -> str:
        """Websocket endpoint derived from ``url``."""
        self.require()
        assert self.url is not None
        base = self.url.rstrip("/")
        if base.startswith("https://"):
            base = "wss://" + base[len("https://") :]
        elif base.startswith("http://"):
            base = "ws://" + base[len("http://") :]
        if base.endswith("/api/websocket"):
            return base
        return base + "/api/websocket"

    def retry_policy(self) -> RetryPolicy:
        """Connection retry policy built from the ``connect_*`` settings."""
        return RetryPolicy(
            max_attempts=self.connect_attempts,
            backoff=self.connect_backoff,
            base_delay=self.connect_base_delay,
        )
