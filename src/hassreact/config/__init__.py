"""Configuration module using Pydantic Settings.

Usage:
    from hassreact.config import ConnectionSettings

    settings = ConnectionSettings(url="http://homeassistant.local:8123", token="...")
"""

from hassreact.config.models import RetryPolicy
from hassreact.config.settings import ConnectionSettings

__all__ = [
    "ConnectionSettings",
    "RetryPolicy",
]
