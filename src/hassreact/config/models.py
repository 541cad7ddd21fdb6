"""Connection retry configuration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """Configuration for retrying a failed connection attempt.

    Only transient failures (network errors, timeouts, rejected websocket
    handshakes) are retried. A rejected access token is never retried.
    """

    max_attempts: int = 1
    """Maximum attempts (1 = no retry). Default: no retry."""

    backoff: Literal["none", "linear", "exponential"] = "none"
    """Backoff strategy between retries."""

    base_delay: float = 0.5
    """Base delay in seconds for backoff calculation."""
