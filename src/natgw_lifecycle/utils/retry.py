"""Exponential backoff with jitter and transient-error classification for polling."""

import random
from typing import Optional

from botocore.exceptions import ClientError

from natgw_lifecycle.utils.errors import TransportError
from natgw_lifecycle.utils.logging import get_logger

logger = get_logger(__name__)


class BackoffStrategy:
    """Computes the delay between successive polls of a remote object."""

    # AWS error codes that should be treated as transient
    RETRYABLE_ERROR_CODES = {
        'RequestTimeout',
        'ServiceUnavailable',
        'Unavailable',
        'ThrottlingException',
        'Throttling',
        'RequestLimitExceeded',
        'RequestThrottled',
        'InternalError',
        'InternalFailure',
    }

    # Network-related exceptions that should be treated as transient
    RETRYABLE_EXCEPTIONS = (
        ConnectionError,
        TimeoutError,
    )

    def __init__(
        self,
        interval: float = 5.0,
        max_interval: float = 30.0,
        exponential_base: float = 1.5,
        jitter: float = 0.1,
        rng: Optional[random.Random] = None
    ):
        """Initialize backoff strategy.

        Args:
            interval: Delay in seconds after the first poll
            max_interval: Maximum delay in seconds between polls
            exponential_base: Multiplier applied per attempt (1.0 disables backoff)
            jitter: Fraction of the delay added as random jitter (0 disables jitter)
            rng: Random source, injectable for deterministic tests
        """
        if interval < 0:
            raise ValueError("interval must not be negative")
        if max_interval < interval:
            raise ValueError("max_interval must be greater than or equal to interval")
        if exponential_base < 1.0:
            raise ValueError("exponential_base must be at least 1.0")
        if jitter < 0:
            raise ValueError("jitter must not be negative")

        self.interval = interval
        self.max_interval = max_interval
        self.exponential_base = exponential_base
        self.jitter = jitter
        self._rng = rng or random.Random()

    def get_delay(self, attempt: int) -> float:
        """Calculate delay before the next poll using exponential backoff.

        Args:
            attempt: Number of polls already performed, minus one (0-indexed)

        Returns:
            Delay in seconds before next poll
        """
        delay = min(
            self.interval * (self.exponential_base ** attempt),
            self.max_interval
        )

        # Jitter is a random value between 0 and `jitter` fraction of the delay
        if self.jitter:
            delay += self._rng.uniform(0, delay * self.jitter)

        return delay

    def is_transient(self, error: Exception) -> bool:
        """Determine whether a probe error looks transient.

        Args:
            error: The exception raised by the probe

        Returns:
            True for transport failures that may clear up on their own
        """
        if isinstance(error, TransportError):
            return True

        if isinstance(error, self.RETRYABLE_EXCEPTIONS):
            return True

        if isinstance(error, ClientError):
            error_code = error.response.get('Error', {}).get('Code', '')
            return error_code in self.RETRYABLE_ERROR_CODES

        return False
