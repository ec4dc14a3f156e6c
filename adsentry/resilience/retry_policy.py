"""
Retry with exponential backoff for calls to external platforms.
"""
import logging
from typing import Callable

import requests
from retry.api import retry_call

from adsentry.config.schema import RateLimitingConfig
from adsentry.exceptions.provider_exception import ProviderHttpException

logger = logging.getLogger(__name__)


def is_retryable_error(error: Exception) -> bool:
    """Network failures and 5xx responses are transient; everything else is not."""
    if isinstance(error, ProviderHttpException):
        return error.is_server_error
    return isinstance(error, (requests.ConnectionError, requests.Timeout))


class RetryableError(Exception):
    def __init__(self, error: Exception):
        super().__init__(str(error))
        self.error = error


class RetryPolicy:
    """
    Retries a call ``retry_attempts`` times after the first try, sleeping
    ``retry_delay_ms * 2 ** attempt`` milliseconds between tries.
    """

    def __init__(
        self,
        retry_attempts: int = 2,
        retry_delay_ms: int = 1000,
        is_retryable: Callable[[Exception], bool] = is_retryable_error,
    ):
        self.retry_attempts = retry_attempts
        self.retry_delay_ms = retry_delay_ms
        self.is_retryable = is_retryable

    @classmethod
    def from_config(cls, rate_limiting: RateLimitingConfig) -> "RetryPolicy":
        return cls(
            retry_attempts=rate_limiting.retry_attempts,
            retry_delay_ms=rate_limiting.retry_delay_ms,
        )

    @property
    def tries(self) -> int:
        return self.retry_attempts + 1

    @property
    def delays(self) -> list[float]:
        """Seconds slept before each retry."""
        return [
            self.retry_delay_ms / 1000 * 2**attempt
            for attempt in range(self.retry_attempts)
        ]

    def call(self, f, *args, **kwargs):
        """Run f, retrying retryable failures. The last error is re-raised as is."""

        def attempt():
            try:
                return f(*args, **kwargs)
            except Exception as e:
                if self.is_retryable(e):
                    raise RetryableError(e) from e
                raise

        try:
            return retry_call(
                attempt,
                exceptions=RetryableError,
                tries=self.tries,
                delay=self.retry_delay_ms / 1000,
                backoff=2,
                logger=logger,
            )
        except RetryableError as e:
            raise e.error
