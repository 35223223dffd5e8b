"""Retry utility for registry calls with exponential backoff."""
from __future__ import annotations

import logging
import random
import time
from typing import Any, Callable, Optional, TypeVar

import httpx

from ..exceptions import DataProviderError


logger = logging.getLogger(__name__)

T = TypeVar('T')

RETRYABLE_EXCEPTIONS = (httpx.TransportError,)


def retry_call(
    func: Callable[[], T],
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    jitter: float = 0.0,
    exceptions: tuple = RETRYABLE_EXCEPTIONS,
    sleep: Callable[[float], Any] = time.sleep,
) -> T:
    """
    Retry a blocking function with exponential backoff and optional jitter.

    Args:
        func: The function to retry
        max_attempts: Maximum number of attempts (default: 3)
        initial_delay: Initial delay in seconds (default: 1.0)
        backoff_factor: Multiplier for delay between retries (default: 2.0)
        jitter: Random jitter range [0, jitter] added to delay (default: 0.0)
        exceptions: Tuple of exceptions to catch and retry
        sleep: Sleep function, replaceable in tests

    Returns:
        The result of the function call

    Raises:
        The last exception if all retries fail
    """
    delay = initial_delay
    last_exception: Optional[BaseException] = None

    for attempt in range(1, max_attempts + 1):
        try:
            return func()
        except exceptions as exc:
            last_exception = exc

            if attempt < max_attempts:
                actual_delay = delay + random.uniform(0, jitter) if jitter > 0 else delay
                logger.warning(
                    f"Attempt {attempt}/{max_attempts} failed: {exc}. "
                    f"Retrying in {actual_delay:.1f}s..."
                )
                sleep(actual_delay)
                delay *= backoff_factor
            else:
                logger.error(
                    f"All {max_attempts} attempts failed. Last error: {exc}"
                )

    raise last_exception  # type: ignore


class _RetryableStatus(Exception):
    """Internal marker for responses worth another attempt (429, 5xx)."""

    def __init__(self, response: httpx.Response):
        self.response = response
        super().__init__(f"HTTP {response.status_code}")


def get_with_retry(
    client: httpx.Client,
    url: str,
    provider: Optional[str] = None,
    max_attempts: int = 3,
    initial_delay: float = 1.0,
    backoff_factor: float = 2.0,
    sleep: Callable[[float], Any] = time.sleep,
    **kwargs: Any,
) -> httpx.Response:
    """GET with automatic retry on transient failures.

    Connection errors, timeouts, 429 and 5xx responses are retried; other
    4xx responses fail immediately.

    Args:
        client: httpx Client
        url: Request URL
        provider: Registry name, attached to raised errors
        **kwargs: Additional httpx parameters

    Returns:
        HTTP response with a 2xx status

    Raises:
        DataProviderError: If the request cannot be completed
    """

    def _attempt() -> httpx.Response:
        response = client.get(url, **kwargs)
        status = response.status_code
        if status == 429 or status >= 500:
            raise _RetryableStatus(response)
        response.raise_for_status()
        return response

    try:
        return retry_call(
            _attempt,
            max_attempts=max_attempts,
            initial_delay=initial_delay,
            backoff_factor=backoff_factor,
            exceptions=RETRYABLE_EXCEPTIONS + (_RetryableStatus,),
            sleep=sleep,
        )
    except _RetryableStatus as e:
        raise DataProviderError(
            f"Server error {e.response.status_code} after {max_attempts} attempts: {url}",
            provider=provider,
            details={"status": e.response.status_code, "url": url},
        ) from e
    except httpx.HTTPStatusError as e:
        raise DataProviderError(
            f"API returned {e.response.status_code}: {e.response.text[:200]}",
            provider=provider,
            details={"status": e.response.status_code, "url": url},
        ) from e
    except httpx.HTTPError as e:
        raise DataProviderError(
            f"Request failed after {max_attempts} attempts: {e}",
            provider=provider,
            details={"url": url},
        ) from e
