"""Caller-side retry with exponential backoff.

The core never retries on its own. Callers that want a retry policy (the
document orchestrator, for instance) wrap their calls with
retry_with_backoff, which only retries errors classified as retryable.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import ParamSpec, TypeVar

import httpx

from retitler.utils.errors import RETRYABLE_STATUS_CODES, TitleGeneratorError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BASE_DELAY = 1.0  # seconds
DEFAULT_MAX_DELAY = 16.0  # seconds


class RetryError(Exception):
    """Error raised after all retry attempts are exhausted.

    Attributes:
        original_error: The last error that occurred.
        attempts: Number of attempts made.
    """

    def __init__(self, original_error: Exception, attempts: int):
        self.original_error = original_error
        self.attempts = attempts
        super().__init__(
            f"All {attempts} attempts exhausted. "
            f"Last error: {type(original_error).__name__}: {original_error}"
        )


def is_retryable_error(error: Exception) -> bool:
    """Determine if an error is worth retrying.

    Taxonomy errors carry their own classification. Raw httpx errors are
    classified by status code or transport failure.
    """
    if isinstance(error, TitleGeneratorError):
        return error.retryable

    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code in RETRYABLE_STATUS_CODES

    return isinstance(
        error,
        (httpx.TransportError, ConnectionError, TimeoutError),
    )


def calculate_backoff_delay(
    attempt: int,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
) -> float:
    """Calculate exponential backoff delay for a given attempt (0-indexed)."""
    delay = base_delay * (2**attempt)
    return min(delay, max_delay)


async def retry_with_backoff(
    func: Callable[P, Awaitable[T]],
    *args: P.args,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    base_delay: float = DEFAULT_BASE_DELAY,
    max_delay: float = DEFAULT_MAX_DELAY,
    **kwargs: P.kwargs,
) -> T:
    """Execute an async function, retrying retryable failures.

    Args:
        func: The async function to execute.
        *args: Positional arguments to pass to the function.
        max_attempts: Total number of attempts, including the first.
        base_delay: Base delay in seconds for exponential backoff.
        max_delay: Maximum delay in seconds.
        **kwargs: Keyword arguments to pass to the function.

    Returns:
        The result of the function call.

    Raises:
        RetryError: If every attempt failed with a retryable error.
        Exception: The first non-retryable error, unchanged.
    """
    last_error: Exception | None = None
    attempts = max(1, max_attempts)

    for attempt in range(attempts):
        try:
            return await func(*args, **kwargs)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            last_error = e

            if not is_retryable_error(e):
                raise

            if attempt < attempts - 1:
                delay = calculate_backoff_delay(attempt, base_delay, max_delay)
                logger.warning(
                    f"Retryable error on attempt {attempt + 1}/{attempts}: "
                    f"{type(e).__name__}: {e}. Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)
            else:
                logger.error(
                    f"Final attempt {attempt + 1}/{attempts} failed: "
                    f"{type(e).__name__}: {e}"
                )

    assert last_error is not None
    raise RetryError(last_error, attempts)
