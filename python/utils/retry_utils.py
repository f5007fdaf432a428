"""Retry utilities for remote connections with exponential backoff"""

import logging
import random
import time
from enum import Enum
from functools import wraps
from typing import Callable, List, Optional, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryableErrorType(Enum):
    """Types of errors that should trigger retries"""

    NETWORK = "network"  # Connection errors, timeouts
    TEMPORARY = "temporary"  # Banner/handshake hiccups
    PERMANENT = "permanent"  # Auth failures, bad host keys, unknown hosts


def is_retryable_error(error: Exception, error_message: str = "") -> Tuple[bool, RetryableErrorType]:
    """Determine if an error is retryable and what type it is

    Args:
        error: The exception that occurred
        error_message: Optional error message string

    Returns:
        Tuple of (is_retryable, error_type)
    """
    combined = f"{error} {error_message}".lower()
    type_name = type(error).__name__

    # Auth and host key problems won't fix themselves
    if type_name in ("AuthenticationException", "BadAuthenticationType", "PasswordRequiredException", "BadHostKeyException"):
        return False, RetryableErrorType.PERMANENT
    if "authentication" in combined or "permission denied" in combined or "host key" in combined:
        return False, RetryableErrorType.PERMANENT

    # DNS failures are permanent for our purposes (typo in the hostname)
    if "name or service not known" in combined or "nodename nor servname" in combined:
        return False, RetryableErrorType.PERMANENT

    network_indicators = [
        "connection",
        "unable to connect",
        "timeout",
        "timed out",
        "network",
        "refused",
        "unreachable",
        "reset",
        "broken pipe",
        "no route to host",
        "temporary failure",
    ]
    if any(indicator in combined for indicator in network_indicators):
        return True, RetryableErrorType.NETWORK

    if isinstance(error, (ConnectionError, TimeoutError)):
        return True, RetryableErrorType.NETWORK

    # SSH protocol hiccups (e.g. "Error reading SSH protocol banner")
    if type_name == "SSHException" or "banner" in combined:
        return True, RetryableErrorType.TEMPORARY

    return False, RetryableErrorType.PERMANENT


def backoff_delay(
    attempt: int,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
) -> float:
    """Seconds to wait before retry number attempt + 1 (attempt counts from 0)."""
    delay = min(initial_delay * (exponential_base**attempt), max_delay)
    if jitter:
        # +/- 10%, never below 100ms
        spread = delay * 0.1
        delay = max(0.1, delay + random.uniform(-spread, spread))
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    initial_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_errors: Optional[List[RetryableErrorType]] = None,
) -> Callable:
    """Decorator that retries SSH connection attempts with exponential backoff.

    Errors classified as PERMANENT (or not listed in retryable_errors) are
    raised on the first occurrence. After max_retries retries the last error
    is raised.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        initial_delay: Delay in seconds before the first retry (default: 1.0)
        max_delay: Upper bound for any single delay (default: 60.0)
        exponential_base: Growth factor between delays (default: 2.0)
        jitter: Randomise each delay by up to 10% (default: True)
        retryable_errors: Error types to retry (default: NETWORK and TEMPORARY)
    """
    retryable = retryable_errors or [RetryableErrorType.NETWORK, RetryableErrorType.TEMPORARY]
    attempts = max_retries + 1

    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @wraps(func)
        def wrapper(*args, **kwargs) -> T:
            attempt = 0
            while True:
                try:
                    result = func(*args, **kwargs)
                except Exception as e:
                    retry, error_type = is_retryable_error(e)
                    if not retry or error_type not in retryable:
                        logger.error(f"{func.__name__}: {error_type.value} error, not retrying: {e}")
                        raise
                    if attempt + 1 >= attempts:
                        logger.error(f"{func.__name__}: giving up after {attempts} attempts ({error_type.value} error: {e})")
                        raise

                    delay = backoff_delay(attempt, initial_delay, max_delay, exponential_base, jitter)
                    logger.warning(
                        f"{func.__name__}: attempt {attempt + 1}/{attempts} failed ({error_type.value} error: {e}), "
                        f"retrying in {delay:.2f}s"
                    )
                    time.sleep(delay)
                    attempt += 1
                    continue

                if attempt:
                    logger.info(f"{func.__name__} succeeded on attempt {attempt + 1}")
                return result

        return wrapper

    return decorator
