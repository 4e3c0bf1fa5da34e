"""
Redrive logic with exponential backoff for write batches.

A rotation-eligible append failure is only reported by the coordinator;
redriving the same batch sends it to the rotated file. The backoff also
keeps a fast worker from hammering the namenode with new files.
"""

# hdfsslice/retry.py

import time
import logging
from typing import Any, Callable, Optional, Tuple, Type

from errors import BatchFailure, RotationEligibleAppendFailure, RotationExceeded

log = logging.getLogger('hdfsslice')


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(self, max_retries: int = 3, base_delay: float = 1.0,
                 max_delay: float = 60.0, exponential_base: float = 2.0):
        self.max_retries = max_retries
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    @classmethod
    def from_config(cls, config) -> 'RetryConfig':
        return cls(max_retries=config.retry_attempts, base_delay=config.retry_base_delay)


def _recoverable(error: Exception, retry_on: Tuple[Type[Exception], ...]) -> bool:
    if isinstance(error, RotationExceeded):
        return False
    if isinstance(error, BatchFailure):
        return all(_recoverable(e, retry_on) for e in error.errors)
    return isinstance(error, retry_on)


def redrive(operation: Callable[[], Any], config: Optional[RetryConfig] = None,
            retry_on: Tuple[Type[Exception], ...] = (RotationEligibleAppendFailure,),
            operation_name: str = "operation",
            sleep: Callable[[float], None] = time.sleep) -> Any:
    """
    Run an operation, redriving it after recoverable failures.

    Args:
        operation: Callable to run, usually a bound AppendCoordinator.append
        config: Retry configuration
        retry_on: Exception types that are worth another attempt
        operation_name: Name for logging
        sleep: Delay function, replaceable in tests

    Returns:
        Result of the operation

    Raises:
        RotationExceeded and non-recoverable errors immediately, otherwise
        the last exception once all retries are used up
    """
    if config is None:
        config = RetryConfig()

    for attempt in range(config.max_retries + 1):
        try:
            return operation()
        except Exception as e:
            if not _recoverable(e, retry_on) or attempt >= config.max_retries:
                if _recoverable(e, retry_on):
                    log.error(
                        f"{operation_name} failed after {config.max_retries + 1} attempts: {e}"
                    )
                raise

            delay = min(
                config.base_delay * (config.exponential_base ** attempt),
                config.max_delay
            )
            log.warning(
                f"{operation_name} failed (attempt {attempt + 1}/{config.max_retries + 1}): {e}. "
                f"Redriving in {delay:.1f}s..."
            )
            sleep(delay)
