"""
Backoff helpers for draft writes.

A transport may retry transient failures itself rather than surface them to
the editor on the first hiccup. Conflicts are never retried here; callers
choose which exception types count as transient.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Optional

from ..core.exceptions import AutosaveConfigError


logger = logging.getLogger(__name__)


@dataclass
class RetryConfig:
    """
    Backoff settings.

    Attributes:
        max_attempts: Total calls allowed, the first one included
        initial_delay_ms: Wait before the second call
        max_delay_ms: Upper bound for any single wait
        backoff_multiplier: Growth factor between waits
        jitter: Spread each wait by +/-25%
    """
    max_attempts: int = 3
    initial_delay_ms: float = 250.0
    max_delay_ms: float = 4000.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self):
        if self.max_attempts < 1:
            raise AutosaveConfigError(f"max_attempts must be >= 1, got {self.max_attempts}")


@dataclass
class RetryResult:
    """Outcome of retry_async: the value on success, the last error otherwise."""
    success: bool
    result: Any = None
    attempts: int = 0
    error: Optional[Exception] = None
    error_history: List[str] = field(default_factory=list)


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Seconds to wait after the given (0-based) failed attempt.
    """
    grown = config.initial_delay_ms * config.backoff_multiplier ** attempt
    delay_ms = min(grown, config.max_delay_ms)
    if config.jitter:
        delay_ms *= random.uniform(0.75, 1.25)
    return delay_ms / 1000.0


async def retry_async(
    operation: Callable[[], Awaitable[Any]],
    config: RetryConfig,
    retry_on: tuple = (Exception,),
    operation_name: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> RetryResult:
    """
    Await ``operation`` until it succeeds or the attempts run out.

    Only exceptions in ``retry_on`` lead to another attempt; any other
    exception stops immediately and is reported in the result.

    Args:
        operation: Zero-argument coroutine function
        config: Backoff settings
        retry_on: Exception types treated as transient
        operation_name: Label used in log messages
        sleep: Awaitable sleep between attempts (injectable for tests)
    """
    history: List[str] = []
    last_error: Optional[Exception] = None
    attempt = 0

    while attempt < config.max_attempts:
        attempt += 1
        try:
            value = await operation()
        except retry_on as e:
            last_error = e
            history.append(str(e))
            if attempt >= config.max_attempts:
                break
            delay = calculate_delay(attempt - 1, config)
            logger.warning(
                f"{operation_name}: attempt {attempt}/{config.max_attempts} failed ({e}), "
                f"retrying in {delay:.3f}s"
            )
            await sleep(delay)
            continue
        except Exception as e:
            history.append(str(e))
            logger.warning(f"{operation_name}: giving up on non-transient error: {e}")
            return RetryResult(success=False, attempts=attempt, error=e, error_history=history)

        if attempt > 1:
            logger.info(f"{operation_name} succeeded on attempt {attempt}")
        return RetryResult(success=True, result=value, attempts=attempt, error_history=history)

    logger.error(f"{operation_name}: all {config.max_attempts} attempts failed")
    return RetryResult(success=False, attempts=attempt, error=last_error, error_history=history)
