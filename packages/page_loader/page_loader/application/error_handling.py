"""Retry and timeout helpers for callers of the page loader.

``PageConfigLoader.load`` never retries on its own. Callers that want
retries wrap their call with ``with_retry``; only transient kinds of
``LoadError`` are retried, so a missing or forbidden page fails at once.
"""

from __future__ import annotations

import asyncio
import functools
import random
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel, Field

from page_loader.domain.enums import LoadErrorKind
from page_loader.domain.exceptions import ApplicationError, FetchTimeoutError, LoadError
from page_loader.infrastructure.logging import get_logger

if TYPE_CHECKING:
    from page_loader.config import config as settings

logger = get_logger(__name__)

T = TypeVar("T")
AsyncFunc = TypeVar("AsyncFunc", bound=Callable[..., Any])


class RetryStrategy(str, Enum):
    """How the delay grows between attempts."""

    EXPONENTIAL = "exponential"
    LINEAR = "linear"
    CONSTANT = "constant"


class RetryConfig(BaseModel):
    """Retry policy for page loads."""

    max_attempts: int = Field(default=3, ge=1, description="Maximum attempts, first one included")
    initial_delay: float = Field(default=0.5, gt=0, description="Initial delay in seconds")
    max_delay: float = Field(default=30.0, gt=0, description="Maximum delay in seconds")
    strategy: RetryStrategy = Field(default=RetryStrategy.EXPONENTIAL, description="Retry strategy")
    jitter: bool = Field(default=True, description="Spread delays by up to 10%")
    retryable_kinds: tuple[LoadErrorKind, ...] = Field(
        default=(LoadErrorKind.NETWORK_ERROR,),
        description="LoadError kinds that trigger a retry",
    )

    @classmethod
    def from_settings(cls, retries: settings.RetryConfig, **overrides: Any) -> RetryConfig:
        """Build a policy from the ``retries`` section of LoaderConfig."""
        values: dict[str, Any] = {
            "max_attempts": retries.max_attempts,
            "initial_delay": retries.initial_delay,
            "max_delay": retries.max_delay,
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)

    def should_retry(self, error: LoadError, attempt: int) -> bool:
        """Check whether a failed attempt may be followed by another."""
        return error.kind in self.retryable_kinds and attempt < self.max_attempts


def calculate_retry_delay(attempt: int, config: RetryConfig) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    if config.strategy == RetryStrategy.CONSTANT:
        delay = config.initial_delay
    elif config.strategy == RetryStrategy.LINEAR:
        delay = config.initial_delay * attempt
    else:
        delay = config.initial_delay * (2 ** (attempt - 1))

    delay = min(delay, config.max_delay)
    if config.jitter:
        delay *= random.uniform(0.9, 1.1)
    return max(0.0, delay)


def with_retry(config: RetryConfig | None = None) -> Callable[[AsyncFunc], AsyncFunc]:
    """
    Retry an async function while it fails with a transient LoadError.

    Other exceptions, and LoadErrors of other kinds, propagate on the first
    attempt.

    Example:
        @with_retry(RetryConfig(max_attempts=5))
        async def load_dashboard():
            return await loader.load("dashboard-page")
    """
    policy = config or RetryConfig()

    def decorator(func: AsyncFunc) -> AsyncFunc:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            attempt = 0
            while attempt < policy.max_attempts:
                attempt += 1
                try:
                    return await func(*args, **kwargs)
                except LoadError as e:
                    context = {
                        "function": func.__name__,
                        "attempt": attempt,
                        "resource_id": e.resource_id,
                        "kind": e.kind.value,
                    }
                    if e.kind not in policy.retryable_kinds:
                        raise
                    if not policy.should_retry(e, attempt):
                        logger.error(
                            f"Giving up on {e.resource_id} after {attempt} attempts",
                            extra=context,
                        )
                        raise

                    delay = calculate_retry_delay(attempt, policy)
                    logger.warning(
                        f"Load of {e.resource_id} failed with {e.kind.value}, "
                        f"retrying in {delay:.2f}s ({attempt}/{policy.max_attempts})",
                        extra={**context, "delay": delay},
                    )
                    await asyncio.sleep(delay)

            raise ApplicationError("Unexpected retry loop exit")

        return wrapper  # type: ignore

    return decorator


async def with_timeout(
    coro: Awaitable[T],
    timeout: float,
    operation_name: str = "operation",
) -> T:
    """
    Execute coroutine with timeout.

    Args:
        coro: Coroutine to execute
        timeout: Timeout in seconds
        operation_name: Name for error reporting

    Returns:
        Coroutine result

    Raises:
        FetchTimeoutError: If the operation times out
    """
    try:
        return await asyncio.wait_for(coro, timeout=timeout)
    except TimeoutError as e:
        raise FetchTimeoutError(operation_name, timeout) from e
