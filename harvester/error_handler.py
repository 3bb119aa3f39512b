"""Error classification, retry policy and GraphQL response validation."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

from harvester.exceptions import (
    HTTPStatusError,
    NetworkError,
    TransportError,
    UnauthorizedError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

AttemptCallback = Callable[[int, Optional[BaseException]], None]
Sleeper = Callable[[float], Awaitable[Any]]


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: ``min_delay_ms * factor ** (attempt - 1)``."""

    max_attempts: int = 5
    min_delay_ms: float = 1000.0
    factor: float = 2.0

    @classmethod
    def from_config(cls, config) -> "RetryPolicy":
        return cls(
            max_attempts=config.retry_max_attempts,
            min_delay_ms=config.retry_min_delay_ms,
            factor=config.retry_factor,
        )


@dataclass(frozen=True)
class RetryDecision:
    retry: bool
    delay_ms: float = 0.0


class ErrorHandler:
    """Handles different types of errors with appropriate logging and recovery strategies."""

    @staticmethod
    def is_fatal(error: BaseException) -> bool:
        """Check if error must abort without another attempt.

        Returns:
            True for a rejected credential, False otherwise
        """
        return isinstance(error, UnauthorizedError)

    @staticmethod
    def decide(policy: RetryPolicy, attempt: int, error: BaseException) -> RetryDecision:
        """Decide whether a failed attempt is retried and after how long.

        Args:
            policy: Backoff parameters
            attempt: 1-based number of the attempt that just failed
            error: The failure it raised

        Returns:
            RetryDecision; ``retry`` is False for fatal errors or once attempts are exhausted
        """
        if ErrorHandler.is_fatal(error) or attempt >= policy.max_attempts:
            return RetryDecision(retry=False)
        return RetryDecision(retry=True, delay_ms=policy.min_delay_ms * policy.factor ** (attempt - 1))

    @staticmethod
    def log_error(error: BaseException, context: str = "") -> None:
        """Log error with appropriate level based on type.

        Args:
            error: The exception that occurred
            context: Additional context about where error occurred
        """
        where = f" ({context})" if context else ""
        if isinstance(error, UnauthorizedError):
            logger.error(f"Unauthorized{where}: {error}")
        elif isinstance(error, HTTPStatusError):
            logger.warning(f"HTTP {error.status_code} error{where}: {error}")
        elif isinstance(error, NetworkError):
            logger.warning(f"Network error{where}: {error}")
        else:
            logger.error(f"Unexpected error{where}: {error}", exc_info=error)


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    on_attempt: Optional[AttemptCallback] = None,
    sleep: Sleeper = asyncio.sleep,
) -> T:
    """Run ``operation`` until it succeeds, fails fatally, or attempts run out.

    Only transport failures are retried; anything else propagates at once.
    Every attempt is reported to ``on_attempt(attempt, error_or_None)``.

    Raises:
        The last transport error once the policy gives up.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            result = await operation()
        except TransportError as e:
            if on_attempt:
                on_attempt(attempt, e)
            ErrorHandler.log_error(e, context=f"attempt {attempt}/{policy.max_attempts}")
            decision = ErrorHandler.decide(policy, attempt, e)
            if not decision.retry:
                raise
            logger.info(f"Retrying in {decision.delay_ms / 1000:.1f}s")
            await sleep(decision.delay_ms / 1000.0)
            continue
        if on_attempt:
            on_attempt(attempt, None)
        if attempt > 1:
            logger.info(f"Succeeded on attempt {attempt}")
        else:
            logger.debug("Succeeded on attempt 1")
        return result


def validate_graphql_response(data: Any) -> bool:
    """Validate that response carries data and no application-level errors.

    Args:
        data: Response data to validate

    Returns:
        True if valid, False otherwise
    """
    if not isinstance(data, dict):
        logger.error(f"Response is not a dict: {type(data)}")
        return False

    if "errors" in data and data["errors"]:
        logger.error(f"GraphQL errors: {data['errors']}")
        return False

    if not isinstance(data.get("data"), dict):
        logger.error("No 'data' field in GraphQL response")
        return False

    return True
