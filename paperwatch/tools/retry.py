import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt
from tenacity.wait import wait_base
from paperwatch.config import settings
from paperwatch.services.logger import logger

T = TypeVar("T")

JITTER_RATIO = 0.1

def _always_retry(error: BaseException) -> bool:
    return True

@dataclass(frozen=True)
class RetryOptions:
    max_attempts: int = 3
    base_delay: float = 1.0  # seconds
    max_delay: float = 10.0
    backoff_multiplier: float = 2.0
    is_retryable: Callable[[BaseException], bool] = _always_retry
    name: str = "operation"

    @classmethod
    def from_settings(cls, **overrides) -> "RetryOptions":
        values = dict(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            base_delay=settings.RETRY_BASE_DELAY,
            max_delay=settings.RETRY_MAX_DELAY,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
        )
        values.update(overrides)
        return cls(**values)

def compute_backoff_delay(
    attempt: int,
    base_delay: float,
    backoff_multiplier: float,
    max_delay: float,
    rand: Callable[[], float] = random.random,
) -> float:
    """Delay before the retry that follows failed attempt number `attempt` (1-based)."""
    exponential = base_delay * backoff_multiplier ** (attempt - 1)
    jitter = rand() * JITTER_RATIO * exponential
    return min(exponential + jitter, max_delay)

class BackoffWait(wait_base):
    """tenacity wait strategy: exponential backoff plus up to 10% jitter, capped."""

    def __init__(self, options: RetryOptions, rand: Callable[[], float] = random.random):
        self.options = options
        self.rand = rand

    def __call__(self, retry_state: RetryCallState) -> float:
        return compute_backoff_delay(
            retry_state.attempt_number,
            self.options.base_delay,
            self.options.backoff_multiplier,
            self.options.max_delay,
            self.rand,
        )

def _log_before_sleep(name: str, max_attempts: int):
    def log(retry_state: RetryCallState):
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug(
            f"{name}: attempt {retry_state.attempt_number}/{max_attempts} failed ({error}), "
            f"retrying in {retry_state.next_action.sleep:.2f}s"
        )
    return log

async def with_retry(
    operation: Callable[[], Awaitable[T]],
    options: RetryOptions | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    rand: Callable[[], float] = random.random,
) -> T:
    """
    Run `operation` until it succeeds, a non-retryable error occurs, or
    `max_attempts` is used up. The last error is re-raised unchanged.
    """
    options = options or RetryOptions()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.max_attempts),
        wait=BackoffWait(options, rand),
        retry=retry_if_exception(options.is_retryable),
        before_sleep=_log_before_sleep(options.name, options.max_attempts),
        reraise=True,
        sleep=sleep,
    )
    # tenacity only awaits callables it recognises as coroutine functions
    async def attempt() -> T:
        return await operation()

    try:
        return await retrying(attempt)
    except Exception as e:
        if options.is_retryable(e):
            logger.warning(f"{options.name}: all {options.max_attempts} attempts failed: {e}")
        else:
            logger.debug(f"{options.name}: error is not retryable, giving up: {e}")
        raise

def retryable(options: RetryOptions | None = None, sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
    """Decorator form of with_retry for coroutine functions."""
    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            return await with_retry(lambda: func(*args, **kwargs), options, sleep=sleep)
        return wrapper
    return decorator
