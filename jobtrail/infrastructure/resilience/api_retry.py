"""Service for executing calls to external services with automatic retries.

Implements exponential backoff with symmetric jitter for transient errors
(network failures, timeouts, 5xx responses). The caller decides what is
worth retrying; the original error always surfaces unchanged.
"""

import asyncio
import functools
import logging
import random
import socket
from typing import Any, Awaitable, Callable, Optional, TypeVar

from jobtrail.domain.events.resilience_events import OperationFailed, RetryScheduled
from jobtrail.domain.models.retry import RetryContext, RetryOptions
from jobtrail.infrastructure.monitoring.event_dispatcher import EventDispatcher, default_dispatcher

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.1
STATUS_ATTRIBUTES = ("status", "status_code", "http_status")

SleepFunc = Callable[[float], Awaitable[Any]]


def error_status(error: BaseException) -> Optional[int]:
    """Returns the HTTP-like status code an error carries, if any."""
    for attr in STATUS_ATTRIBUTES:
        value = getattr(error, attr, None)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
    return None


def is_retryable_error(error: BaseException) -> bool:
    """Default classifier: network errors, timeouts/aborts and 5xx statuses."""
    if isinstance(error, (ConnectionError, TimeoutError, asyncio.TimeoutError, socket.timeout)):
        return True
    status = error_status(error)
    return status is not None and 500 <= status < 600


class RetryExecutor:
    """Runs async units of work, retrying failures with jittered exponential backoff.

    Holds no per-call state, so one executor can serve any number of
    concurrent callers.
    """

    def __init__(
        self,
        sleep: Optional[SleepFunc] = None,
        random_source: Optional[Callable[[], float]] = None,
        dispatcher: Optional[EventDispatcher] = None,
        default_options: Optional[RetryOptions] = None,
    ):
        """Initializes the executor.

        Args:
            sleep: Awaitable sleep taking seconds (asyncio.sleep if None).
            random_source: Returns floats in [0, 1) for jitter (random.random if None).
            dispatcher: Receives retry events (process-wide dispatcher if None).
            default_options: Options used when ``execute`` is called without any.
        """
        self._sleep = sleep or asyncio.sleep
        self._random = random_source or random.random
        self.dispatcher = dispatcher or default_dispatcher
        self.default_options = default_options or RetryOptions()

    def compute_delay(self, base_delay_ms: float, options: RetryOptions) -> float:
        """Base delay with up to +/-10% jitter, clamped to the maximum delay."""
        jitter = base_delay_ms * JITTER_RATIO * (self._random() * 2 - 1)
        return min(base_delay_ms + jitter, options.max_delay_ms)

    async def execute(
        self,
        work: Callable[[], Awaitable[T]],
        options: Optional[RetryOptions] = None,
        *,
        operation_name: Optional[str] = None,
        policy_name: Optional[str] = None,
    ) -> T:
        """Executes ``work`` until it succeeds, is not retryable, or retries run out.

        Args:
            work: Zero-argument callable returning an awaitable.
            options: Backoff configuration (executor defaults if None).
            operation_name: Label for logs and events.
            policy_name: Name of the policy driving this call, for logs and events.

        Returns:
            The result of the first successful attempt.

        Raises:
            Exception: The error from the last attempt, unchanged.
        """
        opts = options or self.default_options
        is_retryable = opts.is_retryable or is_retryable_error
        operation = operation_name or getattr(work, "__name__", "operation")
        label = f"[{policy_name}] {operation}" if policy_name else operation
        ctx = RetryContext(attempt=0, delay_ms=opts.initial_delay_ms)

        while True:
            try:
                return await work()
            except Exception as e:
                ctx.last_error = e
                retryable = is_retryable(e)
                exhausted = retryable and ctx.attempt >= opts.max_retries
                if exhausted or not retryable:
                    if exhausted:
                        logger.error(f"Max retries ({opts.max_retries}) reached for {label}. Last error: {type(e).__name__}: {e}")
                    else:
                        logger.error(f"Non-retryable error calling {label} on attempt {ctx.attempt + 1}: {type(e).__name__}: {e}")
                    self.dispatcher.dispatch(OperationFailed(
                        operation=operation,
                        attempts=ctx.attempt + 1,
                        error_type=type(e).__name__,
                        error_message=str(e),
                        retries_exhausted=exhausted,
                        policy=policy_name,
                    ))
                    raise

                delay_ms = self.compute_delay(ctx.delay_ms, opts)
                ctx.attempt += 1
                logger.warning(
                    f"Retryable error calling {label} on attempt {ctx.attempt}/{opts.max_retries + 1}: "
                    f"{type(e).__name__}. Waiting {delay_ms:.0f}ms..."
                )
                self.dispatcher.dispatch(RetryScheduled(
                    operation=operation,
                    attempt_number=ctx.attempt,
                    delay_ms=delay_ms,
                    error_type=type(e).__name__,
                    policy=policy_name,
                ))
                if opts.on_retry is not None:
                    opts.on_retry(ctx.attempt, e, delay_ms)

                await self._sleep(delay_ms / 1000)
                ctx.delay_ms = min(ctx.delay_ms * opts.backoff_multiplier, opts.max_delay_ms)


_default_executor = RetryExecutor()


async def with_retry(
    work: Callable[[], Awaitable[T]],
    options: Optional[RetryOptions] = None,
    operation_name: Optional[str] = None,
) -> T:
    """Runs ``work`` through the process-wide executor."""
    return await _default_executor.execute(work, options, operation_name=operation_name)


def wrap_with_retry(
    func: Callable[..., Awaitable[T]],
    options: Optional[RetryOptions] = None,
    executor: Optional[RetryExecutor] = None,
) -> Callable[..., Awaitable[T]]:
    """Returns an async callable that runs ``func`` with retries on every call."""
    runner = executor or _default_executor

    @functools.wraps(func)
    async def retrying(*args: Any, **kwargs: Any) -> T:
        return await runner.execute(lambda: func(*args, **kwargs), options, operation_name=func.__name__)

    return retrying
