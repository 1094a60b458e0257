"""Named retry policies for the two external call sites.

Each policy pins a retryability classifier and delay bounds tuned to its
service: the payment provider and the outbound SMTP relay.
"""

import errno
import smtplib
import socket
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from jobtrail.domain.models.retry import RetryOptions
from jobtrail.infrastructure.resilience.api_retry import RetryExecutor, error_status

T = TypeVar("T")

# Payment provider error taxonomy (class names as raised by the provider SDK)
PAYMENT_RATE_LIMIT_ERRORS = frozenset({"RateLimitError"})
PAYMENT_CONNECTION_ERRORS = frozenset({"APIConnectionError"})
PAYMENT_RETRYABLE_CODES = frozenset({"rate_limit", "idempotency_key_in_use"})

TRANSIENT_ERRNOS = frozenset({errno.ECONNRESET, errno.ETIMEDOUT, errno.ECONNREFUSED})


def _has_type_named(error: BaseException, names: frozenset) -> bool:
    return any(cls.__name__ in names for cls in type(error).__mro__)


def is_payment_retryable(error: BaseException) -> bool:
    """Rate limits, connection failures, 5xx responses and idempotency conflicts."""
    if _has_type_named(error, PAYMENT_RATE_LIMIT_ERRORS | PAYMENT_CONNECTION_ERRORS):
        return True
    if getattr(error, "code", None) in PAYMENT_RETRYABLE_CODES:
        return True
    status = error_status(error)
    return status is not None and 500 <= status < 600


def is_email_retryable(error: BaseException) -> bool:
    """SMTP 4xx replies plus connection reset/timeout/refused errors."""
    smtp_code = getattr(error, "smtp_code", None)
    if isinstance(smtp_code, int):
        return 400 <= smtp_code < 500
    if isinstance(error, smtplib.SMTPServerDisconnected):
        return True
    if isinstance(error, (ConnectionResetError, ConnectionRefusedError, TimeoutError, socket.timeout)):
        return True
    return isinstance(error, OSError) and error.errno in TRANSIENT_ERRNOS


@dataclass(frozen=True)
class RetryPolicy:
    """A named set of retry options applied at one kind of call site."""
    name: str
    options: RetryOptions

    async def run(
        self,
        work: Callable[[], Awaitable[T]],
        operation_name: str,
        executor: Optional[RetryExecutor] = None,
    ) -> T:
        """Runs ``work`` under this policy; ``operation_name`` is used for logs only."""
        runner = executor or _policy_executor
        return await runner.execute(work, self.options, operation_name=operation_name, policy_name=self.name)


PAYMENT_POLICY = RetryPolicy(
    name="payment",
    options=RetryOptions(
        max_retries=3,
        initial_delay_ms=500,
        max_delay_ms=5000,
        is_retryable=is_payment_retryable,
    ),
)

EMAIL_POLICY = RetryPolicy(
    name="email",
    options=RetryOptions(
        max_retries=3,
        initial_delay_ms=1000,
        max_delay_ms=10000,
        is_retryable=is_email_retryable,
    ),
)

_policy_executor = RetryExecutor()


async def with_payment_retry(
    work: Callable[[], Awaitable[T]], operation_name: str, executor: Optional[RetryExecutor] = None
) -> T:
    """Wraps a payment-provider call, e.g. ``with_payment_retry(create_customer, "create-customer")``."""
    return await PAYMENT_POLICY.run(work, operation_name, executor)


async def with_email_retry(
    work: Callable[[], Awaitable[T]], operation_name: str, executor: Optional[RetryExecutor] = None
) -> T:
    """Wraps an outbound email send."""
    return await EMAIL_POLICY.run(work, operation_name, executor)


POLICIES = {policy.name: policy for policy in (PAYMENT_POLICY, EMAIL_POLICY)}
