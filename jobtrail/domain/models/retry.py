"""Domain models for retrying calls to external services."""

from dataclasses import dataclass, replace
from typing import Any, Callable, Optional

RetryPredicate = Callable[[BaseException], bool]
RetryCallback = Callable[[int, BaseException, float], None]


@dataclass(frozen=True)
class RetryOptions:
    """Backoff configuration for one ``execute`` call.

    Attributes:
        max_retries: Retries after the first attempt (total calls = max_retries + 1).
        initial_delay_ms: Base delay before the first retry.
        max_delay_ms: Upper bound for any single delay.
        backoff_multiplier: Growth factor applied to the base delay after each retry.
        is_retryable: Classifies errors worth retrying. ``None`` uses the default classifier.
        on_retry: Called before each retry with (attempt number, error, delay in ms).
    """
    max_retries: int = 3
    initial_delay_ms: float = 1000
    max_delay_ms: float = 10000
    backoff_multiplier: float = 2
    is_retryable: Optional[RetryPredicate] = None
    on_retry: Optional[RetryCallback] = None

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries cannot be negative.")
        if self.initial_delay_ms < 0 or self.max_delay_ms < 0:
            raise ValueError("Delays cannot be negative.")
        if self.backoff_multiplier < 1:
            raise ValueError("backoff_multiplier must be at least 1.")

    def with_overrides(self, **changes: Any) -> "RetryOptions":
        """Returns a copy with the given fields replaced (``None`` values are ignored)."""
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


@dataclass
class RetryContext:
    """Per-call retry state; never shared between calls."""
    attempt: int
    delay_ms: float
    last_error: Optional[BaseException] = None
