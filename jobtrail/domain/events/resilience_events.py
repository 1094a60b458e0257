"""Domain Events related to login throttling and outbound-call resilience.

Examples include events for failed logins, lockouts, scheduled retries and
calls that failed definitively.
"""

from dataclasses import dataclass, field
import time
from typing import Optional


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


# --- Login Throttle Events ---

@dataclass
class LoginFailureRecorded(DomainEvent):
    """A failed authentication attempt was counted for a key."""
    key: str  # Masked throttle key
    attempt_count: int
    remaining_attempts: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class LoginLockoutStarted(DomainEvent):
    """A key reached the failure threshold and is now locked out."""
    key: str  # Masked throttle key
    attempt_count: int
    lockout_duration_ms: int
    locked_until_ms: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class LoginAttemptsCleared(DomainEvent):
    """A key's failure record was removed after a successful login."""
    key: str  # Masked throttle key
    timestamp: float = field(default_factory=time.time)


@dataclass
class AttemptRecordsSwept(DomainEvent):
    """Expired records were reclaimed by the periodic sweep."""
    removed: int
    timestamp: float = field(default_factory=time.time)


# --- Outbound Call Events ---

@dataclass
class RetryScheduled(DomainEvent):
    """A failed outbound call will be retried after a delay."""
    operation: str
    attempt_number: int
    delay_ms: float
    error_type: str
    policy: Optional[str] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class OperationFailed(DomainEvent):
    """An outbound call failed definitively (not retryable or retries exhausted)."""
    operation: str
    attempts: int
    error_type: str
    error_message: str
    retries_exhausted: bool
    policy: Optional[str] = None
    timestamp: float = field(default_factory=time.time)
