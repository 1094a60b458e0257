"""Domain models for login-attempt throttling.

Holds the throttle key, the per-key attempt record, the throttle policy
configuration and the status values returned to callers.
"""

import re
from dataclasses import dataclass
from typing import Optional

from jobtrail.domain.models.common import AccountIdentity, ClientIdentity

_EMAIL_MASK = re.compile(r"(.{2}).*(@.*)")


def normalize_account(account: str) -> AccountIdentity:
    """Lower-cases and trims an account identity."""
    return AccountIdentity(account.strip().lower())


def mask_account(account: str) -> str:
    """Masks an email-like identity for logs, e.g. ``jo***@example.com``."""
    return _EMAIL_MASK.sub(r"\1***\2", account)


@dataclass(frozen=True)
class ThrottleKey:
    """Composite identity (client + account) scoping attempt counting."""
    client: ClientIdentity
    account: AccountIdentity

    def __str__(self) -> str:
        return f"login:{self.client}:{self.account}"

    def masked(self) -> str:
        """Key rendering that is safe to write to logs."""
        return f"login:{self.client}:{mask_account(self.account)}"


def attempt_key(client_ip: str, email: str) -> ThrottleKey:
    """Builds the throttle key for a client address and account email."""
    return ThrottleKey(client=ClientIdentity(client_ip), account=normalize_account(email))


@dataclass
class AttemptRecord:
    """Failed-attempt bookkeeping for a single throttle key."""
    count: int
    window_start_ms: int
    locked_until_ms: Optional[int] = None

    def window_expired(self, now_ms: int, window_ms: int) -> bool:
        return now_ms - self.window_start_ms > window_ms

    def is_locked(self, now_ms: int) -> bool:
        return self.locked_until_ms is not None and now_ms < self.locked_until_ms

    def is_reclaimable(self, now_ms: int, window_ms: int) -> bool:
        """True once both the window and any lockout are over."""
        lock_expired = self.locked_until_ms is None or now_ms > self.locked_until_ms
        return self.window_expired(now_ms, window_ms) and lock_expired


@dataclass(frozen=True)
class ThrottleConfig:
    """Lockout policy configuration. Durations are in milliseconds."""
    max_attempts: int = 5
    attempt_window_ms: int = 15 * 60 * 1000
    initial_lockout_ms: int = 60 * 1000
    max_lockout_ms: int = 15 * 60 * 1000
    lockout_multiplier: float = 2
    sweep_interval_ms: int = 60 * 1000

    def __post_init__(self) -> None:
        if self.max_attempts <= 0:
            raise ValueError("max_attempts must be positive.")
        if self.attempt_window_ms <= 0 or self.sweep_interval_ms <= 0:
            raise ValueError("Attempt window and sweep interval must be positive.")
        if self.initial_lockout_ms <= 0 or self.max_lockout_ms < self.initial_lockout_ms:
            raise ValueError("Lockout durations must be positive and max_lockout_ms >= initial_lockout_ms.")
        if self.lockout_multiplier < 1:
            raise ValueError("lockout_multiplier must be at least 1.")


@dataclass(frozen=True)
class AdmissionStatus:
    """Answer to "may this key attempt to authenticate now?"."""
    allowed: bool
    remaining_attempts: int
    locked_until_ms: Optional[int] = None
    retry_after_ms: Optional[int] = None


@dataclass(frozen=True)
class FailureOutcome:
    """Lockout state after a failed attempt has been recorded."""
    locked: bool
    remaining_attempts: int
    locked_until_ms: Optional[int] = None
    lockout_duration_ms: Optional[int] = None
