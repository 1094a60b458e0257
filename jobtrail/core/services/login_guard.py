"""Throttled credential checking for the login endpoint.

Runs the authentication route's throttle flow without any HTTP concerns:
check admission, verify credentials through a caller-supplied callable,
then record the failure or clear the key's history.
"""

import logging
import math
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from jobtrail.domain.models.throttle import AdmissionStatus, FailureOutcome, ThrottleKey, attempt_key
from jobtrail.infrastructure.resilience.attempt_throttle import AttemptThrottle

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_INVALID = "invalid_credentials"
STATUS_LOCKED = "locked"

DEFAULT_WAIT_MS = 60_000

CredentialVerifier = Callable[[], Awaitable[bool]]


def format_lockout_duration(ms: int) -> str:
    """Renders a wait time for users, rounding up ("5 seconds", "2 minutes")."""
    seconds = math.ceil(ms / 1000)
    if seconds < 60:
        return f"{seconds} second{'' if seconds == 1 else 's'}"
    minutes = math.ceil(seconds / 60)
    return f"{minutes} minute{'' if minutes == 1 else 's'}"


@dataclass(frozen=True)
class LoginResult:
    """Outcome of a throttled login attempt, ready to be turned into a response."""
    status: str
    message: str
    remaining_attempts: Optional[int] = None
    locked_until_ms: Optional[int] = None
    retry_after_ms: Optional[int] = None

    @property
    def succeeded(self) -> bool:
        return self.status == STATUS_OK


class LoginGuard:
    """Applies the attempt throttle around credential verification."""

    def __init__(self, throttle: AttemptThrottle):
        self.throttle = throttle

    def check_admission(self, client_ip: str, email: str) -> AdmissionStatus:
        return self.throttle.check_admission(attempt_key(client_ip, email))

    def record_failure(self, client_ip: str, email: str) -> FailureOutcome:
        return self.throttle.record_failure(attempt_key(client_ip, email))

    def clear_attempts(self, client_ip: str, email: str) -> None:
        self.throttle.clear(attempt_key(client_ip, email))

    def _failed(self, key: ThrottleKey) -> LoginResult:
        outcome = self.throttle.record_failure(key)
        if outcome.locked:
            duration = format_lockout_duration(outcome.lockout_duration_ms or DEFAULT_WAIT_MS)
            return LoginResult(
                status=STATUS_LOCKED,
                message=f"Too many failed attempts. Account locked for {duration}.",
                remaining_attempts=0,
                locked_until_ms=outcome.locked_until_ms,
                retry_after_ms=outcome.lockout_duration_ms,
            )
        # Same message for unknown accounts and bad passwords
        return LoginResult(
            status=STATUS_INVALID,
            message="Invalid email or password",
            remaining_attempts=outcome.remaining_attempts,
        )

    async def attempt_login(self, client_ip: str, email: str, verify: CredentialVerifier) -> LoginResult:
        """Checks admission, runs ``verify`` and updates the throttle accordingly.

        Args:
            client_ip: Network identity of the caller.
            email: Account identity as typed by the user (normalized here).
            verify: Returns True when the credentials are valid. Not called while locked out.

        Returns:
            The login result; lockouts are reported as a status, never raised.
        """
        key = attempt_key(client_ip, email)
        admission = self.throttle.check_admission(key)
        if not admission.allowed:
            duration = format_lockout_duration(admission.retry_after_ms or DEFAULT_WAIT_MS)
            logger.info(f"Login attempt rejected for {key.masked()}: locked for another {admission.retry_after_ms}ms")
            return LoginResult(
                status=STATUS_LOCKED,
                message=f"Too many failed attempts. Try again in {duration}.",
                remaining_attempts=0,
                locked_until_ms=admission.locked_until_ms,
                retry_after_ms=admission.retry_after_ms,
            )

        if not await verify():
            return self._failed(key)

        self.throttle.clear(key)
        logger.info(f"Login succeeded for {key.masked()}")
        return LoginResult(status=STATUS_OK, message="Login successful")
