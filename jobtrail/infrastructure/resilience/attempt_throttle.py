"""Login attempt throttling to slow down credential guessing.

Tracks failed authentication attempts per (client, account) key and applies
a progressive lockout once a key keeps failing inside the attempt window.

Protection is best-effort: ``record_failure`` reads, updates and writes a
record without holding a lock across the three steps, so two concurrent
failures for the same key can be counted once.
"""

import logging
from typing import Optional

from jobtrail.domain.events.resilience_events import (
    AttemptRecordsSwept, LoginAttemptsCleared, LoginFailureRecorded, LoginLockoutStarted
)
from jobtrail.domain.interfaces.attempt_store import AttemptStore
from jobtrail.domain.interfaces.clock import Clock
from jobtrail.domain.models.throttle import (
    AdmissionStatus, AttemptRecord, FailureOutcome, ThrottleConfig, ThrottleKey
)
from jobtrail.infrastructure.monitoring.event_dispatcher import EventDispatcher, default_dispatcher
from jobtrail.infrastructure.resilience.clock import SystemClock
from jobtrail.infrastructure.resilience.memory_store import InMemoryAttemptStore

logger = logging.getLogger(__name__)


class AttemptThrottle:
    """Admission decisions and progressive lockout for authentication attempts."""

    def __init__(
        self,
        config: Optional[ThrottleConfig] = None,
        store: Optional[AttemptStore] = None,
        clock: Optional[Clock] = None,
        dispatcher: Optional[EventDispatcher] = None,
    ):
        """Initializes the throttle.

        Args:
            config: Lockout policy (defaults to 5 failures / 15 min, 60 s doubling to 15 min).
            store: Where attempt records live (in-process map if None).
            clock: Time source (wall clock if None).
            dispatcher: Receives throttle events (process-wide dispatcher if None).
        """
        self.config = config or ThrottleConfig()
        self.store = store or InMemoryAttemptStore()
        self.clock = clock or SystemClock()
        self.dispatcher = dispatcher or default_dispatcher
        logger.info(
            f"AttemptThrottle initialized: max_attempts={self.config.max_attempts}, "
            f"window={self.config.attempt_window_ms}ms, "
            f"lockout={self.config.initial_lockout_ms}ms..{self.config.max_lockout_ms}ms "
            f"x{self.config.lockout_multiplier}"
        )

    def _full_allowance(self) -> AdmissionStatus:
        return AdmissionStatus(allowed=True, remaining_attempts=self.config.max_attempts)

    def _lockout_duration_ms(self, count: int) -> int:
        """initial * multiplier ** (count // max - 1), capped at the maximum lockout."""
        cfg = self.config
        steps = count // cfg.max_attempts - 1
        duration = float(cfg.initial_lockout_ms)
        for _ in range(max(0, steps)):
            duration *= cfg.lockout_multiplier
            if duration >= cfg.max_lockout_ms:
                break
        return int(min(duration, cfg.max_lockout_ms))

    def check_admission(self, key: ThrottleKey) -> AdmissionStatus:
        """Reports whether an attempt for ``key`` may proceed. Does not modify state."""
        now = self.clock.now_ms()
        record = self.store.get(key)

        if record is None:
            return self._full_allowance()

        if record.is_locked(now):
            return AdmissionStatus(
                allowed=False,
                remaining_attempts=0,
                locked_until_ms=record.locked_until_ms,
                retry_after_ms=record.locked_until_ms - now,
            )

        if record.window_expired(now, self.config.attempt_window_ms):
            # Next failure starts a new window
            return self._full_allowance()

        # A count at or above the maximum only survives an expired lockout;
        # the attempt is admitted and the next failure locks again.
        remaining = max(1, self.config.max_attempts - record.count)
        return AdmissionStatus(allowed=True, remaining_attempts=remaining)

    def record_failure(self, key: ThrottleKey) -> FailureOutcome:
        """Counts a failed attempt for ``key`` and applies a lockout at the threshold."""
        cfg = self.config
        now = self.clock.now_ms()
        record = self.store.get(key)

        if record is None or record.window_expired(now, cfg.attempt_window_ms):
            record = AttemptRecord(count=1, window_start_ms=now)
        else:
            record.count += 1

        if record.count >= cfg.max_attempts:
            duration = self._lockout_duration_ms(record.count)
            record.locked_until_ms = now + duration
            self.store.set(key, record)

            logger.warning(
                f"Login locked for {key.masked()} after {record.count} failed attempts; "
                f"lockout {duration}ms"
            )
            self.dispatcher.dispatch(LoginLockoutStarted(
                key=key.masked(),
                attempt_count=record.count,
                lockout_duration_ms=duration,
                locked_until_ms=record.locked_until_ms,
            ))
            return FailureOutcome(
                locked=True,
                remaining_attempts=0,
                locked_until_ms=record.locked_until_ms,
                lockout_duration_ms=duration,
            )

        self.store.set(key, record)
        remaining = cfg.max_attempts - record.count
        logger.info(f"Failed login attempt recorded for {key.masked()}: count={record.count}, remaining={remaining}")
        self.dispatcher.dispatch(LoginFailureRecorded(
            key=key.masked(), attempt_count=record.count, remaining_attempts=remaining
        ))
        return FailureOutcome(locked=False, remaining_attempts=remaining)

    def clear(self, key: ThrottleKey) -> None:
        """Forgets all failures for ``key``. Call only after a verified successful login."""
        self.store.delete(key)
        logger.debug(f"Cleared login attempts for {key.masked()}")
        self.dispatcher.dispatch(LoginAttemptsCleared(key=key.masked()))

    def attempt_count(self, key: ThrottleKey) -> int:
        """Current failure count for ``key`` (0 when nothing is on file)."""
        record = self.store.get(key)
        return record.count if record is not None else 0

    def sweep(self) -> int:
        """Removes records whose window and lockout have both expired."""
        now = self.clock.now_ms()
        window_ms = self.config.attempt_window_ms
        removed = self.store.sweep(lambda record: record.is_reclaimable(now, window_ms))
        if removed:
            logger.debug(f"Attempt sweep removed {removed} record(s).")
            self.dispatcher.dispatch(AttemptRecordsSwept(removed=removed))
        return removed
