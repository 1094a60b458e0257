"""In-process implementation of the AttemptStore interface.

Records live in a dict guarded by a lock. Copies are handed out and taken
in, so callers cannot mutate stored records behind the store's back.
"""

import logging
import threading
from dataclasses import replace
from typing import Callable, Dict, Optional

from jobtrail.domain.interfaces.attempt_store import AttemptStore
from jobtrail.domain.models.throttle import AttemptRecord, ThrottleKey

logger = logging.getLogger(__name__)


class InMemoryAttemptStore(AttemptStore):
    """Single-process attempt store backed by a dict."""

    def __init__(self):
        self._records: Dict[ThrottleKey, AttemptRecord] = {}
        self._lock = threading.Lock()

    def get(self, key: ThrottleKey) -> Optional[AttemptRecord]:
        with self._lock:
            record = self._records.get(key)
            return replace(record) if record is not None else None

    def set(self, key: ThrottleKey, record: AttemptRecord) -> None:
        with self._lock:
            self._records[key] = replace(record)

    def delete(self, key: ThrottleKey) -> None:
        with self._lock:
            self._records.pop(key, None)

    def sweep(self, is_expired: Callable[[AttemptRecord], bool]) -> int:
        with self._lock:
            expired = [key for key, record in self._records.items() if is_expired(record)]
            for key in expired:
                del self._records[key]
        if expired:
            logger.debug(f"Swept {len(expired)} expired attempt record(s).")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()

    def size(self) -> int:
        with self._lock:
            return len(self._records)
