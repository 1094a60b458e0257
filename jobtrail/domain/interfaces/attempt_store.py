"""Interface for failed-attempt storage.

Defines the contract for keeping per-key attempt records so that the
in-process map and a shared cache-backed store are interchangeable.
"""

import abc
from typing import Callable, Optional

from jobtrail.domain.models.throttle import AttemptRecord, ThrottleKey


class AttemptStore(abc.ABC):
    """Abstract Base Class for attempt record storage."""

    @abc.abstractmethod
    def get(self, key: ThrottleKey) -> Optional[AttemptRecord]:
        """Retrieves a copy of the record for a key.

        Args:
            key: The throttle key to look up.

        Returns:
            The record, or None if the key has no failures on file.
        """
        pass

    @abc.abstractmethod
    def set(self, key: ThrottleKey, record: AttemptRecord) -> None:
        """Stores (creates or replaces) the record for a key.

        Args:
            key: The throttle key to store under.
            record: The record to store.
        """
        pass

    @abc.abstractmethod
    def delete(self, key: ThrottleKey) -> None:
        """Deletes the record for a key. Missing keys are ignored."""
        pass

    @abc.abstractmethod
    def sweep(self, is_expired: Callable[[AttemptRecord], bool]) -> int:
        """Removes every record for which ``is_expired`` returns True.

        Returns:
            The number of records removed.
        """
        pass

    @abc.abstractmethod
    def clear(self) -> None:
        """Removes all records."""
        pass

    @abc.abstractmethod
    def size(self) -> int:
        """Returns the number of stored records."""
        pass
