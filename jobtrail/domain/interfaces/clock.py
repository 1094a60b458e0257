"""Interface for time sources.

Lets the throttle and the rate limiter run against wall time in production
and against a controllable clock in tests.
"""

import abc


class Clock(abc.ABC):
    """Abstract Base Class for a millisecond time source."""

    @abc.abstractmethod
    def now_ms(self) -> int:
        """Returns the current time in milliseconds."""
        pass
