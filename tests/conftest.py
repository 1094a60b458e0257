import pytest

from jobtrail.domain.models.throttle import ThrottleConfig
from jobtrail.infrastructure.config import settings
from jobtrail.infrastructure.monitoring.event_dispatcher import EventDispatcher
from jobtrail.infrastructure.resilience.attempt_throttle import AttemptThrottle
from jobtrail.infrastructure.resilience.clock import ManualClock

START_MS = 1_700_000_000_000


class RecordingSleep:
    """Async stand-in for asyncio.sleep that only records requested durations."""

    def __init__(self):
        self.calls = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def clock():
    """A clock that only moves when the test advances it."""
    return ManualClock(start_ms=START_MS)


@pytest.fixture
def captured_events():
    return []


@pytest.fixture
def dispatcher(captured_events):
    """Private dispatcher so tests never see each other's events."""
    dispatcher = EventDispatcher()
    dispatcher.subscribe(captured_events.append)
    return dispatcher


@pytest.fixture
def throttle_config():
    return ThrottleConfig()


@pytest.fixture
def throttle(throttle_config, clock, dispatcher):
    return AttemptThrottle(config=throttle_config, clock=clock, dispatcher=dispatcher)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()


@pytest.fixture(autouse=True)
def isolated_test_config():
    """Drop any per-test configuration overrides."""
    yield
    settings.clear_test_config()
