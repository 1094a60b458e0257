from jobtrail.domain.models.throttle import AttemptRecord, attempt_key
from jobtrail.infrastructure.resilience.memory_store import InMemoryAttemptStore

KEY = attempt_key("10.0.0.1", "jane@example.com")


def test_get_missing_key_returns_none():
    assert InMemoryAttemptStore().get(KEY) is None


def test_records_are_copied_in_and_out():
    store = InMemoryAttemptStore()
    record = AttemptRecord(count=1, window_start_ms=100)
    store.set(KEY, record)
    record.count = 99

    fetched = store.get(KEY)
    assert fetched.count == 1
    fetched.count = 42
    assert store.get(KEY).count == 1


def test_delete_ignores_missing_keys():
    store = InMemoryAttemptStore()
    store.delete(KEY)
    store.set(KEY, AttemptRecord(count=2, window_start_ms=0))
    store.delete(KEY)
    assert store.get(KEY) is None
    assert store.size() == 0


def test_sweep_removes_only_matching_records():
    store = InMemoryAttemptStore()
    other = attempt_key("10.0.0.2", "jane@example.com")
    store.set(KEY, AttemptRecord(count=1, window_start_ms=0))
    store.set(other, AttemptRecord(count=3, window_start_ms=500))

    removed = store.sweep(lambda record: record.window_start_ms < 100)

    assert removed == 1
    assert store.get(KEY) is None
    assert store.get(other).count == 3


def test_clear_empties_store():
    store = InMemoryAttemptStore()
    store.set(KEY, AttemptRecord(count=1, window_start_ms=0))
    store.clear()
    assert store.size() == 0
