import asyncio
import socket

import pytest

from jobtrail.domain.events.resilience_events import OperationFailed, RetryScheduled
from jobtrail.domain.models.retry import RetryOptions
from jobtrail.infrastructure.resilience.api_retry import (
    RetryExecutor, is_retryable_error, with_retry, wrap_with_retry
)


class ServerError(Exception):
    def __init__(self, status):
        super().__init__(f"HTTP {status}")
        self.status = status


class FlakyOperation:
    """Fails with ``error_factory()`` for the first ``failures`` calls, then returns a value."""

    def __init__(self, failures, error_factory=lambda: ConnectionError("connection dropped")):
        self.failures = failures
        self.error_factory = error_factory
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error_factory()
        return f"result-{self.calls}"


@pytest.fixture
def executor(recording_sleep, dispatcher):
    return RetryExecutor(sleep=recording_sleep, dispatcher=dispatcher)


def always_retry(error):
    return True


# --- execute ---

@pytest.mark.asyncio
async def test_first_success_returns_without_retrying(executor, recording_sleep, mocker):
    on_retry = mocker.MagicMock()
    operation = FlakyOperation(failures=0)

    result = await executor.execute(operation, RetryOptions(on_retry=on_retry))

    assert result == "result-1"
    assert operation.calls == 1
    on_retry.assert_not_called()
    assert recording_sleep.calls == []


@pytest.mark.asyncio
async def test_rejected_error_propagates_after_one_attempt(executor, recording_sleep):
    error = ConnectionError("boom")

    async def work():
        raise error

    with pytest.raises(ConnectionError) as excinfo:
        await executor.execute(work, RetryOptions(is_retryable=lambda e: False))

    assert excinfo.value is error
    assert recording_sleep.calls == []


@pytest.mark.parametrize("max_retries", [0, 1, 3, 5])
@pytest.mark.asyncio
async def test_exhausted_retries_call_work_n_plus_one_times(max_retries, executor, recording_sleep):
    operation = FlakyOperation(failures=100)
    options = RetryOptions(max_retries=max_retries, is_retryable=always_retry)

    with pytest.raises(ConnectionError):
        await executor.execute(operation, options)

    assert operation.calls == max_retries + 1
    assert len(recording_sleep.calls) == max_retries
    for attempt, seconds in enumerate(recording_sleep.calls):
        base_ms = min(options.initial_delay_ms * options.backoff_multiplier ** attempt, options.max_delay_ms)
        assert base_ms * 0.9 <= seconds * 1000 <= min(base_ms * 1.1, options.max_delay_ms)


@pytest.mark.asyncio
async def test_three_failures_then_success_backs_off_1s_2s_4s(executor, recording_sleep, mocker):
    on_retry = mocker.MagicMock()
    operation = FlakyOperation(failures=3)

    result = await executor.execute(operation, RetryOptions(on_retry=on_retry))

    assert result == "result-4"
    assert [call.args[0] for call in on_retry.call_args_list] == [1, 2, 3]
    for seconds, expected in zip(recording_sleep.calls, [1.0, 2.0, 4.0]):
        assert expected * 0.9 <= seconds <= expected * 1.1
    assert len(recording_sleep.calls) == 3


@pytest.mark.asyncio
async def test_on_retry_receives_error_and_slept_delay(executor, recording_sleep):
    seen = []
    operation = FlakyOperation(failures=1)

    await executor.execute(operation, RetryOptions(on_retry=lambda *args: seen.append(args)))

    attempt, error, delay_ms = seen[0]
    assert attempt == 1
    assert isinstance(error, ConnectionError)
    assert recording_sleep.calls == [delay_ms / 1000]


@pytest.mark.parametrize(
    "random_value, expected_first_delay_ms",
    [
        (0.0, 900.0),
        (0.5, 1000.0),
        (1.0, 1100.0),
    ]
)
def test_jitter_is_symmetric_ten_percent(random_value, expected_first_delay_ms):
    executor = RetryExecutor(random_source=lambda: random_value)
    assert executor.compute_delay(1000, RetryOptions()) == pytest.approx(expected_first_delay_ms)


@pytest.mark.asyncio
async def test_delays_are_clamped_to_max_delay(recording_sleep, dispatcher):
    executor = RetryExecutor(sleep=recording_sleep, random_source=lambda: 1.0, dispatcher=dispatcher)
    options = RetryOptions(max_retries=3, initial_delay_ms=8000, max_delay_ms=10000, is_retryable=always_retry)

    with pytest.raises(ConnectionError):
        await executor.execute(FlakyOperation(failures=10), options)

    assert recording_sleep.calls == pytest.approx([8.8, 10.0, 10.0])


@pytest.mark.asyncio
async def test_default_predicate_does_not_retry_value_errors(executor):
    operation = FlakyOperation(failures=5, error_factory=lambda: ValueError("bad input"))

    with pytest.raises(ValueError):
        await executor.execute(operation)

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_cancellation_is_never_retried(executor):
    operation = FlakyOperation(failures=5, error_factory=asyncio.CancelledError)

    with pytest.raises(asyncio.CancelledError):
        await executor.execute(operation, RetryOptions(is_retryable=always_retry))

    assert operation.calls == 1


@pytest.mark.asyncio
async def test_executor_defaults_apply_when_no_options_given(recording_sleep, dispatcher):
    executor = RetryExecutor(sleep=recording_sleep, dispatcher=dispatcher, default_options=RetryOptions(max_retries=1))
    operation = FlakyOperation(failures=5)

    with pytest.raises(ConnectionError):
        await executor.execute(operation)

    assert operation.calls == 2


@pytest.mark.asyncio
async def test_concurrent_calls_do_not_share_state(executor):
    operations = [FlakyOperation(failures=i % 3) for i in range(20)]

    results = await asyncio.gather(*(executor.execute(op) for op in operations))

    assert results == [f"result-{i % 3 + 1}" for i in range(20)]


# --- events ---

@pytest.mark.asyncio
async def test_retry_and_failure_events_are_dispatched(executor, captured_events):
    options = RetryOptions(max_retries=2, is_retryable=always_retry)

    with pytest.raises(ConnectionError):
        await executor.execute(FlakyOperation(failures=10), options, operation_name="create-customer", policy_name="payment")

    scheduled = [e for e in captured_events if isinstance(e, RetryScheduled)]
    failed = [e for e in captured_events if isinstance(e, OperationFailed)]
    assert [e.attempt_number for e in scheduled] == [1, 2]
    assert all(e.operation == "create-customer" and e.policy == "payment" for e in scheduled)
    assert len(failed) == 1
    assert failed[0].attempts == 3
    assert failed[0].retries_exhausted is True


@pytest.mark.asyncio
async def test_non_retryable_failure_event_is_not_marked_exhausted(executor, captured_events):
    with pytest.raises(ValueError):
        await executor.execute(FlakyOperation(failures=1, error_factory=lambda: ValueError("nope")))

    assert captured_events[-1].retries_exhausted is False
    assert captured_events[-1].attempts == 1


@pytest.mark.asyncio
async def test_zero_retries_reports_exhaustion_in_log_and_event(executor, captured_events, caplog):
    with pytest.raises(ConnectionError):
        await executor.execute(FlakyOperation(failures=1), RetryOptions(max_retries=0), operation_name="ping")

    assert captured_events[-1].retries_exhausted is True
    assert "Max retries (0) reached for ping" in caplog.text
    assert "Non-retryable" not in caplog.text


@pytest.mark.asyncio
async def test_non_retryable_error_on_last_attempt_is_not_exhaustion(executor, captured_events, caplog):
    errors = [ConnectionError("drop"), ValueError("bad payload")]

    async def work():
        raise errors.pop(0)

    with pytest.raises(ValueError):
        await executor.execute(work, RetryOptions(max_retries=1), operation_name="upload")

    assert captured_events[-1].retries_exhausted is False
    assert "Non-retryable error calling upload on attempt 2" in caplog.text


# --- default classifier ---

@pytest.mark.parametrize(
    "error, expected",
    [
        (ConnectionError("refused"), True),
        (ConnectionResetError(), True),
        (TimeoutError(), True),
        (asyncio.TimeoutError(), True),
        (socket.timeout("timed out"), True),
        (ServerError(503), True),
        (ServerError(500), True),
        (ServerError(404), False),
        (ServerError(429), False),
        (ValueError("bad"), False),
        (KeyError("missing"), False),
    ]
)
def test_is_retryable_error(error, expected):
    assert is_retryable_error(error) is expected


def test_status_code_and_http_status_attributes_are_recognised():
    error = Exception("bad gateway")
    error.status_code = 502
    assert is_retryable_error(error) is True

    other = Exception("provider down")
    other.http_status = 500
    assert is_retryable_error(other) is True


def test_boolean_status_is_ignored():
    error = Exception("odd")
    error.status = True
    assert is_retryable_error(error) is False


# --- helpers ---

@pytest.mark.asyncio
async def test_with_retry_returns_first_success():
    operation = FlakyOperation(failures=0)
    assert await with_retry(operation, operation_name="noop") == "result-1"


@pytest.mark.asyncio
async def test_wrap_with_retry_retries_every_call(executor):
    calls = []

    async def fetch_invoice(invoice_id, *, expand=False):
        calls.append((invoice_id, expand))
        if len(calls) == 1:
            raise ConnectionError("reset")
        return {"id": invoice_id, "expand": expand}

    fetch = wrap_with_retry(fetch_invoice, executor=executor)

    assert await fetch("in_123", expand=True) == {"id": "in_123", "expand": True}
    assert calls == [("in_123", True), ("in_123", True)]
    assert fetch.__name__ == "fetch_invoice"


def test_invalid_options_are_rejected():
    with pytest.raises(ValueError):
        RetryOptions(max_retries=-1)
    with pytest.raises(ValueError):
        RetryOptions(backoff_multiplier=0.5)
