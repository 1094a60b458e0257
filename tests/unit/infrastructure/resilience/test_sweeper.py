import asyncio
import logging

import pytest

from jobtrail.infrastructure.resilience.sweeper import PeriodicSweeper


class CountingTarget:
    def __init__(self, removed_per_sweep=1):
        self.removed_per_sweep = removed_per_sweep
        self.calls = 0

    def sweep(self):
        self.calls += 1
        return self.removed_per_sweep


class BrokenTarget:
    def sweep(self):
        raise RuntimeError("store unavailable")


def test_sweep_once_sums_all_targets():
    sweeper = PeriodicSweeper([CountingTarget(2), CountingTarget(3)])
    assert sweeper.sweep_once() == 5


def test_failing_target_does_not_stop_other_targets(caplog):
    healthy = CountingTarget(1)
    sweeper = PeriodicSweeper([BrokenTarget(), healthy])
    with caplog.at_level(logging.ERROR):
        assert sweeper.sweep_once() == 1
    assert healthy.calls == 1
    assert "Sweep failed for BrokenTarget" in caplog.text


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        PeriodicSweeper([], interval_ms=0)


def test_start_requires_running_loop():
    with pytest.raises(RuntimeError):
        PeriodicSweeper([CountingTarget()]).start()


@pytest.mark.asyncio
async def test_start_runs_sweeps_until_stopped():
    target = CountingTarget()
    sweeper = PeriodicSweeper([target], interval_ms=10)

    sweeper.start()
    first_task = sweeper._task
    sweeper.start()
    assert sweeper._task is first_task
    assert sweeper.is_running

    await asyncio.sleep(0.1)
    await sweeper.stop()

    assert not sweeper.is_running
    assert target.calls >= 1
    calls_after_stop = target.calls
    await asyncio.sleep(0.05)
    assert target.calls == calls_after_stop


@pytest.mark.asyncio
async def test_stop_without_start_is_noop():
    await PeriodicSweeper([CountingTarget()]).stop()


@pytest.mark.asyncio
async def test_async_context_manager_controls_lifecycle():
    sweeper = PeriodicSweeper([CountingTarget()], interval_ms=1000)
    async with sweeper:
        assert sweeper.is_running
    assert not sweeper.is_running
