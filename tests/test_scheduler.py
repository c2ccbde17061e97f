import threading

import pytest

from wlcpoll.telemetry import CycleReport, PersistenceError, PollScheduler, SchedulerState


class BlockingCycle:
    """Cycle stand-in that holds until released."""

    def __init__(self, fail: bool = False):
        self.started = threading.Event()
        self.release = threading.Event()
        self.runs = []
        self.fail = fail

    def run(self, iteration):
        self.runs.append(iteration)
        self.started.set()
        assert self.release.wait(timeout=5)
        if self.fail:
            raise PersistenceError("database is locked")
        return CycleReport(iteration=iteration, snapshot_time=float(iteration))


def _wait_idle(scheduler, timeout=5.0):
    thread = scheduler._cycle_thread
    if thread is not None:
        thread.join(timeout)
    assert scheduler.state is SchedulerState.IDLE


def test_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        PollScheduler(BlockingCycle(), interval_seconds=0)


def test_tick_during_running_cycle_is_skipped():
    cycle = BlockingCycle()
    scheduler = PollScheduler(cycle, interval_seconds=60)

    assert scheduler.tick() is True
    assert cycle.started.wait(timeout=5)
    assert scheduler.state is SchedulerState.RUNNING

    assert scheduler.tick() is False
    assert scheduler.tick() is False

    cycle.release.set()
    _wait_idle(scheduler)

    assert cycle.runs == [1]
    stats = scheduler.get_stats()
    assert stats["ticks_skipped"] == 2
    assert stats["cycles_completed"] == 1
    assert stats["last_cycle"]["iteration"] == 1


def test_next_tick_after_completion_runs():
    cycle = BlockingCycle()
    cycle.release.set()
    scheduler = PollScheduler(cycle, interval_seconds=60)

    assert scheduler.tick() is True
    _wait_idle(scheduler)
    assert scheduler.tick() is True
    _wait_idle(scheduler)

    assert cycle.runs == [1, 2]
    assert scheduler.ticks_skipped == 0


def test_persistence_error_discards_cycle_and_continues():
    cycle = BlockingCycle(fail=True)
    cycle.release.set()
    scheduler = PollScheduler(cycle, interval_seconds=60)

    assert scheduler.tick() is True
    _wait_idle(scheduler)

    assert scheduler.cycles_failed == 1
    assert scheduler.last_report.error is not None
    assert scheduler.tick() is True
    _wait_idle(scheduler)
    assert scheduler.cycles_failed == 2


def test_run_once_is_synchronous():
    cycle = BlockingCycle()
    cycle.release.set()
    scheduler = PollScheduler(cycle, interval_seconds=60)

    report = scheduler.run_once()

    assert report.iteration == 1
    assert scheduler.state is SchedulerState.IDLE
    assert scheduler.cycles_completed == 1


def test_run_once_refuses_while_busy():
    cycle = BlockingCycle()
    scheduler = PollScheduler(cycle, interval_seconds=60)
    scheduler.tick()
    assert cycle.started.wait(timeout=5)

    with pytest.raises(RuntimeError):
        scheduler.run_once()

    cycle.release.set()
    _wait_idle(scheduler)


def test_start_and_stop():
    cycle = BlockingCycle()
    cycle.release.set()
    scheduler = PollScheduler(cycle, interval_seconds=60)

    scheduler.start()
    assert cycle.started.wait(timeout=5)
    scheduler.stop()

    assert not scheduler.is_running
    assert scheduler.wait(timeout=0) is True
    assert cycle.runs == [1]


def test_stop_reports_cycle_still_running():
    cycle = BlockingCycle()
    scheduler = PollScheduler(cycle, interval_seconds=60)
    scheduler.start()
    assert cycle.started.wait(timeout=5)

    assert scheduler.stop(timeout=0.05) is False

    cycle.release.set()
    assert scheduler.stop(timeout=5) is True
    assert scheduler.state is SchedulerState.IDLE
