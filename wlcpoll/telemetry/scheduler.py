"""
Poll Scheduler - Fixed-interval cycle driver
============================================

Fires one PollCycle per interval from a daemon timer thread. Runs alongside
the daemon's main thread, which only waits for a shutdown signal.

Concurrency Policy
------------------
    Serialized, and only serialized. The scheduler is either IDLE or
    RUNNING. A tick that arrives while a cycle is RUNNING is dropped with a
    warning; it is never queued and never starts a second cycle, so there
    is at most one SNMP walk and one snapshot transaction in flight and
    cycles never overlap. Snapshot times follow the wall clock, so they
    increase from cycle to cycle unless the system clock is stepped back.

    The timer keeps ticking while a cycle runs. Cycles execute on their own
    short-lived thread so a slow poll shows up as skipped ticks instead of a
    drifting timer.

Failure Handling
----------------
    A cycle that raises (PersistenceError or anything unexpected) is logged,
    counted and discarded. The scheduler always returns to IDLE and keeps
    ticking; nothing here terminates the process.

Lifecycle
---------
    scheduler = PollScheduler(cycle, interval_seconds=10)
    scheduler.start()   # spawns timer thread, first tick immediately
    ...
    scheduler.stop()    # signals timer thread, waits for a running cycle;
                        # False if the cycle was still running at the timeout

Public Methods
--------------
    start() / stop()
    tick() -> bool
        One timer firing; True if a cycle was started.
    run_once() -> CycleReport
        Run a cycle synchronously on the calling thread (CLI --once).
    get_stats() -> dict
"""

import logging
import threading
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, Optional

from .cycle import CycleReport, PollCycle
from .errors import PersistenceError

logger = logging.getLogger("Telemetry.Scheduler")

DEFAULT_INTERVAL_SECONDS = 10.0
STOP_TIMEOUT_SECONDS = 30.0


class SchedulerState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class PollScheduler:
    """Serialized fixed-interval scheduler for poll cycles."""

    def __init__(self, cycle: PollCycle, interval_seconds: float = DEFAULT_INTERVAL_SECONDS):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {interval_seconds}")
        self.cycle = cycle
        self.interval = interval_seconds

        self._thread: Optional[threading.Thread] = None
        self._cycle_thread: Optional[threading.Thread] = None
        self._running = False
        self._stop_event = threading.Event()
        self._busy = threading.Lock()   # held for the whole of a cycle
        self._stats_lock = threading.Lock()

        self.iteration = 0
        self.cycles_completed = 0
        self.cycles_failed = 0
        self.ticks_skipped = 0
        self.last_report: Optional[CycleReport] = None

    @property
    def state(self) -> SchedulerState:
        return SchedulerState.RUNNING if self._busy.locked() else SchedulerState.IDLE

    @property
    def is_running(self) -> bool:
        """Check if the timer thread is running."""
        return self._running

    def start(self):
        """Start the timer thread."""
        if self._running:
            logger.warning("Poll scheduler already running")
            return

        self._running = True
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="PollScheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"Poll scheduler started: interval={self.interval}s")

    def stop(self, timeout: float = STOP_TIMEOUT_SECONDS) -> bool:
        """
        Stop the timer thread and wait for an in-flight cycle.

        Returns:
            True once no cycle is running, False if one was still running
            after ``timeout`` seconds.
        """
        if not self._running:
            return self._wait_cycle(timeout)

        self._running = False
        self._stop_event.set()

        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        finished = self._wait_cycle(timeout)
        if finished:
            logger.info("Poll scheduler stopped")
        else:
            logger.warning(
                f"Poll scheduler stopped with cycle still running: "
                f"iteration={self.iteration}, waited={timeout}s"
            )
        return finished

    def _wait_cycle(self, timeout: float) -> bool:
        cycle_thread = self._cycle_thread
        if cycle_thread and cycle_thread.is_alive():
            cycle_thread.join(timeout=timeout)
            return not cycle_thread.is_alive()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called; True if stopped."""
        return self._stop_event.wait(timeout)

    def _run_loop(self):
        logger.info("Poll scheduler loop started")

        while not self._stop_event.is_set():
            try:
                self.tick()
            except Exception as e:
                logger.error(f"Error in poll scheduler loop: {e}", exc_info=True)

            # Sleep with interrupt capability
            self._stop_event.wait(self.interval)

        logger.info("Poll scheduler loop exited")

    def tick(self) -> bool:
        """
        Handle one timer firing.

        Returns:
            True if a new cycle was started, False if the tick was dropped
            because a cycle is still running.
        """
        if not self._busy.acquire(blocking=False):
            with self._stats_lock:
                self.ticks_skipped += 1
                skipped = self.ticks_skipped
            logger.warning(
                f"Previous cycle still running, skipping tick: "
                f"iteration={self.iteration}, ticks_skipped={skipped}"
            )
            return False

        with self._stats_lock:
            self.iteration += 1
            iteration = self.iteration
        logger.info(f"Starting new collection job: iteration={iteration}")

        try:
            self._cycle_thread = threading.Thread(
                target=self._run_cycle_and_release,
                args=(iteration,),
                name=f"PollCycle-{iteration}",
                daemon=True,
            )
            self._cycle_thread.start()
        except Exception:
            self._busy.release()
            raise
        return True

    def run_once(self) -> CycleReport:
        """
        Run one cycle on the calling thread.

        Raises:
            RuntimeError: If a cycle is already running
            PersistenceError: If the snapshot could not be written
        """
        if not self._busy.acquire(blocking=False):
            raise RuntimeError("A poll cycle is already running")
        try:
            with self._stats_lock:
                self.iteration += 1
                iteration = self.iteration
            report = self.cycle.run(iteration)
            self._record(report, failed=False)
            return report
        except PersistenceError as e:
            self._record(CycleReport(iteration=iteration, error=str(e)), failed=True)
            raise
        finally:
            self._busy.release()

    def _run_cycle_and_release(self, iteration: int) -> None:
        try:
            report = self.cycle.run(iteration)
            self._record(report, failed=False)
        except PersistenceError as e:
            logger.error(f"Cycle discarded: iteration={iteration}, err={e}")
            self._record(CycleReport(iteration=iteration, error=str(e)), failed=True)
        except Exception as e:
            logger.error(f"Unexpected error in cycle: iteration={iteration}, err={e}", exc_info=True)
            self._record(CycleReport(iteration=iteration, error=str(e)), failed=True)
        finally:
            self._busy.release()

    def _record(self, report: CycleReport, failed: bool) -> None:
        with self._stats_lock:
            self.last_report = report
            if failed:
                self.cycles_failed += 1
            else:
                self.cycles_completed += 1

    def get_stats(self) -> Dict[str, Any]:
        with self._stats_lock:
            return {
                "state": self.state.value,
                "interval_seconds": self.interval,
                "iteration": self.iteration,
                "cycles_completed": self.cycles_completed,
                "cycles_failed": self.cycles_failed,
                "ticks_skipped": self.ticks_skipped,
                "last_cycle": asdict(self.last_report) if self.last_report else None,
            }
