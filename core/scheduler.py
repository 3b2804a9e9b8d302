"""
Debounced recompute scheduler.

Bursts of trigger events (viewport moves, filter changes, layer toggles)
collapse into one aggregation run fired after a quiet interval following
the last event. Runs that already started are never cancelled; each run
gets a monotonically increasing pass id so consumers can reject results
from passes older than the one they already show.
"""

import itertools
import logging
import threading
from enum import Enum
from typing import Callable, Optional

log = logging.getLogger(__name__)

DEFAULT_QUIET_INTERVAL = 0.35


class SchedulerState(Enum):
    IDLE = "idle"
    PENDING = "pending"


class DebouncedScheduler:
    """
    Two-state (IDLE / PENDING) debouncer.

    Usage:
        scheduler = DebouncedScheduler(lambda pass_id: run_pass(pass_id))
        scheduler.trigger("moveend")
        scheduler.trigger("filter")   # restarts the quiet interval
    """

    def __init__(
        self,
        run: Callable[[int], None],
        quiet_interval: float = DEFAULT_QUIET_INTERVAL,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        """
        Args:
            run: Called with the pass id when a scheduled run fires
            quiet_interval: Seconds without triggers before running
            timer_factory: Builds the timer; signature of threading.Timer
        """
        self._run = run
        self.quiet_interval = quiet_interval
        self._timer_factory = timer_factory

        self._lock = threading.Lock()
        self._state = SchedulerState.IDLE
        self._timer = None
        self._generation = 0
        self._pass_ids = itertools.count(1)

        self.runs_started = 0
        self.last_error: Optional[BaseException] = None

    @property
    def state(self) -> SchedulerState:
        return self._state

    def trigger(self, reason: str = "") -> None:
        """Schedule a run after the quiet interval, replacing any pending one."""
        with self._lock:
            if self._state is SchedulerState.PENDING and self._timer is not None:
                self._timer.cancel()
            self._state = SchedulerState.PENDING
            self._generation += 1
            timer = self._timer_factory(self.quiet_interval, self._fire, args=(self._generation,))
            timer.daemon = True
            self._timer = timer
            timer.start()
        log.debug(f"Recompute scheduled ({reason or 'trigger'})")

    def cancel(self) -> None:
        """Drop a run that has not started yet."""
        with self._lock:
            if self._timer is not None:
                self._timer.cancel()
            self._timer = None
            self._generation += 1
            self._state = SchedulerState.IDLE

    def run_now(self, reason: str = "") -> int:
        """Run immediately, superseding any pending run. Returns the pass id."""
        self.cancel()
        log.debug(f"Immediate recompute ({reason or 'refresh'})")
        return self._execute()

    def _fire(self, generation: int) -> None:
        with self._lock:
            # A newer trigger replaced the timer that is firing now
            if self._state is not SchedulerState.PENDING or generation != self._generation:
                return
            self._state = SchedulerState.IDLE
            self._timer = None
        self._execute()

    def _execute(self) -> int:
        with self._lock:
            pass_id = next(self._pass_ids)
            self.runs_started += 1
        try:
            self._run(pass_id)
            self.last_error = None
        except Exception as e:
            log.exception(f"Aggregation pass {pass_id} failed")
            self.last_error = e
        return pass_id
