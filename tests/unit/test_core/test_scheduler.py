import time
import pytest

from core.scheduler import DebouncedScheduler, SchedulerState


class FakeTimer:
    """Stands in for threading.Timer; fired by the test."""

    instances = []

    def __init__(self, interval, function, args=None, kwargs=None):
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.daemon = False
        self.started = False
        self.cancelled = False
        FakeTimer.instances.append(self)

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.function(*self.args)


@pytest.fixture
def runs():
    FakeTimer.instances = []
    return []


@pytest.fixture
def scheduler(runs):
    return DebouncedScheduler(runs.append, quiet_interval=0.35, timer_factory=FakeTimer)


def test_starts_idle(scheduler):
    assert scheduler.state is SchedulerState.IDLE


def test_trigger_schedules_after_quiet_interval(scheduler, runs):
    scheduler.trigger("moveend")
    assert scheduler.state is SchedulerState.PENDING
    timer = FakeTimer.instances[-1]
    assert timer.started and timer.interval == 0.35

    timer.fire()
    assert runs == [1]
    assert scheduler.state is SchedulerState.IDLE


def test_burst_collapses_into_one_run(scheduler, runs):
    for _ in range(5):
        scheduler.trigger("moveend")

    timers = FakeTimer.instances
    assert len(timers) == 5
    assert all(t.cancelled for t in timers[:-1])
    assert not timers[-1].cancelled

    timers[-1].fire()
    assert runs == [1]
    assert scheduler.runs_started == 1


def test_superseded_timer_firing_late_does_nothing(scheduler, runs):
    scheduler.trigger()
    stale = FakeTimer.instances[-1]
    scheduler.trigger()
    # cancel() lost the race and the old timer fires anyway
    stale.fire()
    assert runs == []
    FakeTimer.instances[-1].fire()
    assert runs == [1]


def test_pass_ids_increase(scheduler, runs):
    for _ in range(3):
        scheduler.trigger()
        FakeTimer.instances[-1].fire()
    assert runs == [1, 2, 3]


def test_run_now_supersedes_pending(scheduler, runs):
    scheduler.trigger()
    pending = FakeTimer.instances[-1]
    pass_id = scheduler.run_now("refresh")
    assert pass_id == 1
    assert pending.cancelled
    assert scheduler.state is SchedulerState.IDLE
    pending.fire()
    assert runs == [1]


def test_cancel_drops_pending_run(scheduler, runs):
    scheduler.trigger()
    scheduler.cancel()
    FakeTimer.instances[-1].fire()
    assert runs == []
    assert scheduler.state is SchedulerState.IDLE


def test_failed_run_is_recorded(runs):
    def boom(pass_id):
        raise RuntimeError("layer query failed")

    scheduler = DebouncedScheduler(boom, timer_factory=FakeTimer)
    scheduler.trigger()
    FakeTimer.instances[-1].fire()
    assert isinstance(scheduler.last_error, RuntimeError)
    assert scheduler.state is SchedulerState.IDLE


def test_real_timer_debounces():
    """Triggers closer together than the quiet interval give a single run."""
    runs = []
    scheduler = DebouncedScheduler(runs.append, quiet_interval=0.1)
    for _ in range(5):
        scheduler.trigger()
        time.sleep(0.01)
    time.sleep(0.5)
    assert runs == [1]
