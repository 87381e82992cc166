"""
Tests for the phase-scoped timer registry.
"""

from doodlehub.game.timers import TimerRegistry


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_one_shot_fires_once():
    clock = Clock()
    fired = []
    timers = TimerRegistry(clock)
    timers.schedule("a", "t", 2, lambda: fired.append(clock.now))
    clock.now = 1
    assert timers.run_due() == 0
    clock.now = 2
    assert timers.run_due() == 1
    clock.now = 10
    assert timers.run_due() == 0
    assert fired == [2]
    assert "t" not in timers


def test_interval_timer_catches_up():
    clock = Clock()
    fired = []
    timers = TimerRegistry(clock)
    timers.schedule("a", "tick", 1, lambda: fired.append(1), interval=1)
    clock.now = 3.5
    assert timers.run_due() == 3
    assert len(fired) == 3


def test_same_name_replaces():
    clock = Clock()
    fired = []
    timers = TimerRegistry(clock)
    timers.schedule("a", "t", 1, lambda: fired.append("old"))
    timers.schedule("a", "t", 1, lambda: fired.append("new"))
    clock.now = 1
    timers.run_due()
    assert fired == ["new"]


def test_sweep_cancels_other_phases():
    timers = TimerRegistry(Clock())
    timers.schedule("draw", "a", 1, lambda: None)
    timers.schedule("select", "b", 1, lambda: None)
    assert timers.sweep("select") == 1
    assert "a" not in timers and "b" in timers


def test_stale_phase_timer_is_discarded():
    clock = Clock()
    phase = {"now": "draw"}
    fired = []
    timers = TimerRegistry(clock, phase_getter=lambda: phase["now"])
    timers.schedule("draw", "t", 1, lambda: fired.append(1))
    phase["now"] = "lobby"
    clock.now = 5
    assert timers.run_due() == 0
    assert fired == []
    assert len(timers) == 0


def test_callback_may_reschedule_other_timers():
    clock = Clock()
    order = []
    timers = TimerRegistry(clock)

    def first():
        order.append("first")
        timers.schedule("a", "second", 0, lambda: order.append("second"))

    timers.schedule("a", "first", 1, first)
    clock.now = 1
    assert timers.run_due() == 2
    assert order == ["first", "second"]


def test_next_deadline_and_cancel_all():
    clock = Clock()
    timers = TimerRegistry(clock)
    assert timers.next_deadline() is None
    timers.schedule("a", "x", 3, lambda: None)
    timers.schedule("a", "y", 2, lambda: None)
    assert timers.next_deadline() == 2
    timers.cancel_all()
    assert len(timers) == 0
