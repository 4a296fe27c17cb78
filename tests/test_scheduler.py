# tests/test_scheduler.py
import pytest

from amsim_core.quantities import Domain, QuantityKind, Quantity, StateVector
from amsim_core.simulation import EventScheduler


@pytest.fixture
def state():
    return StateVector()


def recorder(log, name):
    def action(state, time):
        log.append((name, time))
    return action


def test_events_with_equal_time_fire_in_registration_order(state):
    scheduler = EventScheduler()
    log = []
    scheduler.schedule(1.0, recorder(log, "b"))
    scheduler.schedule(0.5, recorder(log, "a"))
    scheduler.schedule(1.0, recorder(log, "c"))
    scheduler.apply_due(2.0, state)
    assert [name for name, _ in log] == ["a", "b", "c"]


def test_periodic_event_keeps_its_sequence_number(state):
    scheduler = EventScheduler()
    log = []
    scheduler.schedule(0.0, recorder(log, "periodic"), period=1.0)
    scheduler.schedule(1.0, recorder(log, "oneshot"))
    scheduler.apply_due(0.0, state)
    scheduler.apply_due(1.0, state)
    assert log == [("periodic", 0.0), ("periodic", 1.0), ("oneshot", 1.0)]


def test_periodic_times_do_not_accumulate_rounding(state):
    scheduler = EventScheduler()
    scheduler.schedule(0.0, recorder([], "tick"), period=0.1)
    for k in range(1000):
        scheduler.apply_due(k * 0.1, state)
    assert scheduler.pending[0].time == 1000 * 0.1
    assert scheduler.pending[0].occurrence == 1000


def test_next_time_is_strictly_later_and_includes_breakpoints(state):
    scheduler = EventScheduler(resolution=1e-9)
    scheduler.schedule(2.0, recorder([], "e"))
    scheduler.add_breakpoint(1.5)
    assert scheduler.next_time(0.0) == 1.5
    assert scheduler.next_time(1.5) == 2.0
    assert scheduler.next_time(2.0) is None


def test_events_within_resolution_are_applied_together(state):
    scheduler = EventScheduler(resolution=1e-9)
    log = []
    scheduler.schedule(1.0, recorder(log, "a"))
    scheduler.schedule(1.0 + 1e-12, recorder(log, "b"))
    applied = scheduler.apply_due(1.0, state)
    assert len(applied) == 2
    assert scheduler.applied_count == 2


def test_override_registers_ramp_end_breakpoint(state):
    signal = Quantity("s", Domain.REAL, QuantityKind.SIGNAL)
    state.register_signal(signal, 0.0)
    scheduler = EventScheduler()
    scheduler.override(state, signal, 1.0, time=0.5, ramp_time=0.25)
    assert scheduler.next_time(0.5) == pytest.approx(0.75)


def test_non_positive_period_is_rejected():
    with pytest.raises(ValueError, match="period"):
        EventScheduler().schedule(0.0, recorder([], "x"), period=0.0)
