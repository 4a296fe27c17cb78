# tests/test_state_vector.py
import pytest
import numpy as np

from amsim_core.quantities import (
    Domain, QuantityKind, Quantity, SignalRecord, StateVector, UnboundQuantityError,
)


@pytest.fixture
def state():
    return StateVector()


def test_register_assigns_consecutive_indices_and_is_idempotent(state):
    a = Quantity("a", Domain.ELECTRICAL, QuantityKind.ACROSS, "V")
    b = Quantity("b", Domain.ELECTRICAL, QuantityKind.THROUGH, "A")
    assert state.register(a) == 0
    assert state.register(b) == 1
    assert state.register(a) == 0
    assert state.size == 2
    assert state.quantities == [a, b]


def test_quantities_hash_by_identity(state):
    first = Quantity("x", Domain.REAL, QuantityKind.FREE)
    second = Quantity("x", Domain.REAL, QuantityKind.FREE)
    state.register(first)
    state.register(second)
    assert state.size == 2
    assert state.index_of(first) != state.index_of(second)


def test_unregistered_quantity_raises(state):
    ghost = Quantity("ghost", Domain.THERMAL, QuantityKind.ACROSS, "K")
    with pytest.raises(UnboundQuantityError, match="ghost"):
        state.get(ghost)


def test_signal_must_use_register_signal(state):
    signal = Quantity("s", Domain.REAL, QuantityKind.SIGNAL)
    with pytest.raises(ValueError):
        state.register(signal)


def test_values_are_read_only_copies(state):
    q = Quantity("q", Domain.REAL, QuantityKind.FREE)
    state.register(q)
    state.set(q, 2.5)
    snapshot = state.values
    with pytest.raises(ValueError):
        snapshot[0] = 99.0
    assert state.get(q) == 2.5


def test_load_replaces_the_whole_vector(state):
    a = Quantity("a", Domain.REAL, QuantityKind.FREE)
    b = Quantity("b", Domain.REAL, QuantityKind.FREE)
    state.register(a)
    state.register(b)
    state.load(np.array([1.0, 2.0]), np.array([0.5, -0.5]), 3.0)
    assert state.time == 3.0
    assert state.get(b) == 2.0
    assert state.get_derivative(a) == 0.5


class TestSignalRamp:
    def test_override_ramps_from_current_level(self, state):
        s = Quantity("s", Domain.REAL, QuantityKind.SIGNAL)
        state.register_signal(s, 1.0)
        state.override(s, 3.0, time=2.0, ramp_time=1.0)
        record = state.signal_record(s)
        assert record.level(2.0) == pytest.approx(1.0)
        assert record.level(2.5) == pytest.approx(2.0)
        assert record.level(3.0) == pytest.approx(3.0)
        assert record.level(10.0) == pytest.approx(3.0)
        assert record.slope(2.5) == pytest.approx(2.0)
        assert record.slope(3.5) == 0.0

    def test_override_in_the_middle_of_a_ramp_starts_from_the_ramped_level(self, state):
        s = Quantity("s", Domain.REAL, QuantityKind.SIGNAL)
        state.register_signal(s, 0.0)
        state.override(s, 4.0, time=0.0, ramp_time=4.0)
        state.override(s, 0.0, time=1.0, ramp_time=0.0)
        record = state.signal_record(s)
        assert record.start_value == pytest.approx(1.0)
        assert record.level(1.0) == 0.0

    def test_zero_ramp_is_an_ideal_step(self):
        record = SignalRecord(value=5.0, start_value=0.0, changed_at=1.0)
        assert record.level(1.0) == 5.0
        assert record.slope(1.0) == 0.0
        assert record.ramp_end == 1.0
