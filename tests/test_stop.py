# tests/test_stop.py
import pytest
import numpy as np

from amsim_core import Network, Stop, AcrossSource, SimulationConfig, SimulationContext, TransientIntegrator
from amsim_core.simulation import NonconvergenceError
from amsim_core.components import ParameterConstraintError, PiecewiseLinearWaveform, StopMode
from amsim_core.quantities import Domain

from conftest import quiescent


@pytest.fixture
def stop():
    return Stop("stop", {"displacement_min": 0.0, "displacement_max": 1.0, "k_stop": 1.0e3})


def test_force_is_exactly_zero_inside_the_travel_range(stop):
    for d in np.linspace(0.0, 1.0, 101):
        assert stop.force(d) == 0.0


@pytest.mark.parametrize("d", [1.0 + 1e-6, 1.5, 3.0])
def test_hooke_beyond_the_maximum(stop, d):
    assert stop.force(d) == pytest.approx(1.0e3 * (d - 1.0))


def test_hooke_below_the_minimum(stop):
    assert stop.force(-0.25) == pytest.approx(-250.0)


def test_damping_adds_to_the_contact_force():
    damped = Stop("stop", {"displacement_max": 1.0, "k_stop": 1.0e3, "damp_stop": 10.0})
    assert damped.force(1.5, velocity=2.0) == pytest.approx(500.0 + 20.0)
    assert damped.force(0.5, velocity=2.0) == 0.0


def test_inverted_limits_are_rejected():
    with pytest.raises(ParameterConstraintError):
        Stop("stop", {"displacement_min": 1.0, "displacement_max": 0.5})


def test_quiescent_mode_pass_engages_the_stop():
    net = Network()
    net.add(AcrossSource("pin", domain=Domain.MECHANICAL, parameters={"dc_value": 1.2}), p="x", n="gnd")
    net.add(Stop("stop", {"displacement_max": 1.0, "k_stop": 1.0e3}), attach1="x", attach2="gnd")
    _, result = quiescent(net)
    assert result.mode_passes == 2
    assert result.modes["top.stop"] is StopMode.ABOVE_MAX
    assert result["top.stop.force"] == pytest.approx(200.0)
    assert result["top.pin.force"] == pytest.approx(-200.0)
    assert result["top.stop.energy_stored"] == pytest.approx(0.5 * 1.0e3 * 0.2 ** 2)


def pinned_stop():
    net = Network()
    net.add(AcrossSource("pin", domain=Domain.MECHANICAL, parameters={"dc_value": 1.2}), p="x", n="gnd")
    net.add(Stop("stop", {"displacement_max": 1.0, "k_stop": 1.0e3}), attach1="x", attach2="gnd")
    return net


def test_unsettled_modes_name_the_changing_model():
    with pytest.raises(NonconvergenceError) as excinfo:
        quiescent(pinned_stop(), SimulationConfig(tstop=1.0, max_mode_passes=1))
    assert excinfo.value.model_fqn == "top.stop"
    assert "top.stop" in excinfo.value.get_diagnostic_report()


def test_evaluation_and_check_are_idempotent_in_contact():
    integrator, result = quiescent(pinned_stop())
    assert result.modes["top.stop"] is StopMode.ABOVE_MAX
    detector = integrator.detector
    modes = dict(detector.modes)
    outcomes = dict(detector.committed_outcomes)
    ctx = integrator.evaluator.committed_context(detector.modes)

    first = integrator.evaluator.evaluate(ctx)
    second = integrator.evaluator.evaluate(ctx)
    np.testing.assert_array_equal(first, second)
    assert detector.check(ctx).crossings == ()
    assert detector.check(ctx).crossings == ()
    assert dict(detector.modes) == modes
    assert dict(detector.committed_outcomes) == outcomes


class TestContactBreakpoint:
    """Displacement ramps 0 -> 2 over 1 s; the stop engages at d = 1 (t = 0.5 s)."""

    @pytest.fixture
    def run(self):
        net = Network()
        ramp = PiecewiseLinearWaveform(times=(0.0, 1.0), values=(0.0, 2.0))
        net.add(AcrossSource("drive", waveform=ramp, domain=Domain.MECHANICAL), p="x", n="gnd")
        net.add(Stop("stop", {"displacement_max": 1.0, "k_stop": 1.0e3}), attach1="x", attach2="gnd")
        config = SimulationConfig(tstop=1.0)
        integrator = TransientIntegrator(SimulationContext.build(net, config))
        return config, integrator.run()

    def test_single_transition_at_the_crossing(self, run):
        config, result = run
        transitions = result.transitions_of("top.stop")
        assert len(transitions) == 1
        transition = transitions[0]
        assert transition.old_mode is StopMode.FREE
        assert transition.new_mode is StopMode.ABOVE_MAX
        assert transition.guards == ("above_max",)
        assert abs(transition.time - 0.5) <= config.event_tolerance + 1e-15

    def test_force_follows_the_mode(self, run):
        _, result = run
        force = result["top.stop.force"]
        before = result.times < 0.5
        np.testing.assert_allclose(force[before], 0.0, atol=1e-12)
        after = result.times > 0.5 + 1e-6
        np.testing.assert_allclose(force[after], 1.0e3 * (2.0 * result.times[after] - 1.0), rtol=1e-6, atol=1e-9)

    def test_bisection_was_used(self, run):
        _, result = run
        assert result.statistics.bisections > 0
        assert result.completed
        assert result.times[-1] == pytest.approx(1.0)
