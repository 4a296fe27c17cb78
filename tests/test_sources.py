# tests/test_sources.py
import math

import pytest
import numpy as np

from amsim_core import Network, Resistor, ThroughSource, VoltageSource, SimulationConfig, run_transient
from amsim_core.components import (
    ConstantWaveform, SineWaveform, PulseWaveform, RampWaveform, PiecewiseLinearWaveform, NoiseWaveform,
    ParameterConstraintError, UnsupportedModeSelectorError,
)

from conftest import quiescent


@pytest.mark.parametrize("selector, waveform_type, function", [
    (1, ConstantWaveform, "dc"),
    (2, SineWaveform, "sine"),
    (3, PulseWaveform, "pulse"),
    (4, RampWaveform, "ramp"),
    (5, PiecewiseLinearWaveform, "pwl"),
    (6, NoiseWaveform, "noise"),
])
def test_selector_picks_the_waveform(selector, waveform_type, function):
    source = VoltageSource("v1", {"select_function": selector})
    assert isinstance(source.waveform, waveform_type)
    assert source.function == function
    assert source.selector_issue is None


@pytest.mark.parametrize("selector", [0, 7, -1])
def test_unsupported_selector_falls_back_to_dc(selector):
    source = VoltageSource("v1", {"select_function": selector, "dc_value": "3 V"})
    assert source.function == "dc"
    assert isinstance(source.waveform, ConstantWaveform)
    assert source.waveform.initial_value == 3.0
    issue = source.selector_issue
    assert isinstance(issue, UnsupportedModeSelectorError)
    assert issue.value == selector
    assert "Unsupported Mode Selector" in issue.get_diagnostic_report()


def test_fallback_source_still_simulates():
    net = Network()
    net.add(VoltageSource("v1", {"select_function": 7, "dc_value": "3 V"}), p="a", n="gnd")
    net.add(Resistor("r1", {"resistance": "3 ohm"}), p="a", n="gnd")
    _, result = quiescent(net)
    assert result["a"] == pytest.approx(3.0)
    assert result["top.v1.power_delivered"] == pytest.approx(3.0)


def test_sine_parameters_are_converted():
    source = VoltageSource("v1", {
        "select_function": 2, "sine_offset": "1 V", "sine_amplitude": "500 mV",
        "sine_frequency": "1 kHz", "sine_phase": "90 degree",
    })
    waveform = source.waveform
    assert waveform.frequency == pytest.approx(1.0e3)
    assert waveform.amplitude == pytest.approx(0.5)
    assert waveform.phase == pytest.approx(math.pi / 2.0)
    assert waveform.initial_value == pytest.approx(1.5)


def test_inconsistent_pulse_is_a_constraint_error():
    with pytest.raises(ParameterConstraintError, match="exceeds the period"):
        VoltageSource("v1", {"select_function": 3, "pulse_width": "2 s", "pulse_period": "1 s"})


def test_sine_source_is_tracked_at_every_point():
    net = Network()
    net.add(VoltageSource("v1", {"select_function": 2, "sine_amplitude": "2 V", "sine_frequency": "50 Hz"}),
            p="a", n="gnd")
    net.add(Resistor("r1", {"resistance": "1 kohm"}), p="a", n="gnd")
    result = run_transient(net, SimulationConfig(tstop=40.0e-3))
    np.testing.assert_allclose(result["a"], 2.0 * np.sin(2.0 * np.pi * 50.0 * result.times), atol=1e-9)


def test_through_source_current_direction():
    net = Network()
    net.add(ThroughSource("i1", parameters={"dc_value": 2.0e-3}), p="gnd", n="a")
    net.add(Resistor("r1", {"resistance": "1 kohm"}), p="a", n="gnd")
    _, result = quiescent(net)
    assert result["a"] == pytest.approx(2.0)
    assert result["top.i1.i"] == pytest.approx(2.0e-3)
    assert result["top.r1.i"] == pytest.approx(2.0e-3)


def test_square_pulse_reads_the_new_level_at_every_edge():
    net = Network()
    net.add(VoltageSource("v1", {
        "select_function": 3, "initial_value": 0.0, "pulse_value": 1.0, "start_delay": 0.0,
        "pulse_width": 0.5, "pulse_period": 1.0, "rise_time": 0.0, "fall_time": 0.0,
    }), p="a", n="gnd")
    net.add(Resistor("r1", {"resistance": "1 ohm"}), p="a", n="gnd")
    result = run_transient(net, SimulationConfig(tstop=3.0))

    for k in range(3):
        assert result.value_at("a", k) == pytest.approx(1.0)
        assert result.value_at("a", k + 0.25) == pytest.approx(1.0)
        assert result.value_at("a", k + 0.5) == pytest.approx(0.0, abs=1e-12)
        assert result.value_at("a", k + 0.75) == pytest.approx(0.0, abs=1e-12)

    for edge, (before, after) in [(1.0, (0.0, 1.0)), (1.5, (1.0, 0.0)), (2.0, (0.0, 1.0))]:
        at_edge = np.flatnonzero(np.isclose(result.times, edge, rtol=0.0, atol=1e-12))
        assert result["a"][at_edge].tolist() == pytest.approx([before, after], abs=1e-12)
