# tests/test_opamp.py
import pytest

from amsim_core import Network, OpAmp, Resistor, VoltageSource, AcrossSource, SimulationConfig, run_transient
from amsim_core.components import OpAmpMode, ParameterConstraintError, PiecewiseLinearWaveform

from conftest import quiescent


def test_voltage_follower():
    net = Network()
    net.add(VoltageSource("vin", {"dc_value": "1 V"}), p="in", n="gnd")
    net.add(OpAmp("amp"), inp="in", inn="out", out="out")
    _, result = quiescent(net)
    assert result["out"] == pytest.approx(1.0, rel=1e-4)
    assert result.modes["top.amp"] is OpAmpMode.LINEAR


def test_open_loop_saturates_at_the_positive_rail():
    net = Network()
    net.add(VoltageSource("vin", {"dc_value": "1 V"}), p="in", n="gnd")
    net.add(OpAmp("amp"), inp="in", inn="gnd", out="out")
    _, result = quiescent(net)
    assert result.modes["top.amp"] is OpAmpMode.SAT_HIGH
    assert result.mode_passes == 2
    assert result["out"] == pytest.approx(12.0)
    assert result["top.amp.v_out"] == pytest.approx(12.0)


def test_open_loop_saturates_at_the_negative_rail():
    net = Network()
    net.add(VoltageSource("vin", {"dc_value": "-1 mV"}), p="in", n="gnd")
    net.add(OpAmp("amp", {"vsat_neg": "-5 V"}), inp="in", inn="gnd", out="out")
    _, result = quiescent(net)
    assert result.modes["top.amp"] is OpAmpMode.SAT_LOW
    assert result["out"] == pytest.approx(-5.0)


def test_rails_must_be_ordered():
    with pytest.raises(ParameterConstraintError):
        OpAmp("amp", {"vsat_pos": "-1 V", "vsat_neg": "1 V"})


class TestInvertingAmplifierIntoTheRail:
    """Gain -10 with the input ramping 0 -> 2 V over 1 s; the output meets -12 V near t = 0.6 s."""

    @pytest.fixture
    def result(self):
        net = Network()
        ramp = PiecewiseLinearWaveform(times=(0.0, 1.0), values=(0.0, 2.0))
        net.add(AcrossSource("vin", waveform=ramp), p="in", n="gnd")
        net.add(Resistor("rin", {"resistance": "1 kohm"}), p="in", n="sum")
        net.add(Resistor("rf", {"resistance": "10 kohm"}), p="sum", n="out")
        net.add(OpAmp("amp"), inp="gnd", inn="sum", out="out")
        return run_transient(net, SimulationConfig(tstop=1.0, method="euler"))

    def test_linear_region_follows_the_gain(self, result):
        assert result.value_at("out", 0.3) == pytest.approx(-10.0 * result.value_at("in", 0.3), rel=1e-3)

    def test_rail_transition(self, result):
        transitions = result.transitions_of("top.amp")
        assert len(transitions) == 1
        assert transitions[0].old_mode is OpAmpMode.LINEAR
        assert transitions[0].new_mode is OpAmpMode.SAT_LOW
        assert transitions[0].time == pytest.approx(0.6, rel=1e-3)
        assert result.value_at("out", 0.9) == pytest.approx(-12.0, abs=0.2)
