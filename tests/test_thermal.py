# tests/test_thermal.py
import pytest
import numpy as np

from amsim_core import (
    Network, AcrossSource, ThroughSource, VoltageSource, Thermistor, ThermalResistor, ThermalCapacitor,
    ThermoelectricCooler, SimulationConfig, run_transient,
)
from amsim_core.components import ThermistorMode, ParameterConstraintError, PulseWaveform
from amsim_core.quantities import Domain

from conftest import quiescent

AMBIENT = 298.15


def ambient(net, node="amb", temperature=AMBIENT, name="ambient"):
    net.add(AcrossSource(name, domain=Domain.THERMAL, parameters={"dc_value": temperature}), p=node, n="gnd")


class TestThermistor:
    def test_nominal_resistance(self):
        th = Thermistor("th")
        assert float(th.resistance_at(298.15)) == pytest.approx(1.0e4)
        assert float(th.resistance_at(323.15)) < 1.0e4

    def test_self_heating_steady_state(self):
        net = Network()
        net.add(VoltageSource("v1", {"dc_value": "5 V"}), p="a", n="gnd")
        net.add(Thermistor("th", {"r_nominal": "100 ohm"}), p="a", n="gnd", th="t")
        net.add(ThermalResistor("rth", {"resistance": "50 K/W"}), th1="t", th2="amb")
        ambient(net)
        _, result = quiescent(net)
        power = result["top.th.power_dissipated"]
        assert power > 0.0
        assert result["t"] - AMBIENT == pytest.approx(50.0 * power, rel=1e-6)
        assert result["top.th.heat_flow"] == pytest.approx(-power, rel=1e-6)
        assert 25.0 / result["top.th.resistance"] == pytest.approx(power, rel=1e-6)
        assert result.modes["top.th"] is ThermistorMode.NORMAL

    def test_resistance_is_clamped_above_temp_max(self):
        net = Network()
        net.add(VoltageSource("v1", {"dc_value": "1 V"}), p="a", n="gnd")
        th = net.add(Thermistor("th", {"temp_max": "100 degC"}), p="a", n="gnd", th="t")
        ambient(net, node="t", temperature=450.0)
        _, result = quiescent(net)
        assert result.modes["top.th"] is ThermistorMode.HOT
        assert result["top.th.resistance"] == pytest.approx(float(th.resistance_at(373.15)))
        assert result["top.th.i"] == pytest.approx(1.0 / float(th.resistance_at(373.15)))

    def test_invalid_temperature_window(self):
        with pytest.raises(ParameterConstraintError):
            Thermistor("th", {"temp_min": "50 degC", "temp_max": "0 degC"})


def test_thermal_rc_heats_up_exponentially():
    net = Network()
    heater = PulseWaveform(initial=0.0, pulse=2.0, delay=10.0, width=1.0e4, period=2.0e4)
    net.add(ThroughSource("heater", waveform=heater, domain=Domain.THERMAL), p="gnd", n="t")
    net.add(ThermalCapacitor("cth", {"capacitance": "10 J/K"}), th="t")
    net.add(ThermalResistor("rth", {"resistance": "5 K/W"}), th1="t", th2="amb")
    ambient(net)
    result = run_transient(net, SimulationConfig(tstop=210.0, max_step=1.0))
    elapsed = np.clip(result.times - 10.0, 0.0, None)
    expected = AMBIENT + 10.0 * (1.0 - np.exp(-elapsed / 50.0))
    np.testing.assert_allclose(result["t"], expected, atol=1e-2)
    np.testing.assert_allclose(result["top.cth.temperature"], result["t"])


class TestThermoelectricCooler:
    def test_datasheet_derived_coefficients(self):
        tec = ThermoelectricCooler("tec")
        th, dt, v, i = 300.15, 68.0, 15.4, 6.0
        assert tec.seebeck == pytest.approx(v / th)
        assert tec.resistance == pytest.approx((th - dt) * v / (th * i))
        assert tec.conductance == pytest.approx((th - dt) * v * i / (2.0 * th * dt))

    def test_isolated_cold_side_reaches_dt_max_at_i_max(self):
        net = Network()
        tec = net.add(ThermoelectricCooler("tec"), p="e", n="gnd", th_absorbing="cold", th_emitting="hot")
        net.add(ThroughSource("drive", parameters={"dc_value": 6.0}), p="gnd", n="e")
        ambient(net, node="hot", temperature=tec.params["th_reference"])
        _, result = quiescent(net)
        assert result["top.tec.i"] == pytest.approx(6.0)
        assert result["cold"] == pytest.approx(tec.params["th_reference"] - tec.params["dt_max"], rel=1e-9)
        assert result["top.tec.heat_absorbed"] == pytest.approx(0.0, abs=1e-9)
        power = result["top.tec.electrical_power"]
        assert result["top.tec.heat_emitted"] == pytest.approx(power, rel=1e-9)

    def test_cooling_a_load_with_a_voltage_drive(self):
        net = Network()
        tec = net.add(ThermoelectricCooler("tec"), p="e", n="gnd", th_absorbing="cold", th_emitting="hot")
        net.add(VoltageSource("v1", {"dc_value": "6 V"}), p="e", n="gnd")
        net.add(ThermalResistor("leak", {"resistance": "2 K/W"}), th1="cold", th2="hot")
        ambient(net, node="hot", temperature=300.0)
        _, result = quiescent(net)
        qc = result["top.tec.heat_absorbed"]
        assert qc > 0.0
        assert result["cold"] < 300.0
        assert (300.0 - result["cold"]) / 2.0 == pytest.approx(qc, rel=1e-6)
        assert result["top.tec.cop"] == pytest.approx(qc / result["top.tec.electrical_power"])
