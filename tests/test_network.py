# tests/test_network.py
import pytest

from amsim_core import (
    Network, NetworkTopologyError, Resistor, Capacitor, ThermalResistor, Thermistor, VoltageSource,
    run_quiescent, SimulationRunError,
)
from amsim_core.quantities import Domain, QuantityKind


class TestWiring:
    def test_unknown_terminal(self):
        net = Network()
        with pytest.raises(NetworkTopologyError, match="no terminal"):
            net.add(Resistor("r1"), p="a", q="gnd")

    def test_duplicate_instance(self):
        net = Network()
        net.add(Resistor("r1"), p="a", n="gnd")
        with pytest.raises(NetworkTopologyError, match="already part"):
            net.add(Resistor("r1"), p="b", n="gnd")

    def test_node_cannot_span_domains(self):
        net = Network()
        net.add(Resistor("r1"), p="a", n="gnd")
        with pytest.raises(NetworkTopologyError, match="ELECTRICAL and THERMAL"):
            net.add(ThermalResistor("rth"), th1="a", th2="gnd")

    def test_reference_is_shared_across_domains(self):
        net = Network()
        net.add(Thermistor("th"), p="a", n="gnd", th="t")
        net.add(ThermalResistor("rth"), th1="t", th2="gnd")
        net.add(VoltageSource("v1"), p="a", n="gnd")
        net.validate()
        assert net.nodes == {"a": Domain.ELECTRICAL, "t": Domain.THERMAL}
        assert net.potential("gnd") is None


class TestValidation:
    def test_empty_network(self):
        with pytest.raises(NetworkTopologyError, match="no models"):
            Network().validate()

    def test_unconnected_terminal(self):
        net = Network()
        net.add(Resistor("r1"), p="a")
        with pytest.raises(NetworkTopologyError, match="not connected"):
            net.validate()

    def test_floating_node(self):
        net = Network()
        net.add(VoltageSource("v1"), p="a", n="gnd")
        net.add(Capacitor("c1"), p="b", n="c")
        with pytest.raises(NetworkTopologyError) as excinfo:
            net.validate()
        assert "['b', 'c']" in str(excinfo.value)
        assert "Network Topology Error" in excinfo.value.get_diagnostic_report()

    def test_facade_reports_topology_errors(self):
        net = Network()
        net.add(Resistor("r1"), p="a", n="b")
        with pytest.raises(SimulationRunError, match="Network Topology Error") as excinfo:
            run_quiescent(net)
        assert isinstance(excinfo.value.__cause__, NetworkTopologyError)


class TestState:
    def test_potentials_come_first(self, divider_network):
        state = divider_network.build_state()
        kinds = [q.kind for q in state.quantities]
        assert kinds[:2] == [QuantityKind.POTENTIAL, QuantityKind.POTENTIAL]
        assert QuantityKind.POTENTIAL not in kinds[2:]
        assert [q.name for q in state.signals] == ["top.v1.level"]

    def test_initial_guess_places_thermal_nodes_at_the_initial_temperature(self):
        net = Network()
        th = net.add(Thermistor("th"), p="a", n="gnd", th="t")
        net.add(ThermalResistor("rth"), th1="t", th2="gnd")
        net.add(VoltageSource("v1"), p="a", n="gnd")
        state = net.build_state()
        net.initial_guess(state, initial_temperature=310.0)
        assert state.get(net.potential("t")) == 310.0
        assert state.get(th.thermal.across) == 310.0
        assert state.get(net.potential("a")) == 0.0
