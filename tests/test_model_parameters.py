# tests/test_model_parameters.py
import pytest

from amsim_core import MODEL_REGISTRY, Resistor, Thermistor, Network, ModelBuildError, ureg
from amsim_core.components import (
    ParameterSpec, REQUIRED, bind_parameters, register_model, ModelBase,
    ParameterDefinitionError, ParameterConstraintError, ModelDefinitionError,
)


def test_strings_with_units_are_converted_to_si():
    r = Resistor("r1", {"resistance": "4.7 kohm"})
    assert r.params["resistance"] == pytest.approx(4700.0)


def test_pint_quantities_are_accepted():
    r = Resistor("r1", {"resistance": ureg.Quantity(2.2, "Mohm")})
    assert r.params["resistance"] == pytest.approx(2.2e6)


def test_celsius_is_converted_to_kelvin():
    th = Thermistor("th1", {"temp_nominal": "25 degC"})
    assert th.params["temp_nominal"] == pytest.approx(298.15)


def test_bound_parameters_are_read_only():
    r = Resistor("r1", {"resistance": 10.0})
    with pytest.raises(TypeError):
        r.params["resistance"] = 20.0


def test_unknown_parameter_is_rejected():
    with pytest.raises(ParameterDefinitionError, match="Unknown parameter"):
        Resistor("r1", {"resistence": 10.0})


def test_dimension_mismatch_is_rejected():
    with pytest.raises(ParameterDefinitionError) as excinfo:
        Resistor("r1", {"resistance": "3 V"})
    assert excinfo.value.parameter == "resistance"
    assert "top.r1" in excinfo.value.get_diagnostic_report()


def test_missing_required_parameter():
    specs = {"gain": ParameterSpec("", REQUIRED)}
    with pytest.raises(ParameterDefinitionError, match="Required"):
        bind_parameters("top.amp", specs, {})


def test_integer_kind_rejects_fractions():
    specs = {"count": ParameterSpec(default=1, kind=int)}
    assert bind_parameters("top.x", specs, {"count": 3.0})["count"] == 3
    with pytest.raises(ParameterDefinitionError):
        bind_parameters("top.x", specs, {"count": 2.5})


def test_tuple_kind_converts_each_item():
    specs = {"times": ParameterSpec("s", (0.0,), kind=tuple)}
    bound = bind_parameters("top.x", specs, {"times": ["0 s", "2 ms", 0.5]})
    assert bound["times"] == pytest.approx((0.0, 2.0e-3, 0.5))


def test_constraint_violation_raises_parameter_constraint_error():
    with pytest.raises(ParameterConstraintError, match="positive"):
        Resistor("r1", {"resistance": -5.0})


def test_registry_contains_the_device_library():
    for name in ("Resistor", "Capacitor", "VoltageSource", "AcrossSource", "ThroughSource", "SolarPanel",
                 "Stop", "Thermistor", "OpAmp", "ThermoelectricCooler", "ThermalResistor", "ThermalCapacitor"):
        assert name in MODEL_REGISTRY


def test_register_model_rejects_classes_outside_the_hierarchy():
    with pytest.raises(TypeError, match="ModelBase"):
        @register_model("NotAModel")
        class NotAModel:
            pass


def test_duplicate_quantity_labels_are_a_definition_error():
    class Twice(ModelBase):
        @classmethod
        def declare_parameters(cls):
            return {}

        @classmethod
        def declare_terminals(cls):
            return {}

        def setup(self):
            self.quantity("x")
            self.quantity("x")

        def evaluate(self, ctx):
            raise NotImplementedError

    with pytest.raises(ModelDefinitionError, match="declared twice"):
        Twice("t")


class TestNetworkCreate:
    def test_create_instantiates_registered_types(self):
        net = Network()
        r = net.create("Resistor", "r1", {"resistance": "1 kohm"}, p="a", n="gnd")
        assert r.fqn == "top.r1"
        assert r.params["resistance"] == pytest.approx(1000.0)

    def test_create_wraps_failures_in_model_build_error(self):
        net = Network()
        with pytest.raises(ModelBuildError, match="Parameter"):
            net.create("Resistor", "r1", {"resistance": "1 V"}, p="a", n="gnd")

    def test_unknown_type(self):
        with pytest.raises(ModelBuildError, match="Unknown model type"):
            Network().create("Flux", "f1")
