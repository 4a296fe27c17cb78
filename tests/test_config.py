# tests/test_config.py
import pytest

from amsim_core import SimulationConfig, load_simulation_config
from amsim_core.simulation import ConfigParsingError, parse_simulation_config


class TestDerivedDefaults:
    def test_everything_follows_from_tstop(self):
        config = SimulationConfig(tstop=1.0)
        assert config.max_step == pytest.approx(1.0e-2)
        assert config.initial_step == pytest.approx(1.0e-3)
        assert config.min_step == pytest.approx(1.0e-12)
        assert config.event_tolerance == pytest.approx(1.0e-9)
        assert config.time_resolution == pytest.approx(1.0e-13)
        assert config.method == "trapezoidal"

    def test_explicit_max_step_drives_initial_step(self):
        config = SimulationConfig(tstop=1.0, max_step=1.0e-4)
        assert config.initial_step == pytest.approx(1.0e-5)

    def test_event_tolerance_is_at_least_twice_min_step(self):
        config = SimulationConfig(tstop=1.0, min_step=1.0e-6)
        assert config.event_tolerance == pytest.approx(2.0e-6)

    @pytest.mark.parametrize("overrides", [
        {"tstop": 0.0},
        {"tstop": 1.0, "method": "gear"},
        {"tstop": 1.0, "max_step": 1.0e-3, "initial_step": 1.0e-2},
        {"tstop": 1.0, "min_step": 1.0e-3, "initial_step": 1.0e-4},
        {"tstop": 1.0, "step_growth": 1.0},
        {"tstop": 1.0, "step_reduction": 1.5},
        {"tstop": 1.0, "event_tolerance": 1.0e-13},
    ])
    def test_inconsistent_settings_are_rejected(self, overrides):
        with pytest.raises(ConfigParsingError):
            SimulationConfig(**overrides)


class TestParsing:
    def test_unit_strings_are_converted(self):
        config = parse_simulation_config({
            "tstop": "10 ms", "max_step": "50 us", "initial_temperature": "27 degC", "method": "euler",
        })
        assert config.tstop == pytest.approx(1.0e-2)
        assert config.max_step == pytest.approx(5.0e-5)
        assert config.initial_temperature == pytest.approx(300.15)
        assert config.method == "euler"

    def test_bare_numbers_are_si(self):
        config = parse_simulation_config({"tstop": 2, "reltol": 1e-4})
        assert config.tstop == 2.0
        assert config.reltol == 1e-4

    @pytest.mark.parametrize("raw", [
        {},
        {"max_step": "1 ms"},
        {"tstop": "1 ms", "method": "rk4"},
        {"tstop": "1 ms", "max_newton_iterations": 0},
        {"tstop": "1 ms", "unknown_key": 1},
        {"tstop": "1 volt"},
        {"tstop": "soon"},
    ])
    def test_invalid_documents(self, raw):
        with pytest.raises(ConfigParsingError):
            parse_simulation_config(raw)


class TestYamlLoading:
    def test_from_text_with_simulation_key(self):
        config = load_simulation_config("simulation:\n  tstop: 5 ms\n  method: euler\n")
        assert config.tstop == pytest.approx(5.0e-3)
        assert config.method == "euler"

    def test_from_file(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text("tstop: 1 s\nreltol: 1.0e-4\n", encoding="utf-8")
        assert load_simulation_config(path).reltol == 1e-4
        assert load_simulation_config(str(path)).tstop == 1.0

    def test_malformed_yaml(self):
        with pytest.raises(ConfigParsingError, match="Could not load"):
            load_simulation_config("tstop: [1\n")

    def test_non_mapping_document(self):
        with pytest.raises(ConfigParsingError, match="mapping"):
            load_simulation_config("- 1\n- 2\n")
