# src/amsim_core/simulation/config.py
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Union

import cerberus
import yaml

from ..constants import (
    DEFAULT_ABSTOL,
    DEFAULT_EVENT_TOLERANCE_FRACTION,
    DEFAULT_INITIAL_TEMPERATURE_K,
    DEFAULT_MAX_MODE_PASSES,
    DEFAULT_MAX_NEWTON_ITERATIONS,
    DEFAULT_MAX_STEP_FRACTION,
    DEFAULT_MIN_STEP_FRACTION,
    DEFAULT_RELTOL,
    DEFAULT_STEP_GROWTH,
    DEFAULT_STEP_REDUCTION,
)
from ..units import PINT_ERRORS, parse_quantity

logger = logging.getLogger(__name__)

METHODS = ("trapezoidal", "euler")


class ConfigParsingError(ValueError):
    """Custom exception for errors during simulation configuration parsing."""
    pass


@dataclass(frozen=True)
class SimulationConfig:
    """
    Numerical settings of one run. Only `tstop` is required; step sizes and
    tolerances left as None are derived from it:

        max_step        = tstop / 100
        initial_step    = max_step / 10
        min_step        = tstop * 1e-12
        event_tolerance = max(tstop * 1e-9, 2 * min_step)
        time_resolution = min_step / 10
    """
    tstop: float
    max_step: Optional[float] = None
    initial_step: Optional[float] = None
    min_step: Optional[float] = None
    event_tolerance: Optional[float] = None
    time_resolution: Optional[float] = None
    reltol: float = DEFAULT_RELTOL
    abstol: float = DEFAULT_ABSTOL
    max_newton_iterations: int = DEFAULT_MAX_NEWTON_ITERATIONS
    step_growth: float = DEFAULT_STEP_GROWTH
    step_reduction: float = DEFAULT_STEP_REDUCTION
    method: str = "trapezoidal"
    max_mode_passes: int = DEFAULT_MAX_MODE_PASSES
    initial_temperature: float = DEFAULT_INITIAL_TEMPERATURE_K

    def __post_init__(self):
        if not self.tstop > 0.0:
            raise ConfigParsingError(f"tstop must be positive, got {self.tstop!r}.")
        derived = {}
        max_step = self.max_step if self.max_step is not None else self.tstop * DEFAULT_MAX_STEP_FRACTION
        derived["max_step"] = max_step
        derived["initial_step"] = self.initial_step if self.initial_step is not None else max_step / 10.0
        min_step = self.min_step if self.min_step is not None else self.tstop * DEFAULT_MIN_STEP_FRACTION
        derived["min_step"] = min_step
        derived["event_tolerance"] = (
            self.event_tolerance if self.event_tolerance is not None
            else max(self.tstop * DEFAULT_EVENT_TOLERANCE_FRACTION, 2.0 * min_step)
        )
        derived["time_resolution"] = self.time_resolution if self.time_resolution is not None else min_step / 10.0
        for name, value in derived.items():
            object.__setattr__(self, name, float(value))
        self._validate()

    def _validate(self) -> None:
        checks = [
            (self.max_step > 0.0, f"max_step must be positive, got {self.max_step}."),
            (0.0 < self.min_step <= self.initial_step,
             f"Require 0 < min_step ({self.min_step}) <= initial_step ({self.initial_step})."),
            (self.initial_step <= self.max_step,
             f"initial_step ({self.initial_step}) must not exceed max_step ({self.max_step})."),
            (self.event_tolerance >= 2.0 * self.min_step,
             f"event_tolerance ({self.event_tolerance}) must be at least twice min_step ({self.min_step})."),
            (0.0 < self.time_resolution < self.min_step,
             f"time_resolution ({self.time_resolution}) must lie in (0, min_step)."),
            (self.reltol > 0.0 and self.abstol > 0.0, "reltol and abstol must be positive."),
            (self.max_newton_iterations >= 1, "max_newton_iterations must be at least 1."),
            (self.step_growth > 1.0, f"step_growth must exceed 1, got {self.step_growth}."),
            (0.0 < self.step_reduction < 1.0, f"step_reduction must lie in (0, 1), got {self.step_reduction}."),
            (self.method in METHODS, f"method must be one of {METHODS}, got '{self.method}'."),
            (self.max_mode_passes >= 1, "max_mode_passes must be at least 1."),
            (self.initial_temperature > 0.0, "initial_temperature must be above absolute zero."),
        ]
        for ok, message in checks:
            if not ok:
                raise ConfigParsingError(message)


_quantity = {"type": ["string", "number"]}

SIMULATION_SCHEMA = {
    "tstop": {**_quantity, "required": True},
    "max_step": _quantity,
    "initial_step": _quantity,
    "min_step": _quantity,
    "event_tolerance": _quantity,
    "time_resolution": _quantity,
    "reltol": {"type": "number", "min": 0.0},
    "abstol": {"type": "number", "min": 0.0},
    "max_newton_iterations": {"type": "integer", "min": 1},
    "step_growth": {"type": "number"},
    "step_reduction": {"type": "number"},
    "method": {"type": "string", "allowed": list(METHODS)},
    "max_mode_passes": {"type": "integer", "min": 1},
    "initial_temperature": _quantity,
}

_UNITS = {
    "tstop": "s", "max_step": "s", "initial_step": "s", "min_step": "s",
    "event_tolerance": "s", "time_resolution": "s", "initial_temperature": "K",
}


def parse_simulation_config(raw_config: Dict[str, Any]) -> SimulationConfig:
    """
    Validates a raw mapping against the simulation schema and converts unit
    strings ("10 ms", "27 degC") to SI floats.
    """
    if not raw_config:
        raise ConfigParsingError("Simulation configuration is missing or empty.")
    validator = cerberus.Validator(SIMULATION_SCHEMA)
    if not validator.validate(raw_config):
        raise ConfigParsingError(f"Simulation configuration failed schema validation: {validator.errors}")

    values: Dict[str, Any] = {}
    try:
        for name, value in validator.document.items():
            unit = _UNITS.get(name)
            values[name] = parse_quantity(value, unit) if unit else value
    except PINT_ERRORS + (ValueError,) as e:
        raise ConfigParsingError(f"Failed to parse simulation configuration: {e}") from e

    config = SimulationConfig(**values)
    logger.debug(f"Parsed simulation configuration: {config}")
    return config


def load_simulation_config(source: Union[str, Path]) -> SimulationConfig:
    """
    Loads a configuration from a YAML file path or from YAML text. A top-level
    `simulation:` key is unwrapped if present.
    """
    try:
        if isinstance(source, Path) or (isinstance(source, str) and "\n" not in source and Path(source).is_file()):
            text = Path(source).read_text(encoding="utf-8")
        else:
            text = source
        data = yaml.safe_load(text)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigParsingError(f"Could not load simulation configuration: {e}") from e

    if isinstance(data, dict) and isinstance(data.get("simulation"), dict):
        data = data["simulation"]
    if not isinstance(data, dict):
        raise ConfigParsingError("Simulation configuration must be a mapping.")
    return parse_simulation_config(data)

