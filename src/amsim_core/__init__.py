# src/amsim_core/__init__.py
"""
amsim_core: a mixed electrical, thermal and mechanical DAE solver core.

Note: importing this package enables jax's 64-bit mode
(`jax_enable_x64`) for the whole process, since residuals and Jacobians are
evaluated in double precision. Other jax code running in the same interpreter
will then also default to float64 arrays.
"""
import logging

import jax

jax.config.update("jax_enable_x64", True)

from .log_config import setup_logging

setup_logging()
logger = logging.getLogger(__name__)
logger.info("AMSim Core package initialized.")

from .units import ureg, pint, Q_, parse_quantity
from .quantities import Domain, QuantityKind, Quantity, Branch, StateVector
from .network import Network, NetworkTopologyError
from .components import (
    MODEL_REGISTRY,
    AcrossSource,
    ThroughSource,
    VoltageSource,
    Resistor,
    Capacitor,
    OpAmp,
    Stop,
    SolarPanel,
    ThermalResistor,
    ThermalCapacitor,
    Thermistor,
    ThermoelectricCooler,
)
from .simulation import (
    SimulationConfig,
    load_simulation_config,
    run_quiescent,
    run_transient,
    TransientIntegrator,
    SimulationContext,
)
from .errors import AmsimError, ModelBuildError, SimulationRunError

__all__ = [
    # Units
    "ureg", "pint", "Q_", "parse_quantity",
    # State
    "Domain", "QuantityKind", "Quantity", "Branch", "StateVector",
    # Network
    "Network", "NetworkTopologyError",
    # Device library
    "MODEL_REGISTRY", "AcrossSource", "ThroughSource", "VoltageSource", "Resistor", "Capacitor", "OpAmp",
    "Stop", "SolarPanel", "ThermalResistor", "ThermalCapacitor", "Thermistor", "ThermoelectricCooler",
    # Simulation
    "SimulationConfig", "load_simulation_config", "run_quiescent", "run_transient",
    "TransientIntegrator", "SimulationContext",
    # Top-Level Errors (Actionable Diagnostics)
    "AmsimError", "ModelBuildError", "SimulationRunError",
]
