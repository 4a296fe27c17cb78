# --- src/amsim_core/constants.py ---
import logging
from .units import celsius_to_kelvin

logger = logging.getLogger(__name__)

# --- Numerical Constants for Simulation ---

#: Relative tolerance applied to every residual row, scaled by the magnitude of
#: the terms contributing to that row (sum_j |J_ij * x_j|).
DEFAULT_RELTOL: float = 1.0e-6

#: Absolute residual floor. Currents of a picoampere / forces of a piconewton are
#: considered converged regardless of scale.
DEFAULT_ABSTOL: float = 1.0e-12

#: Newton iteration budget per solve before a NonconvergenceError is raised.
DEFAULT_MAX_NEWTON_ITERATIONS: int = 50

#: Number of quiescent mode passes before the DC solve gives up.
DEFAULT_MAX_MODE_PASSES: int = 16

#: Fractions of `tstop` used to derive step-size defaults.
DEFAULT_MAX_STEP_FRACTION: float = 1.0e-2
DEFAULT_MIN_STEP_FRACTION: float = 1.0e-12
DEFAULT_EVENT_TOLERANCE_FRACTION: float = 1.0e-9

#: Step control multipliers.
DEFAULT_STEP_GROWTH: float = 2.0
DEFAULT_STEP_REDUCTION: float = 0.25

#: Initial guess for every thermal node (absolute temperature). 27 degC.
DEFAULT_INITIAL_TEMPERATURE_K: float = celsius_to_kelvin(27.0)

#: Name of the reference node in every physical domain.
REFERENCE_NODE_NAME: str = "gnd"

logger.debug("Defined core constants: tolerances, step fractions, reference node name.")
