from .exceptions import NonconvergenceError, SingularMatrixError, StepFloorExceededError
from .config import (
    SimulationConfig,
    ConfigParsingError,
    SIMULATION_SCHEMA,
    parse_simulation_config,
    load_simulation_config,
)
from .scheduler import Event, EventScheduler
from .evaluator import EvaluationContext, PiecewiseEvaluator
from .detector import BreakpointDetector, DetectionResult, GuardCrossing, ModeTransition
from .solver import NewtonResult, solve_newton, factorize_jacobian
from .context import SimulationContext
from .results import QuiescentResult, TransientResult, RunStatistics
from .integrator import TransientIntegrator, StepSolution
from .execution import run_quiescent, run_transient

__all__ = [
    # Exceptions
    "NonconvergenceError", "SingularMatrixError", "StepFloorExceededError", "ConfigParsingError",
    # Configuration
    "SimulationConfig", "SIMULATION_SCHEMA", "parse_simulation_config", "load_simulation_config",
    # Engine parts
    "Event", "EventScheduler",
    "EvaluationContext", "PiecewiseEvaluator",
    "BreakpointDetector", "DetectionResult", "GuardCrossing", "ModeTransition",
    "NewtonResult", "solve_newton", "factorize_jacobian",
    "SimulationContext", "TransientIntegrator", "StepSolution",
    # Results
    "QuiescentResult", "TransientResult", "RunStatistics",
    # Public API
    "run_quiescent", "run_transient",
]
