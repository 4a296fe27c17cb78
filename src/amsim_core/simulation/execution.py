# src/amsim_core/simulation/execution.py
"""
Public entry points for running simulations.

These functions are a thin facade over `SimulationContext` and
`TransientIntegrator`. Any `DiagnosableError` from validation, model
evaluation or the solver is reported to the caller as one `SimulationRunError`
carrying the diagnostic report; the original exception is chained.
"""
import logging
from typing import Optional

from ..errors import DiagnosableError, SimulationRunError, format_diagnostic_report
from ..network import Network
from .config import SimulationConfig
from .context import SimulationContext
from .integrator import Observer, TransientIntegrator
from .results import QuiescentResult, TransientResult

logger = logging.getLogger(__name__)


def run_quiescent(network: Network, config: Optional[SimulationConfig] = None) -> QuiescentResult:
    """
    Computes the consistent initial (DC) state of `network` at t = 0.

    Args:
        network: The wired network.
        config: Tolerances and iteration limits; only the Newton and mode-pass
                settings are used. Defaults to `SimulationConfig(tstop=1.0)`.

    Raises:
        SimulationRunError: If the network is invalid or the solve fails.
    """
    effective_config = config if config is not None else SimulationConfig(tstop=1.0)
    logger.info(f"--- Starting quiescent solve for '{network.name}' ---")
    return _guarded(network, lambda: TransientIntegrator(SimulationContext.build(network, effective_config)).solve_quiescent())


def run_transient(
    network: Network,
    config: SimulationConfig,
    observer: Optional[Observer] = None,
) -> TransientResult:
    """
    Runs the quiescent solve followed by a transient run to `config.tstop`.

    Args:
        network: The wired network.
        config: Numerical settings of the run.
        observer: Called as `observer(time, state)` after every recorded point,
                  including the second point recorded after an event.

    Raises:
        SimulationRunError: If the network is invalid, the quiescent solve fails,
                            or the step size falls below `min_step`.
    """
    logger.info(f"--- Starting transient run for '{network.name}' ---")
    return _guarded(network, lambda: TransientIntegrator(SimulationContext.build(network, config), observer).run())


def _guarded(network: Network, action):
    try:
        return action()

    except DiagnosableError as e:
        logger.error(f"A diagnosable error occurred while simulating '{network.name}': {e}")
        raise SimulationRunError(e.get_diagnostic_report()) from e

    except Exception as e:
        logger.critical(f"An unexpected internal error occurred during simulation: {e}", exc_info=True)
        report = format_diagnostic_report(
            error_type=f"An Unexpected Simulation Error Occurred ({type(e).__name__})",
            details=f"The simulator encountered an unexpected internal error: {e}",
            suggestion="This may be a bug. Review the traceback and consider filing a bug report.",
            context={}
        )
        raise SimulationRunError(report) from e
