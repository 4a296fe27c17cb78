# src/amsim_core/simulation/context.py
"""
Defines the `SimulationContext`, the wiring of one simulation run.
"""
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from ..components.capabilities import IEventSource
from ..quantities import StateVector
from .config import SimulationConfig
from .detector import BreakpointDetector
from .evaluator import PiecewiseEvaluator
from .scheduler import EventScheduler

if TYPE_CHECKING:
    from ..network import Network

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SimulationContext:
    """
    An immutable container for the collaborators of a single run: the network,
    its configuration, the state vector, and the evaluator, detector and event
    scheduler working on that state vector. Nothing in a context is shared with
    another run; build a new one per run.
    """
    network: "Network"
    config: SimulationConfig
    state: StateVector
    evaluator: PiecewiseEvaluator
    detector: BreakpointDetector
    scheduler: EventScheduler

    @classmethod
    def build(cls, network: "Network", config: SimulationConfig) -> "SimulationContext":
        """Validates the network, lays out the state vector and registers every model's events."""
        network.validate()
        state = network.build_state()
        evaluator = PiecewiseEvaluator(network, state)
        models = list(network.models.values())
        detector = BreakpointDetector(models)
        scheduler = EventScheduler(resolution=config.time_resolution)
        for model in models:
            source = model.get_capability(IEventSource)
            if source is not None:
                source.schedule_events(model, scheduler)
        logger.info(
            f"Simulation context for '{network.name}': {state.size} unknown(s), {len(state.signals)} signal(s), "
            f"{len(scheduler.pending)} pending event(s)."
        )
        return cls(network, config, state, evaluator, detector, scheduler)
