# src/amsim_core/simulation/results.py
"""
Immutable result contracts of the quiescent and transient solves.
"""
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Tuple

import numpy as np

from .detector import ModeTransition


@dataclass(frozen=True)
class RunStatistics:
    accepted_steps: int = 0
    rejected_steps: int = 0
    newton_iterations: int = 0
    bisections: int = 0
    events_applied: int = 0
    event_points: int = 0
    mode_passes: int = 0


@dataclass(frozen=True)
class QuiescentResult:
    """
    The consistent initial state at t = 0.

    Attributes:
        values: Every continuous quantity and signal by name (node potentials are
                named after their node, model quantities `<fqn>.<label>`).
        information: For-information outputs keyed `<fqn>.<output>`.
        modes: The committed mode tag of every guarded model.
    """
    time: float
    values: Mapping[str, float]
    information: Mapping[str, float]
    modes: Mapping[str, Any]
    newton_iterations: int
    mode_passes: int

    def __getitem__(self, name: str) -> float:
        if name in self.values:
            return self.values[name]
        return self.information[name]


@dataclass(frozen=True)
class TransientResult:
    """
    Trajectories at every committed time point, starting with the quiescent
    point at t = 0. `times` is non-decreasing: an event that changes a signal
    level records two points at its time, the one before the override and the
    one after it.
    """
    times: np.ndarray
    trajectories: Mapping[str, np.ndarray]
    information: Mapping[str, np.ndarray]
    transitions: Tuple[ModeTransition, ...]
    statistics: RunStatistics
    completed: bool
    quiescent: QuiescentResult

    def __getitem__(self, name: str) -> np.ndarray:
        if name in self.trajectories:
            return self.trajectories[name]
        return self.information[name]

    def value_at(self, name: str, time: float) -> float:
        """
        The value at the last committed point not later than `time`; at an
        event time that is the value after the event.
        """
        index = int(np.searchsorted(self.times, time, side="right")) - 1
        return float(self[name][max(index, 0)])

    def transitions_of(self, model_fqn: str) -> Tuple[ModeTransition, ...]:
        return tuple(t for t in self.transitions if t.model_fqn == model_fqn)


def stack_records(records: list) -> Dict[str, np.ndarray]:
    """Turns a list of per-point dictionaries into one array per key."""
    if not records:
        return {}
    return {key: np.array([r[key] for r in records], dtype=float) for key in records[0]}
