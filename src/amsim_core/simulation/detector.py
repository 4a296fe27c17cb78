# src/amsim_core/simulation/detector.py
"""
The mode/breakpoint detector.

Each guarded model exposes guards through `IGuardProvider`. The detector keeps
the last committed tuple of guard outcomes per model; `check` compares a
candidate point against that committed tuple only, so a step that starts exactly
on a crossing that was just committed does not detect it again. Modes change only
in `commit` (transient) or `settle` (quiescent solve).
"""
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..components.base import ModelBase
from ..components.capabilities import Guard, IGuardProvider
from .evaluator import EvaluationContext

logger = logging.getLogger(__name__)

Outcomes = Tuple[bool, ...]


@dataclass(frozen=True)
class GuardCrossing:
    model_fqn: str
    guard: str
    before: bool
    after: bool


@dataclass(frozen=True)
class DetectionResult:
    crossings: Tuple[GuardCrossing, ...] = ()
    step: Optional[float] = None

    @property
    def bisect(self) -> bool:
        """True when the candidate step crossed a guard and must be bisected."""
        return bool(self.crossings)


@dataclass(frozen=True)
class ModeTransition:
    time: float
    model_fqn: str
    old_mode: Any
    new_mode: Any
    guards: Tuple[str, ...]


class _Tracked:
    def __init__(self, model: ModelBase, provider: IGuardProvider):
        self.model = model
        self.provider = provider
        self.guards: List[Guard] = list(provider.get_guards(model))

    def outcomes(self, ctx: EvaluationContext) -> Outcomes:
        return tuple(guard.outcome(ctx) for guard in self.guards)


class BreakpointDetector:
    """Tracks the committed guard outcomes and mode tag of every guarded model."""

    def __init__(self, models: List[ModelBase]):
        self._tracked: List[_Tracked] = []
        for model in models:
            provider = model.get_capability(IGuardProvider)
            if provider is not None:
                self._tracked.append(_Tracked(model, provider))
        self._outcomes: Dict[str, Outcomes] = {}
        self._modes: Dict[str, Any] = {}
        logger.debug(f"Breakpoint detector tracks {len(self._tracked)} guarded model(s).")

    @property
    def modes(self) -> Mapping[str, Any]:
        """A read-only view of the committed mode tags, keyed by model FQN."""
        return MappingProxyType(dict(self._modes))

    @property
    def committed_outcomes(self) -> Mapping[str, Outcomes]:
        return MappingProxyType(dict(self._outcomes))

    def initialize(self, ctx: EvaluationContext) -> None:
        """Sets the committed modes from `ctx` without recording transitions."""
        for tracked in self._tracked:
            self._store(tracked, tracked.outcomes(ctx))

    def check(self, ctx: EvaluationContext, step: Optional[float] = None) -> DetectionResult:
        """Guards whose outcome at `ctx` differs from the last committed outcome."""
        crossings: List[GuardCrossing] = []
        for tracked in self._tracked:
            fqn = tracked.model.fqn
            committed = self._outcomes[fqn]
            current = tracked.outcomes(ctx)
            for guard, before, after in zip(tracked.guards, committed, current):
                if before != after:
                    crossings.append(GuardCrossing(fqn, guard.name, before, after))
        if crossings:
            logger.debug(f"t={ctx.time:.9e}: {len(crossings)} guard crossing(s): "
                         f"{[(c.model_fqn, c.guard) for c in crossings]}")
        return DetectionResult(tuple(crossings), step)

    def commit(self, ctx: EvaluationContext, time: float) -> List[ModeTransition]:
        """Adopts the guard outcomes at a committed point and reports mode changes."""
        transitions: List[ModeTransition] = []
        for tracked in self._tracked:
            fqn = tracked.model.fqn
            previous = self._outcomes[fqn]
            current = tracked.outcomes(ctx)
            if current == previous:
                continue
            old_mode = self._modes[fqn]
            new_mode = self._store(tracked, current)
            flipped = tuple(g.name for g, a, b in zip(tracked.guards, previous, current) if a != b)
            if new_mode != old_mode:
                transitions.append(ModeTransition(time, fqn, old_mode, new_mode, flipped))
                logger.info(f"t={time:.9e}: '{fqn}' changed mode {old_mode} -> {new_mode} ({', '.join(flipped)}).")
        return transitions

    def settle(self, ctx: EvaluationContext) -> bool:
        """Recomputes every mode at `ctx`; returns True if any mode tag changed."""
        changed = False
        for tracked in self._tracked:
            fqn = tracked.model.fqn
            old_mode = self._modes.get(fqn)
            if self._store(tracked, tracked.outcomes(ctx)) != old_mode:
                changed = True
        return changed

    def _store(self, tracked: _Tracked, outcomes: Outcomes) -> Any:
        fqn = tracked.model.fqn
        mode = tracked.provider.classify(tracked.model, outcomes)
        self._outcomes[fqn] = outcomes
        self._modes[fqn] = mode
        return mode
