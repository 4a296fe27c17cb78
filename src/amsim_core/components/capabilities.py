# src/amsim_core/components/capabilities.py
"""
Defines the optional capabilities a device model can provide to the solver core.

Every model evaluates residuals (that is part of `ModelBase` itself). Anything
beyond that is a capability, declared with `typing.Protocol` and provided by a
nested class decorated with `@provides`:

- IGuardProvider: the model has piecewise regimes selected by guard conditions.
  The breakpoint detector queries it for guards and for the mapping from guard
  outcomes to a mode tag.
- IEventSource: the model drives discrete waveform transitions and registers
  them with the event scheduler before the run starts.

Engines query a model with `model.get_capability(IGuardProvider)` and skip models
that return `None`, so no engine needs `isinstance` checks on concrete models.
"""

import logging
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    List,
    Protocol,
    Tuple,
    Type,
    TypeVar,
    TYPE_CHECKING,
    runtime_checkable,
)

if TYPE_CHECKING:
    from .base import ModelBase
    from ..simulation.evaluator import EvaluationContext
    from ..simulation.scheduler import EventScheduler

logger = logging.getLogger(__name__)


@runtime_checkable
class ModelCapability(Protocol):
    """A marker protocol for all model capabilities."""

    pass


TCapability = TypeVar("TCapability", bound=ModelCapability)


@dataclass(frozen=True)
class Guard:
    """
    A boundary-crossing condition. The outcome is `expression(ctx) > 0`; the
    expression should be the signed distance to the boundary so that its sign
    flips exactly at the crossing.
    """
    name: str
    expression: Callable[["EvaluationContext"], Any]

    def outcome(self, ctx: "EvaluationContext") -> bool:
        return float(self.expression(ctx)) > 0.0


@runtime_checkable
class IGuardProvider(ModelCapability, Protocol):
    """
    Capability of a model with guarded (piecewise) equations.

    The mode of the model is the ordered tuple of guard outcomes; `classify`
    turns that tuple into the tag the model's `evaluate` dispatches on.
    """

    def get_guards(self, model: "ModelBase") -> List[Guard]:
        ...

    def classify(self, model: "ModelBase", outcomes: Tuple[bool, ...]) -> Any:
        ...


@runtime_checkable
class IEventSource(ModelCapability, Protocol):
    """Capability of a model that injects discrete transitions through the event scheduler."""

    def schedule_events(self, model: "ModelBase", scheduler: "EventScheduler") -> None:
        ...


def provides(capability_protocol: Type[ModelCapability]):
    """
    A class decorator registering a nested class as the implementation of a capability.
    `ModelBase.declare_capabilities` discovers it through the `_implements_capability`
    attribute.
    """

    def decorator(cls: Type) -> Type:
        if not issubclass(capability_protocol, ModelCapability):
            raise TypeError(
                f"Decorator argument for @provides must be a ModelCapability "
                f"Protocol, but got {capability_protocol}."
            )
        cls._implements_capability = capability_protocol
        logger.debug(
            f"Class '{cls.__name__}' registered as providing capability '{capability_protocol.__name__}'."
        )
        return cls

    return decorator
