# src/amsim_core/quantities/quantity.py
"""
The typed continuous and discrete variables the solver works with.

A `Quantity` is only an identity: its value lives in the `StateVector`. Two
quantities with the same name are still different quantities, so hashing is by
identity and a model can never alias another model's unknowns by accident.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional

logger = logging.getLogger(__name__)


class Domain(Enum):
    """Physical domains with their across/through names and SI units."""
    ELECTRICAL = ("v", "V", "i", "A")
    THERMAL = ("temp", "K", "heat_flow", "W")
    MECHANICAL = ("displacement", "m", "force", "N")
    REAL = ("value", "", "value", "")

    def __init__(self, across_name: str, across_unit: str, through_name: str, through_unit: str):
        self.across_name = across_name
        self.across_unit = across_unit
        self.through_name = through_name
        self.through_unit = through_unit


class QuantityKind(Enum):
    ACROSS = auto()     # Potential-like branch quantity (voltage, temperature, displacement).
    THROUGH = auto()    # Flow-like branch quantity (current, heat flow, force).
    POTENTIAL = auto()  # Node potential relative to the domain reference.
    FREE = auto()       # Model-internal unknown with no terminal.
    SIGNAL = auto()     # Discrete, scheduler-driven value; read through its ramp.

    @property
    def is_continuous(self) -> bool:
        return self is not QuantityKind.SIGNAL


@dataclass(frozen=True, eq=False)
class Quantity:
    """A named variable of the simulation. Hashed and compared by identity."""
    name: str
    domain: Domain
    kind: QuantityKind
    unit: str = ""

    def __repr__(self) -> str:
        return f"Quantity('{self.name}', {self.domain.name}, {self.kind.name})"


@dataclass(frozen=True, eq=False)
class Branch:
    """
    A two-terminal branch owning exactly one across/through pair.

    The through quantity flows from the plus terminal, through the branch, to
    the minus terminal. `minus is None` means the branch returns to the domain
    reference node.
    """
    name: str
    domain: Domain
    plus: str
    minus: Optional[str]
    across: Quantity
    through: Quantity

    def __repr__(self) -> str:
        minus = self.minus if self.minus is not None else "<reference>"
        return f"Branch('{self.name}', {self.plus} -> {minus}, {self.domain.name})"


@dataclass(frozen=True)
class SignalRecord:
    """
    The last override applied to a discrete signal.

    Reading the signal follows ramp semantics: the level moves linearly from
    `start_value` (the level when the override was applied) to `value` over
    `ramp_time` seconds, then holds. A zero ramp time is an ideal step.
    """
    value: float
    start_value: float
    changed_at: float
    ramp_time: float = 0.0

    def level(self, time: float) -> float:
        if self.ramp_time <= 0.0 or time >= self.changed_at + self.ramp_time:
            return self.value
        if time <= self.changed_at:
            return self.start_value
        fraction = (time - self.changed_at) / self.ramp_time
        return self.start_value + (self.value - self.start_value) * fraction

    def slope(self, time: float) -> float:
        if self.ramp_time <= 0.0 or not (self.changed_at <= time < self.changed_at + self.ramp_time):
            return 0.0
        return (self.value - self.start_value) / self.ramp_time

    @property
    def ramp_end(self) -> float:
        return self.changed_at + max(self.ramp_time, 0.0)
