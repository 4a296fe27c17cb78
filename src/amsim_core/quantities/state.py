# src/amsim_core/quantities/state.py
"""
Defines the `StateVector`, the single store of every quantity's value.

Continuous quantities (potentials, across, through, free) live in two dense
NumPy arrays (values and first derivatives) indexed in registration order.
Discrete signals live in a dictionary of immutable `SignalRecord`s.

Only the integrator and the event scheduler write to the state vector. The
evaluator never sees the state vector itself: it reads immutable snapshots
(`values`, `derivatives`, `signal_records()`), so no partial update can ever be
visible in the middle of a residual evaluation.
"""
import logging
from types import MappingProxyType
from typing import Dict, List, Mapping

import numpy as np

from .quantity import Quantity, QuantityKind, SignalRecord
from .exceptions import UnboundQuantityError

logger = logging.getLogger(__name__)


class StateVector:
    """Ordered store of quantity values, first derivatives and signal records."""

    def __init__(self):
        self._index: Dict[Quantity, int] = {}
        self._quantities: List[Quantity] = []
        self._values = np.zeros(0, dtype=float)
        self._derivatives = np.zeros(0, dtype=float)
        self._signals: Dict[Quantity, SignalRecord] = {}
        self.time: float = 0.0

    # --- Registration ---

    def register(self, quantity: Quantity) -> int:
        """Registers a continuous quantity and returns its index. Idempotent."""
        if quantity.kind is QuantityKind.SIGNAL:
            raise ValueError(f"Signal '{quantity.name}' must be registered with register_signal().")
        if quantity in self._index:
            return self._index[quantity]
        index = len(self._quantities)
        self._index[quantity] = index
        self._quantities.append(quantity)
        self._values = np.append(self._values, 0.0)
        self._derivatives = np.append(self._derivatives, 0.0)
        return index

    def register_signal(self, signal: Quantity, initial_value: float) -> None:
        """Registers a discrete signal holding `initial_value` since the beginning of time."""
        if signal.kind is not QuantityKind.SIGNAL:
            raise ValueError(f"Quantity '{signal.name}' is not a signal.")
        self._signals[signal] = SignalRecord(
            value=float(initial_value), start_value=float(initial_value), changed_at=float("-inf")
        )

    # --- Introspection ---

    @property
    def size(self) -> int:
        return len(self._quantities)

    @property
    def quantities(self) -> List[Quantity]:
        return list(self._quantities)

    @property
    def signals(self) -> List[Quantity]:
        return list(self._signals)

    def index_of(self, quantity: Quantity) -> int:
        try:
            return self._index[quantity]
        except KeyError:
            raise UnboundQuantityError(
                quantity_name=quantity.name,
                details=f"'{quantity.name}' has not been registered with the state vector."
            ) from None

    def is_bound(self, quantity: Quantity) -> bool:
        return quantity in self._index or quantity in self._signals

    @property
    def index_map(self) -> Mapping[Quantity, int]:
        return MappingProxyType(self._index)

    # --- Reads ---

    def get(self, quantity: Quantity) -> float:
        if quantity.kind is QuantityKind.SIGNAL:
            return self._signal_record(quantity).level(self.time)
        return float(self._values[self.index_of(quantity)])

    def get_derivative(self, quantity: Quantity) -> float:
        if quantity.kind is QuantityKind.SIGNAL:
            return self._signal_record(quantity).slope(self.time)
        return float(self._derivatives[self.index_of(quantity)])

    def signal_record(self, signal: Quantity) -> SignalRecord:
        return self._signal_record(signal)

    @property
    def values(self) -> np.ndarray:
        """A read-only copy of the committed values."""
        snapshot = self._values.copy()
        snapshot.flags.writeable = False
        return snapshot

    @property
    def derivatives(self) -> np.ndarray:
        """A read-only copy of the committed first derivatives."""
        snapshot = self._derivatives.copy()
        snapshot.flags.writeable = False
        return snapshot

    def signal_records(self) -> Mapping[Quantity, SignalRecord]:
        """A frozen snapshot of every signal record (records are immutable)."""
        return MappingProxyType(dict(self._signals))

    # --- Writes (integrator / scheduler only) ---

    def set(self, quantity: Quantity, value: float) -> None:
        """
        Sets one quantity. For a signal this is an immediate (unramped) override
        at the current state time.
        """
        if quantity.kind is QuantityKind.SIGNAL:
            self.override(quantity, value, self.time, 0.0)
            return
        self._values[self.index_of(quantity)] = float(value)

    def override(self, signal: Quantity, value: float, time: float, ramp_time: float = 0.0) -> SignalRecord:
        """Applies a new target to a signal; the ramp starts from the level it has at `time`."""
        previous = self._signal_record(signal)
        record = SignalRecord(
            value=float(value),
            start_value=previous.level(time),
            changed_at=float(time),
            ramp_time=max(float(ramp_time), 0.0),
        )
        self._signals[signal] = record
        return record

    def load(self, values: np.ndarray, derivatives: np.ndarray, time: float) -> None:
        """Atomically replaces every continuous value and derivative, then advances the time."""
        values = np.asarray(values, dtype=float)
        derivatives = np.asarray(derivatives, dtype=float)
        if values.shape != (self.size,) or derivatives.shape != (self.size,):
            raise ValueError(
                f"State load expects vectors of shape ({self.size},), got {values.shape} and {derivatives.shape}."
            )
        self._values = values.copy()
        self._derivatives = derivatives.copy()
        self.time = float(time)

    def _signal_record(self, signal: Quantity) -> SignalRecord:
        try:
            return self._signals[signal]
        except KeyError:
            raise UnboundQuantityError(
                quantity_name=signal.name,
                details=f"Signal '{signal.name}' has not been registered with the state vector."
            ) from None

    def __repr__(self) -> str:
        return f"StateVector(size={self.size}, signals={len(self._signals)}, time={self.time:.6e})"
