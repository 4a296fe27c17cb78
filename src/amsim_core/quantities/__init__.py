# src/amsim_core/quantities/__init__.py
from .exceptions import UnboundQuantityError
from .quantity import Domain, QuantityKind, Quantity, Branch, SignalRecord
from .state import StateVector

__all__ = [
    # Exceptions
    "UnboundQuantityError",
    # Core Classes
    "Domain",
    "QuantityKind",
    "Quantity",
    "Branch",
    "SignalRecord",
    "StateVector",
]
