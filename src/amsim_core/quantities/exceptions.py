# src/amsim_core/quantities/exceptions.py
"""
Defines the diagnosable exceptions for the quantity and state-vector subsystem.
"""
from dataclasses import dataclass

from ..errors import DiagnosableError, format_diagnostic_report


@dataclass()
class UnboundQuantityError(DiagnosableError):
    """
    Raised when a quantity is read (or written) before any model registered it
    with the state vector. This is never retried; it always indicates a model or
    assembly defect.
    """
    quantity_name: str
    details: str

    def __str__(self):
        return f"Quantity '{self.quantity_name}' is not bound: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unbound Quantity",
            details=self.details,
            suggestion=(
                "Make sure the model owning this quantity was added to the network "
                "before the state vector was built, and that the quantity was "
                "declared in the model's setup()."
            ),
            context={'fqn': self.quantity_name}
        )
