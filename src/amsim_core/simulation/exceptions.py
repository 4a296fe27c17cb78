# src/amsim_core/simulation/exceptions.py
"""
Diagnosable exceptions of the solve phase.

`NonconvergenceError` and `SingularMatrixError` are local failures: the
integrator recovers from them by reducing the step. They are fatal only in the
quiescent solve, where there is no step to reduce. `StepFloorExceededError` is
always fatal and ends the run.
"""
from dataclasses import dataclass
from typing import Optional

import numpy as np

from ..errors import DiagnosableError, format_diagnostic_report, format_simulation_time


@dataclass()
class NonconvergenceError(DiagnosableError):
    """Raised when Newton iteration exceeds its iteration budget."""
    model_fqn: str
    iterations: int
    residual_norm: float
    time: Optional[float] = None
    details: Optional[str] = None

    def __str__(self):
        if self.details:
            return f"{self.details} (t={format_simulation_time(self.time)}, instance '{self.model_fqn}')"
        return (f"Newton iteration did not converge within {self.iterations} iterations at "
                f"t={format_simulation_time(self.time)}; largest residual {self.residual_norm:.3e} "
                f"in equations of '{self.model_fqn}'.")

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Newton Nonconvergence",
            details=str(self),
            suggestion="Provide a better initial state, relax reltol/abstol, or raise max_newton_iterations.",
            context={'fqn': self.model_fqn, 'time': format_simulation_time(self.time)}
        )


@dataclass()
class SingularMatrixError(DiagnosableError, np.linalg.LinAlgError):
    """
    Raised when the Newton Jacobian cannot be factorized. Catchable both as a
    `DiagnosableError` and as a standard `LinAlgError`.
    """
    details: str
    time: Optional[float] = None
    model_fqn: Optional[str] = None

    def __str__(self):
        where = f" in equations of '{self.model_fqn}'" if self.model_fqn else ""
        return f"Singular Jacobian at t={format_simulation_time(self.time)}{where}: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Singular Matrix Encountered",
            details=self.details,
            suggestion="This is often caused by a loop of ideal across sources, a node reached only through "
                       "capacitors in the quiescent solve, or an unconstrained internal quantity.",
            context={'fqn': self.model_fqn, 'time': format_simulation_time(self.time)}
        )


@dataclass()
class StepFloorExceededError(DiagnosableError):
    """Raised when the step would have to shrink below `min_step`."""
    model_fqn: str
    time: float
    step: float
    min_step: float
    reason: str

    def __str__(self):
        return (f"Step size {self.step:.3e} s fell below the floor {self.min_step:.3e} s at "
                f"t={format_simulation_time(self.time)} ({self.reason}); offending instance '{self.model_fqn}'.")

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Minimum Step Size Exceeded",
            details=str(self),
            suggestion="Reduce min_step or event_tolerance, or inspect the model at the reported time for a "
                       "discontinuity that the solver cannot resolve.",
            context={
                'fqn': self.model_fqn,
                'time': format_simulation_time(self.time),
                'step': f"{self.step:.3e} s",
            }
        )
