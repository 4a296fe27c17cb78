# src/amsim_core/components/exceptions.py
"""
Defines the custom, diagnosable exceptions for the device-model subsystem.

Parameter errors are raised at construction time and are never retried.
`ModelEvaluationError` is raised during residual evaluation and is treated by the
integrator as a local nonconvergence (the step is retried smaller).
`UnsupportedModeSelectorError` is never raised: it documents a selector fallback
and is logged and kept on the model instance for inspection.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..errors import DiagnosableError, format_diagnostic_report, format_simulation_time


class ModelError(DiagnosableError):
    """A concrete base class for all model-related errors."""
    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Generic Model Error",
            details=str(self),
            suggestion="Review the model's parameters and connections.",
            context={}
        )


@dataclass()
class ParameterDefinitionError(ModelError):
    """Raised when a single parameter value is unknown, missing, or not convertible."""
    model_fqn: str
    parameter: str
    user_input: Any
    details: str

    def __str__(self):
        return f"Parameter '{self.parameter}' of '{self.model_fqn}': {self.details} (input: {self.user_input!r})"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Parameter Definition Error",
            details=self.details,
            suggestion="Check the parameter name and make sure its value carries a compatible unit (e.g. '4.7 kohm', '25 degC').",
            context={'fqn': self.model_fqn, 'parameter': self.parameter, 'user_input': str(self.user_input)}
        )


@dataclass()
class ParameterConstraintError(ModelError):
    """
    Raised at model construction when an inequality between parameters is
    violated (e.g. Vmp >= Voc). No solve is ever attempted with such a model.
    """
    model_fqn: str
    details: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __str__(self):
        return f"Constraint violated in '{self.model_fqn}': {self.details}"

    def get_diagnostic_report(self) -> str:
        values = ", ".join(f"{k}={v!r}" for k, v in self.parameters.items())
        return format_diagnostic_report(
            error_type="Parameter Constraint Violated",
            details=f"{self.details}\nOffending values: {values}" if values else self.details,
            suggestion="Correct the parameter values so that the model's physical constraints hold.",
            context={'fqn': self.model_fqn}
        )


@dataclass()
class ModelDefinitionError(ModelError):
    """Raised when a model's declarations are inconsistent (duplicate names, residual count mismatch)."""
    model_fqn: str
    details: str

    def __str__(self):
        return f"Model '{self.model_fqn}' is ill-defined: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Model Definition Error",
            details=self.details,
            suggestion="A model must return exactly one residual per branch and per internal quantity.",
            context={'fqn': self.model_fqn}
        )


@dataclass()
class ModelEvaluationError(ModelError):
    """Raised when a model's residuals cannot be computed or are not finite."""
    model_fqn: str
    details: str
    time: Optional[float] = None

    def __str__(self):
        return f"Evaluation of '{self.model_fqn}' failed at t={format_simulation_time(self.time)}: {self.details}"

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Model Evaluation Error",
            details=self.details,
            suggestion="The state visited by the solver drives the model outside its valid range. Tighten the maximum step or provide a better initial state.",
            context={'fqn': self.model_fqn, 'time': format_simulation_time(self.time)}
        )


@dataclass()
class UnsupportedModeSelectorError(ModelError):
    """
    Describes an out-of-range discrete selector. The model falls back to
    `fallback` instead of failing; this object is logged and kept on the model.
    """
    model_fqn: str
    selector: str
    value: Any
    fallback: str

    def __str__(self):
        return (f"Selector '{self.selector}'={self.value!r} of '{self.model_fqn}' is not supported; "
                f"falling back to {self.fallback}.")

    def get_diagnostic_report(self) -> str:
        return format_diagnostic_report(
            error_type="Unsupported Mode Selector",
            details=str(self),
            suggestion=f"Use one of the documented values for '{self.selector}'.",
            context={'fqn': self.model_fqn, 'parameter': self.selector, 'user_input': str(self.value)}
        )
