# src/amsim_core/errors.py
import logging
from abc import abstractmethod
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger(__name__)

# --- User-Facing Exception Hierarchy ---

class AmsimError(Exception):
    """Base class for all custom, user-facing errors in amsim_core."""
    pass

class ModelBuildError(AmsimError):
    """
    Raised when assembling a network of model instances fails, from parameter
    binding to topology validation. The message is a pre-formatted, user-friendly
    diagnostic report.
    """
    pass

class SimulationRunError(AmsimError):
    """
    Raised when a quiescent or transient run fails after a successful build,
    such as a step-floor violation or a DC nonconvergence.
    The message is a pre-formatted, user-friendly diagnostic report.
    """
    pass


# --- Diagnostic Protocol & Base Exception ---

@runtime_checkable
class Diagnosable(Protocol):
    """
    A protocol for exceptions that can generate their own rich diagnostic report.
    """
    def get_diagnostic_report(self) -> str:
        """Generates a complete, user-friendly, multi-line report string."""
        ...

class DiagnosableError(Exception, Diagnosable):
    """
    A common, concrete base class for all internal exceptions that are diagnosable.

    It inherits from `Exception`, so it can be used in `except` clauses, and
    declares `get_diagnostic_report` abstract so every subclass has to provide
    its own report.
    """
    @abstractmethod
    def get_diagnostic_report(self) -> str:
        """
        Abstract method to generate the diagnostic report.
        Subclasses MUST implement this.
        """
        raise NotImplementedError


# --- Stateless Formatting Utility ---

# Context keys rendered in the report header, in display order.
_HEADER_FIELDS: Tuple[Tuple[str, str], ...] = (
    ("fqn", "Instance"),
    ("parameter", "Parameter"),
    ("user_input", "User Input"),
    ("time", "Sim Time"),
    ("step", "Step Size"),
)
_RULE_WIDTH = 74


def format_simulation_time(time: Optional[float]) -> str:
    """Renders a simulation time for reports, tolerating a missing value."""
    if time is None:
        return "N/A"
    return f"{time:.9e} s"


def _indented(block: str) -> list:
    return [f"  {line}" for line in block.splitlines()]


def format_diagnostic_report(
    error_type: str,
    details: str,
    suggestion: str,
    context: Dict[str, Any]
) -> str:
    """
    Formats the multi-line report carried by every `DiagnosableError` and, via
    `ModelBuildError`/`SimulationRunError`, shown to the user.

    Args:
        error_type: Category of the failure, e.g. "Newton Nonconvergence".
        details: What went wrong; may span several lines.
        suggestion: What the user can change. Omitted when empty.
        context: Optional header values keyed by 'fqn', 'parameter',
                 'user_input', 'time' and 'step'. Empty values are skipped.
    """
    title = " amsim_core: Actionable Diagnostic Report "
    lines = ["\n", title.center(_RULE_WIDTH, "="), f"{'Error Type:':<16}{error_type}"]
    for key, label in _HEADER_FIELDS:
        value = context.get(key)
        if not value:
            continue
        shown = f"'{value}'" if key == "user_input" else value
        lines.append(f"{label + ':':<16}{shown}")

    lines += ["\nDetails:", *_indented(details)]
    if suggestion:
        lines += ["\nSuggestion:", *_indented(suggestion)]
    lines.append("=" * _RULE_WIDTH)
    return "\n".join(lines)
