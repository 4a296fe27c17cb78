# src/amsim_core/components/parameters.py
"""
Generic parameter declaration and binding.

Every model declares its parameters as a mapping of name -> `ParameterSpec`
(SI unit, default, value kind). `bind_parameters` turns raw user input into an
immutable mapping of plain SI floats (or ints, or tuples of floats for tables).
Binding happens exactly once, at model construction.
"""
import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional, Type

from ..units import parse_quantity, PINT_ERRORS
from .exceptions import ParameterDefinitionError

logger = logging.getLogger(__name__)


class _Required:
    def __repr__(self) -> str:
        return "REQUIRED"


REQUIRED = _Required()


@dataclass(frozen=True)
class ParameterSpec:
    """The declaration of one generic parameter."""
    unit: str = ""
    default: Any = REQUIRED
    kind: Type = float
    doc: str = ""


def _convert(spec: ParameterSpec, raw: Any) -> Any:
    if spec.kind is int:
        if isinstance(raw, bool) or not float(raw).is_integer():
            raise ValueError(f"expected an integer, got {raw!r}")
        return int(raw)
    if spec.kind is tuple:
        if isinstance(raw, (str, bytes)) or not hasattr(raw, "__iter__"):
            raise ValueError(f"expected a sequence of values, got {raw!r}")
        return tuple(parse_quantity(item, spec.unit) for item in raw)
    return parse_quantity(raw, spec.unit)


def bind_parameters(
    model_fqn: str,
    specs: Mapping[str, ParameterSpec],
    raw_values: Optional[Mapping[str, Any]] = None,
) -> Mapping[str, Any]:
    """
    Resolves raw user values against the declared specs.

    Raises:
        ParameterDefinitionError: For unknown names, missing required values, or
                                  values that cannot be converted to the declared unit.
    """
    raw_values = dict(raw_values or {})
    unknown = sorted(set(raw_values) - set(specs))
    if unknown:
        raise ParameterDefinitionError(
            model_fqn=model_fqn,
            parameter=unknown[0],
            user_input=raw_values[unknown[0]],
            details=f"Unknown parameter(s) {unknown}. Recognized parameters: {sorted(specs)}."
        )

    bound: Dict[str, Any] = {}
    for name, spec in specs.items():
        raw = raw_values.get(name, spec.default)
        if raw is REQUIRED:
            raise ParameterDefinitionError(
                model_fqn=model_fqn, parameter=name, user_input=None,
                details="Required parameter was not provided."
            )
        try:
            bound[name] = _convert(spec, raw)
        except PINT_ERRORS + (ValueError, TypeError) as e:
            raise ParameterDefinitionError(
                model_fqn=model_fqn, parameter=name, user_input=raw,
                details=f"Cannot convert value to '{spec.unit or 'dimensionless'}': {e}"
            ) from e

    logger.debug(f"Bound {len(bound)} parameters for '{model_fqn}'.")
    return MappingProxyType(bound)
