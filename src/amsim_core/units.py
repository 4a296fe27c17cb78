# --- src/amsim_core/units.py ---
import logging
import re
from typing import Any

import pint

logger = logging.getLogger(__name__)
ureg = pint.UnitRegistry()
Q_ = ureg.Quantity
logger.info("Pint Unit Registry initialized.")

# A leading number followed by an optional unit expression, e.g. "4.7 kohm",
# "25 degC", "10ms". Splitting the magnitude off lets offset units such as degC
# be constructed directly instead of through (forbidden) offset multiplication.
_QUANTITY_REGEX = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)\s*(.*?)\s*$")

PINT_ERRORS = (
    pint.DimensionalityError,
    pint.UndefinedUnitError,
    pint.OffsetUnitCalculusError,
)


def parse_quantity(raw: Any, unit: str) -> float:
    """
    Converts a user-supplied value into a plain float expressed in `unit`.

    Accepted inputs:
      - int/float: taken to already be expressed in `unit`.
      - pint Quantity: converted to `unit`.
      - str: "<number> [unit]"; a bare number is taken to be in `unit`.

    Raises:
        ValueError: If the value cannot be interpreted or converted. pint's own
                    dimensionality/undefined-unit errors are re-raised unchanged.
    """
    if isinstance(raw, bool):
        raise ValueError(f"Boolean value '{raw}' is not a physical quantity.")
    if isinstance(raw, (int, float)):
        return float(raw)
    if isinstance(raw, ureg.Quantity):
        return float(raw.to(unit).magnitude)
    if isinstance(raw, str):
        match = _QUANTITY_REGEX.match(raw)
        if match is None:
            raise ValueError(f"Cannot interpret '{raw}' as a quantity.")
        magnitude_str, unit_str = match.groups()
        qty = ureg.Quantity(float(magnitude_str), unit_str or unit)
        return float(qty.to(unit).magnitude)
    raise ValueError(f"Unsupported value type '{type(raw).__name__}' for a quantity.")


def celsius_to_kelvin(value_degc: float) -> float:
    """Converts a temperature in degrees Celsius to kelvin."""
    return float(ureg.Quantity(value_degc, ureg.degC).to(ureg.kelvin).magnitude)


def kelvin_to_celsius(value_k: float) -> float:
    """Converts a temperature in kelvin to degrees Celsius."""
    return float(ureg.Quantity(value_k, ureg.kelvin).to(ureg.degC).magnitude)
