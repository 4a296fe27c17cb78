# src/amsim_core/components/solar.py
"""
Photovoltaic panel model built from datasheet points.

The I-V curve is described in normalized coordinates `x = v / Voc` and
`y = I_photo / Isc`, where the terminal current is `I = Isc * y(x) - v / Rleak`.
Four segments meet at `xf`, `xm` (the maximum-power point) and `1.0` (open
circuit):

- FLAT (`x < xf`): `y = 1`.
- KNEE (`xf <= x < xm`): cubic Hermite from `(xf, 1, slope 0)` to `(xm, ym, m1)`.
- DROP (`xm <= x < 1`): cubic Hermite from `(xm, ym, m1)` to `(1, g, m2)`.
- REVERSE (`x >= 1`): linear extrapolation `y = g + m2 * (x - 1)`.

`m1` is the slope that makes `v * I` stationary at the maximum-power point; the
end slopes are chosen inside the Fritsch-Carlson region so both cubics are
monotone, and the curve is C1 at every segment boundary.
"""
import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from ..quantities import Domain
from .base import Evaluation, ModelBase, register_model
from .capabilities import Guard, IGuardProvider, provides
from .parameters import ParameterSpec

logger = logging.getLogger(__name__)

#: Relative irradiance of the second datasheet point.
LOW_IRRADIANCE = 0.2


class SolarSegment(Enum):
    FLAT = "flat"
    KNEE = "knee"
    DROP = "drop"
    REVERSE = "reverse"


@dataclass(frozen=True)
class SolarCurve:
    """The normalized I-V curve for one operating point (irradiance already applied)."""
    voc: float
    isc: float
    vmp: float
    imp: float
    rleak: float

    g: float = field(init=False)
    xm: float = field(init=False)
    ym: float = field(init=False)
    xf: float = field(init=False)
    m1: float = field(init=False)
    m2: float = field(init=False)
    a1: float = field(init=False)
    b1: float = field(init=False)
    a2: float = field(init=False)
    b2: float = field(init=False)

    def __post_init__(self):
        g = self.voc / (self.isc * self.rleak)
        xm = self.vmp / self.voc
        imn = self.imp / self.isc
        ym = imn + g * xm

        m1 = g - imn / xm
        d2 = (g - ym) / (1.0 - xm)
        if m1 / d2 > 2.0:
            m1 = 2.0 * d2
        alpha = m1 / d2
        m2 = math.sqrt(9.0 - alpha * alpha) * d2

        xf = max(xm - (1.0 - ym) / abs(m1), 0.5 * xm)
        h1 = xm - xf
        d1 = (ym - 1.0) / h1
        h2 = 1.0 - xm

        derived = {
            "g": g, "xm": xm, "ym": ym, "xf": xf, "m1": m1, "m2": m2,
            "a1": (3.0 * d1 - m1) / h1,
            "b1": (m1 - 2.0 * d1) / (h1 * h1),
            "a2": (3.0 * d2 - 2.0 * m1 - m2) / h2,
            "b2": (m1 + m2 - 2.0 * d2) / (h2 * h2),
        }
        for name, value in derived.items():
            object.__setattr__(self, name, value)

    @property
    def breakpoints(self) -> Tuple[float, float, float]:
        return self.xf, self.xm, 1.0

    def segment(self, x: float) -> SolarSegment:
        if x >= 1.0:
            return SolarSegment.REVERSE
        if x >= self.xm:
            return SolarSegment.DROP
        if x >= self.xf:
            return SolarSegment.KNEE
        return SolarSegment.FLAT

    def normalized(self, x, segment: SolarSegment):
        """`y(x)` on the given segment; `x` may be a traced array value."""
        if segment is SolarSegment.FLAT:
            return 1.0 + 0.0 * x
        if segment is SolarSegment.KNEE:
            t = x - self.xf
            return 1.0 + t * t * (self.a1 + self.b1 * t)
        if segment is SolarSegment.DROP:
            t = x - self.xm
            return self.ym + t * (self.m1 + t * (self.a2 + self.b2 * t))
        return self.g + self.m2 * (x - 1.0)

    def current_in_segment(self, v, segment: SolarSegment):
        return self.isc * self.normalized(v / self.voc, segment) - v / self.rleak

    def current(self, v: float) -> float:
        """Terminal current at a concrete voltage, selecting the segment directly."""
        return float(self.current_in_segment(v, self.segment(v / self.voc)))


def _log_interpolate(full: float, low: float, r: float) -> float:
    return full + (full - low) * math.log(r) / math.log(1.0 / LOW_IRRADIANCE)


def _lin_interpolate(full: float, low: float, r: float) -> float:
    return low + (full - low) * (r - LOW_IRRADIANCE) / (1.0 - LOW_IRRADIANCE)


@register_model("SolarPanel")
class SolarPanel(ModelBase):
    """
    Solar panel from two datasheet operating points (full and 20 % irradiance).
    Voltages are interpolated logarithmically and currents linearly in the
    relative irradiance.
    """

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {
            "Voc": ParameterSpec("V", 21.6),
            "Isc": ParameterSpec("A", 6.11),
            "Pmax": ParameterSpec("W", 100.0),
            "Vmp": ParameterSpec("V", 17.6),
            "Voc_20pct": ParameterSpec("V", 20.4),
            "Isc_20pct": ParameterSpec("A", 1.22),
            "Pmax_20pct": ParameterSpec("W", 19.0),
            "Vmp_20pct": ParameterSpec("V", 16.8),
            "Rleak": ParameterSpec("ohm", 1.0e6),
            "relative_irradiance": ParameterSpec("", 1.0),
        }

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"p": Domain.ELECTRICAL, "n": Domain.ELECTRICAL}

    def _check_point(self, label: str, voc: float, isc: float, vmp: float, imp: float) -> None:
        rleak = self.params["Rleak"]
        self.require(voc > 0.0 and isc > 0.0 and vmp > 0.0 and imp > 0.0,
                     f"{label}: voltages, currents and power must be positive.", Voc=voc, Isc=isc, Vmp=vmp, Imp=imp)
        self.require(vmp < voc, f"{label}: Vmp must be smaller than Voc.", Voc=voc, Vmp=vmp)
        self.require(imp < isc, f"{label}: Pmax/Vmp must be smaller than Isc.", Isc=isc, Imp=imp)
        self.require(rleak * imp > max(vmp, voc - vmp),
                     f"{label}: Rleak is too small; the leakage exceeds the maximum-power conductance.",
                     Rleak=rleak, Vmp=vmp, Imp=imp)
        self.require(imp + vmp / rleak < isc,
                     f"{label}: Pmax/Vmp plus leakage at Vmp must be smaller than Isc.", Isc=isc, Imp=imp, Rleak=rleak)

    def setup(self) -> None:
        p = self.params
        r = p["relative_irradiance"]
        self.require(r > 0.0, "relative_irradiance must be positive.", relative_irradiance=r)
        self.require(p["Rleak"] > 0.0, "Rleak must be positive.", Rleak=p["Rleak"])

        imp = p["Pmax"] / p["Vmp"] if p["Vmp"] > 0.0 else 0.0
        imp_low = p["Pmax_20pct"] / p["Vmp_20pct"] if p["Vmp_20pct"] > 0.0 else 0.0
        self._check_point("datasheet point", p["Voc"], p["Isc"], p["Vmp"], imp)
        self._check_point("20 % irradiance point", p["Voc_20pct"], p["Isc_20pct"], p["Vmp_20pct"], imp_low)

        voc = _log_interpolate(p["Voc"], p["Voc_20pct"], r)
        vmp = _log_interpolate(p["Vmp"], p["Vmp_20pct"], r)
        isc = _lin_interpolate(p["Isc"], p["Isc_20pct"], r)
        imp_r = _lin_interpolate(imp, imp_low, r)
        if r != 1.0:
            self._check_point(f"operating point at relative irradiance {r}", voc, isc, vmp, imp_r)

        self.curve = SolarCurve(voc=voc, isc=isc, vmp=vmp, imp=imp_r, rleak=p["Rleak"])
        self.main = self.branch("main", "p", "n")
        logger.debug(
            f"'{self.fqn}': xf={self.curve.xf:.6f}, xm={self.curve.xm:.6f}, "
            f"a1={self.curve.a1:.6g}, b1={self.curve.b1:.6g}, a2={self.curve.a2:.6g}, b2={self.curve.b2:.6g}"
        )

    def evaluate(self, ctx) -> Evaluation:
        segment = ctx.mode(self) or SolarSegment.FLAT
        v = ctx.get(self.main.across)
        i = ctx.get(self.main.through)
        return Evaluation([i + self.curve.current_in_segment(v, segment)], segment)

    def information(self, ctx) -> Dict[str, float]:
        v = float(ctx.get(self.main.across))
        i = float(ctx.get(self.main.through))
        return {"power_output": -v * i}

    @provides(IGuardProvider)
    class GuardProvider:
        def get_guards(self, model: "SolarPanel"):
            curve = model.curve
            x = lambda ctx: ctx.get(model.main.across) / curve.voc
            return [
                Guard("past_flat", lambda ctx: x(ctx) - curve.xf),
                Guard("past_mpp", lambda ctx: x(ctx) - curve.xm),
                Guard("past_open_circuit", lambda ctx: x(ctx) - 1.0),
            ]

        def classify(self, model: "SolarPanel", outcomes: Tuple[bool, ...]) -> SolarSegment:
            past_flat, past_mpp, past_open = outcomes
            if past_open:
                return SolarSegment.REVERSE
            if past_mpp:
                return SolarSegment.DROP
            if past_flat:
                return SolarSegment.KNEE
            return SolarSegment.FLAT
