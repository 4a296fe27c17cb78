# src/amsim_core/components/electrical.py
"""
Electrical device models: the linear Resistor and Capacitor, and a single-pole
operational amplifier with rail saturation.
"""
import logging
import math
from enum import Enum
from typing import Dict, Optional, Tuple

from ..quantities import Domain
from .base import Evaluation, ModelBase, register_model
from .capabilities import Guard, IGuardProvider, provides
from .parameters import ParameterSpec

logger = logging.getLogger(__name__)

_TWO_TERMINALS = {"p": Domain.ELECTRICAL, "n": Domain.ELECTRICAL}


@register_model("Resistor")
class Resistor(ModelBase):
    """Ideal linear resistor, `v = i * R`."""

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {"resistance": ParameterSpec("ohm", 1.0e3)}

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return dict(_TWO_TERMINALS)

    def setup(self) -> None:
        self.require(self.params["resistance"] > 0.0, "Resistance must be positive.",
                     resistance=self.params["resistance"])
        self.main = self.branch("main", "p", "n")

    def evaluate(self, ctx) -> Evaluation:
        v = ctx.get(self.main.across)
        i = ctx.get(self.main.through)
        return Evaluation([v - i * self.params["resistance"]])

    def information(self, ctx) -> Dict[str, float]:
        i = float(ctx.get(self.main.through))
        return {"power_dissipated": i * i * self.params["resistance"]}


@register_model("Capacitor")
class Capacitor(ModelBase):
    """Ideal linear capacitor, `i = C * dv/dt`."""

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {"capacitance": ParameterSpec("F", 1.0e-6)}

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return dict(_TWO_TERMINALS)

    def setup(self) -> None:
        self.require(self.params["capacitance"] > 0.0, "Capacitance must be positive.",
                     capacitance=self.params["capacitance"])
        self.main = self.branch("main", "p", "n")

    def evaluate(self, ctx) -> Evaluation:
        i = ctx.get(self.main.through)
        dv = ctx.get_derivative(self.main.across)
        return Evaluation([i - self.params["capacitance"] * dv])

    def information(self, ctx) -> Dict[str, float]:
        v = float(ctx.get(self.main.across))
        return {"energy_stored": 0.5 * self.params["capacitance"] * v * v}


class OpAmpMode(Enum):
    LINEAR = "linear"
    SAT_HIGH = "saturated_high"
    SAT_LOW = "saturated_low"


@register_model("OpAmp")
class OpAmp(ModelBase):
    """
    Operational amplifier with finite input and output resistance and a single
    pole: `vint + tau * dvint/dt = a0 * (v(inp) - v(inn))`, `tau = 1/(2*pi*f_pole)`.
    The output follows `vint` until it reaches a rail and then holds the rail.
    """

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {
            "a0": ParameterSpec("", 1.0e5),
            "f_pole": ParameterSpec("Hz", 10.0),
            "r_in": ParameterSpec("ohm", 1.0e6),
            "r_out": ParameterSpec("ohm", 100.0),
            "vsat_pos": ParameterSpec("V", 12.0),
            "vsat_neg": ParameterSpec("V", -12.0),
        }

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"inp": Domain.ELECTRICAL, "inn": Domain.ELECTRICAL, "out": Domain.ELECTRICAL}

    def setup(self) -> None:
        p = self.params
        self.require(p["a0"] > 0.0, "Open-loop gain must be positive.", a0=p["a0"])
        self.require(p["f_pole"] > 0.0, "Pole frequency must be positive.", f_pole=p["f_pole"])
        self.require(p["r_in"] > 0.0, "Input resistance must be positive.", r_in=p["r_in"])
        self.require(p["r_out"] >= 0.0, "Output resistance must be non-negative.", r_out=p["r_out"])
        self.require(p["vsat_neg"] < p["vsat_pos"], "Negative rail must lie below the positive rail.",
                     vsat_neg=p["vsat_neg"], vsat_pos=p["vsat_pos"])
        self.tau = 1.0 / (2.0 * math.pi * p["f_pole"])
        self.input = self.branch("input", "inp", "inn", across="v_in", through="i_in")
        self.output = self.branch("output", "out", None, across="v_out", through="i_out")
        self.vint = self.quantity("vint", "V", Domain.ELECTRICAL)

    def limited(self, vint, mode: OpAmpMode):
        if mode is OpAmpMode.SAT_HIGH:
            return self.params["vsat_pos"]
        if mode is OpAmpMode.SAT_LOW:
            return self.params["vsat_neg"]
        return vint

    def evaluate(self, ctx) -> Evaluation:
        p = self.params
        mode = ctx.mode(self) or OpAmpMode.LINEAR
        v_in = ctx.get(self.input.across)
        vint = ctx.get(self.vint)
        residuals = [
            v_in - p["r_in"] * ctx.get(self.input.through),
            ctx.get(self.output.across) - self.limited(vint, mode) - p["r_out"] * ctx.get(self.output.through),
            vint + self.tau * ctx.get_derivative(self.vint) - p["a0"] * v_in,
        ]
        return Evaluation(residuals, mode)

    @provides(IGuardProvider)
    class GuardProvider:
        def get_guards(self, model: "OpAmp"):
            p = model.params
            return [
                Guard("above_positive_rail", lambda ctx: ctx.get(model.vint) - p["vsat_pos"]),
                Guard("below_negative_rail", lambda ctx: p["vsat_neg"] - ctx.get(model.vint)),
            ]

        def classify(self, model: "OpAmp", outcomes: Tuple[bool, ...]) -> OpAmpMode:
            above, below = outcomes
            if above:
                return OpAmpMode.SAT_HIGH
            if below:
                return OpAmpMode.SAT_LOW
            return OpAmpMode.LINEAR
