# src/amsim_core/components/thermal.py
"""
Thermal and electro-thermal models.

Thermal across quantities are absolute temperatures in kelvin (the thermal
reference node sits at 0 K); through quantities are heat flows in watts. A model
that generates heat injects it into its thermal terminal, i.e. its through
quantity is negative.
"""
import logging
import math
from enum import Enum
from typing import Dict, Optional, Tuple

import jax.numpy as jnp

from ..quantities import Domain
from .base import Evaluation, ModelBase, register_model
from .capabilities import Guard, IGuardProvider, provides
from .parameters import ParameterSpec

logger = logging.getLogger(__name__)


@register_model("ThermalResistor")
class ThermalResistor(ModelBase):
    """Conductive heat path, `dT = R_th * heat_flow`."""

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {"resistance": ParameterSpec("K/W", 1.0)}

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"th1": Domain.THERMAL, "th2": Domain.THERMAL}

    def setup(self) -> None:
        self.require(self.params["resistance"] > 0.0, "Thermal resistance must be positive.",
                     resistance=self.params["resistance"])
        self.main = self.branch("main", "th1", "th2")

    def evaluate(self, ctx) -> Evaluation:
        return Evaluation([ctx.get(self.main.across) - self.params["resistance"] * ctx.get(self.main.through)])


@register_model("ThermalCapacitor")
class ThermalCapacitor(ModelBase):
    """Heat capacity of a thermal node, `heat_flow = C_th * dT/dt`."""

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {"capacitance": ParameterSpec("J/K", 1.0)}

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"th": Domain.THERMAL}

    def setup(self) -> None:
        self.require(self.params["capacitance"] > 0.0, "Heat capacity must be positive.",
                     capacitance=self.params["capacitance"])
        self.main = self.branch("main", "th")

    def evaluate(self, ctx) -> Evaluation:
        dT = ctx.get_derivative(self.main.across)
        return Evaluation([ctx.get(self.main.through) - self.params["capacitance"] * dT])

    def information(self, ctx) -> Dict[str, float]:
        return {"temperature": float(ctx.get(self.main.across))}


class ThermistorMode(Enum):
    COLD = "cold"
    NORMAL = "normal"
    HOT = "hot"


@register_model("Thermistor")
class Thermistor(ModelBase):
    """
    NTC thermistor, `R(T) = r_nominal * exp(beta * (1/T - 1/temp_nominal))`,
    with T the temperature of the thermal terminal clamped to
    `[temp_min, temp_max]`. The dissipated power heats the thermal terminal.
    """

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {
            "r_nominal": ParameterSpec("ohm", 1.0e4),
            "temp_nominal": ParameterSpec("K", 298.15),
            "beta": ParameterSpec("K", 3950.0),
            "temp_min": ParameterSpec("K", 218.15),
            "temp_max": ParameterSpec("K", 423.15),
        }

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"p": Domain.ELECTRICAL, "n": Domain.ELECTRICAL, "th": Domain.THERMAL}

    def setup(self) -> None:
        p = self.params
        self.require(p["r_nominal"] > 0.0, "r_nominal must be positive.", r_nominal=p["r_nominal"])
        self.require(p["temp_nominal"] > 0.0, "temp_nominal must be above absolute zero.",
                     temp_nominal=p["temp_nominal"])
        self.require(p["beta"] > 0.0, "beta must be positive.", beta=p["beta"])
        self.require(0.0 < p["temp_min"] < p["temp_max"], "Require 0 K < temp_min < temp_max.",
                     temp_min=p["temp_min"], temp_max=p["temp_max"])
        self.electrical = self.branch("electrical", "p", "n")
        self.thermal = self.branch("thermal", "th", None, across="temp", through="heat_flow")

    def resistance_at(self, temperature):
        p = self.params
        return p["r_nominal"] * jnp.exp(p["beta"] * (1.0 / temperature - 1.0 / p["temp_nominal"]))

    def effective_temperature(self, temperature, mode: ThermistorMode):
        if mode is ThermistorMode.COLD:
            return self.params["temp_min"]
        if mode is ThermistorMode.HOT:
            return self.params["temp_max"]
        return temperature

    def evaluate(self, ctx) -> Evaluation:
        mode = ctx.mode(self) or ThermistorMode.NORMAL
        v = ctx.get(self.electrical.across)
        i = ctx.get(self.electrical.through)
        resistance = self.resistance_at(self.effective_temperature(ctx.get(self.thermal.across), mode))
        return Evaluation([v - i * resistance, ctx.get(self.thermal.through) + v * i], mode)

    def information(self, ctx) -> Dict[str, float]:
        p = self.params
        temperature = min(max(float(ctx.get(self.thermal.across)), p["temp_min"]), p["temp_max"])
        v = float(ctx.get(self.electrical.across))
        i = float(ctx.get(self.electrical.through))
        return {"resistance": float(self.resistance_at(temperature)), "power_dissipated": v * i}

    @provides(IGuardProvider)
    class GuardProvider:
        def get_guards(self, model: "Thermistor"):
            p = model.params
            return [
                Guard("above_temp_min", lambda ctx: ctx.get(model.thermal.across) - p["temp_min"]),
                Guard("above_temp_max", lambda ctx: ctx.get(model.thermal.across) - p["temp_max"]),
            ]

        def classify(self, model: "Thermistor", outcomes: Tuple[bool, ...]) -> ThermistorMode:
            above_min, above_max = outcomes
            if not above_min:
                return ThermistorMode.COLD
            if above_max:
                return ThermistorMode.HOT
            return ThermistorMode.NORMAL


@register_model("ThermoelectricCooler")
class ThermoelectricCooler(ModelBase):
    """
    Peltier module characterized by its datasheet maxima at hot-side
    temperature `th_reference`. Module Seebeck coefficient, resistance and
    thermal conductance follow from `i_max`, `v_max` and `dt_max`:

        alpha = v_max / Th
        R     = (Th - dt_max) * v_max / (Th * i_max)
        K     = (Th - dt_max) * v_max * i_max / (2 * Th * dt_max)

    Heat pumped from the absorbing side and released on the emitting side:

        Qc = alpha*i*Tc - i^2*R/2 - K*(Th - Tc)
        Qh = alpha*i*Th + i^2*R/2 - K*(Th - Tc)
    """

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {
            "i_max": ParameterSpec("A", 6.0),
            "v_max": ParameterSpec("V", 15.4),
            "dt_max": ParameterSpec("K", 68.0),
            "th_reference": ParameterSpec("K", 300.15),
        }

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {
            "p": Domain.ELECTRICAL,
            "n": Domain.ELECTRICAL,
            "th_absorbing": Domain.THERMAL,
            "th_emitting": Domain.THERMAL,
        }

    def setup(self) -> None:
        p = self.params
        self.require(p["i_max"] > 0.0, "i_max must be positive.", i_max=p["i_max"])
        self.require(p["v_max"] > 0.0, "v_max must be positive.", v_max=p["v_max"])
        self.require(0.0 < p["dt_max"] < p["th_reference"], "Require 0 < dt_max < th_reference.",
                     dt_max=p["dt_max"], th_reference=p["th_reference"])
        th, dt = p["th_reference"], p["dt_max"]
        self.seebeck = p["v_max"] / th
        self.resistance = (th - dt) * p["v_max"] / (th * p["i_max"])
        self.conductance = (th - dt) * p["v_max"] * p["i_max"] / (2.0 * th * dt)

        self.electrical = self.branch("electrical", "p", "n")
        self.absorbing = self.branch("absorbing", "th_absorbing", None,
                                     across="temp_absorbing", through="heat_absorbing")
        self.emitting = self.branch("emitting", "th_emitting", None,
                                    across="temp_emitting", through="heat_emitting")

    def heat_flows(self, i, tc, th):
        joule = 0.5 * i * i * self.resistance
        conduction = self.conductance * (th - tc)
        qc = self.seebeck * i * tc - joule - conduction
        qh = self.seebeck * i * th + joule - conduction
        return qc, qh

    def evaluate(self, ctx) -> Evaluation:
        v = ctx.get(self.electrical.across)
        i = ctx.get(self.electrical.through)
        tc = ctx.get(self.absorbing.across)
        th = ctx.get(self.emitting.across)
        qc, qh = self.heat_flows(i, tc, th)
        return Evaluation([
            v - (i * self.resistance + self.seebeck * (th - tc)),
            ctx.get(self.absorbing.through) - qc,
            ctx.get(self.emitting.through) + qh,
        ])

    def information(self, ctx) -> Dict[str, float]:
        v = float(ctx.get(self.electrical.across))
        i = float(ctx.get(self.electrical.through))
        qc, qh = self.heat_flows(i, float(ctx.get(self.absorbing.across)), float(ctx.get(self.emitting.across)))
        power = v * i
        return {
            "heat_absorbed": qc,
            "heat_emitted": qh,
            "electrical_power": power,
            "cop": qc / power if power != 0.0 else math.nan,
        }
