# src/amsim_core/components/mechanical.py
"""
Translational mechanical models.
"""
import logging
from enum import Enum
from typing import Dict, Optional, Tuple

from ..quantities import Domain
from .base import Evaluation, ModelBase, register_model
from .capabilities import Guard, IGuardProvider, provides
from .parameters import ParameterSpec

logger = logging.getLogger(__name__)


class StopMode(Enum):
    FREE = "free"
    ABOVE_MAX = "above_max"
    BELOW_MIN = "below_min"


@register_model("Stop")
class Stop(ModelBase):
    """
    End stop between two attachment points. The relative displacement
    `d = x(attach1) - x(attach2)` travels freely in `[displacement_min,
    displacement_max]`; beyond either limit the stop pushes back like a damped
    spring of stiffness `k_stop`.
    """

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {
            "displacement_min": ParameterSpec("m", 0.0),
            "displacement_max": ParameterSpec("m", 0.01),
            "k_stop": ParameterSpec("N/m", 1.0e6),
            "damp_stop": ParameterSpec("N*s/m", 0.0),
        }

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"attach1": Domain.MECHANICAL, "attach2": Domain.MECHANICAL}

    def setup(self) -> None:
        p = self.params
        self.require(p["displacement_min"] < p["displacement_max"],
                     "displacement_min must be smaller than displacement_max.",
                     displacement_min=p["displacement_min"], displacement_max=p["displacement_max"])
        self.require(p["k_stop"] > 0.0, "Stop stiffness must be positive.", k_stop=p["k_stop"])
        self.require(p["damp_stop"] >= 0.0, "Stop damping must be non-negative.", damp_stop=p["damp_stop"])
        self.main = self.branch("main", "attach1", "attach2")

    @staticmethod
    def classify_displacement(d: float, d_min: float, d_max: float) -> StopMode:
        if d > d_max:
            return StopMode.ABOVE_MAX
        if d < d_min:
            return StopMode.BELOW_MIN
        return StopMode.FREE

    def force_in_mode(self, mode: StopMode, d, velocity):
        p = self.params
        if mode is StopMode.ABOVE_MAX:
            return p["k_stop"] * (d - p["displacement_max"]) + p["damp_stop"] * velocity
        if mode is StopMode.BELOW_MIN:
            return p["k_stop"] * (d - p["displacement_min"]) + p["damp_stop"] * velocity
        return 0.0 * d

    def force(self, d: float, velocity: float = 0.0) -> float:
        """The contact force at a concrete displacement and velocity."""
        mode = self.classify_displacement(d, self.params["displacement_min"], self.params["displacement_max"])
        return float(self.force_in_mode(mode, d, velocity))

    def evaluate(self, ctx) -> Evaluation:
        mode = ctx.mode(self) or StopMode.FREE
        d = ctx.get(self.main.across)
        velocity = ctx.get_derivative(self.main.across)
        return Evaluation([ctx.get(self.main.through) - self.force_in_mode(mode, d, velocity)], mode)

    def information(self, ctx) -> Dict[str, float]:
        p = self.params
        d = float(ctx.get(self.main.across))
        penetration = max(d - p["displacement_max"], p["displacement_min"] - d, 0.0)
        return {"energy_stored": 0.5 * p["k_stop"] * penetration * penetration}

    @provides(IGuardProvider)
    class GuardProvider:
        def get_guards(self, model: "Stop"):
            p = model.params
            return [
                Guard("above_max", lambda ctx: ctx.get(model.main.across) - p["displacement_max"]),
                Guard("below_min", lambda ctx: p["displacement_min"] - ctx.get(model.main.across)),
            ]

        def classify(self, model: "Stop", outcomes: Tuple[bool, ...]) -> StopMode:
            above, below = outcomes
            if above:
                return StopMode.ABOVE_MAX
            if below:
                return StopMode.BELOW_MIN
            return StopMode.FREE
