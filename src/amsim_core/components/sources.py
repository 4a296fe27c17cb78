# src/amsim_core/components/sources.py
"""
Waveform-driven sources.

`AcrossSource` and `ThroughSource` are domain-generic ideal sources (a voltage or
current source in the electrical domain, a fixed temperature or heat flow in the
thermal domain, an imposed displacement or force in the mechanical domain).
`VoltageSource` is the electrical source with a numeric function selector and
one parameter group per waveform.
"""
import logging
import math
from typing import Any, Dict, Mapping, Optional

from ..quantities import Domain
from .base import Evaluation, ModelBase, register_model
from .capabilities import IEventSource, provides
from .exceptions import ParameterConstraintError, UnsupportedModeSelectorError
from .parameters import ParameterSpec
from .waveforms import (
    ConstantWaveform,
    NoiseWaveform,
    PiecewiseLinearWaveform,
    PulseWaveform,
    RampWaveform,
    SineWaveform,
    Waveform,
)

logger = logging.getLogger(__name__)


class _WaveformSource(ModelBase):
    """Shared plumbing: one branch p -> n, one driven signal named 'level'."""

    def __init__(
        self,
        instance_id: str,
        waveform: Optional[Waveform] = None,
        domain: Domain = Domain.ELECTRICAL,
        parameters: Optional[Mapping[str, Any]] = None,
        parent_id: str = "top",
    ):
        self.domain = domain
        self.waveform = waveform
        super().__init__(instance_id, parameters, parent_id)

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {"dc_value": ParameterSpec(default=0.0, doc="SI value used when no waveform is given.")}

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"p": None, "n": None}

    @property
    def terminal_domains(self) -> Dict[str, Domain]:
        return {"p": self.domain, "n": self.domain}

    def build_waveform(self) -> Waveform:
        return ConstantWaveform(self.params["dc_value"])

    def setup(self) -> None:
        if self.waveform is None:
            self.waveform = self.build_waveform()
        self.main = self.branch("main", "p", "n")
        self.level = self.signal("level", self.waveform.initial_value)

    def source_value(self, ctx):
        return self.waveform.value(ctx, self.level)

    @provides(IEventSource)
    class EventSource:
        def schedule_events(self, model: "_WaveformSource", scheduler) -> None:
            model.waveform.schedule(scheduler, model.level, owner=model.fqn)


@register_model("AcrossSource")
class AcrossSource(_WaveformSource):
    """Imposes the across quantity of its branch: `across(p, n) = waveform(t)`."""

    def evaluate(self, ctx) -> Evaluation:
        return Evaluation([ctx.get(self.main.across) - self.source_value(ctx)])


@register_model("ThroughSource")
class ThroughSource(_WaveformSource):
    """Imposes the through quantity flowing from p, through the source, to n."""

    def evaluate(self, ctx) -> Evaluation:
        return Evaluation([ctx.get(self.main.through) - self.source_value(ctx)])


@register_model("VoltageSource")
class VoltageSource(_WaveformSource):
    """
    Electrical voltage source with `select_function`:
    1 DC, 2 sine, 3 pulse, 4 ramp, 5 piecewise linear, 6 noise.
    Any other selector falls back to DC; the fallback is logged and kept in
    `selector_issue`.
    """
    FUNCTIONS = {1: "dc", 2: "sine", 3: "pulse", 4: "ramp", 5: "pwl", 6: "noise"}

    def __init__(self, instance_id: str, parameters: Optional[Mapping[str, Any]] = None, parent_id: str = "top"):
        self.selector_issue: Optional[UnsupportedModeSelectorError] = None
        super().__init__(instance_id, None, Domain.ELECTRICAL, parameters, parent_id)

    @classmethod
    def declare_parameters(cls) -> Dict[str, ParameterSpec]:
        return {
            "select_function": ParameterSpec(default=1, kind=int),
            "dc_value": ParameterSpec("V", 0.0),
            # sine
            "sine_offset": ParameterSpec("V", 0.0),
            "sine_amplitude": ParameterSpec("V", 1.0),
            "sine_frequency": ParameterSpec("Hz", 1.0),
            "sine_phase": ParameterSpec("degree", 0.0),
            "sine_delay": ParameterSpec("s", 0.0),
            # pulse
            "initial_value": ParameterSpec("V", 0.0),
            "pulse_value": ParameterSpec("V", 1.0),
            "start_delay": ParameterSpec("s", 0.0),
            "rise_time": ParameterSpec("s", 0.0),
            "fall_time": ParameterSpec("s", 0.0),
            "pulse_width": ParameterSpec("s", 0.5),
            "pulse_period": ParameterSpec("s", 1.0),
            # ramp
            "ramp_start_value": ParameterSpec("V", 0.0),
            "ramp_end_value": ParameterSpec("V", 1.0),
            "ramp_delay": ParameterSpec("s", 0.0),
            "ramp_period": ParameterSpec("s", 1.0),
            "ramp_reset_time": ParameterSpec("s", 0.0),
            # piecewise linear
            "pwl_times": ParameterSpec("s", (0.0,), kind=tuple),
            "pwl_values": ParameterSpec("V", (0.0,), kind=tuple),
            "pwl_period": ParameterSpec("s", 0.0, doc="0 plays the table once."),
            # noise
            "noise_mean": ParameterSpec("V", 0.0),
            "noise_rms": ParameterSpec("V", 1.0),
            "noise_bw": ParameterSpec("Hz", 1.0e3),
            "noise_seed": ParameterSpec(default=1, kind=int),
        }

    @classmethod
    def declare_terminals(cls) -> Dict[str, Optional[Domain]]:
        return {"p": Domain.ELECTRICAL, "n": Domain.ELECTRICAL}

    @property
    def function(self) -> str:
        return self.FUNCTIONS.get(self.params["select_function"], "dc")

    def build_waveform(self) -> Waveform:
        p = self.params
        selector = p["select_function"]
        if selector not in self.FUNCTIONS:
            self.selector_issue = UnsupportedModeSelectorError(
                model_fqn=self.fqn, selector="select_function", value=selector, fallback="DC (dc_value)"
            )
            logger.warning(str(self.selector_issue))
        try:
            if selector == 2:
                return SineWaveform(p["sine_offset"], p["sine_amplitude"], p["sine_frequency"],
                                    math.radians(p["sine_phase"]), p["sine_delay"])
            if selector == 3:
                return PulseWaveform(p["initial_value"], p["pulse_value"], p["start_delay"], p["rise_time"],
                                     p["fall_time"], p["pulse_width"], p["pulse_period"])
            if selector == 4:
                return RampWaveform(p["ramp_start_value"], p["ramp_end_value"], p["ramp_delay"],
                                    p["ramp_period"], p["ramp_reset_time"])
            if selector == 5:
                return PiecewiseLinearWaveform(p["pwl_times"], p["pwl_values"], p["pwl_period"])
            if selector == 6:
                return NoiseWaveform(p["noise_mean"], p["noise_rms"], p["noise_bw"], p["noise_seed"])
        except ValueError as e:
            raise ParameterConstraintError(
                model_fqn=self.fqn, details=str(e), parameters={"select_function": selector}
            ) from e
        return ConstantWaveform(p["dc_value"])

    def evaluate(self, ctx) -> Evaluation:
        return Evaluation([ctx.get(self.main.across) - self.source_value(ctx)])

    def information(self, ctx) -> Dict[str, float]:
        v = float(ctx.get(self.main.across))
        i = float(ctx.get(self.main.through))
        return {"power_delivered": -v * i}
