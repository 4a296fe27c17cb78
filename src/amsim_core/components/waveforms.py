# src/amsim_core/components/waveforms.py
"""
Time-domain waveform generators for source models.

A waveform drives one discrete signal of its owning model. Except for the sine,
which is evaluated analytically, every waveform works only by registering events
with the `EventScheduler`; each event overrides the signal with a new target and
a ramp time, and the signal's ramp semantics produce the linear segments between
events. Constructors validate their arguments and raise `ValueError`.
"""
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..quantities import Quantity, StateVector

if TYPE_CHECKING:
    from ..simulation.evaluator import EvaluationContext
    from ..simulation.scheduler import EventScheduler

logger = logging.getLogger(__name__)

#: Linear interpolation between independent samples attenuates the noise power
#: to 2/3 of the sample variance; the rms is scaled back up by sqrt(3/2).
NOISE_FLATNESS_CORRECTION = math.sqrt(1.5)


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


def _hold(state: StateVector, time: float) -> None:
    pass


class Waveform(ABC):
    """Base class of every signal generator."""

    @property
    @abstractmethod
    def initial_value(self) -> float:
        """The level of the signal before the first event."""

    @abstractmethod
    def schedule(self, scheduler: "EventScheduler", signal: Quantity, owner: str = "") -> None:
        """Registers every event this waveform needs with `scheduler`."""

    def value(self, ctx: "EvaluationContext", signal: Quantity) -> float:
        """The waveform value at `ctx.time`; by default the level of the driven signal."""
        return ctx.get(signal)

    def level(self, state: StateVector, signal: Quantity) -> float:
        """The value at the state's current time, read from committed signal records."""
        return state.get(signal)


@dataclass(frozen=True)
class ConstantWaveform(Waveform):
    constant: float = 0.0

    @property
    def initial_value(self) -> float:
        return self.constant

    def schedule(self, scheduler, signal, owner=""):
        pass


@dataclass(frozen=True)
class SineWaveform(Waveform):
    """`offset + amplitude * sin(2*pi*frequency*(t - delay) + phase)`, held at its t=delay value before."""
    offset: float = 0.0
    amplitude: float = 1.0
    frequency: float = 1.0
    phase: float = 0.0  # radians
    delay: float = 0.0

    def __post_init__(self):
        _require(self.frequency > 0.0, f"Sine frequency must be positive, got {self.frequency}.")
        _require(self.delay >= 0.0, f"Sine delay must be non-negative, got {self.delay}.")

    @property
    def initial_value(self) -> float:
        return self.at(0.0)

    def at(self, time: float) -> float:
        elapsed = max(time - self.delay, 0.0)
        return self.offset + self.amplitude * math.sin(2.0 * math.pi * self.frequency * elapsed + self.phase)

    def schedule(self, scheduler, signal, owner=""):
        if self.delay > 0.0:
            scheduler.add_breakpoint(self.delay)

    def value(self, ctx, signal):
        return self.at(ctx.time)

    def level(self, state, signal):
        return self.at(state.time)


@dataclass(frozen=True)
class PulseWaveform(Waveform):
    """
    Periodic trapezoidal pulse. The leading edge starts at `delay + k*period`,
    the trailing edge at `delay + rise_time + width + k*period`.

    Edge durations follow ramp-argument semantics: a transition to a higher level
    takes the first ramp argument, one to a lower level the second. The arguments
    are `(rise_time, fall_time)` when `pulse_value >= initial_value` and
    `(fall_time, rise_time)` otherwise.
    """
    initial: float = 0.0
    pulse: float = 1.0
    delay: float = 0.0
    rise_time: float = 0.0
    fall_time: float = 0.0
    width: float = 0.5
    period: float = 1.0

    def __post_init__(self):
        _require(self.period > 0.0, f"Pulse period must be positive, got {self.period}.")
        _require(self.delay >= 0.0, f"Pulse delay must be non-negative, got {self.delay}.")
        _require(min(self.rise_time, self.fall_time, self.width) >= 0.0,
                 "Pulse rise time, fall time and width must be non-negative.")
        _require(self.rise_time + self.width + self.fall_time <= self.period,
                 f"Pulse rise + width + fall ({self.rise_time + self.width + self.fall_time}) "
                 f"exceeds the period ({self.period}).")

    @property
    def initial_value(self) -> float:
        return self.initial

    @property
    def ramp_arguments(self) -> Tuple[float, float]:
        if self.pulse >= self.initial:
            return self.rise_time, self.fall_time
        return self.fall_time, self.rise_time

    def transition_time(self, target: float, current: float) -> float:
        rising, falling = self.ramp_arguments
        return rising if target > current else falling

    def schedule(self, scheduler, signal, owner=""):
        def edge(target):
            def action(state: StateVector, time: float) -> None:
                current = state.signal_record(signal).level(time)
                scheduler.override(state, signal, target, time, self.transition_time(target, current))
            return action

        scheduler.schedule(self.delay, edge(self.pulse), period=self.period, label="pulse.leading", owner=owner)
        scheduler.schedule(self.delay + self.rise_time + self.width, edge(self.initial),
                           period=self.period, label="pulse.trailing", owner=owner)


@dataclass(frozen=True)
class RampWaveform(Waveform):
    """
    Periodic sawtooth: from `start` it ramps to `end` over `period - reset_time`,
    then returns to `start` over `reset_time`, beginning at `delay`.
    """
    start: float = 0.0
    end: float = 1.0
    delay: float = 0.0
    period: float = 1.0
    reset_time: float = 0.0

    def __post_init__(self):
        _require(self.period > 0.0, f"Ramp period must be positive, got {self.period}.")
        _require(self.delay >= 0.0, f"Ramp delay must be non-negative, got {self.delay}.")
        _require(0.0 <= self.reset_time < self.period,
                 f"Ramp reset time must lie in [0, period), got {self.reset_time}.")

    @property
    def initial_value(self) -> float:
        return self.start

    def schedule(self, scheduler, signal, owner=""):
        climb = self.period - self.reset_time

        def rise(state: StateVector, time: float) -> None:
            scheduler.override(state, signal, self.end, time, climb)

        def reset(state: StateVector, time: float) -> None:
            scheduler.override(state, signal, self.start, time, self.reset_time)

        scheduler.schedule(self.delay, rise, period=self.period, label="ramp.rise", owner=owner)
        scheduler.schedule(self.delay + climb, reset, period=self.period, label="ramp.reset", owner=owner)


@dataclass(frozen=True)
class PiecewiseLinearWaveform(Waveform):
    """
    Linear interpolation through `(times[i], values[i])`, holding `values[0]`
    before the first point and the last value after the table. A positive
    `period` repeats the table; the restart at every multiple of the period
    jumps back to `values[0]`.
    """
    times: Tuple[float, ...] = (0.0,)
    values: Tuple[float, ...] = (0.0,)
    period: float = 0.0

    def __post_init__(self):
        object.__setattr__(self, "times", tuple(float(t) for t in self.times))
        object.__setattr__(self, "values", tuple(float(v) for v in self.values))
        _require(len(self.times) > 0, "PWL table must contain at least one point.")
        _require(len(self.times) == len(self.values),
                 f"PWL times ({len(self.times)}) and values ({len(self.values)}) differ in length.")
        _require(self.times[0] >= 0.0, f"PWL times must start at or after 0, got {self.times[0]}.")
        _require(all(b > a for a, b in zip(self.times, self.times[1:])),
                 "PWL times must be strictly increasing.")
        _require(self.period == 0.0 or self.period >= self.times[-1],
                 f"PWL period ({self.period}) must be 0 or at least the last table time ({self.times[-1]}).")

    @property
    def initial_value(self) -> float:
        return self.values[0]

    def schedule(self, scheduler, signal, owner=""):
        period: Optional[float] = self.period if self.period > 0.0 else None

        def goto(target: float, ramp: float):
            def action(state: StateVector, time: float) -> None:
                scheduler.override(state, signal, target, time, ramp)
            return action

        if period is not None:
            scheduler.schedule(period, goto(self.values[0], 0.0), period=period, label="pwl.restart", owner=owner)
        last = len(self.times) - 1
        for i, t in enumerate(self.times):
            if i < last:
                action = goto(self.values[i + 1], self.times[i + 1] - t)
            else:
                # The ramp into the last point already ends there; the event only forces the step.
                action = _hold
            scheduler.schedule(t, action, period=period, label=f"pwl.point[{i}]", owner=owner)


@dataclass(frozen=True)
class NoiseWaveform(Waveform):
    """
    Band-limited Gaussian noise. A new sample is drawn every `1 / (2 * bandwidth)`
    seconds and the signal ramps linearly to it over one sample period.

    The generator is owned by the waveform instance; two instances with the same
    seed produce the same sequence.
    """
    mean: float = 0.0
    rms: float = 1.0
    bandwidth: float = 1.0
    seed: Optional[int] = None
    _rng: np.random.Generator = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        _require(self.bandwidth > 0.0, f"Noise bandwidth must be positive, got {self.bandwidth}.")
        _require(self.rms >= 0.0, f"Noise rms must be non-negative, got {self.rms}.")
        object.__setattr__(self, "_rng", np.random.default_rng(self.seed))

    @property
    def initial_value(self) -> float:
        return self.mean

    @property
    def sample_time(self) -> float:
        return 1.0 / (2.0 * self.bandwidth)

    def draw(self) -> float:
        """One normal deviate from two independent uniforms (Box-Muller)."""
        u1 = 1.0 - self._rng.random()  # (0, 1]
        u2 = self._rng.random()
        return math.sqrt(-2.0 * math.log(u1)) * math.cos(2.0 * math.pi * u2)

    def sample(self) -> float:
        return self.mean + self.rms * NOISE_FLATNESS_CORRECTION * self.draw()

    def schedule(self, scheduler, signal, owner=""):
        ts = self.sample_time

        def resample(state: StateVector, time: float) -> None:
            scheduler.override(state, signal, self.sample(), time, ts)

        scheduler.schedule(0.0, resample, period=ts, label="noise.resample", owner=owner)
        logger.debug(f"Noise source '{owner}' resamples every {ts:.6e} s.")
