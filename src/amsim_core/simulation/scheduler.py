# src/amsim_core/simulation/scheduler.py
"""
The discrete event scheduler.

Waveform generators register `Event`s (pulse edges, ramp resets, PWL table
points, noise resamples). The integrator asks for `next_time()` to clip its step
proposal so a step lands exactly on every event and breakpoint, then calls
`apply_due()` after committing that step. Events with the same trigger time are
applied in registration order: the queue is keyed by `(time, sequence)` and a
periodic event keeps its original sequence number when it is re-inserted.
"""
import heapq
import itertools
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple

from ..quantities import Quantity, SignalRecord, StateVector

logger = logging.getLogger(__name__)

EventAction = Callable[[StateVector, float], None]


@dataclass(frozen=True)
class Event:
    """
    A scheduled discrete occurrence.

    Periodic events fire at `origin + k * period` for k = 0, 1, 2, ...; the
    trigger time is recomputed from the origin rather than accumulated, so long
    runs do not drift.
    """
    time: float
    sequence: int
    action: EventAction = field(compare=False)
    period: Optional[float] = field(default=None, compare=False)
    label: str = field(default="", compare=False)
    owner: str = field(default="", compare=False)
    origin: float = field(default=0.0, compare=False)
    occurrence: int = field(default=0, compare=False)

    def next_occurrence(self) -> Optional["Event"]:
        if self.period is None:
            return None
        k = self.occurrence + 1
        return replace(self, time=self.origin + k * self.period, occurrence=k)


class EventScheduler:
    """Priority queue of pending events plus action-less breakpoints."""

    def __init__(self, resolution: float = 0.0):
        self.resolution = float(resolution)
        self._queue: List[Tuple[float, int, Event]] = []
        self._breakpoints: List[float] = []
        self._sequence = itertools.count()
        self.applied_count: int = 0

    def schedule(
        self,
        time: float,
        action: EventAction,
        period: Optional[float] = None,
        label: str = "",
        owner: str = "",
    ) -> Event:
        """Registers an event; a `period` makes it re-insert itself after firing."""
        if period is not None and not period > 0.0:
            raise ValueError(f"Event period must be positive, got {period!r} for '{label}'.")
        event = Event(
            time=float(time),
            sequence=next(self._sequence),
            action=action,
            period=None if period is None else float(period),
            label=label,
            owner=owner,
            origin=float(time),
        )
        self._push(event)
        logger.debug(f"Scheduled event '{label}' of '{owner}' at t={event.time:.9e}, period={period}.")
        return event

    def add_breakpoint(self, time: float) -> None:
        """Forces the integrator to land on `time` without applying anything there."""
        heapq.heappush(self._breakpoints, float(time))

    def next_time(self, after: float) -> Optional[float]:
        """The earliest event or breakpoint strictly later than `after`."""
        horizon = after + self.resolution
        while self._breakpoints and self._breakpoints[0] <= horizon:
            heapq.heappop(self._breakpoints)
        candidates = [entry[0] for entry in self._queue if entry[0] > horizon]
        if self._breakpoints:
            candidates.append(self._breakpoints[0])
        return min(candidates) if candidates else None

    def apply_due(self, time: float, state: StateVector) -> List[Event]:
        """Applies, in `(time, sequence)` order, every event due at or before `time`."""
        applied: List[Event] = []
        while self._queue and self._queue[0][0] <= time + self.resolution:
            _, _, event = heapq.heappop(self._queue)
            event.action(state, time)
            applied.append(event)
            successor = event.next_occurrence()
            if successor is not None:
                self._push(successor)
        if applied:
            self.applied_count += len(applied)
            logger.debug(f"Applied {len(applied)} event(s) at t={time:.9e}: {[e.label for e in applied]}")
        return applied

    def override(
        self,
        state: StateVector,
        signal: Quantity,
        value: float,
        time: float,
        ramp_time: float = 0.0,
    ) -> SignalRecord:
        """Overrides a signal and registers the end of its ramp as a breakpoint."""
        record = state.override(signal, value, time, ramp_time)
        if record.ramp_time > 0.0:
            self.add_breakpoint(record.ramp_end)
        return record

    @property
    def pending(self) -> List[Event]:
        return [entry[2] for entry in sorted(self._queue, key=lambda e: (e[0], e[1]))]

    def _push(self, event: Event) -> None:
        heapq.heappush(self._queue, (event.time, event.sequence, event))
