# src/amsim_core/simulation/integrator.py
"""
The DAE integrator.

`TransientIntegrator` owns the time loop of one run. It first computes a
consistent initial state at t = 0 (the quiescent solve), then advances the
state vector with backward Euler or trapezoidal steps, each solved by Newton
iteration at frozen modes and signal records.

Step control:
    - A proposal is clipped to the next scheduled event or breakpoint and to
      `tstop`, so steps land exactly on them.
    - A local failure (nonconvergence, singular Jacobian, non-finite residual)
      retries the step with `step_reduction` times the size. Shrinking below
      `min_step` raises `StepFloorExceededError`, which ends the run.
    - A step whose end point flips a guard outcome is bisected. Crossing-free
      lower halves are committed; once the bracket is within `event_tolerance`
      the point at the bracket end is committed, which flips the mode.
    - After any event, mode flip or start, the trapezoidal rule restarts with one
      backward Euler step.

Discrete events fire after the point at their time is committed. When they
change a signal level, a second point is solved at the same time, so an event
time appears twice in the record: the value just before the event, then the
value just after it.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

import jax.numpy as jnp
import numpy as np

from ..components.exceptions import ModelEvaluationError
from ..quantities import StateVector
from .context import SimulationContext
from .detector import DetectionResult, ModeTransition
from .evaluator import EvaluationContext
from .exceptions import NonconvergenceError, SingularMatrixError, StepFloorExceededError
from .results import QuiescentResult, RunStatistics, TransientResult, stack_records
from .scheduler import Event
from .solver import solve_newton

logger = logging.getLogger(__name__)

Observer = Callable[[float, StateVector], None]

LOCAL_FAILURES = (NonconvergenceError, SingularMatrixError, ModelEvaluationError)


@dataclass(frozen=True)
class StepSolution:
    """A solved but not yet committed point."""
    time: float
    x: np.ndarray
    xdot: np.ndarray
    iterations: int


class TransientIntegrator:
    """Runs the quiescent solve and the transient time loop on one `SimulationContext`."""

    def __init__(self, context: SimulationContext, observer: Optional[Observer] = None):
        self.context = context
        self.config = context.config
        self.state = context.state
        self.evaluator = context.evaluator
        self.detector = context.detector
        self.scheduler = context.scheduler
        self.observer = observer

        self._cancelled = False
        self._restart = True
        self._quiescent: Optional[QuiescentResult] = None
        self._stats: Dict[str, int] = {
            "accepted_steps": 0,
            "rejected_steps": 0,
            "newton_iterations": 0,
            "bisections": 0,
            "events_applied": 0,
            "event_points": 0,
            "mode_passes": 0,
        }
        self._names = [q.name for q in self.state.quantities] + [s.name for s in self.state.signals]
        self._times: List[float] = []
        self._rows: List[np.ndarray] = []
        self._information: List[Dict[str, float]] = []
        self._transitions: List[ModeTransition] = []

    # --- Control ---

    def cancel(self) -> None:
        """Requests the run to stop; honoured before the next step is attempted."""
        logger.info(f"Cancellation requested for network '{self.context.network.name}'.")
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    # --- Quiescent solve ---

    def solve_quiescent(self) -> QuiescentResult:
        """
        Computes the consistent initial state at t = 0 with all derivatives zero.

        Events due at t <= 0 are applied first. Modes are then iterated: solve at
        fixed modes, recompute the modes at the solution, and repeat until no mode
        changes.

        Raises:
            NonconvergenceError: If Newton fails, or if the modes cycle or do not
                                 settle within `max_mode_passes`.
            SingularMatrixError: If the DC system is singular.
        """
        network = self.context.network
        config = self.config
        applied = self.scheduler.apply_due(0.0, self.state)
        self._stats["events_applied"] += len(applied)

        x = network.initial_guess(self.state, config.initial_temperature)
        zeros = np.zeros(self.state.size)
        self.detector.initialize(self.evaluator.committed_context({}))

        seen = {self._mode_signature(self.detector.modes)}
        iterations = 0
        changed: List[str] = []
        for mode_pass in range(1, config.max_mode_passes + 1):
            modes = self.detector.modes
            residual = self.evaluator.residual_function(0.0, modes, jnp.zeros_like)
            result = solve_newton(
                residual, x, config.reltol, config.abstol, config.max_newton_iterations,
                row_owner=self.evaluator.row_owner, time=0.0,
            )
            iterations += result.iterations
            x = result.x
            self._stats["mode_passes"] = mode_pass
            if not self.detector.settle(self.evaluator.context(x, zeros, 0.0, modes)):
                break
            signature = self._mode_signature(self.detector.modes)
            changed = [fqn for fqn, mode in self.detector.modes.items() if modes.get(fqn) != mode]
            logger.debug(f"Quiescent mode pass {mode_pass}: mode change in {changed}.")
            if signature in seen:
                raise NonconvergenceError(
                    changed[0] if changed else network.name, iterations, result.residual_norm, 0.0,
                    details=f"Quiescent modes cycle after {mode_pass} pass(es); no self-consistent set of modes.",
                )
            seen.add(signature)
        else:
            raise NonconvergenceError(
                changed[0] if changed else network.name, iterations, result.residual_norm, 0.0,
                details=f"Quiescent modes did not settle within {config.max_mode_passes} pass(es); "
                        f"still changing: {changed}.",
            )

        self._stats["newton_iterations"] += iterations
        self.state.load(x, zeros, 0.0)
        ctx = self.evaluator.committed_context(self.detector.modes)
        information = self._record(ctx)
        self._quiescent = QuiescentResult(
            time=0.0,
            values=dict(zip(self._names, self._rows[-1].tolist())),
            information=information,
            modes=dict(self.detector.modes),
            newton_iterations=iterations,
            mode_passes=self._stats["mode_passes"],
        )
        logger.info(
            f"Quiescent solve of '{network.name}' converged: {iterations} Newton iteration(s), "
            f"{self._stats['mode_passes']} mode pass(es)."
        )
        return self._quiescent

    @staticmethod
    def _mode_signature(modes) -> Tuple[Tuple[str, Any], ...]:
        return tuple(sorted(modes.items(), key=lambda item: item[0]))

    # --- Transient loop ---

    def run(self) -> TransientResult:
        """Integrates from t = 0 to `tstop` (or until cancelled)."""
        config = self.config
        if self._quiescent is None:
            self.solve_quiescent()

        t = self.state.time
        h = config.initial_step
        completed = True
        logger.info(f"Transient run of '{self.context.network.name}' to t={config.tstop:.6e} s, method={config.method}.")
        while config.tstop - t > self.scheduler.resolution:
            if self._cancelled:
                completed = False
                logger.warning(f"Transient run cancelled at t={t:.9e} s.")
                break

            target = self._clip(t, h)
            solution, step = self._solve_reducing(t, target)
            detection = self.detector.check(self._context_of(solution), step)
            if detection.bisect:
                solution = self._bisect(t, solution, detection)

            discontinuity = self._commit(solution)
            if discontinuity:
                h = min(h, config.initial_step)
            elif step < target - t:
                h = step
            else:
                h = min(h * config.step_growth, config.max_step)
            t = solution.time

        result = self._result(completed)
        logger.info(
            f"Transient run finished at t={t:.9e} s: {self._stats['accepted_steps']} accepted, "
            f"{self._stats['rejected_steps']} rejected step(s), {len(self._transitions)} mode transition(s)."
        )
        return result

    def _clip(self, t: float, h: float) -> float:
        """The end of the next step: `t + h`, landing exactly on the next breakpoint or `tstop`."""
        config = self.config
        target = t + h
        upcoming = self.scheduler.next_time(t)
        if upcoming is not None and upcoming <= target + config.min_step:
            target = upcoming
        if target >= config.tstop - config.min_step:
            target = config.tstop
        return target

    def _solve_reducing(self, t0: float, target: float) -> Tuple[StepSolution, float]:
        """Solves the step to `target`, shrinking it on local failures."""
        config = self.config
        step = target - t0
        while True:
            try:
                return self._solve_step(t0, t0 + step), step
            except LOCAL_FAILURES as e:
                self._stats["rejected_steps"] += 1
                reduced = step * config.step_reduction
                logger.warning(f"Step {step:.3e} s from t={t0:.9e} rejected ({type(e).__name__}); retrying {reduced:.3e} s.")
                if reduced < config.min_step:
                    culprit = getattr(e, "model_fqn", None) or self.context.network.name
                    raise StepFloorExceededError(culprit, t0, reduced, config.min_step, reason=str(e)) from e
                step = reduced

    def _solve_step(self, t0: float, t1: float) -> StepSolution:
        config = self.config
        h = t1 - t0
        previous = self.state.values
        previous_rate = self.state.derivatives
        if self._restart or config.method == "euler":
            def derivative(x):
                return (x - previous) / h
        else:
            def derivative(x):
                return 2.0 * (x - previous) / h - previous_rate

        residual = self.evaluator.residual_function(t1, self.detector.modes, derivative)
        result = solve_newton(
            residual, previous, config.reltol, config.abstol, config.max_newton_iterations,
            row_owner=self.evaluator.row_owner, time=t1,
        )
        self._stats["newton_iterations"] += result.iterations
        return StepSolution(t1, result.x, np.asarray(derivative(result.x), dtype=float), result.iterations)

    def _context_of(self, solution: StepSolution) -> EvaluationContext:
        return self.evaluator.context(solution.x, solution.xdot, solution.time, self.detector.modes)

    def _bisect(self, t0: float, solution: StepSolution, detection: DetectionResult) -> StepSolution:
        """
        Narrows a step that crossed a guard down to `event_tolerance`. Returns the
        solution at the bracket end, which is the first point past the crossing.
        """
        config = self.config
        low, high = t0, solution
        culprit = detection.crossings[0].model_fqn
        while high.time - low > config.event_tolerance:
            half = 0.5 * (high.time - low)
            if half < config.min_step:
                raise StepFloorExceededError(
                    culprit, low, half, config.min_step,
                    reason=f"guard '{detection.crossings[0].guard}' could not be bracketed",
                )
            self._stats["bisections"] += 1
            middle = low + half
            try:
                trial = self._solve_step(low, middle)
            except LOCAL_FAILURES as e:
                raise StepFloorExceededError(
                    getattr(e, "model_fqn", None) or culprit, low, half, config.min_step, reason=str(e)
                ) from e
            if self.detector.check(self._context_of(trial), half).bisect:
                high = trial
            else:
                self._commit(trial)
                low = middle
        logger.debug(f"Guard crossing of '{culprit}' bracketed in [{low:.9e}, {high.time:.9e}].")
        if low > t0:
            # The bracket end must start from the last committed lower half.
            try:
                high = self._solve_step(low, high.time)
            except LOCAL_FAILURES as e:
                raise StepFloorExceededError(
                    getattr(e, "model_fqn", None) or culprit, low, high.time - low, config.min_step, reason=str(e)
                ) from e
        return high

    def _commit(self, solution: StepSolution) -> bool:
        """
        Makes `solution` the committed point, records it, then applies the events
        due at its time. If the events change a signal level, a second point is
        solved and recorded at the same time, so the record holds both sides of
        the edge. Returns True if a mode flipped or an event fired.
        """
        transitions = self._adopt(solution)
        self._stats["accepted_steps"] += 1

        before = self._signal_levels(solution.time)
        applied: List[Event] = self.scheduler.apply_due(solution.time, self.state)
        self._stats["events_applied"] += len(applied)
        if applied and self._signal_levels(solution.time) != before:
            transitions += self._adopt(self._reinitialize(solution.time))
            self._stats["event_points"] += 1
        self._restart = bool(transitions or applied)
        return self._restart

    def _adopt(self, solution: StepSolution) -> List[ModeTransition]:
        self.state.load(solution.x, solution.xdot, solution.time)
        ctx = self.evaluator.committed_context(self.detector.modes)
        transitions = self.detector.commit(ctx, solution.time)
        self._transitions.extend(transitions)
        self._record(ctx)
        if self.observer is not None:
            self.observer(solution.time, self.state)
        return transitions

    def _reinitialize(self, time: float) -> StepSolution:
        """
        The consistent point just after the events at `time`. It is solved as a
        backward Euler step of length `min_step`, so charge-like quantities stay
        continuous while algebraic ones jump to the new signal levels.
        """
        config = self.config
        previous = self.state.values
        h = config.min_step

        def derivative(x):
            return (x - previous) / h

        residual = self.evaluator.residual_function(time, self.detector.modes, derivative)
        try:
            result = solve_newton(
                residual, previous, config.reltol, config.abstol, config.max_newton_iterations,
                row_owner=self.evaluator.row_owner, time=time,
            )
        except LOCAL_FAILURES as e:
            culprit = getattr(e, "model_fqn", None) or self.context.network.name
            raise StepFloorExceededError(
                culprit, time, h, config.min_step, reason=f"no consistent state after the events: {e}"
            ) from e
        self._stats["newton_iterations"] += result.iterations
        return StepSolution(time, result.x, np.asarray(derivative(result.x), dtype=float), result.iterations)

    def _signal_levels(self, time: float) -> List[float]:
        return [self.state.signal_record(s).level(time) for s in self.state.signals]

    # --- Recording ---

    def _record(self, ctx: EvaluationContext) -> Dict[str, float]:
        levels = self._signal_levels(ctx.time)
        self._times.append(ctx.time)
        self._rows.append(np.concatenate([self.state.values, np.asarray(levels, dtype=float)]))
        information = self.evaluator.information(ctx)
        self._information.append(information)
        return information

    def _result(self, completed: bool) -> TransientResult:
        table = np.vstack(self._rows)
        return TransientResult(
            times=np.asarray(self._times, dtype=float),
            trajectories={name: table[:, column] for column, name in enumerate(self._names)},
            information=stack_records(self._information),
            transitions=tuple(self._transitions),
            statistics=RunStatistics(**self._stats),
            completed=completed,
            quiescent=self._quiescent,
        )
