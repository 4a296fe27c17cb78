# src/amsim_core/simulation/evaluator.py
"""
The piecewise function evaluator.

`PiecewiseEvaluator` turns a network plus a snapshot of values into the full
residual vector of the DAE:

    rows 0..B-1        branch definitions   across - (pot(plus) - pot(minus))
    rows B..B+N-1      conservation         sum of through quantities at each node
    remaining rows     model equations      one per branch and internal quantity

Models read the snapshot through an `EvaluationContext`, which is immutable and
carries the committed mode of every guarded model. Values in the context may be
jax tracers; the Newton solver differentiates `residual_function` with
`jax.jacfwd`.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

import jax.numpy as jnp
import numpy as np

from ..components.base import ModelBase
from ..components.exceptions import ModelDefinitionError, ModelEvaluationError
from ..quantities import Quantity, QuantityKind, SignalRecord, StateVector, UnboundQuantityError

logger = logging.getLogger(__name__)

DerivativeFn = Callable[[Any], Any]


@dataclass(frozen=True)
class EvaluationContext:
    """
    Everything a model may read during one evaluation: the time, the values and
    first derivatives of continuous quantities, signal records and committed modes.
    """
    time: float
    values: Any
    derivatives: Any
    index: Mapping[Quantity, int]
    signals: Mapping[Quantity, SignalRecord]
    modes: Mapping[str, Any]

    def get(self, quantity: Quantity):
        if quantity.kind is QuantityKind.SIGNAL:
            return self._record(quantity).level(self.time)
        return self.values[self._index(quantity)]

    def get_derivative(self, quantity: Quantity):
        if quantity.kind is QuantityKind.SIGNAL:
            return self._record(quantity).slope(self.time)
        return self.derivatives[self._index(quantity)]

    def signal_record(self, signal: Quantity) -> SignalRecord:
        return self._record(signal)

    def mode(self, model: ModelBase) -> Any:
        """The committed mode tag of `model`, or None if it has none yet."""
        return self.modes.get(model.fqn)

    def _index(self, quantity: Quantity) -> int:
        try:
            return self.index[quantity]
        except KeyError:
            raise UnboundQuantityError(
                quantity_name=quantity.name,
                details=f"'{quantity.name}' is not part of the state vector being evaluated."
            ) from None

    def _record(self, signal: Quantity) -> SignalRecord:
        try:
            return self.signals[signal]
        except KeyError:
            raise UnboundQuantityError(
                quantity_name=signal.name,
                details=f"Signal '{signal.name}' is not part of the state vector being evaluated."
            ) from None


class PiecewiseEvaluator:
    """Assembles topology rows and model rows into one residual vector."""

    def __init__(self, network, state: StateVector):
        self.network = network
        self.state = state
        self.size = state.size
        self._index: Dict[Quantity, int] = dict(state.index_map)
        self._models: List[ModelBase] = list(network.models.values())

        # (across, potential(plus), potential(minus), owner)
        self._branch_rows: List[Tuple[int, Optional[int], Optional[int], str]] = []
        incidence: Dict[str, List[Tuple[int, float]]] = {name: [] for name in network.nodes}
        for model, branch in network.branches():
            plus, minus = network.branch_nodes(model, branch)
            self._branch_rows.append((
                self._index[branch.across],
                self._position(network.potential(plus)),
                self._position(network.potential(minus)),
                model.fqn,
            ))
            through = self._index[branch.through]
            if plus is not None:
                incidence[plus].append((through, 1.0))
            if minus is not None:
                incidence[minus].append((through, -1.0))
        self._node_rows: List[Tuple[str, List[Tuple[int, float]]]] = list(incidence.items())

        self._row_owners: List[str] = [owner for *_, owner in self._branch_rows]
        self._row_owners.extend(f"node '{name}'" for name, _ in self._node_rows)
        for model in self._models:
            self._row_owners.extend([model.fqn] * model.residual_count)

        if len(self._row_owners) != self.size:
            raise ModelDefinitionError(
                network.name,
                f"The assembled system has {len(self._row_owners)} equations for {self.size} unknowns."
            )
        logger.debug(
            f"Evaluator ready: {len(self._branch_rows)} branch row(s), {len(self._node_rows)} node row(s), "
            f"{self.size - len(self._branch_rows) - len(self._node_rows)} model row(s)."
        )

    def _position(self, quantity: Optional[Quantity]) -> Optional[int]:
        return None if quantity is None else self._index[quantity]

    def row_owner(self, row: int) -> str:
        return self._row_owners[row]

    def context(
        self,
        values: Any,
        derivatives: Any,
        time: float,
        modes: Mapping[str, Any],
        signals: Optional[Mapping[Quantity, SignalRecord]] = None,
    ) -> EvaluationContext:
        return EvaluationContext(
            time=float(time),
            values=values,
            derivatives=derivatives,
            index=self._index,
            signals=self.state.signal_records() if signals is None else signals,
            modes=dict(modes),
        )

    def committed_context(self, modes: Mapping[str, Any]) -> EvaluationContext:
        """A concrete context at the state vector's committed point."""
        return self.context(self.state.values, self.state.derivatives, self.state.time, modes)

    def residuals(self, ctx: EvaluationContext):
        """The full residual vector at `ctx` (a jax array; traced if `ctx` is)."""
        x = ctx.values
        rows: List[Any] = []
        for across, plus, minus, _ in self._branch_rows:
            drop = 0.0
            if plus is not None:
                drop = drop + x[plus]
            if minus is not None:
                drop = drop - x[minus]
            rows.append(x[across] - drop)
        for _, terms in self._node_rows:
            total = 0.0
            for through, sign in terms:
                total = total + sign * x[through]
            rows.append(total)

        for model in self._models:
            try:
                evaluation = model.evaluate(ctx)
            except (ArithmeticError, ValueError) as e:
                raise ModelEvaluationError(model.fqn, f"{type(e).__name__}: {e}", ctx.time) from e
            if len(evaluation.residuals) != model.residual_count:
                raise ModelDefinitionError(
                    model.fqn,
                    f"evaluate() returned {len(evaluation.residuals)} residual(s), expected {model.residual_count}."
                )
            rows.extend(evaluation.residuals)
        return jnp.stack([jnp.asarray(r, dtype=jnp.float64) for r in rows])

    def evaluate(self, ctx: EvaluationContext) -> np.ndarray:
        """Concrete residuals at `ctx`; non-finite rows raise `ModelEvaluationError`."""
        residuals = np.asarray(self.residuals(ctx), dtype=float)
        self.check_finite(residuals, ctx.time)
        return residuals

    def check_finite(self, residuals: np.ndarray, time: Optional[float]) -> None:
        bad = np.flatnonzero(~np.isfinite(residuals))
        if bad.size:
            raise ModelEvaluationError(
                self.row_owner(int(bad[0])),
                f"Residual row {int(bad[0])} is not finite ({residuals[bad[0]]}).",
                time,
            )

    def residual_function(
        self,
        time: float,
        modes: Mapping[str, Any],
        derivative_fn: DerivativeFn,
    ) -> Callable[[Any], Any]:
        """`F(x)` at fixed time and modes, with derivatives given by the integration formula."""
        signals = self.state.signal_records()
        frozen_modes = dict(modes)

        def residual(x):
            return self.residuals(self.context(x, derivative_fn(x), time, frozen_modes, signals))

        return residual

    def information(self, ctx: EvaluationContext) -> Dict[str, float]:
        """Every model's for-information outputs, keyed `"<fqn>.<output>"`."""
        outputs: Dict[str, float] = {}
        for model in self._models:
            for name, value in model.information(ctx).items():
                outputs[f"{model.fqn}.{name}"] = float(value)
        return outputs
