# src/amsim_core/simulation/solver.py
import logging
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple

import jax
import jax.numpy as jnp
import numpy as np
from scipy.linalg import LinAlgWarning, lu_factor, lu_solve

from ..components.exceptions import ModelEvaluationError
from .exceptions import NonconvergenceError, SingularMatrixError

logger = logging.getLogger(__name__)

ResidualFn = Callable[[Any], Any]


@dataclass(frozen=True)
class NewtonResult:
    """A converged Newton solve: the solution, the number of linear solves taken, and max |F|."""
    x: np.ndarray
    iterations: int
    residual_norm: float


def dependent_row(jacobian: np.ndarray) -> int:
    """
    The equation that weighs most in a linear dependency among the rows of a
    singular Jacobian: the largest entry of its left null vector.
    """
    u, _, _ = np.linalg.svd(jacobian)
    return int(np.argmax(np.abs(u[:, -1])))


def _blame(jacobian: np.ndarray, row_owner: Optional[Callable[[int], str]]) -> Optional[str]:
    if row_owner is None or jacobian.size == 0:
        return None
    bad = np.flatnonzero(~np.all(np.isfinite(jacobian), axis=1))
    if bad.size:
        return row_owner(int(bad[0]))
    return row_owner(dependent_row(jacobian))


def factorize_jacobian(
    jacobian: np.ndarray,
    time: Optional[float] = None,
    row_owner: Optional[Callable[[int], str]] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Dense LU factorization of the Newton Jacobian.

    Raises:
        SingularMatrixError: If the matrix is singular or numerically singular.
                             With `row_owner`, it names the owner of the
                             equation that is most involved in the dependency.
    """
    logger.debug(f"Factorizing Jacobian {jacobian.shape}...")
    with warnings.catch_warnings():
        warnings.simplefilter("error", LinAlgWarning)
        try:
            lu, piv = lu_factor(jacobian, check_finite=True)
        except (LinAlgWarning, ValueError) as e:
            logger.debug(f"LU factorization failed: {e}")
            raise SingularMatrixError(details=str(e), time=time, model_fqn=_blame(jacobian, row_owner)) from e

    pivots = np.abs(np.diag(lu))
    if pivots.size and (pivots.min() == 0.0 or pivots.min() < np.finfo(float).eps * pivots.max()):
        row = int(np.argmin(pivots))
        raise SingularMatrixError(
            details=f"Pivot {row} of the LU factorization is {pivots[row]:.3e} (largest {pivots.max():.3e}).",
            time=time,
            model_fqn=_blame(jacobian, row_owner),
        )
    return lu, piv


def converged(residuals: np.ndarray, jacobian: np.ndarray, x: np.ndarray, reltol: float, abstol: float) -> np.ndarray:
    """Per-row convergence: `|F_i| <= reltol * sum_j |J_ij * x_j| + abstol`."""
    scale = np.abs(jacobian) @ np.abs(x)
    return np.abs(residuals) <= reltol * scale + abstol


def solve_newton(
    residual_fn: ResidualFn,
    x0: np.ndarray,
    reltol: float,
    abstol: float,
    max_iterations: int,
    row_owner: Optional[Callable[[int], str]] = None,
    time: Optional[float] = None,
) -> NewtonResult:
    """
    Newton-Raphson iteration on `residual_fn(x) = 0`.

    The Jacobian is the exact forward-mode derivative of `residual_fn`
    (`jax.jacfwd`), so a system that is linear in x converges after a single
    update from any starting point.

    Raises:
        NonconvergenceError: If the iteration budget is exhausted; names the owner
                             of the worst residual row.
        SingularMatrixError: If a Jacobian cannot be factorized.
        ModelEvaluationError: If a residual is not finite.
    """
    owner = row_owner or (lambda row: f"row {row}")

    def value_and_residual(x):
        r = residual_fn(x)
        return r, r

    jacobian_and_value = jax.jacfwd(value_and_residual, has_aux=True)

    x = np.array(x0, dtype=float)
    for iteration in range(max_iterations + 1):
        jac, res = jacobian_and_value(jnp.asarray(x))
        residuals = np.asarray(res, dtype=float)
        jacobian = np.asarray(jac, dtype=float)

        bad = np.flatnonzero(~np.isfinite(residuals))
        if bad.size:
            raise ModelEvaluationError(owner(int(bad[0])), f"Residual row {int(bad[0])} is not finite.", time)

        ok = converged(residuals, jacobian, x, reltol, abstol)
        norm = float(np.max(np.abs(residuals))) if residuals.size else 0.0
        if ok.all():
            logger.debug(f"Newton converged after {iteration} iteration(s), max |F| = {norm:.3e}.")
            return NewtonResult(x=x, iterations=iteration, residual_norm=norm)
        if iteration == max_iterations:
            worst = int(np.argmax(np.where(ok, 0.0, np.abs(residuals))))
            raise NonconvergenceError(owner(worst), iteration, norm, time)

        lu_piv = factorize_jacobian(jacobian, time, owner)
        dx = lu_solve(lu_piv, -residuals)
        if not np.all(np.isfinite(dx)):
            raise SingularMatrixError(
                details="Newton update contains NaN/Inf values.", time=time, model_fqn=_blame(jacobian, owner)
            )
        x = x + dx
