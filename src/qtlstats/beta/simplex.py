"""Nelder-Mead simplex minimization.

Derivative-free minimizer following the GSL ``nmsimplex2`` variant used by
FastQTL for the Beta fit:
1. Reflect the worst vertex through the centroid of the others
2. Expand if the reflected point is the new best
3. Contract the worst vertex toward the centroid if reflection fails
4. Shrink the whole simplex about the best vertex as a last resort

Simplex size is the root-mean-square distance of the vertices from their
centroid; the search converges once it drops below ``tol``.

Box constraints are handled with an explicit feasibility predicate: an
infeasible candidate is never passed to the objective and is scored +inf,
so it can never displace a feasible vertex. The search is aborted with
status REJECTED if the best vertex itself is infeasible.

Reference: Nelder, J.A. and Mead, R. (1965) "A simplex method for function
minimization", Computer Journal 7:308-313.
"""

import enum
import math
from collections.abc import Callable
from dataclasses import dataclass

import numpy as np


class SimplexStatus(enum.Enum):
    """Termination status of nelder_mead_minimize."""

    CONVERGED = "converged"  # simplex size < tol
    MAX_ITER = "max_iter"  # iteration cap reached first
    REJECTED = "rejected"  # best vertex is outside the feasible region
    FAILED = "failed"  # objective returned NaN


@dataclass
class SimplexResult:
    """Outcome of a simplex search.

    Attributes:
        x: Best vertex found.
        fval: Objective value at ``x`` (+inf when rejected).
        size: Final simplex size.
        n_iter: Number of iterations performed.
        status: Termination status.
    """

    x: np.ndarray
    fval: float
    size: float
    n_iter: int
    status: SimplexStatus

    @property
    def converged(self) -> bool:
        return self.status is SimplexStatus.CONVERGED


class _ObjectiveFailed(Exception):
    """Raised internally when the objective returns NaN."""


def _simplex_size(vertices: np.ndarray) -> float:
    center = vertices.mean(axis=0)
    return float(np.sqrt(np.mean(np.sum((vertices - center) ** 2, axis=1))))


def nelder_mead_minimize(
    func: Callable[[np.ndarray], float],
    x0: np.ndarray,
    step: np.ndarray,
    tol: float = 0.01,
    maxiter: int = 1000,
    feasible: Callable[[np.ndarray], bool] | None = None,
) -> SimplexResult:
    """Minimize ``func`` with the Nelder-Mead simplex method.

    Args:
        func: Objective taking a 1-D array and returning a float.
        x0: Starting point (d,).
        step: Initial step per dimension (d,); vertex i+1 is x0 + step[i] * e_i.
        tol: Simplex size convergence threshold (default: 0.01).
        maxiter: Maximum number of iterations (default: 1000).
        feasible: Optional predicate; candidates for which it returns False
            are scored +inf without calling ``func``.

    Returns:
        SimplexResult with the best vertex and termination status.

    Raises:
        ValueError: If x0 and step differ in shape, or tol/maxiter are not
            positive.
    """
    x0 = np.atleast_1d(np.asarray(x0, dtype=np.float64))
    step = np.atleast_1d(np.asarray(step, dtype=np.float64))
    if x0.ndim != 1 or x0.shape != step.shape:
        raise ValueError(
            f"x0 and step must be 1-D arrays of equal length, "
            f"got {x0.shape} and {step.shape}"
        )
    if tol <= 0:
        raise ValueError(f"tol must be positive, got {tol}")
    if maxiter < 1:
        raise ValueError(f"maxiter must be >= 1, got {maxiter}")

    def evaluate(x: np.ndarray) -> float:
        if feasible is not None and not feasible(x):
            return math.inf
        val = float(func(x))
        if math.isnan(val):
            raise _ObjectiveFailed
        return val

    n_dim = x0.size
    n_vert = n_dim + 1

    vertices = np.tile(x0, (n_vert, 1))
    for i in range(n_dim):
        vertices[i + 1, i] += step[i]

    def result(status: SimplexStatus, n_iter: int) -> SimplexResult:
        lo = int(np.argmin(fvals))
        return SimplexResult(
            x=vertices[lo].copy(),
            fval=float(fvals[lo]),
            size=_simplex_size(vertices),
            n_iter=n_iter,
            status=status,
        )

    def corner_move(coeff: float, hi: int) -> tuple[np.ndarray, float]:
        # Point on the line through the worst vertex and the centroid of the
        # others: coeff=-1 reflects, -2 expands, 0.5 contracts.
        others = (vertices.sum(axis=0) - vertices[hi]) / n_dim
        x_new = (1.0 - coeff) * others + coeff * vertices[hi]
        return x_new, evaluate(x_new)

    fvals = np.full(n_vert, math.inf)
    try:
        for i in range(n_vert):
            fvals[i] = evaluate(vertices[i])
    except _ObjectiveFailed:
        return result(SimplexStatus.FAILED, 0)

    n_iter = 0
    while n_iter < maxiter:
        n_iter += 1
        order = np.argsort(fvals, kind="stable")
        lo, hi = int(order[0]), int(order[-1])
        s_hi = int(order[-2])

        try:
            x_r, f_r = corner_move(-1.0, hi)
            if f_r < fvals[lo]:
                # Reflected point is the new best, try going further
                x_e, f_e = corner_move(-2.0, hi)
                if f_e < fvals[lo]:
                    vertices[hi], fvals[hi] = x_e, f_e
                else:
                    vertices[hi], fvals[hi] = x_r, f_r
            elif f_r > fvals[s_hi] or not math.isfinite(f_r):
                if math.isfinite(f_r) and f_r <= fvals[hi]:
                    vertices[hi], fvals[hi] = x_r, f_r

                x_c, f_c = corner_move(0.5, hi)
                if math.isfinite(f_c) and f_c <= fvals[hi]:
                    vertices[hi], fvals[hi] = x_c, f_c
                else:
                    # Shrink every vertex halfway toward the best one
                    for i in range(n_vert):
                        if i != lo:
                            vertices[i] = 0.5 * (vertices[i] + vertices[lo])
                            fvals[i] = evaluate(vertices[i])
            else:
                vertices[hi], fvals[hi] = x_r, f_r
        except _ObjectiveFailed:
            return result(SimplexStatus.FAILED, n_iter)

        if float(np.min(fvals)) == math.inf:
            return result(SimplexStatus.REJECTED, n_iter)

        if _simplex_size(vertices) < tol:
            return result(SimplexStatus.CONVERGED, n_iter)

    return result(SimplexStatus.MAX_ITER, n_iter)
