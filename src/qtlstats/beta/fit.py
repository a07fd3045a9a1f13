"""Maximum-likelihood Beta fit for permutation p-values.

Permutation p-values from a QTL scan (the best nominal p-value per
permutation) follow approximately a Beta(shape1, shape2) distribution. Fitting
the two shapes lets a nominal p-value be calibrated without running millions
of permutations:

    p_adjusted = BetaCDF(p_nominal; shape1, shape2)

Workflow:
1. beta_moments: method-of-moments starting point
2. fit_beta_mle: Nelder-Mead refinement of the negative log-likelihood
3. beta_adjusted_pvalue: calibrated p-value from the fitted shapes

Reference: Ongen et al. (2016) "Fast and efficient QTL mapper for thousands
of molecular phenotypes", Bioinformatics 32(10):1479-1485.
"""

import math
from dataclasses import dataclass

import numpy as np
from loguru import logger
from scipy import stats

from qtlstats.beta.likelihood import (
    beta_neg_log_likelihood,
    is_feasible,
    summarize_pvalues,
)
from qtlstats.beta.simplex import SimplexStatus, nelder_mead_minimize
from qtlstats.core.config import BetaFitConfig


@dataclass
class BetaFit:
    """Result of a Beta shape fit.

    Attributes:
        shape1: Fitted (or fallback) first shape parameter.
        shape2: Fitted (or fallback) second shape parameter.
        converged: True iff the simplex converged and never hit rejection.
        n_iter: Simplex iterations performed.
        status: Simplex termination status.
        neg_log_likelihood: Objective value at (shape1, shape2); +inf if rejected.
    """

    shape1: float
    shape2: float
    converged: bool
    n_iter: int
    status: SimplexStatus
    neg_log_likelihood: float


def beta_moments(pvalues: np.ndarray) -> tuple[float, float]:
    """Method-of-moments estimate of the Beta shapes.

    With sample mean m and sample variance v:
        shape1 = m * (m * (1 - m) / v - 1)
        shape2 = shape1 * (1 / m - 1)

    Args:
        pvalues: 1-D array of p-values.

    Returns:
        Tuple of (shape1, shape2).

    Raises:
        ValueError: If fewer than two p-values are given, or they have zero
            variance.
    """
    p = np.asarray(pvalues, dtype=np.float64)
    if p.ndim != 1 or p.size < 2:
        raise ValueError(
            f"Moment estimates need at least 2 p-values, got shape {p.shape}"
        )

    mean = float(np.mean(p))
    var = float(np.var(p, ddof=1))
    if np.ptp(p) == 0.0 or not math.isfinite(var):
        raise ValueError("p-values have zero variance; Beta moments undefined")

    shape1 = mean * (mean * (1.0 - mean) / var - 1.0)
    shape2 = shape1 * (1.0 / mean - 1.0)
    return shape1, shape2


def fit_beta_mle(
    pvalues: np.ndarray,
    shape1: float,
    shape2: float,
    config: BetaFitConfig | None = None,
    overwrite_pvalues: bool = False,
) -> BetaFit:
    """Refine Beta shapes by maximum likelihood.

    Minimizes the negative Beta log-likelihood with Nelder-Mead, starting from
    (shape1, shape2) with initial steps of shape/10. Candidates outside the
    admissible box are scored +inf by the feasibility predicate; if the best
    simplex vertex becomes infeasible the fit is abandoned.

    Args:
        pvalues: 1-D array of permutation p-values in (0, 1]. Values of exactly
            1.0 are clamped to 0.99999999.
        shape1: Starting value for the first shape (e.g. from beta_moments).
        shape2: Starting value for the second shape.
        config: Fit configuration. None uses BetaFitConfig().
        overwrite_pvalues: Clamp the caller's array in place.

    Returns:
        BetaFit. On REJECTED the starting shapes are returned unchanged; on
        MAX_ITER or FAILED the best vertex is returned with converged=False.

    Raises:
        ValueError: If the p-values are invalid or a starting shape is not a
            positive finite number.
    """
    if config is None:
        config = BetaFitConfig()

    for name, value in (("shape1", shape1), ("shape2", shape2)):
        if not math.isfinite(value) or value <= 0.0:
            raise ValueError(
                f"Starting {name} must be positive and finite, got {value}"
            )

    summary = summarize_pvalues(
        pvalues, overwrite=overwrite_pvalues, clamp=config.pvalue_clamp
    )
    bounds = config.bounds

    def objective(x: np.ndarray) -> float:
        return beta_neg_log_likelihood(x[0], x[1], summary, bounds)

    def feasible(x: np.ndarray) -> bool:
        return is_feasible(x[0], x[1], bounds)

    x0 = np.array([shape1, shape2], dtype=np.float64)
    step = x0 * config.step_fraction

    result = nelder_mead_minimize(
        objective,
        x0,
        step,
        tol=config.tol,
        maxiter=config.maxiter,
        feasible=feasible,
    )

    if result.status is SimplexStatus.REJECTED:
        logger.debug(
            f"Beta fit rejected after {result.n_iter} iterations "
            f"(start shape1={shape1:.4g}, shape2={shape2:.4g})"
        )
        return BetaFit(
            shape1=shape1,
            shape2=shape2,
            converged=False,
            n_iter=result.n_iter,
            status=result.status,
            neg_log_likelihood=math.inf,
        )

    fitted1, fitted2 = float(result.x[0]), float(result.x[1])
    if result.converged:
        logger.debug(
            f"Beta fit converged in {result.n_iter} iterations: "
            f"shape1={fitted1:.6g}, shape2={fitted2:.6g}, -logL={result.fval:.6g}"
        )
    else:
        logger.debug(
            f"Beta fit did not converge ({result.status.value}) after "
            f"{result.n_iter} iterations, simplex size {result.size:.3g}"
        )

    return BetaFit(
        shape1=fitted1,
        shape2=fitted2,
        converged=result.converged,
        n_iter=result.n_iter,
        status=result.status,
        neg_log_likelihood=result.fval,
    )


def fit(
    pvalues: np.ndarray, shape1: float, shape2: float
) -> tuple[bool, float, float]:
    """Functional form of fit_beta_mle.

    A float64 ndarray ``pvalues`` is clamped in place (1.0 becomes
    0.99999999); other inputs are copied.

    Returns:
        Tuple of (success, shape1, shape2) where the shapes are the refined
        estimates (or the inputs when the fit was rejected).
    """
    result = fit_beta_mle(pvalues, shape1, shape2, overwrite_pvalues=True)
    return result.converged, result.shape1, result.shape2


def fit_permutation_pvalues(
    pvalues: np.ndarray, config: BetaFitConfig | None = None
) -> BetaFit:
    """Fit Beta shapes to permutation p-values, falling back to moments.

    Runs beta_moments for the starting point, then fit_beta_mle. If the
    maximum-likelihood fit does not converge the moment estimates are kept.

    Args:
        pvalues: 1-D array of permutation p-values.
        config: Fit configuration. None uses BetaFitConfig().

    Returns:
        BetaFit; ``converged`` is False when the moment fallback was used.
        Non-positive moment estimates are returned as a REJECTED fit with
        an infinite objective, without running the MLE.

    Raises:
        ValueError: If beta_moments cannot estimate the shapes.
    """
    shape1, shape2 = beta_moments(pvalues)
    logger.debug(f"Beta moment estimates: shape1={shape1:.6g}, shape2={shape2:.6g}")

    # Sample variance above m(1 - m) gives negative moment shapes
    if not all(math.isfinite(s) and s > 0.0 for s in (shape1, shape2)):
        logger.warning(
            f"Beta moment estimates are not usable as a starting point "
            f"(shape1={shape1:.4g}, shape2={shape2:.4g}); skipping MLE"
        )
        return BetaFit(
            shape1=shape1,
            shape2=shape2,
            converged=False,
            n_iter=0,
            status=SimplexStatus.REJECTED,
            neg_log_likelihood=math.inf,
        )

    result = fit_beta_mle(pvalues, shape1, shape2, config=config)
    if result.converged:
        return result

    logger.warning(
        f"Beta MLE did not converge ({result.status.value}); "
        f"using moment estimates shape1={shape1:.4g}, shape2={shape2:.4g}"
    )
    return BetaFit(
        shape1=shape1,
        shape2=shape2,
        converged=False,
        n_iter=result.n_iter,
        status=result.status,
        neg_log_likelihood=beta_neg_log_likelihood(
            shape1,
            shape2,
            summarize_pvalues(pvalues),
            (config or BetaFitConfig()).bounds,
        ),
    )


def beta_adjusted_pvalue(
    pvalue: float | np.ndarray, shape1: float, shape2: float
) -> float | np.ndarray:
    """Calibrate nominal p-values with a fitted Beta distribution.

    Args:
        pvalue: Nominal p-value(s) in [0, 1].
        shape1: Fitted first shape.
        shape2: Fitted second shape.

    Returns:
        Beta CDF evaluated at ``pvalue``; a float for scalar input.

    Raises:
        ValueError: If a shape is not positive.
    """
    if shape1 <= 0.0 or shape2 <= 0.0:
        raise ValueError(
            f"Beta shapes must be positive, got shape1={shape1}, shape2={shape2}"
        )
    adjusted = stats.beta.cdf(pvalue, shape1, shape2)
    if np.ndim(adjusted) == 0:
        return float(adjusted)
    return adjusted
