"""Beta log-likelihood for permutation p-values.

Under the Beta(a, b) model the log-likelihood of a p-value sample depends on
the data only through three sufficient statistics:

    logL(a, b) = (a - 1) * sum(log p) + (b - 1) * sum(log(1 - p)) - n * lnB(a, b)

where lnB is the natural log of the Beta function. The fitter minimizes the
negative of this quantity inside a fixed admissible box for (a, b).
"""

import math
from typing import NamedTuple

import numpy as np
from scipy.special import betaln

from qtlstats.core.config import DEFAULT_BOUNDS, BetaBounds

# Objective value for points outside the admissible box
REJECTED = math.inf

# p-values of exactly 1.0 would make log(1 - p) = -inf
PVALUE_CLAMP = 0.99999999


class PValueSummary(NamedTuple):
    """Sufficient statistics of a p-value sample under the Beta model."""

    sum_log_p: float
    sum_log_1mp: float
    n: int


def clamp_pvalues(
    pvalues: np.ndarray, overwrite: bool = False, clamp: float = PVALUE_CLAMP
) -> np.ndarray:
    """Replace p-values exactly equal to 1.0 with ``clamp``.

    Args:
        pvalues: 1-D array of p-values.
        overwrite: If True and ``pvalues`` is a writable float64 ndarray, clamp
            in place and return the same array. Otherwise a copy is returned
            and the caller's array is untouched.
        clamp: Replacement value (default: 0.99999999).

    Returns:
        float64 array with 1.0 replaced by ``clamp``.
    """
    is_inplace_target = (
        overwrite
        and isinstance(pvalues, np.ndarray)
        and pvalues.dtype == np.float64
        and pvalues.flags.writeable
    )
    if is_inplace_target:
        out = pvalues
    else:
        out = np.array(pvalues, dtype=np.float64, copy=True)

    out[out == 1.0] = clamp
    return out


def summarize_pvalues(
    pvalues: np.ndarray, overwrite: bool = False, clamp: float = PVALUE_CLAMP
) -> PValueSummary:
    """Clamp p-values and compute sum(log p), sum(log(1 - p)) and n.

    Args:
        pvalues: 1-D array of p-values in (0, 1].
        overwrite: Clamp the caller's array in place (see clamp_pvalues).
        clamp: Replacement for p-values equal to 1.0.

    Returns:
        PValueSummary for the clamped sample.

    Raises:
        ValueError: If the sample is empty, not 1-D, or has values outside (0, 1].
    """
    p = clamp_pvalues(pvalues, overwrite=overwrite, clamp=clamp)

    if p.ndim != 1:
        raise ValueError(f"p-values must be a 1-D array, got shape {p.shape}")
    if p.size == 0:
        raise ValueError("p-value sample is empty")
    if not np.all(np.isfinite(p)):
        raise ValueError("p-values contain NaN or infinite values")
    if np.any(p <= 0.0) or np.any(p > 1.0):
        bad = p[(p <= 0.0) | (p > 1.0)][0]
        raise ValueError(f"p-values must lie in (0, 1], found {bad!r}")

    return PValueSummary(
        sum_log_p=float(np.sum(np.log(p))),
        sum_log_1mp=float(np.sum(np.log1p(-p))),
        n=int(p.size),
    )


def is_feasible(
    shape1: float, shape2: float, bounds: BetaBounds = DEFAULT_BOUNDS
) -> bool:
    """Whether a candidate shape pair lies inside the admissible box."""
    return bounds.contains(shape1, shape2)


def beta_log_likelihood(shape1: float, shape2: float, summary: PValueSummary) -> float:
    """Beta log-likelihood of the summarized sample, without bound checks.

    Returns NaN when lnB(shape1, shape2) is NaN.
    """
    ln_beta = betaln(shape1, shape2)
    return (
        (shape1 - 1.0) * summary.sum_log_p
        + (shape2 - 1.0) * summary.sum_log_1mp
        - summary.n * ln_beta
    )


def beta_neg_log_likelihood(
    shape1: float,
    shape2: float,
    summary: PValueSummary,
    bounds: BetaBounds = DEFAULT_BOUNDS,
) -> float:
    """Negative Beta log-likelihood, or REJECTED outside the admissible box.

    Args:
        shape1: Candidate first shape parameter.
        shape2: Candidate second shape parameter.
        summary: Sufficient statistics from summarize_pvalues.
        bounds: Admissible shape box.

    Returns:
        -logL(shape1, shape2), or REJECTED (+inf) when the candidate is
        infeasible or lnB evaluates to NaN.
    """
    if not is_feasible(shape1, shape2, bounds):
        return REJECTED

    log_lik = beta_log_likelihood(shape1, shape2, summary)
    if np.isnan(log_lik):
        return REJECTED

    return float(-log_lik)
