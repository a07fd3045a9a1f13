"""Beta calibration of permutation p-values.

Key components:
- summarize_pvalues: Clamp p-values and compute the Beta sufficient statistics
- beta_neg_log_likelihood: Box-constrained negative log-likelihood objective
- nelder_mead_minimize: Derivative-free simplex minimizer
- fit_beta_mle: Maximum-likelihood refinement of a starting shape pair
- fit_permutation_pvalues: Moments + MLE with moment fallback
- beta_adjusted_pvalue: Calibrated p-value from fitted shapes
"""

from qtlstats.beta.fit import (
    BetaFit,
    beta_adjusted_pvalue,
    beta_moments,
    fit,
    fit_beta_mle,
    fit_permutation_pvalues,
)
from qtlstats.beta.likelihood import (
    PVALUE_CLAMP,
    REJECTED,
    PValueSummary,
    beta_log_likelihood,
    beta_neg_log_likelihood,
    clamp_pvalues,
    is_feasible,
    summarize_pvalues,
)
from qtlstats.beta.simplex import SimplexResult, SimplexStatus, nelder_mead_minimize

__all__ = [
    "PVALUE_CLAMP",
    "REJECTED",
    "BetaFit",
    "PValueSummary",
    "SimplexResult",
    "SimplexStatus",
    "beta_adjusted_pvalue",
    "beta_log_likelihood",
    "beta_moments",
    "beta_neg_log_likelihood",
    "clamp_pvalues",
    "fit",
    "fit_beta_mle",
    "fit_permutation_pvalues",
    "is_feasible",
    "nelder_mead_minimize",
    "summarize_pvalues",
]
