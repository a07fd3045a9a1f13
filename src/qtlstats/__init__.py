"""qtlstats: numerical services for QTL mapping.

qtlstats provides the two numerical building blocks a permutation-based QTL
mapper needs around its association tests:

- Beta calibration of permutation p-values: maximum-likelihood fit of the
  Beta distribution (Nelder-Mead simplex inside a fixed shape box) and
  Beta-adjusted p-values
- Kinship matrix decompositions: SVD for a generalized inverse, and symmetric
  eigendecomposition sorted by descending absolute eigenvalue

Example:
    >>> import numpy as np
    >>> from qtlstats import fit_permutation_pvalues, beta_adjusted_pvalue
    >>> perm = np.random.default_rng(0).beta(1.0, 50.0, size=1000)
    >>> fit = fit_permutation_pvalues(perm)
    >>> p_adj = beta_adjusted_pvalue(1e-3, fit.shape1, fit.shape2)
"""

from importlib.metadata import version

from qtlstats.utils.logging import setup_logging

__version__ = version("qtlstats")

# INFO to stdout on import; call setup_logging(verbose=True, log_file=...) to change
setup_logging()

from qtlstats.beta import (  # noqa: E402
    BetaFit,
    beta_adjusted_pvalue,
    beta_moments,
    fit_beta_mle,
    fit_permutation_pvalues,
)
from qtlstats.kinship import (  # noqa: E402
    KinshipEigen,
    KinshipSVD,
    eigendecompose_kinship,
    svd_kinship,
)

__all__ = [
    "BetaFit",
    "KinshipEigen",
    "KinshipSVD",
    "__version__",
    "beta_adjusted_pvalue",
    "beta_moments",
    "eigendecompose_kinship",
    "fit_beta_mle",
    "fit_permutation_pvalues",
    "setup_logging",
    "svd_kinship",
]
