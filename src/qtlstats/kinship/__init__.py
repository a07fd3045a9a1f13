"""Kinship matrix decompositions.

The kinship matrix (genetic relatedness matrix) is the covariance structure
of the random effect in mixed-model association tests. Its decompositions
are used to rotate the model into independent components and to build a
generalized inverse.

Key functions:
- svd_kinship: Singular values plus transposed left factor (generalized inverse)
- eigendecompose_kinship: Eigenpairs sorted by descending absolute eigenvalue
- svd_kinship_flat / eigendecompose_kinship_flat: Flat row-major buffer forms
- validate_kinship: Boundary validation (square, finite, symmetric)
"""

from qtlstats.kinship.decompose import (
    KinshipEigen,
    KinshipSVD,
    eigendecompose_kinship,
    eigendecompose_kinship_flat,
    sort_by_abs_desc,
    svd_kinship,
    svd_kinship_flat,
)
from qtlstats.kinship.validate import as_square, validate_kinship

__all__ = [
    "KinshipEigen",
    "KinshipSVD",
    "as_square",
    "eigendecompose_kinship",
    "eigendecompose_kinship_flat",
    "sort_by_abs_desc",
    "svd_kinship",
    "svd_kinship_flat",
    "validate_kinship",
]
