"""SVD and symmetric eigendecomposition of kinship matrices.

Both decompositions return the orthogonal factor in ROW layout: row i of
``factor`` is the i-th singular vector / eigenvector, i.e. the transpose of
the LAPACK column layout. ``to_flat()`` gives the same matrix as a flat
row-major buffer, and ``vectors`` gives the column layout.

Uses scipy.linalg (LAPACK) with scoped BLAS thread limits and a memory
pre-flight check before any large allocation.

Driver selection for eigh:
- dsyevd (driver='evd'): Divide-and-conquer, fastest but O(n^2) workspace.
- dsyevr (driver='evr'): Relatively robust representations, O(n) workspace fallback.

Singular values from scipy.linalg.svd are returned in non-increasing order
(a LAPACK gesdd/gesvd guarantee), so the SVD path is not re-sorted. Eigenvalues
are explicitly sorted by descending absolute value.
"""

import time
import warnings
from dataclasses import dataclass

import numpy as np
import scipy.linalg
from loguru import logger

from qtlstats.core.config import DecompositionConfig
from qtlstats.core.memory import (
    check_memory_available,
    eigendecomp_fits_in_memory,
    estimate_eigendecomp_memory,
    estimate_svd_memory,
    log_memory_snapshot,
)
from qtlstats.core.threading import blas_threads, resolve_blas_threads
from qtlstats.kinship.validate import as_square, validate_kinship


@dataclass
class KinshipSVD:
    """Singular value decomposition K = U diag(s) Vt.

    Attributes:
        singular_values: (n,) singular values, non-increasing.
        factor: (n, n) transpose of U; row i is the i-th left singular vector.
        right_factor: (n, n) Vt; row i is the i-th right singular vector.
    """

    singular_values: np.ndarray
    factor: np.ndarray
    right_factor: np.ndarray

    @property
    def vectors(self) -> np.ndarray:
        """Left singular vectors in column layout (U)."""
        return self.factor.T

    def to_flat(self) -> np.ndarray:
        """Row-major flat buffer of ``factor`` (length n*n)."""
        return np.ascontiguousarray(self.factor).ravel()

    def reconstruct(self) -> np.ndarray:
        """Rebuild K from the decomposition."""
        return (self.factor.T * self.singular_values) @ self.right_factor

    def pseudo_inverse(self, rcond: float | None = None) -> np.ndarray:
        """Moore-Penrose generalized inverse V diag(1/s) U^T.

        Args:
            rcond: Singular values below rcond * max(s) are treated as zero.
                None uses n * machine epsilon.

        Returns:
            (n, n) generalized inverse of K.
        """
        s = self.singular_values
        if rcond is None:
            rcond = s.size * np.finfo(np.float64).eps
        cutoff = rcond * (s[0] if s.size else 0.0)
        inv_s = np.zeros_like(s)
        keep = s > cutoff
        inv_s[keep] = 1.0 / s[keep]
        return (self.right_factor.T * inv_s) @ self.factor


@dataclass
class KinshipEigen:
    """Symmetric eigendecomposition K = V diag(eigenvalues) V^T.

    Attributes:
        eigenvalues: (n,) eigenvalues sorted by descending absolute value.
        factor: (n, n) transpose of V; row i is the eigenvector of eigenvalues[i].
    """

    eigenvalues: np.ndarray
    factor: np.ndarray

    @property
    def vectors(self) -> np.ndarray:
        """Eigenvectors in column layout (V)."""
        return self.factor.T

    def to_flat(self) -> np.ndarray:
        """Row-major flat buffer of ``factor`` (length n*n)."""
        return np.ascontiguousarray(self.factor).ravel()

    def reconstruct(self) -> np.ndarray:
        """Rebuild K from the decomposition."""
        return (self.factor.T * self.eigenvalues) @ self.factor


def _select_eigendecomp_driver(n_samples: int, safety_margin: float = 0.1) -> str:
    """Select LAPACK driver based on available memory.

    Args:
        n_samples: Matrix dimension.
        safety_margin: Fractional headroom required for the dsyevd path.

    Returns:
        'evd' if dsyevd workspace fits in available memory, 'evr' otherwise.
    """
    if eigendecomp_fits_in_memory(n_samples, safety_margin=safety_margin):
        return "evd"
    logger.warning(
        f"dsyevd workspace too large for available memory at n={n_samples:,}, "
        "falling back to dsyevr (slower but O(n) workspace)"
    )
    return "evr"


def sort_by_abs_desc(
    eigenvalues: np.ndarray, eigenvectors: np.ndarray
) -> tuple[np.ndarray, np.ndarray]:
    """Sort eigenpairs by descending absolute eigenvalue.

    Args:
        eigenvalues: (n,) eigenvalues.
        eigenvectors: (n, n) eigenvectors in column layout.

    Returns:
        Tuple of (sorted eigenvalues, eigenvectors with columns reordered).
        Ties keep their input order.
    """
    order = np.argsort(-np.abs(eigenvalues), kind="stable")
    return eigenvalues[order], eigenvectors[:, order]


def svd_kinship(
    K: np.ndarray,
    overwrite: bool = False,
    check_symmetric: bool = True,
    config: DecompositionConfig | None = None,
) -> KinshipSVD:
    """Singular value decomposition of a kinship matrix.

    Args:
        K: Symmetric kinship matrix (n_samples, n_samples).
        overwrite: Allow LAPACK to destroy K's contents instead of copying.
            The caller must not reuse K afterwards.
        check_symmetric: Reject non-symmetric input.
        config: Decomposition settings. None uses DecompositionConfig().

    Returns:
        KinshipSVD with non-increasing singular values and the transposed
        left factor.

    Raises:
        ValueError: If K is not a finite, square (symmetric) matrix.
        MemoryError: If the decomposition would not fit in available memory.
        numpy.linalg.LinAlgError: If LAPACK fails to converge.
    """
    if config is None:
        config = DecompositionConfig()

    K = validate_kinship(
        K,
        check_symmetric=check_symmetric,
        atol=config.symmetry_atol,
        rtol=config.symmetry_rtol,
    )
    n_samples = K.shape[0]

    logger.info(f"SVD of kinship matrix ({n_samples:,} x {n_samples:,})")
    check_memory_available(
        estimate_svd_memory(n_samples),
        safety_margin=config.memory_safety_margin,
        operation=f"SVD of {n_samples:,}x{n_samples:,} kinship matrix",
    )
    log_memory_snapshot(f"before_svd_{n_samples}samples")

    start_time = time.perf_counter()
    with blas_threads(resolve_blas_threads(config)):
        try:
            U, s, Vt = scipy.linalg.svd(
                K,
                full_matrices=True,
                overwrite_a=overwrite,
                check_finite=False,
                lapack_driver="gesdd",
            )
        except np.linalg.LinAlgError as e:
            if overwrite:
                # Input may already be destroyed, nothing to retry with
                logger.error(f"SVD failed (gesdd, overwrite=True): {e}")
                raise
            logger.warning(f"gesdd did not converge ({e}), retrying with gesvd")
            try:
                U, s, Vt = scipy.linalg.svd(
                    K,
                    full_matrices=True,
                    check_finite=False,
                    lapack_driver="gesvd",
                )
            except np.linalg.LinAlgError as retry_error:
                logger.error(f"SVD failed (gesvd): {retry_error}")
                raise

    elapsed = time.perf_counter() - start_time
    logger.info(f"SVD completed in {elapsed:.2f} seconds")
    log_memory_snapshot(f"after_svd_{n_samples}samples")

    return KinshipSVD(
        singular_values=s,
        factor=np.ascontiguousarray(U.T),
        right_factor=np.ascontiguousarray(Vt),
    )


def eigendecompose_kinship(
    K: np.ndarray,
    overwrite: bool = False,
    check_symmetric: bool = True,
    threshold: float | None = None,
    config: DecompositionConfig | None = None,
) -> KinshipEigen:
    """Eigendecompose a symmetric kinship matrix.

    Uses scipy.linalg.eigh with memory-aware LAPACK driver selection, then
    sorts eigenpairs by descending absolute eigenvalue.

    Args:
        K: Symmetric kinship matrix (n_samples, n_samples).
        overwrite: Allow LAPACK to destroy K's contents instead of copying.
            The caller must not reuse K afterwards.
        check_symmetric: Reject non-symmetric input. When False only the
            lower triangle is read.
        threshold: If given, eigenvalues with |value| < threshold are set to 0.
        config: Decomposition settings. None uses DecompositionConfig().

    Returns:
        KinshipEigen with eigenvalues sorted by descending absolute value and
        the transposed eigenvector matrix.

    Raises:
        ValueError: If K is not a finite, square (symmetric) matrix.
        MemoryError: If the decomposition would not fit in available memory.
        numpy.linalg.LinAlgError: If LAPACK fails to converge.
    """
    if config is None:
        config = DecompositionConfig()

    K = validate_kinship(
        K,
        check_symmetric=check_symmetric,
        atol=config.symmetry_atol,
        rtol=config.symmetry_rtol,
    )
    n_samples = K.shape[0]

    logger.info(f"Eigendecomposing kinship matrix ({n_samples:,} x {n_samples:,})")

    driver = _select_eigendecomp_driver(
        n_samples, safety_margin=config.memory_safety_margin
    )
    check_memory_available(
        estimate_eigendecomp_memory(n_samples, driver=driver),
        safety_margin=config.memory_safety_margin,
        operation=f"eigendecomposition of {n_samples:,}x{n_samples:,} kinship matrix",
    )
    log_memory_snapshot(f"before_eigendecomp_{n_samples}samples")

    n_threads = resolve_blas_threads(config)
    logger.debug(f"Eigendecomp using driver={driver}, overwrite_a={overwrite}")

    # eigh only works in place on Fortran-ordered input
    if overwrite and not K.flags["F_CONTIGUOUS"]:
        K = np.asfortranarray(K)

    start_time = time.perf_counter()
    try:
        with blas_threads(n_threads):
            eigenvalues, eigenvectors = scipy.linalg.eigh(
                K,
                driver=driver,
                overwrite_a=overwrite,
                check_finite=False,
            )
    except np.linalg.LinAlgError as e:
        logger.error(f"Eigendecomposition failed (driver={driver}): {e}")
        raise

    elapsed = time.perf_counter() - start_time
    logger.info(f"Eigendecomposition completed in {elapsed:.2f} seconds")
    log_memory_snapshot(f"after_eigendecomp_{n_samples}samples")

    neg_tol = threshold if threshold is not None else 1e-10
    n_negative = int(np.sum(eigenvalues < -neg_tol))
    if n_negative > 0:
        warnings.warn(
            f"Kinship matrix has {n_negative} negative eigenvalue(s). "
            "Matrix may not be positive semi-definite.",
            stacklevel=2,
        )

    if threshold is not None:
        eigenvalues = np.where(np.abs(eigenvalues) < threshold, 0.0, eigenvalues)

    eigenvalues, eigenvectors = sort_by_abs_desc(eigenvalues, eigenvectors)

    return KinshipEigen(
        eigenvalues=eigenvalues,
        factor=np.ascontiguousarray(eigenvectors.T),
    )


def svd_kinship_flat(
    buffer: np.ndarray, n: int, overwrite: bool = False
) -> tuple[np.ndarray, np.ndarray]:
    """SVD of a flat row-major kinship buffer.

    Args:
        buffer: Flat (n*n,) row-major kinship matrix.
        n: Number of individuals.
        overwrite: Allow the buffer to be destroyed.

    Returns:
        Tuple of (factor_flat, singular_values): the transposed left factor as
        a flat row-major (n*n,) array and the (n,) singular values.
    """
    result = svd_kinship(as_square(buffer, n), overwrite=overwrite)
    return result.to_flat(), result.singular_values


def eigendecompose_kinship_flat(
    buffer: np.ndarray, n: int, overwrite: bool = False
) -> tuple[np.ndarray, np.ndarray]:
    """Eigendecomposition of a flat row-major kinship buffer.

    Args:
        buffer: Flat (n*n,) row-major kinship matrix.
        n: Number of individuals.
        overwrite: Allow the buffer to be destroyed.

    Returns:
        Tuple of (vectors_flat, eigenvalues): the transposed eigenvector matrix
        as a flat row-major (n*n,) array and the (n,) sorted eigenvalues.
    """
    result = eigendecompose_kinship(as_square(buffer, n), overwrite=overwrite)
    return result.to_flat(), result.eigenvalues
