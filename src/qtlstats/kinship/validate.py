"""Input validation for kinship matrices."""

import numpy as np


def as_square(buffer: np.ndarray, n: int) -> np.ndarray:
    """View a flat row-major buffer as an n x n matrix.

    Args:
        buffer: Flat array of length n*n (row-major).
        n: Matrix dimension (number of individuals).

    Returns:
        (n, n) view of ``buffer`` when possible, otherwise a reshaped copy.

    Raises:
        ValueError: If n < 1 or the buffer length is not n*n.
    """
    if n < 1:
        raise ValueError(f"Matrix dimension must be >= 1, got n={n}")
    flat = np.asarray(buffer, dtype=np.float64)
    if flat.ndim != 1 or flat.size != n * n:
        raise ValueError(
            f"Flat kinship buffer must have length n*n={n * n}, "
            f"got shape {flat.shape}"
        )
    return flat.reshape(n, n)


def validate_kinship(
    K: np.ndarray,
    check_symmetric: bool = True,
    atol: float = 1e-8,
    rtol: float = 1e-10,
) -> np.ndarray:
    """Validate a kinship matrix before decomposition.

    Args:
        K: Candidate kinship matrix (n, n).
        check_symmetric: Require K to equal K.T within tolerance.
        atol: Absolute tolerance for the symmetry check.
        rtol: Relative tolerance for the symmetry check.

    Returns:
        K as a float64 array (no copy if it already is one).

    Raises:
        ValueError: If K is not a non-empty square 2-D matrix, contains NaN or
            infinite values, or is not symmetric.
    """
    K = np.asarray(K, dtype=np.float64)

    if K.ndim != 2 or K.shape[0] != K.shape[1]:
        raise ValueError(f"Kinship matrix must be square, got shape {K.shape}")
    if K.shape[0] == 0:
        raise ValueError("Kinship matrix is empty")
    if not np.all(np.isfinite(K)):
        raise ValueError("Kinship matrix contains NaN or infinite values")
    if check_symmetric and not np.allclose(K, K.T, rtol=rtol, atol=atol):
        max_asym = float(np.max(np.abs(K - K.T)))
        raise ValueError(
            f"Kinship matrix is not symmetric (max |K - K.T| = {max_asym:.3g})"
        )

    return K
