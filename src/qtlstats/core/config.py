"""Configuration dataclasses for qtlstats.

This module contains dataclasses that configure the Beta fitter and the
kinship decompositions. Defaults reproduce the FastQTL constants.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class BetaBounds:
    """Admissible box for the Beta shape parameters.

    Attributes:
        shape1_min: Lower bound for shape1 (inclusive).
        shape1_max: Upper bound for shape1 (inclusive).
        shape2_min: Lower bound for shape2 (inclusive).
        shape2_max: Upper bound for shape2 (inclusive). Cis-QTL default;
            trans scans with many more tests may need a larger value.
    """

    shape1_min: float = 0.1
    shape1_max: float = 10.0
    shape2_min: float = 1.0
    shape2_max: float = 1_000_000.0

    def contains(self, shape1: float, shape2: float) -> bool:
        """Whether (shape1, shape2) lies inside the box.

        NaN shapes compare false against every bound and are never contained.
        """
        return (
            self.shape1_min <= shape1 <= self.shape1_max
            and self.shape2_min <= shape2 <= self.shape2_max
        )


DEFAULT_BOUNDS = BetaBounds()


@dataclass
class BetaFitConfig:
    """Configuration for the Beta maximum-likelihood fit.

    Attributes:
        bounds: Admissible shape box.
        tol: Simplex size below which the search is considered converged.
        maxiter: Maximum number of simplex iterations.
        step_fraction: Initial simplex step as a fraction of each starting shape.
        pvalue_clamp: Replacement for p-values exactly equal to 1.0.
    """

    bounds: BetaBounds = field(default_factory=BetaBounds)
    tol: float = 0.01
    maxiter: int = 1000
    step_fraction: float = 0.1
    pvalue_clamp: float = 0.99999999

    def __post_init__(self) -> None:
        if self.tol <= 0:
            raise ValueError(f"tol must be positive, got {self.tol}")
        if self.maxiter < 1:
            raise ValueError(f"maxiter must be >= 1, got {self.maxiter}")
        if self.step_fraction <= 0:
            raise ValueError(
                f"step_fraction must be positive, got {self.step_fraction}"
            )
        if not 0.0 < self.pvalue_clamp < 1.0:
            raise ValueError(
                f"pvalue_clamp must be in (0, 1), got {self.pvalue_clamp}"
            )


@dataclass
class DecompositionConfig:
    """Configuration for kinship SVD and eigendecomposition.

    Attributes:
        symmetry_atol: Absolute tolerance for the symmetry check on input.
        symmetry_rtol: Relative tolerance for the symmetry check on input.
        memory_safety_margin: Extra fraction of memory required by the
            pre-flight check (0.1 = 10%).
        n_threads: BLAS threads for LAPACK calls. None defers to the
            QTLSTATS_BLAS_THREADS environment variable, then physical cores.
    """

    symmetry_atol: float = 1e-8
    symmetry_rtol: float = 1e-10
    memory_safety_margin: float = 0.1
    n_threads: int | None = None

    def __post_init__(self) -> None:
        if self.n_threads is not None and self.n_threads < 1:
            raise ValueError(f"n_threads must be >= 1, got {self.n_threads}")
