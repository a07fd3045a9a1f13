"""Core configuration and resource management for qtlstats.

- config: Configuration dataclasses (shape bounds, fit and decomposition settings)
- memory: Memory estimation and pre-flight checks for decompositions
- threading: Scoped BLAS thread control
"""

from qtlstats.core.config import (
    DEFAULT_BOUNDS,
    BetaBounds,
    BetaFitConfig,
    DecompositionConfig,
)
from qtlstats.core.memory import (
    MemorySnapshot,
    check_memory_available,
    estimate_eigendecomp_memory,
    estimate_svd_memory,
    get_memory_snapshot,
    log_memory_snapshot,
)
from qtlstats.core.threading import (
    blas_threads,
    get_blas_thread_count,
    resolve_blas_threads,
)

__all__ = [
    "DEFAULT_BOUNDS",
    "BetaBounds",
    "BetaFitConfig",
    "DecompositionConfig",
    "MemorySnapshot",
    "blas_threads",
    "check_memory_available",
    "estimate_eigendecomp_memory",
    "estimate_svd_memory",
    "get_blas_thread_count",
    "get_memory_snapshot",
    "log_memory_snapshot",
    "resolve_blas_threads",
]
