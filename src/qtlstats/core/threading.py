"""BLAS thread management for the kinship decompositions.

The thread count for a decomposition is resolved in this order:
1. DecompositionConfig.n_threads
2. QTLSTATS_BLAS_THREADS environment variable
3. Physical core count

Every resolved count is clamped to [1, os.cpu_count()]. The limit is applied
only around the LAPACK call and restored afterwards.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import contextmanager

import psutil
from loguru import logger
from threadpoolctl import threadpool_info, threadpool_limits

from qtlstats.core.config import DecompositionConfig

BLAS_THREADS_ENV = "QTLSTATS_BLAS_THREADS"


def _clamp_threads(n: int) -> int:
    return max(1, min(n, os.cpu_count() or 1))


def _threads_from_env() -> int | None:
    raw = os.environ.get(BLAS_THREADS_ENV)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.warning(
            f"{BLAS_THREADS_ENV}={raw!r} is not a valid integer, "
            "falling back to physical core count"
        )
        return None


def get_blas_thread_count() -> int:
    """Thread count from QTLSTATS_BLAS_THREADS, else the physical core count."""
    requested = _threads_from_env()
    if requested is not None:
        source = BLAS_THREADS_ENV
    else:
        requested = psutil.cpu_count(logical=False) or os.cpu_count() or 1
        source = "physical cores"

    n = _clamp_threads(requested)
    logger.debug(f"BLAS threads from {source}: {n}")
    return n


def resolve_blas_threads(config: DecompositionConfig) -> int:
    """Thread count for a decomposition run with ``config``.

    An explicit ``config.n_threads`` wins over the environment; a value above
    the CPU count is clamped with a warning.
    """
    if config.n_threads is None:
        return get_blas_thread_count()

    n = _clamp_threads(config.n_threads)
    if n != config.n_threads:
        logger.warning(
            f"DecompositionConfig.n_threads={config.n_threads} exceeds the "
            f"available CPUs, using {n}"
        )
    return n


@contextmanager
def blas_threads(n_threads: int) -> Generator[int, None, None]:
    """Limit BLAS threads for the duration of a LAPACK call.

    Yields:
        The thread limit in effect inside the block.

    Example:
        >>> with blas_threads(resolve_blas_threads(config)) as n:
        ...     s = scipy.linalg.svd(K, compute_uv=False)
    """
    libs = [
        lib.get("internal_api", "unknown")
        for lib in threadpool_info()
        if lib.get("user_api") == "blas"
    ]
    with threadpool_limits(limits=n_threads, user_api="blas"):
        found = ", ".join(libs) or "no BLAS found"
        logger.debug(f"BLAS threads limited to {n_threads} ({found})")
        yield n_threads
