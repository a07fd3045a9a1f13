"""Memory estimation and checking for kinship decompositions.

Decomposing an n x n kinship matrix needs the input, an n x n output factor
and an O(n^2) LAPACK workspace at the same time. These helpers estimate that
peak and fail fast with MemoryError before LAPACK allocates.
"""

from typing import NamedTuple

import psutil
from loguru import logger


def _dsyevd_workspace_gb(n: int) -> float:
    """DSYEVD workspace: LWORK=(1+6N+2N^2) doubles, LIWORK=(3+5N) ints."""
    lwork_bytes = (1 + 6 * n + 2 * n * n) * 8  # float64
    liwork_bytes = (3 + 5 * n) * 4  # int32
    return (lwork_bytes + liwork_bytes) / 1e9


def _dsyevr_workspace_gb(n: int) -> float:
    """DSYEVR workspace: LWORK=26N doubles, LIWORK=10N ints."""
    return (26 * n * 8 + 10 * n * 4) / 1e9


def _dgesdd_workspace_gb(n: int) -> float:
    """DGESDD workspace for square N with full U/VT: LWORK=4N^2+7N, IWORK=8N."""
    lwork_bytes = (4 * n * n + 7 * n) * 8
    iwork_bytes = 8 * n * 4
    return (lwork_bytes + iwork_bytes) / 1e9


def estimate_eigendecomp_memory(n_samples: int, driver: str = "evd") -> float:
    """Estimate peak memory (GB) for eigendecomposition of a kinship matrix.

    Peak memory during scipy.linalg.eigh:
    - K (input): n^2 * 8 bytes
    - eigenvectors (output): n^2 * 8 bytes
    - workspace: DSYEVD O(n^2) or DSYEVR O(n)

    Args:
        n_samples: Number of individuals (matrix dimension).
        driver: LAPACK driver, "evd" (dsyevd) or "evr" (dsyevr).

    Returns:
        Estimated peak memory in GB.

    Example:
        >>> round(estimate_eigendecomp_memory(10_000), 1)
        3.2
    """
    kinship_gb = n_samples**2 * 8 / 1e9
    eigenvectors_gb = n_samples**2 * 8 / 1e9
    if driver == "evr":
        workspace_gb = _dsyevr_workspace_gb(n_samples)
    else:
        workspace_gb = _dsyevd_workspace_gb(n_samples)
    return kinship_gb + eigenvectors_gb + workspace_gb


def estimate_svd_memory(n_samples: int) -> float:
    """Estimate peak memory (GB) for the full SVD of a kinship matrix.

    K (input) + U + VT (outputs) + DGESDD workspace.

    Args:
        n_samples: Number of individuals (matrix dimension).

    Returns:
        Estimated peak memory in GB.
    """
    matrix_gb = n_samples**2 * 8 / 1e9
    return 3 * matrix_gb + _dgesdd_workspace_gb(n_samples)


def eigendecomp_fits_in_memory(n_samples: int, safety_margin: float = 0.1) -> bool:
    """Whether the dsyevd path fits in currently available memory.

    K is overwritten in place when overwrite is requested and is already
    allocated, so only the eigenvectors and workspace are counted.
    """
    available_gb = psutil.virtual_memory().available / 1e9
    needed_gb = n_samples**2 * 8 / 1e9 + _dsyevd_workspace_gb(n_samples)
    return needed_gb * (1 + safety_margin) < available_gb


def check_memory_available(
    required_gb: float,
    safety_margin: float = 0.1,
    operation: str = "operation",
) -> bool:
    """Check if sufficient memory is available, raise if not.

    Args:
        required_gb: Memory required in GB.
        safety_margin: Additional margin (0.1 = 10%).
        operation: Description for error message.

    Returns:
        True if sufficient memory available.

    Raises:
        MemoryError: If insufficient memory with detailed message.
    """
    available_gb = psutil.virtual_memory().available / 1e9
    required_with_margin = required_gb * (1 + safety_margin)

    if required_with_margin > available_gb:
        raise MemoryError(
            f"Insufficient memory for {operation}. "
            f"Need {required_gb:.1f}GB (+{safety_margin*100:.0f}% margin = "
            f"{required_with_margin:.1f}GB), but only {available_gb:.1f}GB available. "
            f"Consider using a machine with more RAM or reducing sample size."
        )

    return True


class MemorySnapshot(NamedTuple):
    """Snapshot of current memory state for debugging.

    All values in GB.
    """

    rss_gb: float  # Resident Set Size (actual RAM used by process)
    vms_gb: float  # Virtual Memory Size (total address space)
    available_gb: float  # Available system memory
    total_gb: float  # Total system memory
    percent_used: float  # Percentage of total system memory in use


def get_memory_snapshot() -> MemorySnapshot:
    """Get current memory usage snapshot.

    Returns:
        MemorySnapshot with RSS, VMS, available, and total memory.
    """
    process = psutil.Process()
    mem_info = process.memory_info()
    vm = psutil.virtual_memory()

    return MemorySnapshot(
        rss_gb=mem_info.rss / 1e9,
        vms_gb=mem_info.vms / 1e9,
        available_gb=vm.available / 1e9,
        total_gb=vm.total / 1e9,
        percent_used=((vm.total - vm.available) / vm.total) * 100,
    )


def log_memory_snapshot(label: str = "", level: str = "DEBUG") -> MemorySnapshot:
    """Log current memory state with optional label.

    Args:
        label: Optional label for this snapshot (e.g., "after_svd").
        level: Log level ("DEBUG", "INFO", "WARNING").

    Returns:
        MemorySnapshot for chaining/assertions.
    """
    snap = get_memory_snapshot()
    label_str = f" [{label}]" if label else ""
    msg = (
        f"Memory{label_str}: RSS={snap.rss_gb:.1f}GB, "
        f"Available={snap.available_gb:.1f}GB/{snap.total_gb:.1f}GB "
        f"({snap.percent_used:.1f}% used)"
    )
    logger.log(level, msg)
    return snap
