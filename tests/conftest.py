"""Pytest fixtures for the qtlstats test suite."""

from __future__ import annotations

import numpy as np
import pytest
from loguru import logger

# =============================================================================
# Test Tier System
# =============================================================================
#
# tier0 - Fast Unit Tests (<5s each)
#   - Pure computation on small arrays, mocked psutil where needed
#   - Run: pytest -m tier0
#
# tier1 - Statistical / Cross-check Tests (<60s each)
#   - Beta fit consistency on simulated permutation p-values
#   - SVD vs eigendecomposition agreement, hypothesis property tests
#   - Run: pytest -m tier1
#
# tier2 - Scale Tests (memory/time intensive)
#   - Large kinship matrices (2k+ individuals)
#   - Run: pytest -m tier2
#
# Quick reference:
#   pytest -m tier0             # Fast tests only
#   pytest -m "not tier2"       # Exclude slow tests
#   pytest                      # All tests
# =============================================================================


@pytest.fixture
def rng() -> np.random.Generator:
    """Seeded random generator."""
    return np.random.default_rng(42)


def make_kinship(rng: np.random.Generator, n_samples: int, n_snps: int = 200):
    """Centered relatedness matrix K = X_c @ X_c.T / p from random genotypes."""
    mafs = rng.uniform(0.1, 0.5, n_snps)
    X = rng.binomial(2, mafs, size=(n_samples, n_snps)).astype(np.float64)
    X_c = X - X.mean(axis=0)
    K = X_c @ X_c.T / n_snps
    return (K + K.T) / 2.0


@pytest.fixture
def spd_kinship(rng) -> np.ndarray:
    """Symmetric positive-definite kinship-like matrix (20 x 20).

    Centered kinship is rank-deficient (rank n-1), so a small ridge is added.
    """
    K = make_kinship(rng, 20)
    return K + 0.05 * np.eye(20)


@pytest.fixture
def indefinite_matrix(rng) -> np.ndarray:
    """Symmetric 4 x 4 matrix with known eigenvalues 3, -5, 1, -0.5."""
    Q, _ = np.linalg.qr(rng.standard_normal((4, 4)))
    K = Q @ np.diag([3.0, -5.0, 1.0, -0.5]) @ Q.T
    return (K + K.T) / 2.0


@pytest.fixture
def log_messages():
    """Collect loguru messages emitted during a test."""
    messages: list[str] = []
    handler_id = logger.add(
        lambda m: messages.append(str(m)), level="DEBUG", format="{level} | {message}"
    )
    yield messages
    logger.remove(handler_id)


@pytest.fixture
def kinship_factory():
    """Factory for random centered kinship matrices: f(rng, n_samples, n_snps)."""
    return make_kinship
