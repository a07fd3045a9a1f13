"""Tests for BLAS thread resolution and scoping around decompositions."""

import os
from unittest.mock import patch

import numpy as np
import pytest
from threadpoolctl import threadpool_info

from qtlstats.core.config import DecompositionConfig
from qtlstats.core.threading import (
    BLAS_THREADS_ENV,
    blas_threads,
    get_blas_thread_count,
    resolve_blas_threads,
)
from qtlstats.kinship import eigendecompose_kinship, svd_kinship


def _blas_num_threads() -> list[int]:
    return [
        lib["num_threads"] for lib in threadpool_info() if lib["user_api"] == "blas"
    ]


@pytest.mark.tier0
class TestResolveBlasThreads:
    """Thread count resolution: config, then environment, then cores."""

    def test_config_value_used(self, monkeypatch):
        monkeypatch.delenv(BLAS_THREADS_ENV, raising=False)
        assert resolve_blas_threads(DecompositionConfig(n_threads=1)) == 1

    def test_config_wins_over_env(self, monkeypatch):
        monkeypatch.setenv(BLAS_THREADS_ENV, "9999")
        assert resolve_blas_threads(DecompositionConfig(n_threads=1)) == 1

    def test_none_defers_to_env(self, monkeypatch):
        monkeypatch.setenv(BLAS_THREADS_ENV, "1")
        assert resolve_blas_threads(DecompositionConfig()) == 1

    def test_none_without_env_uses_physical_cores(self, monkeypatch):
        monkeypatch.delenv(BLAS_THREADS_ENV, raising=False)
        with patch("qtlstats.core.threading.psutil.cpu_count", return_value=1):
            assert resolve_blas_threads(DecompositionConfig()) == 1

    def test_config_above_cpu_count_clamped(self, log_messages):
        max_threads = os.cpu_count() or 1
        config = DecompositionConfig(n_threads=max_threads + 100)
        assert resolve_blas_threads(config) == max_threads
        assert any("exceeds the available CPUs" in m for m in log_messages)

    def test_non_positive_config_rejected(self):
        with pytest.raises(ValueError, match="n_threads"):
            DecompositionConfig(n_threads=0)


@pytest.mark.tier0
class TestGetBlasThreadCount:
    """Environment override handling."""

    @pytest.mark.parametrize(
        "raw, expected",
        [("1", 1), ("0", 1), ("-5", 1), ("9999", os.cpu_count() or 1)],
    )
    def test_env_clamped(self, monkeypatch, raw, expected):
        monkeypatch.setenv(BLAS_THREADS_ENV, raw)
        assert get_blas_thread_count() == expected

    def test_invalid_env_falls_back(self, monkeypatch, log_messages):
        monkeypatch.setenv(BLAS_THREADS_ENV, "many")
        with patch("qtlstats.core.threading.psutil.cpu_count", return_value=1):
            assert get_blas_thread_count() == 1
        assert any("not a valid integer" in m for m in log_messages)


@pytest.mark.tier0
class TestBlasThreads:
    """Scoped thread limits."""

    def test_yields_limit(self):
        with blas_threads(1) as n:
            assert n == 1

    def test_limit_applied_and_restored(self):
        before = _blas_num_threads()
        with blas_threads(1):
            assert all(n == 1 for n in _blas_num_threads())
        assert _blas_num_threads() == before


@pytest.mark.tier0
class TestDecompositionThreads:
    """The decompositions run under the configured thread limit."""

    def test_svd_uses_config_threads(self, spd_kinship, log_messages):
        svd_kinship(spd_kinship, config=DecompositionConfig(n_threads=1))
        assert any("BLAS threads limited to 1" in m for m in log_messages)

    def test_eigendecomp_uses_env_threads(self, spd_kinship, monkeypatch, log_messages):
        monkeypatch.setenv(BLAS_THREADS_ENV, "1")
        result = eigendecompose_kinship(spd_kinship)
        assert np.allclose(result.reconstruct(), spd_kinship, atol=1e-10)
        assert any("BLAS threads limited to 1" in m for m in log_messages)
