"""Tests for the Beta maximum-likelihood fit and p-value calibration."""

import math

import numpy as np
import pytest
from scipy import stats

from qtlstats.beta.fit import (
    beta_adjusted_pvalue,
    beta_moments,
    fit,
    fit_beta_mle,
    fit_permutation_pvalues,
)
from qtlstats.beta.likelihood import (
    PVALUE_CLAMP,
    beta_neg_log_likelihood,
    summarize_pvalues,
)
from qtlstats.beta.simplex import SimplexStatus
from qtlstats.core.config import BetaFitConfig


@pytest.mark.tier0
class TestBetaMoments:
    """Tests for the method-of-moments starting point."""

    def test_known_values(self):
        # mean 0.3, sample variance 0.02
        shape1, shape2 = beta_moments(np.array([0.2, 0.4]))
        assert shape1 == pytest.approx(2.85)
        assert shape2 == pytest.approx(6.65)

    def test_close_to_truth_for_large_sample(self, rng):
        p = rng.beta(2.0, 8.0, size=20_000)
        shape1, shape2 = beta_moments(p)
        assert shape1 == pytest.approx(2.0, rel=0.1)
        assert shape2 == pytest.approx(8.0, rel=0.1)

    def test_single_value_raises(self):
        with pytest.raises(ValueError, match="at least 2"):
            beta_moments(np.array([0.5]))

    def test_zero_variance_raises(self):
        with pytest.raises(ValueError, match="zero variance"):
            beta_moments(np.full(10, 0.3))


@pytest.mark.tier0
class TestFitBetaMle:
    """Tests for the Nelder-Mead Beta fit."""

    def test_three_pvalue_example(self):
        """p = {0.01, 0.5, 1.0} from (1, 1): converges with shape2 > shape1."""
        result = fit_beta_mle(np.array([0.01, 0.5, 1.0]), 1.0, 1.0)
        assert result.converged
        assert result.status is SimplexStatus.CONVERGED
        assert result.n_iter <= 1000
        assert result.shape2 > result.shape1
        assert math.isfinite(result.neg_log_likelihood)

    def test_fit_stays_in_box(self):
        result = fit_beta_mle(np.array([0.01, 0.5, 1.0]), 1.0, 1.0)
        assert 0.1 <= result.shape1 <= 10.0
        assert 1.0 <= result.shape2 <= 1_000_000.0

    def test_improves_on_starting_point(self, rng):
        p = rng.beta(0.9, 40.0, size=500)
        start1, start2 = beta_moments(p)
        result = fit_beta_mle(p, start1, start2)
        summary = summarize_pvalues(p)
        assert result.neg_log_likelihood <= beta_neg_log_likelihood(
            start1, start2, summary
        )

    def test_infeasible_start_is_rejected(self):
        result = fit_beta_mle(np.array([0.1, 0.2, 0.3]), 20.0, 5.0)
        assert result.status is SimplexStatus.REJECTED
        assert not result.converged
        assert result.shape1 == 20.0
        assert result.shape2 == 5.0
        assert result.neg_log_likelihood == math.inf

    def test_iteration_cap_reports_failure(self):
        config = BetaFitConfig(maxiter=1)
        result = fit_beta_mle(np.array([0.05, 0.2, 0.4]), 1.0, 10.0, config=config)
        assert result.status is SimplexStatus.MAX_ITER
        assert not result.converged
        assert result.n_iter == 1
        # Best vertex is written back even without convergence
        assert 0.1 <= result.shape1 <= 10.0
        assert 1.0 <= result.shape2 <= 1_000_000.0

    @pytest.mark.parametrize(
        "shape1, shape2", [(0.0, 1.0), (1.0, -2.0), (math.nan, 1.0)]
    )
    def test_non_positive_start_raises(self, shape1, shape2):
        with pytest.raises(ValueError, match="Starting"):
            fit_beta_mle(np.array([0.1, 0.2]), shape1, shape2)

    def test_pvalues_untouched_by_default(self):
        p = np.array([0.01, 0.5, 1.0])
        fit_beta_mle(p, 1.0, 1.0)
        assert p[2] == 1.0

    def test_overwrite_pvalues_clamps_in_place(self):
        p = np.array([0.01, 0.5, 1.0])
        fit_beta_mle(p, 1.0, 1.0, overwrite_pvalues=True)
        assert p[2] == PVALUE_CLAMP

    def test_functional_wrapper(self):
        success, shape1, shape2 = fit(np.array([0.01, 0.5, 1.0]), 1.0, 1.0)
        expected = fit_beta_mle(np.array([0.01, 0.5, 1.0]), 1.0, 1.0)
        assert success is True
        assert shape1 == expected.shape1
        assert shape2 == expected.shape2

    def test_functional_wrapper_clamps_in_place(self):
        p = np.array([0.01, 0.5, 1.0])
        fit(p, 1.0, 1.0)
        assert p[2] == PVALUE_CLAMP

    def test_functional_wrapper_copies_lists(self):
        p = [0.01, 0.5, 1.0]
        success, _, _ = fit(p, 1.0, 1.0)
        assert success is True
        assert p == [0.01, 0.5, 1.0]

    def test_logs_convergence(self, log_messages):
        fit_beta_mle(np.array([0.01, 0.5, 1.0]), 1.0, 1.0)
        assert any("Beta fit converged" in m for m in log_messages)


@pytest.mark.tier1
class TestFitConsistency:
    """Statistical consistency of the MLE on simulated permutation p-values."""

    @pytest.mark.parametrize("true1, true2", [(1.0, 20.0), (0.8, 150.0)])
    def test_recovers_true_shapes(self, true1, true2):
        rng = np.random.default_rng(2024)
        p = rng.beta(true1, true2, size=10_000)

        result = fit_permutation_pvalues(p)

        assert result.converged
        assert result.shape1 == pytest.approx(true1, rel=0.1)
        assert result.shape2 == pytest.approx(true2, rel=0.15)

    def test_mle_beats_moments_likelihood(self):
        rng = np.random.default_rng(7)
        p = rng.beta(0.7, 60.0, size=2_000)
        start1, start2 = beta_moments(p)
        result = fit_permutation_pvalues(p)
        summary = summarize_pvalues(p)
        assert result.neg_log_likelihood <= beta_neg_log_likelihood(
            start1, start2, summary
        )


@pytest.mark.tier0
class TestFitPermutationPvalues:
    """Tests for the moments + MLE workflow."""

    def test_falls_back_to_moments(self, rng, log_messages):
        p = rng.beta(1.0, 30.0, size=200)
        result = fit_permutation_pvalues(p, config=BetaFitConfig(maxiter=1))

        shape1, shape2 = beta_moments(p)
        assert not result.converged
        assert result.status is SimplexStatus.MAX_ITER
        assert result.shape1 == shape1
        assert result.shape2 == shape2
        assert any("using moment estimates" in m for m in log_messages)

    def test_negative_moments_skip_mle(self, log_messages):
        """Bimodal sample: variance exceeds m(1 - m), moments are negative."""
        p = np.array([1e-4, 2e-4, 0.9999, 1.0])
        shape1, shape2 = beta_moments(p)
        assert shape1 < 0.0

        result = fit_permutation_pvalues(p)

        assert not result.converged
        assert result.status is SimplexStatus.REJECTED
        assert result.n_iter == 0
        assert result.neg_log_likelihood == math.inf
        assert result.shape1 == shape1
        assert result.shape2 == shape2
        assert any("skipping MLE" in m for m in log_messages)

    def test_moments_outside_box_are_rejected(self, log_messages):
        """Tightly clustered p-values give shape1 far above the box."""
        p = np.linspace(0.49, 0.51, 21)
        shape1, shape2 = beta_moments(p)
        assert shape1 > 10.0

        result = fit_permutation_pvalues(p)

        assert not result.converged
        assert result.status is SimplexStatus.REJECTED
        assert result.shape1 == shape1
        assert result.shape2 == shape2
        assert result.neg_log_likelihood == math.inf
        assert any("using moment estimates" in m for m in log_messages)


@pytest.mark.tier0
class TestBetaAdjustedPvalue:
    """Tests for Beta-calibrated p-values."""

    def test_uniform_is_identity(self):
        assert beta_adjusted_pvalue(0.37, 1.0, 1.0) == pytest.approx(0.37)

    def test_matches_scipy_cdf(self):
        p = np.array([1e-6, 1e-3, 0.05])
        adjusted = beta_adjusted_pvalue(p, 0.9, 200.0)
        assert np.allclose(adjusted, stats.beta.cdf(p, 0.9, 200.0))

    def test_scalar_returns_float(self):
        assert isinstance(beta_adjusted_pvalue(0.01, 1.0, 50.0), float)

    def test_monotonic(self):
        p = np.logspace(-8, 0, 50)
        adjusted = beta_adjusted_pvalue(p, 1.1, 500.0)
        assert np.all(np.diff(adjusted) >= 0)

    def test_adjusted_exceeds_nominal_for_many_tests(self):
        """With many tests per phenotype the calibrated p-value is larger."""
        assert beta_adjusted_pvalue(1e-4, 1.0, 1000.0) > 1e-4

    def test_invalid_shape_raises(self):
        with pytest.raises(ValueError, match="positive"):
            beta_adjusted_pvalue(0.1, 0.0, 2.0)
