"""
Tests for the return sampler.
"""

import numpy as np
import pytest

from retirement_sim.models.asset_classes import AssetClass, MarketAssumption
from retirement_sim.models.historical_data import HistoricalReturnSeries
from retirement_sim.models.random_returns import ReturnSampler, SamplingMode
from retirement_sim.models.simulation.errors import ConfigurationError

STOCKS_BONDS = [AssetClass.STOCKS, AssetClass.BONDS]


class TestSamplerConfiguration:
    """Test ReturnSampler construction."""

    def test_empty_series_rejected_for_bootstrap(self):
        """Test that bootstrap sampling needs at least one year."""
        empty = HistoricalReturnSeries(years=[], asset_classes=STOCKS_BONDS, returns=[])
        for mode in (SamplingMode.BLOCK_BOOTSTRAP, SamplingMode.IID_BOOTSTRAP):
            with pytest.raises(ConfigurationError, match="empty"):
                ReturnSampler(empty, STOCKS_BONDS, mode=mode)

    def test_missing_series_rejected_for_bootstrap(self):
        with pytest.raises(ConfigurationError):
            ReturnSampler(None, STOCKS_BONDS)

    def test_missing_asset_column(self, labelled_series):
        """Test that every allocated asset needs a historical column."""
        with pytest.raises(ConfigurationError, match="real_estate"):
            ReturnSampler(labelled_series, [AssetClass.STOCKS, AssetClass.REAL_ESTATE])

    def test_parametric_without_series(self):
        """Test that parametric sampling works without history."""
        sampler = ReturnSampler(None, STOCKS_BONDS, mode=SamplingMode.PARAMETRIC)
        sample = sampler.sample(5, np.random.default_rng(0))
        assert sample.returns.shape == (5, 2)
        assert sample.start_index is None
        assert sample.start_year is None

    def test_non_positive_horizon(self, labelled_series):
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS)
        with pytest.raises(ConfigurationError):
            sampler.sample(0, np.random.default_rng(0))

    def test_mode_switched_after_construction(self, labelled_series):
        """Test that a sampler only draws in the mode it was prepared for."""
        parametric = ReturnSampler(None, STOCKS_BONDS, mode=SamplingMode.PARAMETRIC)
        parametric.mode = SamplingMode.IID_BOOTSTRAP
        with pytest.raises(ConfigurationError, match="No historical returns"):
            parametric.sample(5, np.random.default_rng(0))

        bootstrap = ReturnSampler(labelled_series, STOCKS_BONDS)
        bootstrap.mode = SamplingMode.PARAMETRIC
        with pytest.raises(ConfigurationError, match="correlation factor"):
            bootstrap.sample(5, np.random.default_rng(0))


class TestBlockBootstrap:
    """Test contiguous block sampling."""

    def test_block_is_contiguous(self, labelled_series):
        """Test that simulated years follow consecutive calendar years."""
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS)
        rng = np.random.default_rng(7)

        for _ in range(50):
            sample = sampler.sample(5, rng)
            np.testing.assert_array_equal(np.diff(sample.year_indices), np.ones(4))
            assert sample.start_index == sample.year_indices[0]
            assert sample.start_year == 1990 + sample.start_index

    def test_start_leaves_room_for_horizon(self, labelled_series):
        """Test that no wrap happens when the history covers the horizon."""
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS)
        rng = np.random.default_rng(11)

        starts = {sampler.sample(10, rng).start_index for _ in range(200)}
        assert starts <= {0, 1, 2}
        assert starts == {0, 1, 2}

    def test_wraps_when_horizon_exceeds_history(self, labelled_series):
        """Test cyclic wrap for horizons longer than the history."""
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS)
        sample = sampler.sample(30, np.random.default_rng(3))

        expected = (sample.start_index + np.arange(30)) % 12
        np.testing.assert_array_equal(sample.year_indices, expected)

    def test_same_calendar_year_for_all_assets(self, labelled_series):
        """Test that every asset in a simulated year comes from the same row."""
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS)
        sample = sampler.sample(8, np.random.default_rng(5))

        # Labelled rows: bonds are the negated stock return of the same year
        np.testing.assert_allclose(sample.returns[:, 1], -sample.returns[:, 0])
        np.testing.assert_allclose(sample.returns[:, 0], sample.year_indices / 100.0)


class TestIIDBootstrap:
    """Test independent year sampling."""

    def test_years_drawn_within_history(self, labelled_series):
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS, mode=SamplingMode.IID_BOOTSTRAP)
        sample = sampler.sample(200, np.random.default_rng(9))

        assert sample.year_indices.min() >= 0
        assert sample.year_indices.max() <= 11
        # Independent draws are not a contiguous block
        assert not np.all(np.diff(sample.year_indices) == 1)

    def test_assets_stay_jointly_drawn(self, labelled_series):
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS, mode=SamplingMode.IID_BOOTSTRAP)
        sample = sampler.sample(50, np.random.default_rng(2))
        np.testing.assert_allclose(sample.returns[:, 1], -sample.returns[:, 0])


class TestParametric:
    """Test distribution-based sampling."""

    def test_zero_volatility_returns_expected(self):
        """Test that zero volatility yields the expected return every year."""
        assumption = MarketAssumption(expected_return=0.07, volatility=0.0)
        sampler = ReturnSampler(
            None,
            STOCKS_BONDS,
            mode=SamplingMode.PARAMETRIC,
            market_assumptions={AssetClass.STOCKS: assumption, AssetClass.BONDS: assumption},
        )
        sample = sampler.sample(30, np.random.default_rng(0))
        np.testing.assert_allclose(sample.returns, 0.07)

    def test_defaults_used_without_overrides(self):
        sampler = ReturnSampler(None, [AssetClass.CASH], mode=SamplingMode.PARAMETRIC)
        expected, volatility = sampler.get_assumptions()
        assert expected[0] == AssetClass.CASH.default_return
        assert volatility[0] == AssetClass.CASH.default_volatility

    def test_sample_moments(self):
        """Test that normal draws match the requested mean and volatility."""
        sampler = ReturnSampler(
            None,
            [AssetClass.STOCKS],
            mode=SamplingMode.PARAMETRIC,
            market_assumptions={
                AssetClass.STOCKS: MarketAssumption(expected_return=0.08, volatility=0.15)
            },
        )
        returns = sampler.sample(20000, np.random.default_rng(1)).returns[:, 0]
        assert returns.mean() == pytest.approx(0.08, abs=0.005)
        assert returns.std() == pytest.approx(0.15, abs=0.005)

    def test_lognormal_mean(self):
        """Test that lognormal draws keep the arithmetic mean return."""
        sampler = ReturnSampler(
            None,
            [AssetClass.STOCKS],
            mode=SamplingMode.PARAMETRIC,
            market_assumptions={
                AssetClass.STOCKS: MarketAssumption(expected_return=0.07, volatility=0.10)
            },
            distribution="lognormal",
        )
        returns = sampler.sample(20000, np.random.default_rng(4)).returns[:, 0]
        assert returns.mean() == pytest.approx(0.07, abs=0.005)
        assert returns.min() > -1.0

    def test_uses_historical_correlation(self, volatile_series):
        """Test that parametric draws inherit the series correlation."""
        sampler = ReturnSampler(volatile_series, STOCKS_BONDS, mode=SamplingMode.PARAMETRIC)
        returns = sampler.sample(20000, np.random.default_rng(8)).returns

        target = volatile_series.correlation(STOCKS_BONDS)[0, 1]
        assert np.corrcoef(returns[:, 0], returns[:, 1])[0, 1] == pytest.approx(target, abs=0.03)

    def test_perfectly_correlated_history(self, labelled_series):
        """Test that a singular correlation matrix still factors."""
        sampler = ReturnSampler(labelled_series, STOCKS_BONDS, mode=SamplingMode.PARAMETRIC)
        sample = sampler.sample(10, np.random.default_rng(0))
        assert np.all(np.isfinite(sample.returns))


class TestDeterminism:
    """Test reproducibility from the path generator."""

    @pytest.mark.parametrize(
        "mode",
        [SamplingMode.BLOCK_BOOTSTRAP, SamplingMode.IID_BOOTSTRAP, SamplingMode.PARAMETRIC],
    )
    def test_same_seed_same_sample(self, volatile_series, mode):
        sampler = ReturnSampler(volatile_series, STOCKS_BONDS, mode=mode)
        first = sampler.sample(25, np.random.default_rng(123))
        second = sampler.sample(25, np.random.default_rng(123))
        np.testing.assert_array_equal(first.returns, second.returns)

