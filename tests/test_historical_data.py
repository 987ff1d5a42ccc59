"""
Tests for historical return series and the CSV loader.
"""

import numpy as np
import pandas as pd
import pytest
from pydantic import ValidationError

from retirement_sim.models.asset_classes import AssetClass
from retirement_sim.models.historical_data import (
    HistoricalReturnSeries,
    load_historical_returns,
    series_from_dataframe,
)
from retirement_sim.models.simulation.errors import ConfigurationError


class TestHistoricalReturnSeries:
    """Test HistoricalReturnSeries model."""

    def test_series_creation(self, labelled_series):
        """Test creating a series and reading its metadata."""
        assert len(labelled_series) == 12
        assert labelled_series.start_year == 1990
        assert labelled_series.end_year == 2001
        assert labelled_series.has_asset(AssetClass.STOCKS)
        assert not labelled_series.has_asset(AssetClass.CASH)
        assert labelled_series.year_at(3) == 1993

    def test_arrays_are_read_only(self, labelled_series):
        """Test that the shared arrays cannot be modified."""
        with pytest.raises(ValueError):
            labelled_series.returns[0, 0] = 1.0
        with pytest.raises(ValueError):
            labelled_series.years[0] = 1800

    def test_model_is_frozen(self, labelled_series):
        """Test that fields cannot be reassigned."""
        with pytest.raises(ValidationError):
            labelled_series.source = "changed"

    def test_empty_series_is_constructible(self):
        """Test that an empty table is valid but reports itself as empty."""
        series = HistoricalReturnSeries(
            years=[], asset_classes=[AssetClass.STOCKS], returns=[]
        )
        assert series.is_empty
        assert len(series) == 0
        assert series.statistics() == {}

    def test_years_must_increase(self):
        """Test that unsorted or duplicate years are rejected."""
        with pytest.raises(ValueError):
            HistoricalReturnSeries(
                years=[2001, 2000],
                asset_classes=[AssetClass.STOCKS],
                returns=[[0.1], [0.2]],
            )
        with pytest.raises(ValueError):
            HistoricalReturnSeries(
                years=[2000, 2000],
                asset_classes=[AssetClass.STOCKS],
                returns=[[0.1], [0.2]],
            )

    def test_partial_years_rejected(self):
        """Test that a missing value in any column is rejected."""
        with pytest.raises(ValueError, match="partial years"):
            HistoricalReturnSeries(
                years=[2000, 2001],
                asset_classes=[AssetClass.STOCKS, AssetClass.BONDS],
                returns=[[0.1, 0.02], [np.nan, 0.03]],
            )

    def test_shape_mismatch_rejected(self):
        """Test that column count must match the asset classes."""
        with pytest.raises(ValueError):
            HistoricalReturnSeries(
                years=[2000, 2001],
                asset_classes=[AssetClass.STOCKS],
                returns=[[0.1, 0.02], [0.2, 0.03]],
            )

    def test_return_below_total_loss_rejected(self):
        """Test that returns below -100% are rejected."""
        with pytest.raises(ValueError):
            HistoricalReturnSeries(
                years=[2000],
                asset_classes=[AssetClass.STOCKS],
                returns=[[-1.5]],
            )

    def test_returns_for_selects_columns_in_order(self, labelled_series):
        """Test column selection follows the requested order."""
        selected = labelled_series.returns_for([AssetClass.BONDS, AssetClass.STOCKS])
        assert selected.shape == (12, 2)
        np.testing.assert_array_equal(selected[:, 0], labelled_series.column(AssetClass.BONDS))
        np.testing.assert_array_equal(selected[:, 1], labelled_series.column(AssetClass.STOCKS))

    def test_returns_for_missing_column(self, labelled_series):
        """Test that a missing asset column is a configuration error."""
        with pytest.raises(ConfigurationError, match="cash"):
            labelled_series.returns_for([AssetClass.STOCKS, AssetClass.CASH])

    def test_statistics(self, labelled_series):
        """Test per-column summary statistics."""
        stats = labelled_series.statistics()
        stocks = stats[AssetClass.STOCKS]
        assert stocks.mean == pytest.approx(0.055)
        assert stocks.min == pytest.approx(0.0)
        assert stocks.max == pytest.approx(0.11)

    def test_correlation(self, labelled_series, constant_series):
        """Test empirical correlation, including zero-variance columns."""
        corr = labelled_series.correlation([AssetClass.STOCKS, AssetClass.BONDS])
        assert corr[0, 1] == pytest.approx(-1.0)
        assert corr[0, 0] == pytest.approx(1.0)

        flat = constant_series.correlation([AssetClass.STOCKS, AssetClass.BONDS])
        np.testing.assert_array_equal(flat, np.eye(2))


class TestSeriesFromDataFrame:
    """Test building series from tabular data."""

    def test_asset_class_column_names(self):
        """Test columns named after asset classes are mapped automatically."""
        frame = pd.DataFrame(
            {"Year": [2002, 2000, 2001], "stocks": [0.3, 0.1, 0.2], "bonds": [0.03, 0.01, 0.02]}
        )
        series = series_from_dataframe(frame)

        assert series.asset_classes == [AssetClass.STOCKS, AssetClass.BONDS]
        np.testing.assert_array_equal(series.years, [2000, 2001, 2002])
        np.testing.assert_allclose(series.column(AssetClass.STOCKS), [0.1, 0.2, 0.3])

    def test_explicit_column_mapping(self):
        """Test an explicit column to asset class mapping."""
        frame = pd.DataFrame({"yr": [2000, 2001], "Equity": [0.1, 0.2]})
        series = series_from_dataframe(
            frame, year_column="yr", columns={"Equity": AssetClass.STOCKS}
        )
        assert series.asset_classes == [AssetClass.STOCKS]

    def test_missing_year_column(self):
        """Test that the year column is required."""
        frame = pd.DataFrame({"stocks": [0.1]})
        with pytest.raises(ConfigurationError, match="Year"):
            series_from_dataframe(frame)

    def test_no_asset_columns(self):
        """Test that at least one recognised column is required."""
        frame = pd.DataFrame({"Year": [2000], "Mystery": [0.1]})
        with pytest.raises(ConfigurationError, match="no asset class columns"):
            series_from_dataframe(frame)

    def test_empty_frame(self):
        """Test that an empty table is a configuration error."""
        frame = pd.DataFrame({"Year": [], "stocks": []})
        with pytest.raises(ConfigurationError, match="empty"):
            series_from_dataframe(frame)


class TestLoadHistoricalReturns:
    """Test the CSV loader."""

    def test_load_damodaran_style_csv(self, tmp_path):
        """Test percent strings and Damodaran headers."""
        csv_path = tmp_path / "returns.csv"
        csv_path.write_text(
            "Year,S&P 500 (includes dividends),US T. Bond (10-year),3-month T.Bill\n"
            "1929,-8.30%,4.20%,3.08%\n"
            "1928,43.81%,0.84%,3.08%\n"
            "1930,-25.12%,4.54%,2.31%\n"
        )

        series = load_historical_returns(csv_path)

        assert series.asset_classes == [AssetClass.STOCKS, AssetClass.BONDS, AssetClass.CASH]
        np.testing.assert_array_equal(series.years, [1928, 1929, 1930])
        assert series.column(AssetClass.STOCKS)[0] == pytest.approx(0.4381)
        assert series.column(AssetClass.BONDS)[2] == pytest.approx(0.0454)
        assert series.source == str(csv_path)

    def test_partial_year_in_csv(self, tmp_path):
        """Test that a blank cell is reported as a partial year."""
        csv_path = tmp_path / "returns.csv"
        csv_path.write_text("Year,stocks,bonds\n2000,0.1,0.02\n2001,,0.03\n")

        with pytest.raises(ConfigurationError, match="partial years"):
            load_historical_returns(csv_path)

    def test_file_not_found(self, tmp_path):
        """Test that a missing file is a configuration error."""
        with pytest.raises(ConfigurationError, match="not found"):
            load_historical_returns(tmp_path / "missing.csv")
