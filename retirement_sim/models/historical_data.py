"""
Historical annual return tables for bootstrap simulations.

A HistoricalReturnSeries holds one realized annual return per asset class per
calendar year. All asset classes are indexed by the same calendar year, so
any draw of a year index keeps that year's cross-asset correlation intact.
The series is read-only after construction and is shared by every concurrent
simulation path without locking.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Union

import numpy as np
import pandas as pd
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field, model_validator

from .asset_classes import AssetClass
from .simulation.errors import ConfigurationError

logger = logging.getLogger(__name__)


# Column headers used by the Damodaran annual returns table.
DAMODARAN_COLUMNS: Dict[str, AssetClass] = {
    "S&P 500 (includes dividends)": AssetClass.STOCKS,
    "US Small cap (bottom decile)": AssetClass.SMALL_CAP,
    "3-month T.Bill": AssetClass.CASH,
    "US T. Bond (10-year)": AssetClass.BONDS,
    "Baa Corporate Bond": AssetClass.CORPORATE_BONDS,
    "Real Estate": AssetClass.REAL_ESTATE,
    "Gold*": AssetClass.PRECIOUS_METALS,
    "Bitcoin": AssetClass.CRYPTO,
}


class ReturnSummary(BaseModel):
    """Summary statistics for one asset class column."""

    mean: float
    median: float
    standard_deviation: float
    min: float
    max: float


class HistoricalReturnSeries(BaseModel):
    """Immutable per-asset-class annual return table."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    years: NDArray[np.int64] = Field(..., description="Calendar years, ascending")
    asset_classes: List[AssetClass] = Field(
        ..., min_length=1, description="Asset class for each column"
    )
    returns: NDArray[np.float64] = Field(
        ..., description="Annual returns as fractions (years x asset classes)"
    )
    source: Optional[str] = Field(default=None, description="Where the data came from")

    @model_validator(mode="before")
    @classmethod
    def coerce_arrays(cls, data: Dict) -> Dict:
        """Coerce years and returns to read-only numpy arrays."""
        if not isinstance(data, dict):
            return data

        data = dict(data)
        years = np.array(data.get("years", []), dtype=np.int64)
        if years.ndim != 1:
            raise ValueError("years must be one-dimensional")

        matrix = np.array(data.get("returns", []), dtype=np.float64)
        if matrix.size == 0:
            matrix = matrix.reshape(0, len(data.get("asset_classes") or []))
        if matrix.ndim != 2:
            raise ValueError(
                f"returns must be 2-dimensional (years x asset classes), got {matrix.ndim}D"
            )

        years.setflags(write=False)
        matrix.setflags(write=False)
        data["years"] = years
        data["returns"] = matrix
        return data

    @model_validator(mode="after")
    def validate_table(self) -> "HistoricalReturnSeries":
        """Every year must have a return for every asset class."""
        num_years, num_assets = self.returns.shape

        if num_years != len(self.years):
            raise ValueError(
                f"Got {len(self.years)} years but {num_years} rows of returns"
            )
        if num_assets != len(self.asset_classes):
            raise ValueError(
                f"Got {len(self.asset_classes)} asset classes but {num_assets} columns of returns"
            )
        if len(set(self.asset_classes)) != len(self.asset_classes):
            raise ValueError("Asset classes must be unique")
        if num_years > 1 and not np.all(np.diff(self.years) > 0):
            raise ValueError("Years must be strictly increasing")
        if np.isnan(self.returns).any():
            raise ValueError("Returns contain missing values (partial years)")
        if (self.returns < -1.0).any():
            raise ValueError("Annual returns cannot be below -100%")

        return self

    def __len__(self) -> int:
        return int(self.returns.shape[0])

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    @property
    def start_year(self) -> int:
        return int(self.years[0])

    @property
    def end_year(self) -> int:
        return int(self.years[-1])

    def has_asset(self, asset: AssetClass) -> bool:
        return asset in self.asset_classes

    def year_at(self, index: int) -> int:
        """Calendar year for a row index."""
        return int(self.years[index])

    def column(self, asset: AssetClass) -> NDArray[np.float64]:
        """Return the read-only return column for one asset class."""
        if asset not in self.asset_classes:
            raise KeyError(f"No historical returns for {asset.value}")
        return self.returns[:, self.asset_classes.index(asset)]

    def returns_for(self, assets: Iterable[AssetClass]) -> NDArray[np.float64]:
        """
        Select columns for the given asset classes, in the given order.

        Raises:
            ConfigurationError: If an asset class has no column in this series
        """
        assets = list(assets)
        missing = [asset.value for asset in assets if asset not in self.asset_classes]
        if missing:
            raise ConfigurationError(
                f"Historical returns missing for asset classes: {', '.join(missing)}"
            )

        indices = [self.asset_classes.index(asset) for asset in assets]
        selected = self.returns[:, indices]
        selected.setflags(write=False)
        return selected

    def statistics(self) -> Dict[AssetClass, ReturnSummary]:
        """Calculate summary statistics for every asset class column."""
        if self.is_empty:
            return {}

        return {
            asset: ReturnSummary(
                mean=float(np.mean(self.returns[:, i])),
                median=float(np.median(self.returns[:, i])),
                standard_deviation=float(np.std(self.returns[:, i])),
                min=float(np.min(self.returns[:, i])),
                max=float(np.max(self.returns[:, i])),
            )
            for i, asset in enumerate(self.asset_classes)
        }

    def correlation(self, assets: Iterable[AssetClass]) -> NDArray[np.float64]:
        """
        Empirical correlation matrix between the given asset classes.

        Columns with zero variance are treated as uncorrelated.
        """
        assets = list(assets)
        data = self.returns_for(assets)

        if len(assets) == 1 or len(self) < 2:
            return np.eye(len(assets))

        std = np.std(data, axis=0)
        corr = np.eye(len(assets))
        for i in range(len(assets)):
            for j in range(i + 1, len(assets)):
                if std[i] == 0 or std[j] == 0:
                    continue
                value = float(np.corrcoef(data[:, i], data[:, j])[0, 1])
                corr[i, j] = value
                corr[j, i] = value
        return corr


def _parse_return(value: object) -> float:
    """Parse a return cell: a fraction, or a percent string such as '43.81%'."""
    if value is None:
        return float("nan")
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return float("nan")
        if text.endswith("%"):
            return float(text[:-1]) / 100.0
        return float(text)
    return float(value)  # type: ignore[arg-type]


def series_from_dataframe(
    frame: pd.DataFrame,
    year_column: str = "Year",
    columns: Optional[Dict[str, AssetClass]] = None,
    source: Optional[str] = None,
) -> HistoricalReturnSeries:
    """
    Build a HistoricalReturnSeries from a DataFrame of annual returns.

    Args:
        frame: One row per calendar year
        year_column: Name of the calendar year column
        columns: Mapping of column name to asset class. Defaults to the
            Damodaran headers plus any column named after an AssetClass value.
        source: Optional description of the data source

    Returns:
        HistoricalReturnSeries with rows sorted by year

    Raises:
        ConfigurationError: If the frame is empty or has partial years
    """
    if columns is None:
        columns = {}
        for name in frame.columns:
            if name in DAMODARAN_COLUMNS:
                columns[name] = DAMODARAN_COLUMNS[name]
            elif name in {asset.value for asset in AssetClass}:
                columns[name] = AssetClass(name)

    if year_column not in frame.columns:
        raise ConfigurationError(f"Historical returns missing '{year_column}' column")
    if not columns:
        raise ConfigurationError("Historical returns contain no asset class columns")
    if frame.empty:
        raise ConfigurationError("Historical returns table is empty")

    ordered = frame.assign(**{year_column: frame[year_column].astype(int)})
    ordered = ordered.sort_values(year_column)
    parsed = ordered[list(columns.keys())].apply(lambda col: col.map(_parse_return))

    incomplete = parsed.isna().any(axis=1)
    if incomplete.any():
        bad_years = ordered.loc[incomplete, year_column].tolist()
        raise ConfigurationError(
            f"Historical returns have partial years: {bad_years[:10]}"
        )

    try:
        series = HistoricalReturnSeries(
            years=ordered[year_column].astype(int).to_numpy(),
            asset_classes=list(columns.values()),
            returns=parsed.to_numpy(dtype=np.float64),
            source=source,
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid historical returns table: {e}") from e

    logger.info(
        f"Loaded {len(series)} years of historical returns "
        f"({series.start_year}-{series.end_year}) for {len(series.asset_classes)} asset classes"
    )
    return series


def load_historical_returns(
    path: Union[str, Path],
    year_column: str = "Year",
    columns: Optional[Dict[str, AssetClass]] = None,
) -> HistoricalReturnSeries:
    """
    Load a HistoricalReturnSeries from a CSV file.

    Raises:
        ConfigurationError: If the file does not exist or the table is invalid
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise ConfigurationError(f"Historical returns file not found: {csv_path}")

    frame = pd.read_csv(csv_path, dtype=str)
    return series_from_dataframe(
        frame, year_column=year_column, columns=columns, source=str(csv_path)
    )
