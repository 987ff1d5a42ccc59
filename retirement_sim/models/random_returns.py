"""
Return sampling for Monte Carlo simulation paths.

This module draws the sequence of annual return vectors (one return per asset
class) that a single simulation path experiences. Two bootstrap modes resample
historical calendar years, and a parametric mode draws from normal or
lognormal distributions for callers who override expected return and
volatility.
"""

from enum import Enum
from typing import Dict, List, Literal, Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from pydantic import BaseModel, ConfigDict, Field

from .asset_classes import AssetClass, MarketAssumption
from .historical_data import HistoricalReturnSeries
from .simulation.errors import ConfigurationError


class SamplingMode(str, Enum):
    """How a path's return sequence is drawn."""

    BLOCK_BOOTSTRAP = "block_bootstrap"
    IID_BOOTSTRAP = "iid_bootstrap"
    PARAMETRIC = "parametric"

    @property
    def is_bootstrap(self) -> bool:
        return self is not SamplingMode.PARAMETRIC


class ReturnSample(BaseModel):
    """Return sequence drawn for one simulation path."""

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    # Returns per simulated year (horizon, num_assets)
    returns: NDArray[np.float64] = Field(
        ..., description="Annual returns (horizon x asset classes)"
    )
    # Historical row indices used for each simulated year (bootstrap modes)
    year_indices: Optional[NDArray[np.int64]] = Field(
        default=None, description="Historical row index per simulated year"
    )
    start_index: Optional[int] = Field(
        default=None, description="Historical row index of the first simulated year"
    )
    start_year: Optional[int] = Field(
        default=None, description="Calendar year of the first simulated year"
    )

    @property
    def horizon(self) -> int:
        return int(self.returns.shape[0])


class ReturnSampler:
    """Draws per-path return sequences from historical data or a distribution.

    The sampler holds no per-path state. Each call to ``sample`` takes the
    path's own random generator, so a single sampler is safely shared by all
    concurrent paths.
    """

    def __init__(
        self,
        series: Optional[HistoricalReturnSeries],
        asset_classes: List[AssetClass],
        mode: SamplingMode = SamplingMode.BLOCK_BOOTSTRAP,
        market_assumptions: Optional[Dict[AssetClass, MarketAssumption]] = None,
        distribution: Literal["normal", "lognormal"] = "normal",
    ):
        """Initialize the return sampler.

        Args:
            series: Historical returns (required for bootstrap modes)
            asset_classes: Asset classes to draw, in allocation order
            mode: Sampling mode
            market_assumptions: Expected return/volatility overrides (parametric)
            distribution: Distribution type for parametric returns

        Raises:
            ConfigurationError: If the inputs cannot support the chosen mode
        """
        self.series = series
        self.asset_classes = list(asset_classes)
        self.mode = SamplingMode(mode)
        self.market_assumptions = dict(market_assumptions or {})
        self.distribution = distribution

        self._validate_config()

        self._history: Optional[NDArray[np.float64]] = None
        self._cholesky: Optional[NDArray[np.float64]] = None

        if self.mode.is_bootstrap:
            self._history = self._require_series().returns_for(self.asset_classes)
        else:
            self._cholesky = self._correlation_factor()

    def _validate_config(self) -> None:
        """Validate the configuration parameters."""
        if len(self.asset_classes) == 0:
            raise ConfigurationError("At least one asset class is required")
        if self.distribution not in ("normal", "lognormal"):
            raise ConfigurationError(f"Unsupported distribution: {self.distribution}")

        if self.mode.is_bootstrap:
            self._require_series()

    def _require_series(self) -> HistoricalReturnSeries:
        if self.series is None or self.series.is_empty:
            raise ConfigurationError(
                "Historical return data is empty; bootstrap sampling needs at least one year"
            )
        return self.series

    @property
    def history_length(self) -> int:
        return 0 if self._history is None else int(self._history.shape[0])

    def sample(self, horizon: int, rng: np.random.Generator) -> ReturnSample:
        """
        Draw a return sequence for one path.

        Args:
            horizon: Number of simulated years
            rng: The path's own random generator

        Returns:
            ReturnSample with returns of shape (horizon, num_assets)
        """
        if horizon <= 0:
            raise ConfigurationError("Horizon must be positive")

        if not self.mode.is_bootstrap:
            return ReturnSample(returns=self._parametric_returns(horizon, rng))

        if self._history is None:
            raise ConfigurationError(
                f"No historical returns loaded for {self.mode.value} sampling"
            )

        if self.mode is SamplingMode.BLOCK_BOOTSTRAP:
            indices = self._block_indices(horizon, rng)
        else:
            indices = rng.integers(0, self.history_length, size=horizon)
        indices = indices.astype(np.int64)
        returns = self._history[indices]
        start_index = int(indices[0])

        return ReturnSample(
            returns=returns,
            year_indices=indices,
            start_index=start_index,
            start_year=self._require_series().year_at(start_index),
        )

    def _block_indices(self, horizon: int, rng: np.random.Generator) -> NDArray[np.int64]:
        """Contiguous calendar years from a random start, wrapping if history is short."""
        count = self.history_length

        if horizon <= count:
            # Any start whose remaining tail covers the full horizon
            start = int(rng.integers(0, count - horizon + 1))
        else:
            start = int(rng.integers(0, count))

        return (start + np.arange(horizon)) % count

    def _parametric_returns(
        self, horizon: int, rng: np.random.Generator
    ) -> NDArray[np.float64]:
        """Draw correlated normal or lognormal returns."""
        if self._cholesky is None:
            raise ConfigurationError("Parametric sampling has no correlation factor")
        expected_returns, volatilities = self.get_assumptions()

        # Correlated standard normals: each row is z @ L^T
        independent = rng.standard_normal((horizon, len(self.asset_classes)))
        correlated = independent @ self._cholesky.T

        if self.distribution == "lognormal":
            # For lognormal: if X ~ N(mu, sigma), then exp(X) ~ LogNormal(mu, sigma)
            mu = np.log(1 + expected_returns) - 0.5 * volatilities**2
            returns = np.exp(mu + correlated * volatilities) - 1
        else:
            returns = expected_returns + correlated * volatilities

        # A path cannot lose more than everything in a year
        return np.maximum(returns, -1.0)

    def _correlation_factor(self) -> NDArray[np.float64]:
        """Cholesky factor of the asset correlation matrix."""
        num_assets = len(self.asset_classes)

        if self.series is None or self.series.is_empty:
            return np.eye(num_assets)
        if not all(self.series.has_asset(asset) for asset in self.asset_classes):
            return np.eye(num_assets)

        corr_matrix = self.series.correlation(self.asset_classes)
        try:
            return np.linalg.cholesky(corr_matrix)
        except np.linalg.LinAlgError:
            # Nudge a singular empirical matrix towards the identity
            shrunk = 0.99 * corr_matrix + 0.01 * np.eye(num_assets)
            return np.linalg.cholesky(shrunk)

    def get_assumptions(self) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Expected returns and volatilities in asset order."""
        expected = []
        volatility = []
        for asset in self.asset_classes:
            assumption = self.market_assumptions.get(asset)
            if assumption is None:
                expected.append(asset.default_return)
                volatility.append(asset.default_volatility)
            else:
                expected.append(assumption.expected_return)
                volatility.append(assumption.volatility)
        return np.array(expected), np.array(volatility)

    def get_asset_names(self) -> List[str]:
        """Get list of asset class names."""
        return [asset.value for asset in self.asset_classes]

