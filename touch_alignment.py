"""Touch-alignment: centre a regression channel between the price extremes.

For one (lookback, end_offset) window:
  1. fit the regression line and take residuals (price − line)
  2. shift the intercept by the residual mid-range so the highest and the
     lowest residual are equidistant from the new centre
  3. express that half-width in std-devs (optimal_delta)
  4. smooth price with an SMA, recentre the smoothed residuals and find the
     turning points (sign changes) of the smoothed series
  5. a bound is "touched" only if a turning point that reaches the extreme
     lies in the boundary zone (first/last 8% of the window); this rejects
     single spikes in the middle of the channel
  6. count the bars inside centre ± optimal_delta · std_dev
"""

import logging
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from config import (
    BOUNDARY_WINDOW_PCT,
    DEFAULT_TOUCH_SMOOTHING_SMA,
    TOUCH_TOLERANCE_FACTOR,
    ZERO_STD_TOLERANCE,
)
from channel_builder import window_bounds
from regression import fit_line, residuals, sample_std

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlignmentResult:
    intercept_shift: float
    optimal_delta: float
    touches_upper: bool
    touches_lower: bool
    coverage_count: int
    total_points: int
    std_dev: float
    slope: float
    base_intercept: float
    extreme_magnitude: float


def smooth_prices(prices: np.ndarray, period: int) -> np.ndarray:
    """Trailing SMA; bars before the SMA is warm keep their own price."""
    prices = np.asarray(prices, dtype=float)
    if period <= 1 or len(prices) < period:
        return prices.copy()
    out = prices.copy()
    sma = np.convolve(prices, np.ones(period) / period, mode="valid")
    out[period - 1:] = sma
    return out


def turning_points(series: np.ndarray) -> List[int]:
    """Indices i where series changes sign between i − 1 and i.

    A move off zero (0 → non-zero) also counts.
    """
    points = []
    for i in range(1, len(series)):
        prev, curr = series[i - 1], series[i]
        if (prev < 0 <= curr) or (prev > 0 >= curr) or (prev == 0 and curr != 0):
            points.append(i)
    return points


def compute_alignment(
    df: pd.DataFrame,
    lookback: Optional[int],
    end_offset: int = 0,
    sma_period: int = DEFAULT_TOUCH_SMOOTHING_SMA,
) -> Optional[AlignmentResult]:
    """Intercept shift and multiplier that make both bounds meet the extremes.

    Args:
        df: Series frame with a Close column.
        lookback: Window length; None/0 or too large means all bars.
        end_offset: Bars between the window end and the last bar.
        sma_period: Smoothing applied before turning-point detection.

    Returns:
        AlignmentResult, or None when the window has fewer than two bars
        or the regression is degenerate.
    """
    if df is None or len(df) < 2:
        return None

    start, end = window_bounds(len(df), lookback, end_offset)
    prices = df["Close"].to_numpy(dtype=float)[start:end]
    n = len(prices)
    if n < 2:
        return None

    reg = fit_line(prices)
    if reg is None:
        return None
    slope, base_intercept = reg.slope, reg.intercept

    res = residuals(prices, slope, base_intercept)
    max_res, min_res = float(res.max()), float(res.min())
    if not (np.isfinite(max_res) and np.isfinite(min_res)):
        logger.debug("Non-finite residuals in window [%d, %d)", start, end)
        return None

    intercept_shift = (max_res + min_res) / 2.0
    adjusted = res - intercept_shift

    std_dev = sample_std(adjusted)
    extreme = float(np.abs(adjusted).max())
    optimal_delta = extreme / std_dev if std_dev > 0 else 0.0
    if not np.isfinite(optimal_delta):
        optimal_delta = 0.0

    tolerance = std_dev * TOUCH_TOLERANCE_FACTOR if std_dev > 0 else ZERO_STD_TOLERANCE
    boundary = max(1, int(np.floor(n * BOUNDARY_WINDOW_PCT)))

    smoothed = residuals(smooth_prices(prices, sma_period), slope, base_intercept)
    smoothed = smoothed - (smoothed.max() + smoothed.min()) / 2.0

    if extreme == 0:
        touches_upper = touches_lower = True
    else:
        touches_upper = touches_lower = False
        for i in turning_points(smoothed):
            if not (i < boundary or i >= n - boundary):
                continue
            if abs(adjusted[i] - extreme) <= tolerance:
                touches_upper = True
            if abs(adjusted[i] + extreme) <= tolerance:
                touches_lower = True

    half_width = optimal_delta * std_dev
    coverage_count = int(np.count_nonzero(
        (adjusted <= half_width + tolerance) & (adjusted >= -half_width - tolerance)
    ))

    return AlignmentResult(
        intercept_shift=intercept_shift,
        optimal_delta=float(optimal_delta),
        touches_upper=touches_upper,
        touches_lower=touches_lower,
        coverage_count=coverage_count,
        total_points=n,
        std_dev=std_dev,
        slope=slope,
        base_intercept=base_intercept,
        extreme_magnitude=extreme,
    )
