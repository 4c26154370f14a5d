"""Static and sliding linear-regression channels.

Both builders return a copy of the input frame decorated with channel
columns:

  Center, Upper, Lower  - regression line and ± multiplier × StdDev bounds
  StdDev                - residual standard deviation of the fitted window
  Band_1 .. Band_(K-1)  - interior levels between Lower and Upper

Rows outside the computed window carry NaN in every channel column.

Static channel:  one fit over a fixed window (lookback ending end_offset
    bars before the last bar), evenly spaced bands.
Sliding channel: an independent fit over the trailing window at every bar;
    bands follow the volume distribution of that window when enough bars
    carry volume, otherwise they are evenly spaced.
"""

import logging
from typing import List, Optional

import numpy as np
import pandas as pd

from config import DEFAULT_BAND_COUNT, DEFAULT_PRICE_SOURCE
from regression import fit_line, price_values, residuals, sample_std

logger = logging.getLogger(__name__)

CHANNEL_COLUMNS = ["Center", "Upper", "Lower", "StdDev"]


def band_columns(band_count: int) -> List[str]:
    return [f"Band_{b}" for b in range(1, max(1, band_count))]


def window_bounds(total: int, lookback: Optional[int], end_offset: int = 0):
    """Return [start, end) of the lookback bars ending end_offset before the end.

    A missing or oversized lookback is clamped to every available bar.
    """
    end_offset = min(max(0, int(end_offset or 0)), total)
    end = total - end_offset
    if not lookback or lookback > end:
        lookback = end
    return end - int(lookback), end


def even_levels(lower, upper, band_count: int) -> list:
    """band_count − 1 evenly spaced levels strictly between lower and upper."""
    return [lower + (upper - lower) * (b / band_count) for b in range(1, band_count)]


def volume_weighted_levels(prices, volumes, lower: float, upper: float, band_count: int) -> list:
    """Levels splitting the window's traded volume into band_count equal parts.

    Bars are sorted by price and the cumulative volume share is walked; the
    k-th level is the first price where the share reaches k / band_count.
    Needs at least band_count bars with positive volume, otherwise falls back
    to even spacing.  Quantiles that cannot be placed fall back to their
    even-spaced level.  Every level is clamped into [lower, upper].
    """
    prices = np.asarray(prices, dtype=float)
    volumes = np.nan_to_num(np.asarray(volumes, dtype=float), nan=0.0)
    mask = ~np.isnan(prices) & (volumes > 0)
    if mask.sum() < band_count:
        return even_levels(lower, upper, band_count)

    order = np.argsort(prices[mask], kind="stable")
    sorted_prices = prices[mask][order]
    sorted_vols = volumes[mask][order]
    total = sorted_vols.sum()
    if total <= 0:
        return even_levels(lower, upper, band_count)

    share = np.cumsum(sorted_vols) / total
    levels = []
    for b in range(1, band_count):
        pos = int(np.searchsorted(share, b / band_count, side="left"))
        if pos < len(sorted_prices):
            level = sorted_prices[pos]
        else:
            level = lower + (upper - lower) * (b / band_count)
        levels.append(float(min(max(level, lower), upper)))
    return levels


def _empty_channel(df: pd.DataFrame, band_count: int) -> pd.DataFrame:
    out = df.copy()
    for col in CHANNEL_COLUMNS + band_columns(band_count):
        out[col] = np.nan
    return out


def build_static_channel(
    df: pd.DataFrame,
    lookback: Optional[int],
    std_multiplier: float,
    intercept_shift: float = 0.0,
    end_offset: int = 0,
    band_count: int = DEFAULT_BAND_COUNT,
) -> pd.DataFrame:
    """Fit one regression channel over a fixed window.

    Args:
        df: Series frame (Close, Volume, ...).
        lookback: Bars in the window; None/0 or too large means every bar
            up to the window end.
        std_multiplier: Half-width of the channel in std-devs.
        intercept_shift: Added to the fitted intercept before bounds and
            residual std-dev are computed.
        end_offset: Bars between the window end and the last bar.
        band_count: Zones between the bounds (band_count − 1 levels).

    Returns:
        Decorated copy of df.  Windows with fewer than 2 bars, or a
        degenerate fit, leave every channel column NaN.
    """
    out = _empty_channel(df, band_count)
    start, end = window_bounds(len(df), lookback, end_offset)
    if end - start < 2:
        return out

    window = df["Close"].to_numpy(dtype=float)[start:end]
    reg = fit_line(window)
    if reg is None:
        logger.debug("Static channel [%d, %d) has a degenerate fit", start, end)
        return out

    intercept = reg.intercept + intercept_shift
    std_dev = sample_std(residuals(window, reg.slope, intercept))

    x = np.arange(end - start, dtype=float)
    center = reg.slope * x + intercept
    upper = center + std_multiplier * std_dev
    lower = center - std_multiplier * std_dev

    columns = {
        "Center": center,
        "Upper": upper,
        "Lower": lower,
        "StdDev": np.full(end - start, std_dev),
    }
    for name, level in zip(band_columns(band_count), even_levels(lower, upper, band_count)):
        columns[name] = level

    for name, values in columns.items():
        full = np.full(len(df), np.nan)
        full[start:end] = values
        out[name] = full
    return out


def build_sliding_channel(
    df: pd.DataFrame,
    period: int,
    std_multiplier: float,
    price_source: str = DEFAULT_PRICE_SOURCE,
    band_count: int = DEFAULT_BAND_COUNT,
) -> pd.DataFrame:
    """Rolling regression channel, refit independently at every bar.

    Bar i (i >= period − 1) is stamped with the regression value at the end
    of the trailing window [i − period + 1, i], bounds at ± multiplier ×
    population std-dev of the Close residuals against the price_source fit,
    and volume-weighted bands.
    O(n · period).
    """
    out = _empty_channel(df, band_count)
    n = len(df)
    if period < 2 or n < period:
        return out

    values = price_values(df, price_source)
    close = df["Close"].to_numpy(dtype=float)
    volume = df["Volume"].to_numpy(dtype=float) if "Volume" in df.columns else np.zeros(n)
    names = band_columns(band_count)

    center = np.full(n, np.nan)
    upper = np.full(n, np.nan)
    lower = np.full(n, np.nan)
    std = np.full(n, np.nan)
    bands = np.full((n, len(names)), np.nan)

    for i in range(period - 1, n):
        lo = i - period + 1
        window = values[lo:i + 1]
        reg = fit_line(window)
        if reg is None:
            continue

        res = residuals(close[lo:i + 1], reg.slope, reg.intercept)
        sd = float(np.sqrt(np.dot(res, res) / period))
        c = reg.value_at(period - 1)

        center[i] = c
        std[i] = sd
        upper[i] = c + std_multiplier * sd
        lower[i] = c - std_multiplier * sd
        if names:
            bands[i] = volume_weighted_levels(
                close[lo:i + 1], volume[lo:i + 1], lower[i], upper[i], band_count,
            )

    out["Center"] = center
    out["Upper"] = upper
    out["Lower"] = lower
    out["StdDev"] = std
    for j, name in enumerate(names):
        out[name] = bands[:, j]
    return out
