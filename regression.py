"""Ordinary least-squares line fitting over an index-keyed window.

The independent variable is always the 0-based position inside the window,
so a fit over ``values[a:b]`` is expressed in window-local coordinates.
Fits that cannot be computed (fewer than two points, zero denominator)
return None instead of raising; callers skip such windows.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from config import DEFAULT_PRICE_SOURCE

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RegressionResult:
    slope: float
    intercept: float
    n: int

    def value_at(self, x):
        """Fitted value(s) at window-local position(s) x."""
        return self.slope * x + self.intercept


def price_values(df: pd.DataFrame, price_source: str = DEFAULT_PRICE_SOURCE) -> np.ndarray:
    """Per-point price used for fitting.

    Args:
        df: Series frame with a Close column and optional Open/High/Low.
        price_source: "close", "hl2" or "ohlc4".  Anything else means close.

    Returns:
        Float array aligned with df.  Missing High/Low/Open values fall
        back to Close point by point.
    """
    close = df["Close"].to_numpy(dtype=float)
    if price_source == "close":
        return close

    def column(name: str) -> np.ndarray:
        if name not in df.columns:
            return close
        values = df[name].to_numpy(dtype=float)
        return np.where(np.isnan(values), close, values)

    if price_source == "hl2":
        return (column("High") + column("Low")) / 2.0
    if price_source == "ohlc4":
        return (column("Open") + column("High") + column("Low") + close) / 4.0

    logger.debug("Unknown price source %r, using close", price_source)
    return close


def fit_line(values) -> Optional[RegressionResult]:
    """Least-squares fit of values against 0..n-1.

    slope = (nΣxy − ΣxΣy) / (nΣx² − (Σx)²),  intercept = (Σy − slope·Σx) / n
    """
    y = np.asarray(values, dtype=float)
    n = len(y)
    if n < 2:
        return None

    x = np.arange(n, dtype=float)
    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = float(np.dot(x, y))
    sum_x2 = float(np.dot(x, x))

    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return None

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    return RegressionResult(slope=float(slope), intercept=float(intercept), n=n)


def fit(df: pd.DataFrame, price_source: str = DEFAULT_PRICE_SOURCE) -> Optional[RegressionResult]:
    """Fit a regression line over every row of df."""
    if df is None or len(df) < 2:
        return None
    return fit_line(price_values(df, price_source))


def residuals(values, slope: float, intercept: float) -> np.ndarray:
    """values − fitted line, in window-local coordinates."""
    y = np.asarray(values, dtype=float)
    x = np.arange(len(y), dtype=float)
    return y - (slope * x + intercept)


def sample_std(res) -> float:
    """Residual std-dev with an (n − 1) divisor, floored at one."""
    res = np.asarray(res, dtype=float)
    if len(res) == 0:
        return 0.0
    return float(np.sqrt(np.dot(res, res) / max(1, len(res) - 1)))
