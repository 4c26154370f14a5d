"""Two-phase "Find Optimal" search for a single trend channel.

Phase 1 scans (lookback, end_offset) pairs and keeps the window whose
regression centre line is crossed by the most bars (bars within 1% of the
centre).  Phase 2 runs touch alignment on that window to get the intercept
shift and the std-dev multiplier that make both bounds meet the extremes.

The grid is sampled so that phase 1 never exceeds GRID_EVALUATION_BUDGET
evaluations; larger series trade resolution for running time.
"""

import logging
import math
import threading
from dataclasses import dataclass
from typing import List, Optional

import numpy as np
import pandas as pd

from config import (
    DEFAULT_BAND_COUNT,
    DEFAULT_TOUCH_SMOOTHING_SMA,
    GRID_CROSS_TOLERANCE_PCT,
    GRID_END_OFFSET_DIVISOR,
    GRID_EVALUATION_BUDGET,
    GRID_MIN_LOOKBACK,
    RECENT_FRACTION,
    RECENT_MIN_POINTS,
)
from channel_builder import build_static_channel
from optimizer_runner import check_cancelled
from touch_alignment import compute_alignment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OptimalChannel:
    optimal_lookback: int
    optimal_end_offset: int
    optimal_delta: float
    intercept_shift: float
    max_crosses: int
    coverage_count: int
    touches_upper: bool
    touches_lower: bool


@dataclass(frozen=True)
class OptimalChannelReport:
    full: Optional[OptimalChannel]
    recent: Optional[OptimalChannel]
    recent_points: int


def grid_axes(total: int, budget: int = GRID_EVALUATION_BUDGET):
    """Sampled lookbacks and end offsets for a series of `total` bars.

    Both axes share one step, ceil(sqrt(grid_size / budget)).  The full
    lookback (every bar) is always included.
    """
    if total < GRID_MIN_LOOKBACK:
        return [], []

    max_offset = total // GRID_END_OFFSET_DIVISOR
    n_lookbacks = total - GRID_MIN_LOOKBACK + 1
    n_offsets = max_offset + 1
    size = n_lookbacks * n_offsets
    step = 1 if size <= budget else int(math.ceil(math.sqrt(size / max(1, budget))))

    lookbacks = list(range(GRID_MIN_LOOKBACK, total + 1, step))
    if lookbacks[-1] != total:
        lookbacks.append(total)
    offsets = list(range(0, max_offset + 1, step))
    return lookbacks, offsets


def _count_crosses(prices: np.ndarray, csum_y: np.ndarray, csum_iy: np.ndarray, start: int, end: int) -> int:
    # Window regression from prefix sums, in window-local x = i − start.
    n = end - start
    sum_y = csum_y[end] - csum_y[start]
    sum_xy = (csum_iy[end] - csum_iy[start]) - start * sum_y
    sum_x = n * (n - 1) / 2.0
    sum_x2 = (n - 1) * n * (2 * n - 1) / 6.0
    denom = n * sum_x2 - sum_x * sum_x
    if denom == 0:
        return -1

    slope = (n * sum_xy - sum_x * sum_y) / denom
    intercept = (sum_y - slope * sum_x) / n
    center = slope * np.arange(n) + intercept
    window = prices[start:end]
    return int(np.count_nonzero(np.abs(window - center) <= GRID_CROSS_TOLERANCE_PCT * np.abs(center)))


def find_optimal_channel(
    df: pd.DataFrame,
    sma_period: int = DEFAULT_TOUCH_SMOOTHING_SMA,
    budget: int = GRID_EVALUATION_BUDGET,
    cancel_event: Optional[threading.Event] = None,
) -> Optional[OptimalChannel]:
    """Search the channel window and width that best explain price action.

    Args:
        df: Series frame with a Close column.
        sma_period: Smoothing period for touch detection in phase 2.
        budget: Maximum number of phase-1 evaluations.
        cancel_event: Checked once per lookback; raises SearchCancelled.

    Returns:
        OptimalChannel, or None when the series is shorter than the
        smallest lookback.
    """
    if df is None:
        return None
    total = len(df)
    lookbacks, offsets = grid_axes(total, budget)
    if not lookbacks:
        logger.debug("Series of %d bars is too short for the grid search", total)
        return None

    prices = df["Close"].to_numpy(dtype=float)
    csum_y = np.concatenate(([0.0], np.cumsum(prices)))
    csum_iy = np.concatenate(([0.0], np.cumsum(np.arange(total) * prices)))

    best_crosses = -1
    best_lookback, best_offset = lookbacks[0], 0
    evaluations = 0

    for lookback in lookbacks:
        check_cancelled(cancel_event)
        for offset in offsets:
            if lookback + offset > total:
                break
            end = total - offset
            crosses = _count_crosses(prices, csum_y, csum_iy, end - lookback, end)
            evaluations += 1
            if crosses > best_crosses:
                best_crosses = crosses
                best_lookback, best_offset = lookback, offset

    logger.debug(
        "Phase 1: %d evaluations, best lookback=%d end_offset=%d crosses=%d",
        evaluations, best_lookback, best_offset, best_crosses,
    )

    alignment = compute_alignment(df, best_lookback, best_offset, sma_period)
    if alignment is None:
        logger.debug("Phase 2: alignment failed at lookback=%d", best_lookback)
        return None

    return OptimalChannel(
        optimal_lookback=best_lookback,
        optimal_end_offset=best_offset,
        optimal_delta=alignment.optimal_delta,
        intercept_shift=alignment.intercept_shift,
        max_crosses=max(0, best_crosses),
        coverage_count=alignment.coverage_count,
        touches_upper=alignment.touches_upper,
        touches_lower=alignment.touches_lower,
    )


def find_optimal_channels(
    df: pd.DataFrame,
    sma_period: int = DEFAULT_TOUCH_SMOOTHING_SMA,
    budget: int = GRID_EVALUATION_BUDGET,
    cancel_event: Optional[threading.Event] = None,
) -> OptimalChannelReport:
    """Run the search on the whole series and on its most recent quarter.

    The full-series result is the configuration to apply; the recent result
    (last 25%, at least RECENT_MIN_POINTS bars) is informational.
    """
    total = 0 if df is None else len(df)
    full = find_optimal_channel(df, sma_period, budget, cancel_event) if total else None

    recent_points = min(total, max(RECENT_MIN_POINTS, int(total * RECENT_FRACTION)))
    recent = None
    if recent_points >= RECENT_MIN_POINTS:
        recent = find_optimal_channel(df.iloc[-recent_points:], sma_period, budget, cancel_event)

    return OptimalChannelReport(full=full, recent=recent, recent_points=recent_points)


def apply_optimal_channel(
    df: pd.DataFrame,
    result: OptimalChannel,
    band_count: int = DEFAULT_BAND_COUNT,
) -> pd.DataFrame:
    """Static channel for an optimizer result (the caller's active channel)."""
    return build_static_channel(
        df,
        lookback=result.optimal_lookback,
        std_multiplier=result.optimal_delta,
        intercept_shift=result.intercept_shift,
        end_offset=result.optimal_end_offset,
        band_count=band_count,
    )


def summarize(result: Optional[OptimalChannel]) -> List[str]:
    """Human-readable lines for CLI output."""
    if result is None:
        return ["    (not enough data)"]
    touches = []
    if result.touches_upper:
        touches.append("upper")
    if result.touches_lower:
        touches.append("lower")
    return [
        f"    lookback={result.optimal_lookback} end_offset={result.optimal_end_offset} "
        f"delta={result.optimal_delta:.3f} shift={result.intercept_shift:+.4f}",
        f"    crosses={result.max_crosses} coverage={result.coverage_count} "
        f"touches={', '.join(touches) or 'none'}",
    ]
