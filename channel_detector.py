"""Multi-channel detection: partition a series into independently fitted channels.

The detector keeps a worklist of disjoint index ranges (initially the whole
series).  Every iteration it samples (lookback, start) windows inside each
range, fits a regression channel to each window, sweeps the std-dev
multiplier and keeps the single best-scoring channel across all ranges.
The winner's central 60% is claimed, its range is split into the parts
before and after it, and the search repeats.

Key design decisions:
  - Multiplier sweep 1.0 … 4.0 (step 0.5); configurations where fewer than
    70% of bars sit within 20% of the centre value are rejected.
  - score = coverage × touchBonus × relativeFit × lengthBonus
            × centerProximity × widthPenalty
  - Windows whose first or last 10% fit markedly worse than the whole
    (mean |residual| > 1.5×) are rejected, so channels start and end where
    the trend actually does.
  - A window that lies exactly on a line has std-dev 0: it covers every bar
    and touches neither bound.
"""

import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd

from config import (
    BOUNDARY_FIT_MIN_POINTS,
    BOUNDARY_FIT_PCT,
    BOUNDARY_FIT_RATIO,
    CENTER_BAND_PCT,
    DEFAULT_BAND_COUNT,
    DEFAULT_MAX_CHANNELS,
    DEFAULT_MAX_RATIO,
    DEFAULT_MIN_RATIO,
    DEFAULT_STD_MULTIPLIER,
    DETECTOR_MIN_POINTS,
    DETECTOR_TOUCH_TOLERANCE,
    EXACT_FIT_EPS,
    LOOKBACK_SAMPLES,
    MAX_CLAIMED_FRACTION,
    MIN_CENTER_PROXIMITY,
    MIN_CHANNEL_SCORE,
    MIN_RANGE_FRACTION,
    MULTIPLIER_MAX,
    MULTIPLIER_MIN,
    MULTIPLIER_STEP,
    OVERLAP_BUFFER_PCT,
    POSITION_SAMPLES,
    TOUCH_BONUS_BOTH,
    TOUCH_BONUS_NONE,
    TOUCH_BONUS_ONE,
    WIDTH_PENALTY_SCALE,
)
from channel_builder import band_columns, volume_weighted_levels
from optimizer_runner import check_cancelled
from regression import fit_line, residuals

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChannelCandidate:
    start_idx: int
    end_idx: int
    lookback: int
    slope: float
    intercept: float
    std_dev: float
    std_multiplier: float
    coverage: float
    center_proximity: float
    touches_upper: bool
    touches_lower: bool
    score: float
    data: pd.DataFrame = field(repr=False, compare=False)


@dataclass(frozen=True)
class _WindowFit:
    score: float
    multiplier: float
    coverage: float
    center_proximity: float
    touches_upper: bool
    touches_lower: bool
    slope: float
    intercept: float
    std_dev: float


def multiplier_grid() -> np.ndarray:
    """MULTIPLIER_MIN … MULTIPLIER_MAX in MULTIPLIER_STEP increments (1.0, 1.5, … 4.0)."""
    steps = int(round((MULTIPLIER_MAX - MULTIPLIER_MIN) / MULTIPLIER_STEP))
    return np.array([MULTIPLIER_MIN + k * MULTIPLIER_STEP for k in range(steps + 1)])


def _boundary_fit_ok(res: np.ndarray) -> bool:
    n = len(res)
    k = max(BOUNDARY_FIT_MIN_POINTS, int(n * BOUNDARY_FIT_PCT))
    abs_res = np.abs(res)
    overall = abs_res.mean()
    limit = overall * BOUNDARY_FIT_RATIO
    return abs_res[:k].mean() <= limit and abs_res[-k:].mean() <= limit


def evaluate_window(
    window: np.ndarray,
    total_points: int,
    multipliers: np.ndarray,
) -> Optional[_WindowFit]:
    """Fit and score one candidate window; None when it is rejected."""
    n = len(window)
    reg = fit_line(window)
    if reg is None:
        return None

    res = residuals(window, reg.slope, reg.intercept)
    std_dev = float(np.sqrt(np.mean((res - res.mean()) ** 2)))
    center = reg.slope * np.arange(n) + reg.intercept

    scale = float(np.mean(np.abs(window)))
    exact = std_dev <= EXACT_FIT_EPS * max(scale, 1.0)
    if exact:
        std_dev = 0.0
        res = np.zeros(n)

    center_proximity = float(np.mean(np.abs(res) <= CENTER_BAND_PCT * np.abs(center)))
    if center_proximity < MIN_CENTER_PROXIMITY:
        return None

    if not _boundary_fit_ok(res):
        return None

    half = multipliers[:, None] * std_dev
    if exact:
        coverage = np.ones(len(multipliers))
        touches_upper = np.zeros(len(multipliers), dtype=bool)
        touches_lower = np.zeros(len(multipliers), dtype=bool)
    else:
        tol = DETECTOR_TOUCH_TOLERANCE * std_dev
        inside = (res >= -half - tol) & (res <= half + tol)
        coverage = inside.mean(axis=1)
        touches_upper = (np.abs(res - half) <= tol).any(axis=1)
        touches_lower = (np.abs(res + half) <= tol).any(axis=1)

    touch_bonus = np.where(
        touches_upper & touches_lower,
        TOUCH_BONUS_BOTH,
        np.where(touches_upper | touches_lower, TOUCH_BONUS_ONE, TOUCH_BONUS_NONE),
    )
    relative_fit = 1.0 / (1.0 + std_dev / (abs(reg.intercept) or 1.0))
    length_bonus = np.log(n) / np.log(total_points)
    width_penalty = 1.0 / (1.0 + multipliers / WIDTH_PENALTY_SCALE)

    scores = coverage * touch_bonus * relative_fit * length_bonus * center_proximity * width_penalty
    best = int(np.argmax(scores))

    return _WindowFit(
        score=float(scores[best]),
        multiplier=float(multipliers[best]),
        coverage=float(coverage[best]),
        center_proximity=center_proximity,
        touches_upper=bool(touches_upper[best]),
        touches_lower=bool(touches_lower[best]),
        slope=reg.slope,
        intercept=reg.intercept,
        std_dev=std_dev,
    )


def _best_in_range(
    prices: np.ndarray,
    used: np.ndarray,
    start: int,
    end: int,
    min_points: int,
    max_points: int,
    multipliers: np.ndarray,
    cancel_event: Optional[threading.Event],
) -> Optional[Tuple[int, int, _WindowFit]]:
    """Best (start, end_inclusive, fit) among the sampled windows of a range."""
    range_len = end - start + 1
    if range_len < min_points:
        return None

    total_points = len(prices)
    min_lookback = min(min_points, range_len)
    max_lookback = min(max_points, range_len)
    lookback_step = max(1, (max_lookback - min_lookback) // LOOKBACK_SAMPLES)

    best = None
    for lookback in range(min_lookback, max_lookback + 1, lookback_step):
        check_cancelled(cancel_event)
        max_start = max(0, end - lookback + 1)
        pos_step = max(1, (max_start - start) // POSITION_SAMPLES)

        for pos in range(start, max_start + 1, pos_step):
            stop = min(pos + lookback, end + 1)
            length = stop - pos
            if length < min_points:
                continue
            if used[pos:stop].sum() > length * MAX_CLAIMED_FRACTION:
                continue

            fit = evaluate_window(prices[pos:stop], total_points, multipliers)
            if fit is None:
                continue
            if best is None or fit.score > best[2].score:
                best = (pos, stop - 1, fit)
    return best


def _channel_frame(df: pd.DataFrame, start: int, end: int, fit: _WindowFit, band_count: int) -> pd.DataFrame:
    data = df.iloc[start:end + 1].copy()
    prices = data["Close"].to_numpy(dtype=float)
    n = len(prices)
    center = fit.slope * np.arange(n) + fit.intercept
    half = fit.multiplier * fit.std_dev

    data["Center"] = center
    data["Upper"] = center + half
    data["Lower"] = center - half
    data["StdDev"] = fit.std_dev

    names = band_columns(band_count)
    if names:
        volumes = data["Volume"].to_numpy(dtype=float) if "Volume" in data.columns else np.zeros(n)
        offsets = volume_weighted_levels(prices - center, volumes, -half, half, band_count)
        for name, offset in zip(names, offsets):
            data[name] = center + offset
    return data


def find_channels(
    df: pd.DataFrame,
    min_ratio: float = DEFAULT_MIN_RATIO,
    max_ratio: float = DEFAULT_MAX_RATIO,
    starting_multiplier: float = DEFAULT_STD_MULTIPLIER,
    max_channels: int = DEFAULT_MAX_CHANNELS,
    band_count: int = DEFAULT_BAND_COUNT,
    cancel_event: Optional[threading.Event] = None,
) -> List[ChannelCandidate]:
    """Detect up to max_channels non-overlapping regression channels.

    Args:
        df: Series frame with Close (and optionally Volume).
        min_ratio: Shortest channel as a fraction of the series (floored
            at DETECTOR_MIN_POINTS bars).
        max_ratio: Longest channel as a fraction of the series.
        starting_multiplier: Initial best multiplier; every window sweeps
            the full multiplier grid and replaces it.
        max_channels: Iteration limit.
        band_count: Zones per channel (band_count − 1 interior levels).
        cancel_event: Checked once per sampled lookback.

    Returns:
        ChannelCandidates sorted by start_idx.  Empty for an empty or too
        short series.
    """
    if df is None or len(df) == 0:
        return []

    prices = df["Close"].to_numpy(dtype=float)
    total = len(prices)
    min_points = max(DETECTOR_MIN_POINTS, int(total * min_ratio))
    max_points = int(total * max_ratio)
    if total < min_points or np.isnan(prices).any():
        logger.debug("Series of %d bars cannot hold a %d-bar channel", total, min_points)
        return []

    multipliers = multiplier_grid()
    logger.debug(
        "Detecting channels in %d bars (starting multiplier %s, sweep %.1f-%.1f)",
        total, starting_multiplier, multipliers[0], multipliers[-1],
    )
    used = np.zeros(total, dtype=bool)
    ranges: List[Tuple[int, int]] = [(0, total - 1)]
    channels: List[ChannelCandidate] = []

    for _ in range(max_channels):
        if not ranges:
            break

        best = None
        best_range = -1
        for idx, (r_start, r_end) in enumerate(ranges):
            found = _best_in_range(
                prices, used, r_start, r_end, min_points, max_points, multipliers, cancel_event,
            )
            if found is not None and (best is None or found[2].score > best[2].score):
                best = found
                best_range = idx

        if best is None or best[2].score < MIN_CHANNEL_SCORE:
            break

        start, end, fit = best
        lookback = end - start + 1
        channels.append(ChannelCandidate(
            start_idx=start,
            end_idx=end,
            lookback=lookback,
            slope=fit.slope,
            intercept=fit.intercept,
            std_dev=fit.std_dev,
            std_multiplier=fit.multiplier,
            coverage=fit.coverage,
            center_proximity=fit.center_proximity,
            touches_upper=fit.touches_upper,
            touches_lower=fit.touches_lower,
            score=fit.score,
            data=_channel_frame(df, start, end, fit, band_count),
        ))
        logger.debug(
            "Channel #%d: bars %d-%d, multiplier=%.1f, coverage=%.2f, score=%.3f",
            len(channels), start, end, fit.multiplier, fit.coverage, fit.score,
        )

        buffer = int(lookback * OVERLAP_BUFFER_PCT)
        used[start + buffer:end - buffer + 1] = True

        r_start, r_end = ranges[best_range]
        remaining = []
        if start - r_start >= min_points * MIN_RANGE_FRACTION:
            remaining.append((r_start, start - 1))
        if r_end - end >= min_points * MIN_RANGE_FRACTION:
            remaining.append((end + 1, r_end))
        ranges[best_range:best_range + 1] = remaining

    channels.sort(key=lambda c: c.start_idx)
    return channels
