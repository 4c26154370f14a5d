"""Auxiliary per-bar indicators used to colour and annotate channels.

  RVI   - relative volume: mean volume of the last N bars over the mean of
          the last 5N bars (N from the chart period)
  VSPY  - relative performance against a benchmark, both measured on a
          3-bar moving average over N bars
  SMA   - simple moving average, its slope, slope-flip turning points and
          the bottom→peak gain they capture, with a brute-force period sweep
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from config import (
    DEFAULT_PERIOD_DAYS,
    DEFAULT_RVI_N,
    DEFAULT_TOUCH_SMOOTHING_SMA,
    PERIOD_DAYS,
    RVI_LONG_FACTOR,
    RVI_N,
    SMA_SWEEP_MAX,
    SMA_SWEEP_MIN,
    TOUCH_SMOOTHING_SMA,
    VSPY_FLAT_BENCHMARK,
    VSPY_MA_WINDOW,
    VSPY_MATERIAL_MOVE,
    VSPY_MAX,
    VSPY_MIN,
    VSPY_OUTPERFORM,
    VSPY_UNDERPERFORM,
)

logger = logging.getLogger(__name__)


# ──────────────────────────────────────────────────────────────────────
# Chart-period lookups
# ──────────────────────────────────────────────────────────────────────

def period_days(period: str) -> int:
    return PERIOD_DAYS.get(period, DEFAULT_PERIOD_DAYS)


def period_window(df: pd.DataFrame, period: str) -> pd.DataFrame:
    """The most recent period_days(period) bars of df (all of df when shorter)."""
    return df.iloc[-period_days(period):]


def rvi_n(period: str) -> int:
    return RVI_N.get(period, DEFAULT_RVI_N)


def touch_smoothing_period(period: str) -> int:
    return TOUCH_SMOOTHING_SMA.get(period, DEFAULT_TOUCH_SMOOTHING_SMA)


# ──────────────────────────────────────────────────────────────────────
# RVI / VSPY
# ──────────────────────────────────────────────────────────────────────

def rvi(df: pd.DataFrame, period: str) -> pd.Series:
    """Relative Volume Index per bar.

    Bars before index 5N − 1 (not enough history) and bars whose long
    average is zero get the neutral value 1.
    """
    n = rvi_n(period)
    long_window = n * RVI_LONG_FACTOR
    volume = df["Volume"].astype(float).fillna(0.0)

    short_avg = volume.rolling(window=n, min_periods=n).mean()
    long_avg = volume.rolling(window=long_window, min_periods=long_window).mean()

    ratio = short_avg / long_avg.where(long_avg > 0)
    return ratio.fillna(1.0).rename("RVI")


def three_day_ma(df: pd.DataFrame) -> pd.Series:
    """3-bar moving average of Close; the first bars keep their own price."""
    close = df["Close"].astype(float)
    ma = close.rolling(window=VSPY_MA_WINDOW, min_periods=VSPY_MA_WINDOW).mean()
    return ma.fillna(close).rename("MA3")


def _day_keys(index) -> List:
    return [pd.Timestamp(ts).normalize() for ts in index]


def _pct_change(current: float, past: float) -> float:
    return (current - past) / past if past > 0 else 0.0


def vspy(df: pd.DataFrame, benchmark: Optional[pd.DataFrame], period: str) -> pd.Series:
    """Relative performance vs a benchmark on 3-bar moving averages.

    For bar i >= N: (N-bar % change of own MA3) / (N-bar % change of the
    benchmark MA3 on the same dates), clamped to [VSPY_MIN, VSPY_MAX].
    A benchmark without a matching date yields 1.  A flat benchmark yields
    VSPY_OUTPERFORM / VSPY_UNDERPERFORM when the own move is material,
    otherwise 1.
    """
    if df is None or len(df) == 0:
        return pd.Series(dtype=float, name="VSPY")
    if benchmark is None or len(benchmark) == 0:
        return pd.Series(1.0, index=df.index, name="VSPY")

    n = rvi_n(period)
    own_ma = three_day_ma(df).to_numpy()
    bench_ma = dict(zip(_day_keys(benchmark.index), three_day_ma(benchmark).to_numpy()))
    keys = _day_keys(df.index)

    values = np.ones(len(df))
    missing = 0
    for i in range(n, len(df)):
        own_change = _pct_change(own_ma[i], own_ma[i - n])

        bench_now = bench_ma.get(keys[i])
        bench_then = bench_ma.get(keys[i - n])
        if bench_now is None or bench_then is None:
            missing += 1
            continue

        bench_change = _pct_change(bench_now, bench_then)
        if abs(bench_change) > VSPY_FLAT_BENCHMARK:
            values[i] = min(VSPY_MAX, max(VSPY_MIN, own_change / bench_change))
        elif own_change > VSPY_MATERIAL_MOVE:
            values[i] = VSPY_OUTPERFORM
        elif own_change < -VSPY_MATERIAL_MOVE:
            values[i] = VSPY_UNDERPERFORM

    if missing:
        logger.debug("VSPY: %d bars without benchmark data defaulted to 1", missing)
    return pd.Series(values, index=df.index, name="VSPY")


# ──────────────────────────────────────────────────────────────────────
# SMA turning points
# ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class TurningPoint:
    index: int
    date: datetime
    kind: str  # "bottom" or "peak"
    price: float


@dataclass(frozen=True)
class SmaGainResult:
    period: int
    total_gain_pct: float
    trade_count: int
    turning_points: List[TurningPoint] = field(default_factory=list, repr=False)


def sma_with_slope(df: pd.DataFrame, period: int) -> pd.DataFrame:
    """SMA (NaN before period bars) and SMASlope (SMA[i] − SMA[i − 1])."""
    close = df["Close"].astype(float)
    sma = close.rolling(window=period, min_periods=period).mean()
    return pd.DataFrame({"SMA": sma, "SMASlope": sma.diff()}, index=df.index)


def sma_turning_points(df: pd.DataFrame, period: int) -> List[TurningPoint]:
    """Bars where the SMA slope changes sign.

    − → + marks a bottom, + → − a peak.  Flat stretches (slope 0) keep the
    last non-zero sign.
    """
    if period < 1 or len(df) <= period:
        return []

    slope = sma_with_slope(df, period)["SMASlope"].to_numpy()
    close = df["Close"].to_numpy(dtype=float)
    points = []
    prev_sign = 0
    for i, s in enumerate(slope):
        if np.isnan(s) or s == 0:
            continue
        sign = 1 if s > 0 else -1
        if prev_sign and sign != prev_sign:
            kind = "bottom" if sign > 0 else "peak"
            points.append(TurningPoint(index=i, date=df.index[i], kind=kind, price=float(close[i])))
        prev_sign = sign
    return points


def sma_gain(df: pd.DataFrame, period: int) -> SmaGainResult:
    """Total % gain from buying every bottom and selling at the next peak."""
    points = sma_turning_points(df, period)
    total = 0.0
    trades = 0
    entry = None
    for tp in points:
        if tp.kind == "bottom":
            entry = tp
        elif entry is not None:
            if entry.price > 0:
                total += (tp.price - entry.price) / entry.price * 100.0
                trades += 1
            entry = None
    return SmaGainResult(period=period, total_gain_pct=total, trade_count=trades, turning_points=points)


def optimize_sma_period(
    df: pd.DataFrame,
    min_period: int = SMA_SWEEP_MIN,
    max_period: int = SMA_SWEEP_MAX,
) -> Optional[SmaGainResult]:
    """Brute-force sweep for the SMA period with the highest total gain.

    One full pass per period; periods that leave no slope values are
    skipped.  Ties keep the shorter period.  None when no period fits.
    """
    if df is None:
        return None
    best = None
    for period in range(min_period, max_period + 1):
        if period >= len(df):
            break
        result = sma_gain(df, period)
        if best is None or result.total_gain_pct > best.total_gain_pct:
            best = result
    if best is not None:
        logger.debug("Best SMA period %d: %.2f%% over %d trades", best.period, best.total_gain_pct, best.trade_count)
    return best


def annotate(df: pd.DataFrame, period: str, benchmark: Optional[pd.DataFrame] = None,
             sma_period: Optional[int] = None) -> pd.DataFrame:
    """Copy of df with RVI, VSPY and (optionally) SMA / SMASlope columns."""
    out = df.copy()
    out["RVI"] = rvi(df, period)
    out["VSPY"] = vspy(df, benchmark, period)
    if sma_period:
        sma = sma_with_slope(df, sma_period)
        out["SMA"] = sma["SMA"]
        out["SMASlope"] = sma["SMASlope"]
    return out


def indicator_summary(df: pd.DataFrame) -> Dict[str, float]:
    """Latest values of the annotated indicator columns."""
    summary = {}
    for col in ("RVI", "VSPY", "SMA", "SMASlope"):
        if col in df.columns and len(df):
            summary[col] = float(df[col].iloc[-1])
    return summary
