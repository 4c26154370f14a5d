"""Volume-at-price decomposition and channel/profile confluence.

The profile splits the close-price range into equal-width bins and
accumulates every bar's volume into the bin holding its close:
  - POC: the bin with the most volume (first one on ties)
  - HVN: bins with volume > mean + 1σ of bin volumes
  - LVN: bins with 0 < volume < mean − 1σ

Confluence tags each channel bound as "strong" (near the POC or an HVN),
"weak" (near an LVN) or "neutral".
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from config import (
    DEFAULT_BAND_COUNT,
    DEFAULT_PROXIMITY_THRESHOLD,
    DEFAULT_VOLUME_BINS,
    DEFAULT_VOLUME_SLOTS,
)
from channel_builder import band_columns

logger = logging.getLogger(__name__)

STRONG = "strong"
WEAK = "weak"
NEUTRAL = "neutral"


@dataclass(frozen=True)
class VolumeBin:
    price_min: float
    price_max: float
    price_level: float
    volume: float


@dataclass(frozen=True)
class VolumeProfile:
    bins: List[VolumeBin]
    poc: VolumeBin
    hvns: List[VolumeBin]
    lvns: List[VolumeBin]
    avg_volume: float
    std_dev_volume: float
    min_price: float
    max_price: float
    total_volume: float = field(default=0.0)


def _bin_volumes(prices: np.ndarray, volumes: np.ndarray, lo: float, size: float, count: int) -> np.ndarray:
    idx = np.floor((prices - lo) / size).astype(int)
    idx = np.clip(idx, 0, count - 1)
    return np.bincount(idx, weights=volumes, minlength=count).astype(float)


def _clean(df: pd.DataFrame):
    prices = df["Close"].to_numpy(dtype=float)
    volumes = df["Volume"].to_numpy(dtype=float) if "Volume" in df.columns else np.zeros(len(df))
    volumes = np.nan_to_num(volumes, nan=0.0)
    keep = ~np.isnan(prices)
    return prices[keep], volumes[keep]


def build_volume_profile(df: pd.DataFrame, bin_count: int = DEFAULT_VOLUME_BINS) -> Optional[VolumeProfile]:
    """Aggregate traded volume by price level.

    Args:
        df: Series frame with Close and Volume columns.
        bin_count: Number of equal-width price bins.

    Returns:
        VolumeProfile, or None for an empty series, a non-positive bin
        count or a flat price range.
    """
    if df is None or len(df) == 0 or bin_count < 1:
        return None

    prices, volumes = _clean(df)
    if len(prices) == 0:
        return None

    min_price = float(prices.min())
    max_price = float(prices.max())
    price_range = max_price - min_price
    if price_range == 0:
        logger.debug("Flat price range at %.4f, no volume profile", min_price)
        return None

    bin_size = price_range / bin_count
    hist = _bin_volumes(prices, volumes, min_price, bin_size, bin_count)

    bins = [
        VolumeBin(
            price_min=min_price + i * bin_size,
            price_max=min_price + (i + 1) * bin_size,
            price_level=min_price + (i + 0.5) * bin_size,
            volume=float(hist[i]),
        )
        for i in range(bin_count)
    ]

    avg_volume = float(hist.sum() / bin_count)
    std_dev_volume = float(np.sqrt(np.mean((hist - avg_volume) ** 2)))

    hvn_threshold = avg_volume + std_dev_volume
    lvn_threshold = avg_volume - std_dev_volume

    return VolumeProfile(
        bins=bins,
        poc=bins[int(np.argmax(hist))],
        hvns=[b for b in bins if b.volume > hvn_threshold],
        lvns=[b for b in bins if 0 < b.volume < lvn_threshold],
        avg_volume=avg_volume,
        std_dev_volume=std_dev_volume,
        min_price=min_price,
        max_price=max_price,
        total_volume=float(volumes.sum()),
    )


def _bound_state(price: float, profile: VolumeProfile, proximity_threshold: float) -> str:
    if np.isnan(price):
        return NEUTRAL
    threshold = price * proximity_threshold

    if abs(price - profile.poc.price_level) < threshold:
        return STRONG
    for hvn in profile.hvns:
        if abs(price - hvn.price_level) < threshold:
            return STRONG
    for lvn in profile.lvns:
        if abs(price - lvn.price_level) < threshold:
            return WEAK
    return NEUTRAL


def analyze_confluence(
    channel_df: pd.DataFrame,
    profile: Optional[VolumeProfile],
    proximity_threshold: float = DEFAULT_PROXIMITY_THRESHOLD,
    upper_col: str = "Upper",
    lower_col: str = "Lower",
) -> pd.DataFrame:
    """Add UpperBoundState / LowerBoundState columns to a channel frame.

    Rows whose bounds are NaN, or every row when there is no profile, are
    tagged neutral.
    """
    out = channel_df.copy()
    n = len(out)
    if profile is None or upper_col not in out.columns or lower_col not in out.columns:
        out["UpperBoundState"] = [NEUTRAL] * n
        out["LowerBoundState"] = [NEUTRAL] * n
        return out

    upper = out[upper_col].to_numpy(dtype=float)
    lower = out[lower_col].to_numpy(dtype=float)
    upper_states = []
    lower_states = []
    for u, lo in zip(upper, lower):
        if np.isnan(u) or np.isnan(lo):
            upper_states.append(NEUTRAL)
            lower_states.append(NEUTRAL)
            continue
        upper_states.append(_bound_state(u, profile, proximity_threshold))
        lower_states.append(_bound_state(lo, profile, proximity_threshold))

    out["UpperBoundState"] = upper_states
    out["LowerBoundState"] = lower_states
    return out


def zone_volume_distribution(
    channel_df: pd.DataFrame,
    band_count: int = DEFAULT_BAND_COUNT,
    upper_col: str = "Upper",
    lower_col: str = "Lower",
) -> Dict[int, float]:
    """Percentage of traded volume that printed inside each channel zone.

    Zone z lies between boundary z and z + 1 of
    [Lower, Band_1, ..., Band_(K-1), Upper].  When a row lacks some band
    levels the channel is split evenly instead.  Bars outside the channel,
    without a channel, or without volume are ignored.
    """
    names = [n for n in band_columns(band_count) if n in channel_df.columns]
    zone_volumes: Dict[int, float] = {}
    total = 0.0

    for _, row in channel_df.iterrows():
        price = row.get("Close")
        volume = row.get("Volume", 0.0)
        lower = row.get(lower_col)
        upper = row.get(upper_col)
        if price is None or pd.isna(price) or not volume or pd.isna(volume):
            continue
        if lower is None or upper is None or pd.isna(lower) or pd.isna(upper):
            continue

        levels = [row[n] for n in names if not pd.isna(row[n])]
        boundaries = [lower] + levels + [upper]

        zone = -1
        if len(boundaries) != band_count + 1:
            width = upper - lower
            if width <= 0:
                continue
            zone = int(np.floor((price - lower) / width * band_count))
            zone = max(0, min(band_count - 1, zone))
        else:
            for z in range(band_count):
                if boundaries[z] <= price <= boundaries[z + 1]:
                    zone = z
                    break
        if zone < 0:
            continue

        zone_volumes[zone] = zone_volumes.get(zone, 0.0) + float(volume)
        total += float(volume)

    if total <= 0:
        return {}
    return {z: v / total * 100.0 for z, v in sorted(zone_volumes.items())}


def volume_bar_levels(df: pd.DataFrame, slot_count: int = DEFAULT_VOLUME_SLOTS) -> List[dict]:
    """Coarse volume histogram with per-slot intensity in [0, 1].

    Returns an empty list for an empty or flat series, or when no volume
    traded at all.
    """
    if df is None or len(df) == 0 or slot_count < 1:
        return []

    prices, volumes = _clean(df)
    if len(prices) == 0:
        return []
    lo, hi = float(prices.min()), float(prices.max())
    if hi == lo:
        return []

    size = (hi - lo) / slot_count
    hist = _bin_volumes(prices, volumes, lo, size, slot_count)
    peak = hist.max()
    if peak == 0:
        return []

    return [
        {
            "price_level": lo + (i + 0.5) * size,
            "price_min": lo + i * size,
            "price_max": lo + (i + 1) * size,
            "volume": float(hist[i]),
            "intensity": float(hist[i] / peak),
        }
        for i in range(slot_count)
    ]
