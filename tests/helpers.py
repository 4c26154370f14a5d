"""Synthetic price series shared by the tests."""

import numpy as np
import pandas as pd


def make_series(prices, volumes=None, start="2024-01-01", **extra) -> pd.DataFrame:
    prices = np.asarray(prices, dtype=float)
    n = len(prices)
    if volumes is None:
        volumes = np.full(n, 1_000_000.0)
    index = pd.date_range(start, periods=n, freq="B")
    data = {"Close": prices, "Volume": np.asarray(volumes, dtype=float)}
    data.update({k: np.asarray(v, dtype=float) for k, v in extra.items()})
    return pd.DataFrame(data, index=index)


def linear_series(n=100, slope=0.5, intercept=50.0, volume=1_000_000.0) -> pd.DataFrame:
    x = np.arange(n, dtype=float)
    return make_series(intercept + slope * x, np.full(n, volume))


def noisy_series(n=120, seed=7, slope=0.3, intercept=100.0, noise=2.0) -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    x = np.arange(n, dtype=float)
    prices = intercept + slope * x + rng.normal(0.0, noise, n)
    volumes = rng.integers(500_000, 2_000_000, n).astype(float)
    return make_series(prices, volumes)


def sine_series(n=300, period=40, amplitude=5.0, slope=0.2, intercept=100.0) -> pd.DataFrame:
    x = np.arange(n, dtype=float)
    prices = intercept + slope * x + amplitude * np.sin(2 * np.pi * x / period)
    return make_series(prices)
