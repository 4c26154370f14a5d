"""Normalise an already-fetched price/volume series into the engine's frame.

The engine works on a DataFrame with a DatetimeIndex (oldest first) and
columns [Close, Volume] plus optional [Open, High, Low].  Sources may be a
CSV file, another DataFrame with loosely named columns, or a list of point
records such as {"date": ..., "price": ..., "volume": ...}.
"""

import logging
from typing import Iterable, Mapping

import pandas as pd

logger = logging.getLogger(__name__)

# Accepted spellings (lower-cased) for each engine column.
COLUMN_ALIASES = {
    "Close": ("close", "price", "adj close", "adj_close", "adjclose"),
    "Volume": ("volume", "vol"),
    "Open": ("open",),
    "High": ("high",),
    "Low": ("low",),
}
DATE_ALIASES = ("date", "datetime", "timestamp", "time")

OPTIONAL = ["Open", "High", "Low"]


def _rename_columns(df: pd.DataFrame) -> pd.DataFrame:
    lookup = {str(c).strip().lower(): c for c in df.columns}
    mapping = {}
    for target, aliases in COLUMN_ALIASES.items():
        if target in df.columns:
            continue
        for alias in aliases:
            if alias in lookup:
                mapping[lookup[alias]] = target
                break
    return df.rename(columns=mapping)


def _set_date_index(df: pd.DataFrame) -> pd.DataFrame:
    if isinstance(df.index, pd.DatetimeIndex):
        return df
    lookup = {str(c).strip().lower(): c for c in df.columns}
    for alias in DATE_ALIASES:
        if alias in lookup:
            col = lookup[alias]
            df = df.copy()
            df[col] = pd.to_datetime(df[col])
            return df.set_index(col)
    return df


def normalize_series(df: pd.DataFrame) -> pd.DataFrame:
    """Return a clean engine frame built from df.

    Raises:
        ValueError: If df is empty, has no price column, or no row has a
            price.
    """
    if df is None or df.empty:
        raise ValueError("Empty price series")

    # yfinance-style MultiIndex columns from single-ticker downloads
    if isinstance(df.columns, pd.MultiIndex):
        df = df.droplevel(-1, axis=1)

    df = _set_date_index(_rename_columns(df))
    if "Close" not in df.columns:
        raise ValueError(f"No price column found in {list(df.columns)}")

    if "Volume" not in df.columns:
        logger.debug("No volume column, assuming zero volume")
        df = df.assign(Volume=0.0)

    columns = ["Close", "Volume"] + [c for c in OPTIONAL if c in df.columns]
    out = df[columns].apply(pd.to_numeric, errors="coerce")
    out = out.dropna(subset=["Close"])
    out["Volume"] = out["Volume"].fillna(0.0).clip(lower=0.0)
    out = out.sort_index()

    if out.empty:
        raise ValueError("All rows were missing a price")

    return out


def series_from_records(records: Iterable[Mapping]) -> pd.DataFrame:
    """Build an engine frame from point records (date / price / volume ...)."""
    return normalize_series(pd.DataFrame(list(records)))


def load_series(path: str) -> pd.DataFrame:
    """Read a CSV export (Date, Close/Price, Volume, optional OHLC).

    Raises:
        ValueError: If the file holds no usable price rows.
    """
    df = pd.read_csv(path)
    logger.debug("Read %d rows from %s", len(df), path)
    return normalize_series(df)
