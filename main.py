#!/usr/bin/env python3
"""Regression price-channel analysis of a local price/volume series.

Usage:
    python main.py --csv AAPL.csv --period 1Y --find-optimal --channels
    python main.py --csv AAPL.csv --benchmark SPY.csv --period 6M --verbose
    python main.py --csv TSLA.csv --lookback 120 --multiplier 2 --sma-sweep
"""

import argparse
import logging

from config import (
    DEFAULT_BAND_COUNT,
    DEFAULT_CHANNEL_LOOKBACK,
    DEFAULT_CHART_PERIOD,
    DEFAULT_MAX_CHANNELS,
    DEFAULT_MAX_RATIO,
    DEFAULT_MIN_RATIO,
    DEFAULT_PRICE_SOURCE,
    DEFAULT_PROXIMITY_THRESHOLD,
    DEFAULT_SMA_PERIOD,
    DEFAULT_STD_MULTIPLIER,
    DEFAULT_VOLUME_BINS,
    PERIOD_DAYS,
    PRICE_SOURCES,
)
from channel_builder import build_sliding_channel, build_static_channel
from channel_detector import find_channels
from grid_search import find_optimal_channels, summarize
from indicators import (
    annotate,
    indicator_summary,
    optimize_sma_period,
    period_window,
    touch_smoothing_period,
)
from logging_setup import configure_logging
from series_loader import load_series
from volume_profile import analyze_confluence, build_volume_profile, zone_volume_distribution


def parse_args(argv=None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Regression price-channel detection and optimization")
    p.add_argument("--csv", required=True, help="CSV with Date, Close (or Price), Volume[, Open, High, Low]")
    p.add_argument("--benchmark", default=None, help="Benchmark CSV for VSPY (e.g. SPY)")
    p.add_argument("--period", default=DEFAULT_CHART_PERIOD, choices=sorted(PERIOD_DAYS),
                   help="Chart period; sizes the analysed window, RVI N and touch smoothing")
    p.add_argument("--lookback", type=int, default=DEFAULT_CHANNEL_LOOKBACK, help="Static/sliding channel lookback")
    p.add_argument("--multiplier", type=float, default=DEFAULT_STD_MULTIPLIER, help="Std-dev multiplier")
    p.add_argument("--bands", type=int, default=DEFAULT_BAND_COUNT, help="Zones between channel bounds")
    p.add_argument("--bins", type=int, default=DEFAULT_VOLUME_BINS, help="Volume profile bins")
    p.add_argument("--proximity", type=float, default=DEFAULT_PROXIMITY_THRESHOLD,
                   help="Confluence proximity (fraction of price)")
    p.add_argument("--price-source", default=DEFAULT_PRICE_SOURCE, choices=PRICE_SOURCES,
                   help="Price used by the sliding channel")
    p.add_argument("--sma", type=int, default=DEFAULT_SMA_PERIOD, help="SMA overlay period")
    p.add_argument("--min-ratio", type=float, default=DEFAULT_MIN_RATIO, help="Shortest channel (fraction of bars)")
    p.add_argument("--max-ratio", type=float, default=DEFAULT_MAX_RATIO, help="Longest channel (fraction of bars)")
    p.add_argument("--max-channels", type=int, default=DEFAULT_MAX_CHANNELS, help="Maximum detected channels")
    p.add_argument("--find-optimal", action="store_true", help="Run the two-phase channel optimizer")
    p.add_argument("--channels", action="store_true", help="Run multi-channel detection")
    p.add_argument("--sma-sweep", action="store_true", help="Find the SMA period with the best turning-point gain")
    p.add_argument("--verbose", action="store_true", help="Debug logging")
    p.add_argument("--log-file", default=None, help="Also write logs to this file")
    return p.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    configure_logging(level=logging.DEBUG if args.verbose else logging.INFO, log_file=args.log_file)

    # Step 1: Load data
    df = load_series(args.csv)
    benchmark = load_series(args.benchmark) if args.benchmark else None
    print(f"Loaded {len(df)} bars from {df.index[0]} to {df.index[-1]}")
    df = period_window(df, args.period)
    print(f"Analyzing the last {len(df)} bars ({args.period})")

    # Step 2: Indicators
    annotated = annotate(df, args.period, benchmark, args.sma)
    latest = indicator_summary(annotated)
    print("  Latest: " + ", ".join(f"{k}={v:.3f}" for k, v in latest.items()))

    # Step 3: Static channel + volume profile confluence
    static = build_static_channel(df, args.lookback, args.multiplier, band_count=args.bands)
    profile = build_volume_profile(df, args.bins)
    if profile is not None:
        print(f"  POC: {profile.poc.price_level:.2f}  HVNs: {len(profile.hvns)}  LVNs: {len(profile.lvns)}")
        confluence = analyze_confluence(static, profile, args.proximity)
        last = confluence.iloc[-1]
        print(f"  Static channel bounds: upper={last['UpperBoundState']} lower={last['LowerBoundState']}")
    else:
        print("  Volume profile: flat price range")

    zones = zone_volume_distribution(static, args.bands)
    if zones:
        print("  Volume by zone: " + " ".join(f"{z}:{pct:.0f}%" for z, pct in zones.items()))

    sliding = build_sliding_channel(df, args.lookback, args.multiplier, args.price_source, args.bands)
    if sliding["Center"].notna().any():
        row = sliding.iloc[-1]
        print(f"  Sliding channel: center={row['Center']:.2f} [{row['Lower']:.2f}, {row['Upper']:.2f}]")

    # Step 4: Find optimal
    if args.find_optimal:
        report = find_optimal_channels(df, sma_period=touch_smoothing_period(args.period))
        print("\n  Optimal channel (full series):")
        for line in summarize(report.full):
            print(line)
        print(f"  Optimal channel (last {report.recent_points} bars):")
        for line in summarize(report.recent):
            print(line)

    # Step 5: Multi-channel detection
    if args.channels:
        channels = find_channels(
            df, args.min_ratio, args.max_ratio, args.multiplier, args.max_channels, args.bands,
        )
        print(f"\n  Channels: {len(channels)}")
        for i, ch in enumerate(channels):
            print(f"    #{i+1}: bars {ch.start_idx}-{ch.end_idx} ({df.index[ch.start_idx]} to "
                  f"{df.index[ch.end_idx]}), x{ch.std_multiplier:.1f}, coverage={ch.coverage:.2f}, "
                  f"score={ch.score:.3f}")

    # Step 6: SMA sweep
    if args.sma_sweep:
        best = optimize_sma_period(df)
        if best is None:
            print("\n  SMA sweep: not enough data")
        else:
            print(f"\n  Best SMA period: {best.period} ({best.total_gain_pct:.1f}% over {best.trade_count} trades)")


if __name__ == "__main__":
    main()
