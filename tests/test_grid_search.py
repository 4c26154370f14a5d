import threading
import unittest

import numpy as np

from grid_search import (
    apply_optimal_channel,
    find_optimal_channel,
    find_optimal_channels,
    grid_axes,
    summarize,
)
from helpers import make_series, noisy_series
from optimizer_runner import SearchCancelled


class TestGridAxes(unittest.TestCase):
    def test_too_short(self):
        self.assertEqual(grid_axes(19), ([], []))

    def test_small_series_is_exhaustive(self):
        lookbacks, offsets = grid_axes(50)
        self.assertEqual(lookbacks, list(range(20, 51)))
        self.assertEqual(offsets, list(range(0, 11)))

    def test_large_series_is_sampled(self):
        lookbacks, offsets = grid_axes(2000, budget=20_000)

        self.assertEqual(lookbacks[1] - lookbacks[0], 7)
        self.assertEqual(offsets[1] - offsets[0], 7)
        self.assertEqual(lookbacks[-1], 2000)
        self.assertLessEqual(len(lookbacks) * len(offsets), 20_000)


class TestFindOptimalChannel(unittest.TestCase):
    def setUp(self):
        self.df = noisy_series(n=120, seed=21)

    def test_result_within_grid(self):
        result = find_optimal_channel(self.df)

        self.assertIsNotNone(result)
        self.assertGreaterEqual(result.optimal_lookback, 20)
        self.assertLessEqual(result.optimal_end_offset, 120 // 5)
        self.assertLessEqual(result.optimal_lookback + result.optimal_end_offset, 120)
        self.assertGreater(result.optimal_delta, 0.0)
        self.assertGreater(result.max_crosses, 0)
        self.assertEqual(result.coverage_count, result.optimal_lookback)

    def test_too_short_series(self):
        self.assertIsNone(find_optimal_channel(noisy_series(n=15)))
        self.assertIsNone(find_optimal_channel(None))

    def test_applied_channel_contains_window(self):
        result = find_optimal_channel(self.df)
        channel = apply_optimal_channel(self.df, result, band_count=4)

        end = len(self.df) - result.optimal_end_offset
        window = channel.iloc[end - result.optimal_lookback:end]
        self.assertTrue((window["Close"] <= window["Upper"] + 1e-9).all())
        self.assertTrue((window["Close"] >= window["Lower"] - 1e-9).all())
        self.assertEqual(int(channel["Center"].notna().sum()), result.optimal_lookback)

    def test_cancellation(self):
        event = threading.Event()
        event.set()
        with self.assertRaises(SearchCancelled):
            find_optimal_channel(self.df, cancel_event=event)

    def test_summary_lines(self):
        self.assertEqual(summarize(None), ["    (not enough data)"])
        lines = summarize(find_optimal_channel(self.df))
        self.assertEqual(len(lines), 2)
        self.assertIn("lookback=", lines[0])


class TestFindOptimalChannels(unittest.TestCase):
    def test_recent_quarter(self):
        report = find_optimal_channels(noisy_series(n=120, seed=4))

        self.assertEqual(report.recent_points, 30)
        self.assertIsNotNone(report.full)
        self.assertIsNotNone(report.recent)
        self.assertLessEqual(report.recent.optimal_lookback, 30)

    def test_recent_floor(self):
        report = find_optimal_channels(noisy_series(n=50, seed=4))
        self.assertEqual(report.recent_points, 20)
        self.assertLessEqual(report.recent.optimal_lookback + report.recent.optimal_end_offset, 20)

    def test_short_series_has_no_results(self):
        report = find_optimal_channels(make_series(np.arange(10.0)))
        self.assertIsNone(report.full)
        self.assertIsNone(report.recent)
        self.assertEqual(report.recent_points, 10)


if __name__ == "__main__":
    unittest.main()
