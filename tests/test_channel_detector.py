import threading
import unittest

import numpy as np

from channel_builder import band_columns
from channel_detector import evaluate_window, find_channels, multiplier_grid
from helpers import linear_series, make_series, sine_series
from optimizer_runner import SearchCancelled


def _three_trends(seed=3):
    rng = np.random.default_rng(seed)
    up = 100.0 + 0.4 * np.arange(100)
    down = up[-1] - 0.3 * np.arange(1, 101)
    flat = np.full(100, down[-1])
    prices = np.concatenate([up, down, flat]) + rng.normal(0.0, 0.8, 300)
    return make_series(prices, rng.integers(500_000, 2_000_000, 300))


class TestFindChannels(unittest.TestCase):
    def test_exact_line_is_one_channel(self):
        df = linear_series(n=100)
        channels = find_channels(df, max_ratio=1.0)

        self.assertEqual(len(channels), 1)
        ch = channels[0]
        self.assertEqual(ch.start_idx, 0)
        self.assertEqual(ch.lookback, 98)
        self.assertEqual(ch.std_dev, 0.0)
        self.assertEqual(ch.coverage, 1.0)
        self.assertFalse(ch.touches_upper or ch.touches_lower)
        self.assertEqual(ch.std_multiplier, 1.0)

    def test_channels_are_disjoint_and_sorted(self):
        channels = find_channels(_three_trends())

        self.assertGreaterEqual(len(channels), 1)
        for a, b in zip(channels, channels[1:]):
            self.assertLess(a.start_idx, b.start_idx)
            self.assertGreater(b.start_idx, a.end_idx)
        for ch in channels:
            self.assertGreaterEqual(ch.score, 0.15)
            self.assertEqual(ch.lookback, ch.end_idx - ch.start_idx + 1)
            self.assertLessEqual(ch.lookback, 150)
            self.assertGreaterEqual(ch.lookback, 15)

    def test_oscillating_trend_is_covered(self):
        df = sine_series(n=300, period=40)
        channels = find_channels(df)

        self.assertGreaterEqual(len(channels), 2)
        self.assertLessEqual(len(channels), 4)
        covered = np.zeros(len(df), dtype=bool)
        for ch in channels:
            covered[ch.start_idx:ch.end_idx + 1] = True
        self.assertGreater(covered.mean(), 0.8)

    def test_channel_frame(self):
        df = _three_trends()
        ch = find_channels(df, band_count=5)[0]
        data = ch.data

        self.assertTrue(data.index.equals(df.index[ch.start_idx:ch.end_idx + 1]))
        for col in ["Center", "Upper", "Lower", "StdDev"] + band_columns(5):
            self.assertIn(col, data.columns)
            self.assertFalse(data[col].isna().any())
        half = ch.std_multiplier * ch.std_dev
        np.testing.assert_allclose(data["Upper"] - data["Center"], half)
        for b in band_columns(5):
            self.assertTrue((data[b] >= data["Lower"] - 1e-9).all())
            self.assertTrue((data[b] <= data["Upper"] + 1e-9).all())

    def test_max_channels(self):
        self.assertLessEqual(len(find_channels(_three_trends(), max_channels=1)), 1)

    def test_unusable_input(self):
        self.assertEqual(find_channels(make_series([])), [])
        self.assertEqual(find_channels(make_series([1.0, 2.0, 3.0, 4.0, 5.0])), [])
        prices = np.linspace(10.0, 20.0, 50)
        prices[10] = np.nan
        self.assertEqual(find_channels(make_series(prices)), [])

    def test_cancellation(self):
        event = threading.Event()
        event.set()
        with self.assertRaises(SearchCancelled):
            find_channels(_three_trends(), cancel_event=event)


class TestScoring(unittest.TestCase):
    def test_multiplier_grid(self):
        np.testing.assert_allclose(multiplier_grid(), [1.0, 1.5, 2.0, 2.5, 3.0, 3.5, 4.0])

    def test_off_grid_starting_multiplier_is_not_swept(self):
        grid = set(multiplier_grid())
        for df in (_three_trends(), sine_series(n=300, period=40)):
            for starting in (1.1, 1.3, 1.7, 2.2, 2.7):
                channels = find_channels(df, starting_multiplier=starting)
                self.assertTrue(channels)
                for ch in channels:
                    self.assertIn(ch.std_multiplier, grid)

    def test_far_from_centre_is_rejected(self):
        # Half the bars sit far from a near-zero centre line.
        window = np.array([1.0, -1.0] * 10)
        self.assertIsNone(evaluate_window(window, 20, multiplier_grid()))

    def test_exact_fit_score(self):
        fit = evaluate_window(50.0 + 0.5 * np.arange(40), 100, multiplier_grid())
        expected = 0.8 * np.log(40) / np.log(100)
        self.assertAlmostEqual(fit.score, expected)
        self.assertEqual(fit.multiplier, 1.0)


if __name__ == "__main__":
    unittest.main()
