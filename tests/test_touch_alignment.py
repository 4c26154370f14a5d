import unittest

import numpy as np

from helpers import make_series, noisy_series
from regression import fit_line, residuals
from touch_alignment import compute_alignment, smooth_prices, turning_points


def _zigzag(n=50):
    return np.array([100.0 + (1.0 if i % 2 == 0 else -1.0) for i in range(n)])


class TestComputeAlignment(unittest.TestCase):
    def test_channel_centred_between_extremes(self):
        df = noisy_series(n=90, seed=5)
        result = compute_alignment(df, lookback=60, end_offset=10, sma_period=3)

        window = df["Close"].to_numpy()[20:80]
        reg = fit_line(window)
        res = residuals(window, reg.slope, reg.intercept)
        upper_gap = res.max() - result.intercept_shift
        lower_gap = res.min() - result.intercept_shift

        self.assertAlmostEqual(upper_gap, -lower_gap, places=9)
        self.assertAlmostEqual(result.extreme_magnitude, upper_gap, places=9)
        self.assertAlmostEqual(result.slope, reg.slope)
        self.assertEqual(result.total_points, 60)

    def test_delta_and_coverage(self):
        df = noisy_series(n=70, seed=9)
        result = compute_alignment(df, lookback=None)

        self.assertAlmostEqual(result.optimal_delta, result.extreme_magnitude / result.std_dev)
        self.assertEqual(result.coverage_count, result.total_points)

    def test_boundary_touches_detected(self):
        prices = _zigzag()
        prices[1] = 90.0
        prices[48] = 99.0
        prices[49] = 110.0
        result = compute_alignment(make_series(prices), lookback=50, sma_period=1)

        self.assertTrue(result.touches_upper)
        self.assertTrue(result.touches_lower)

    def test_interior_spikes_are_not_touches(self):
        prices = _zigzag()
        prices[23] = 99.0
        prices[24] = 110.0
        prices[25] = 101.0
        prices[26] = 90.0
        result = compute_alignment(make_series(prices), lookback=50, sma_period=1)

        self.assertFalse(result.touches_upper)
        self.assertFalse(result.touches_lower)

    def test_flat_window_touches_both(self):
        result = compute_alignment(make_series([5.0] * 10), lookback=10)
        self.assertEqual(result.std_dev, 0.0)
        self.assertEqual(result.optimal_delta, 0.0)
        self.assertTrue(result.touches_upper and result.touches_lower)
        self.assertEqual(result.coverage_count, 10)

    def test_too_short(self):
        self.assertIsNone(compute_alignment(make_series([1.0]), lookback=5))
        self.assertIsNone(compute_alignment(make_series([1.0, 2.0, 3.0]), lookback=1))


class TestHelpers(unittest.TestCase):
    def test_smooth_prices(self):
        out = smooth_prices(np.array([1.0, 2.0, 3.0, 4.0]), 2)
        np.testing.assert_allclose(out, [1.0, 1.5, 2.5, 3.5])
        np.testing.assert_allclose(smooth_prices(np.array([1.0, 2.0]), 1), [1.0, 2.0])

    def test_turning_points(self):
        self.assertEqual(turning_points(np.array([1.0, -1.0, -2.0, 0.5, 0.0, 0.0, 3.0])), [1, 3, 4, 6])


if __name__ == "__main__":
    unittest.main()
