import unittest

import numpy as np

from helpers import make_series, noisy_series, sine_series
from indicators import (
    annotate,
    indicator_summary,
    optimize_sma_period,
    period_days,
    period_window,
    rvi,
    rvi_n,
    sma_gain,
    sma_turning_points,
    sma_with_slope,
    three_day_ma,
    touch_smoothing_period,
    vspy,
)


def _geometric(rate, n=30, start="2024-01-01"):
    return make_series(100.0 * rate ** np.arange(n), start=start)


class TestLookups(unittest.TestCase):
    def test_known_and_unknown_periods(self):
        self.assertEqual(period_days("1Y"), 252)
        self.assertEqual(period_days("2W"), 30)
        self.assertEqual(rvi_n("5Y"), 20)
        self.assertEqual(rvi_n("2W"), 5)
        self.assertEqual(touch_smoothing_period("6M"), 10)
        self.assertEqual(touch_smoothing_period("1D"), 3)

    def test_period_window(self):
        df = noisy_series(n=120)
        window = period_window(df, "3M")
        self.assertEqual(len(window), 90)
        self.assertEqual(window.index[-1], df.index[-1])
        self.assertEqual(len(period_window(df, "1Y")), 120)


class TestRvi(unittest.TestCase):
    def test_constant_volume_is_neutral(self):
        df = noisy_series(n=60)
        df["Volume"] = 1_000.0
        np.testing.assert_allclose(rvi(df, "3M"), 1.0)

    def test_volume_spike(self):
        volumes = np.full(20, 1_000.0)
        volumes[-3:] = 4_000.0
        out = rvi(make_series(np.linspace(10, 12, 20), volumes), "1M")

        self.assertEqual(out.name, "RVI")
        self.assertTrue((out.iloc[:14] == 1.0).all())
        self.assertAlmostEqual(out.iloc[-1], 2.5)

    def test_zero_volume_is_neutral(self):
        df = make_series(np.linspace(10, 12, 30), np.zeros(30))
        self.assertTrue((rvi(df, "1M") == 1.0).all())


class TestVspy(unittest.TestCase):
    def test_three_day_ma(self):
        ma = three_day_ma(make_series([3.0, 6.0, 9.0, 12.0]))
        np.testing.assert_allclose(ma, [3.0, 6.0, 6.0, 9.0])

    def test_ratio_of_returns(self):
        out = vspy(_geometric(1.02), _geometric(1.01), "3M")
        expected = (1.02 ** 5 - 1) / (1.01 ** 5 - 1)

        np.testing.assert_allclose(out.iloc[7:], expected)
        self.assertTrue((out.iloc[:5] == 1.0).all())

    def test_missing_benchmark_dates(self):
        out = vspy(_geometric(1.02), _geometric(1.01).iloc[:10], "3M")
        self.assertTrue((out.iloc[10:] == 1.0).all())
        self.assertTrue((vspy(_geometric(1.02), None, "3M") == 1.0).all())

    def test_flat_benchmark(self):
        flat = make_series(np.full(30, 50.0))
        self.assertEqual(vspy(_geometric(1.02), flat, "3M").iloc[-1], 3.0)
        self.assertEqual(vspy(_geometric(0.98), flat, "3M").iloc[-1], 0.3)
        self.assertEqual(vspy(_geometric(1.0), flat, "3M").iloc[-1], 1.0)

    def test_clamped(self):
        self.assertEqual(vspy(_geometric(1.05), _geometric(1.0005), "3M").iloc[-1], 10.0)
        self.assertEqual(vspy(_geometric(0.95), _geometric(1.0005), "3M").iloc[-1], -5.0)


class TestSma(unittest.TestCase):
    def test_warmup(self):
        out = sma_with_slope(noisy_series(n=30), 10)
        self.assertTrue(out["SMA"].iloc[:9].isna().all())
        self.assertTrue(out["SMASlope"].iloc[:10].isna().all())
        self.assertFalse(out["SMASlope"].iloc[10:].isna().any())

    def test_turning_points_alternate(self):
        points = sma_turning_points(sine_series(), 10)

        self.assertGreater(len(points), 4)
        for a, b in zip(points, points[1:]):
            self.assertNotEqual(a.kind, b.kind)
            self.assertLess(a.index, b.index)

    def test_short_series(self):
        self.assertEqual(sma_turning_points(noisy_series(n=10), 10), [])

    def test_gain_on_cycles(self):
        result = sma_gain(sine_series(), 10)
        self.assertGreater(result.trade_count, 0)
        self.assertGreater(result.total_gain_pct, 0.0)

    def test_sweep_picks_best(self):
        df = sine_series()
        best = optimize_sma_period(df, 5, 30)

        self.assertTrue(5 <= best.period <= 30)
        for period in range(5, 31):
            self.assertGreaterEqual(best.total_gain_pct, sma_gain(df, period).total_gain_pct)

    def test_sweep_ties_keep_shortest(self):
        self.assertEqual(optimize_sma_period(make_series(np.full(40, 10.0))).period, 5)
        self.assertIsNone(optimize_sma_period(make_series([1.0, 2.0, 3.0, 4.0])))


class TestAnnotate(unittest.TestCase):
    def test_columns_and_summary(self):
        df = noisy_series(n=60)
        out = annotate(df, "3M", sma_period=10)

        for col in ("RVI", "VSPY", "SMA", "SMASlope"):
            self.assertIn(col, out.columns)
        self.assertNotIn("RVI", df.columns)
        self.assertEqual(set(indicator_summary(out)), {"RVI", "VSPY", "SMA", "SMASlope"})


if __name__ == "__main__":
    unittest.main()
