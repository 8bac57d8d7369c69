import unittest

import numpy as np
import pandas as pd

from vdemstock.errors import InvalidWeight, UnknownVariable
from vdemstock.reporter import RunReporter
from vdemstock.stock import StockKey, accumulate_stock, scan_stock, validate_weight, weight_label


def stock_panel(n_countries=3, years=range(1900, 1930), seed=0):
    rng = np.random.default_rng(seed)
    rows = [(cid, year) for cid in range(1, n_countries + 1) for year in years]
    panel = pd.DataFrame(rows, columns=["country_id", "year"])
    panel.insert(0, "country_name", panel["country_id"].map(lambda c: f"C{c}"))
    panel.insert(1, "country_id_hist", panel["country_id"])
    panel["x"] = rng.uniform(0, 1, len(panel))
    return panel


class TestScanStock(unittest.TestCase):
    def test_recurrence(self):
        out = scan_stock(np.array([0.2, 0.4, 0.4, 0.8]), 0.99)
        self.assertTrue(np.isnan(out[0]))
        np.testing.assert_allclose(out[1:], [0.2, 0.598, 0.99202])

    def test_starts_at_first_value(self):
        out = scan_stock(np.array([np.nan, np.nan, 0.5, 0.5]), 0.5)
        self.assertTrue(np.isnan(out[:3]).all())
        self.assertAlmostEqual(out[3], 0.5)

    def test_break_propagates(self):
        out = scan_stock(np.array([0.5, 0.5, np.nan, 0.5, 0.5]), 0.9)
        self.assertAlmostEqual(out[1], 0.5)
        self.assertAlmostEqual(out[2], 0.95)
        self.assertTrue(np.isnan(out[3:]).all())

    def test_all_missing(self):
        self.assertTrue(np.isnan(scan_stock(np.array([np.nan, np.nan]), 0.9)).all())

    def test_empty(self):
        self.assertEqual(scan_stock(np.array([]), 0.9).shape, (0,))


class TestValidateWeight(unittest.TestCase):
    def test_valid(self):
        self.assertEqual(validate_weight(0.99), 0.99)
        self.assertEqual(validate_weight(np.float32(0.5)), 0.5)

    def test_invalid(self):
        for bad in (0, 1, 0.0, 1.0, -0.5, 1.5, True, "0.9", None, np.nan):
            with self.subTest(weight=bad):
                with self.assertRaises(InvalidWeight):
                    validate_weight(bad)


class TestWeightLabel(unittest.TestCase):
    def test_labels(self):
        self.assertEqual(weight_label(0.99), ".99")
        self.assertEqual(weight_label(0.975), ".975")
        self.assertEqual(weight_label(0.5), ".5")
        self.assertEqual(StockKey("v2x_polyarchy", 0.99).label, "v2x_polyarchy.99")


class TestAccumulate(unittest.TestCase):
    def test_matches_scan_per_country(self):
        panel = stock_panel()
        stocks = accumulate_stock(panel, {"x": panel["x"]}, [0.95])
        series = stocks[StockKey("x", 0.95)]
        for cid, group in panel.groupby("country_id"):
            expected = scan_stock(group["x"].to_numpy(), 0.95)
            np.testing.assert_allclose(series.raw[group.index].to_numpy(), expected)

    def test_rescaled_is_bounded(self):
        panel = stock_panel(n_countries=4, years=range(1800, 2000))
        stocks = accumulate_stock(panel, {"x": panel["x"]}, [0.5, 0.9, 0.99])
        for series in stocks.values():
            observed = series.rescaled.dropna()
            self.assertTrue(((observed >= 0) & (observed <= 1)).all())
            np.testing.assert_allclose(series.rescaled.to_numpy(), series.raw.to_numpy() * (1 - series.key.weight))

    def test_keep_year_masks_early_years(self):
        panel = stock_panel(n_countries=1, years=range(1900, 1910))
        antecedent = panel["x"].copy()
        panel.loc[panel["year"] < 1905, "x"] = np.nan  # raw observations begin in 1905
        series = accumulate_stock(panel, {"x": antecedent}, [0.9])[StockKey("x", 0.9)]

        full = scan_stock(antecedent.to_numpy(), 0.9)
        early = panel["year"] < 1905
        self.assertTrue(series.raw[early].isna().all())
        # stock after keep_year still accumulates from the antecedent start
        np.testing.assert_allclose(series.raw[~early].to_numpy(), full[~early.to_numpy()])
        self.assertEqual(series.start_year.loc[1], 1900)
        self.assertEqual(series.keep_year.loc[1], 1905)

    def test_country_without_values(self):
        panel = stock_panel(n_countries=2, years=range(1900, 1905))
        panel.loc[panel["country_id"] == 2, "x"] = np.nan
        reporter = RunReporter()
        series = accumulate_stock(panel, {"x": panel["x"]}, [0.9, 0.8], reporter=reporter)[StockKey("x", 0.9)]
        self.assertTrue(series.raw[panel["country_id"] == 2].isna().all())
        self.assertTrue(series.raw[panel["country_id"] == 1].iloc[1:].notna().all())
        self.assertTrue(np.isnan(series.start_year.loc[2]))
        # reported once per variable, not per weight
        self.assertEqual(len(reporter.warnings), 1)

    def test_threaded_matches_serial(self):
        panel = stock_panel(n_countries=12, years=range(1850, 1950), seed=3)
        serial = accumulate_stock(panel, {"x": panel["x"]}, [0.9, 0.99], max_workers=1)
        threaded = accumulate_stock(panel, {"x": panel["x"]}, [0.9, 0.99], max_workers=4)
        self.assertEqual(list(serial), list(threaded))
        for key in serial:
            pd.testing.assert_series_equal(serial[key].raw, threaded[key].raw)
            pd.testing.assert_series_equal(serial[key].start_year, threaded[key].start_year)

    def test_key_order_and_duplicate_weights(self):
        panel = stock_panel(n_countries=1, years=range(1900, 1905))
        panel["y"] = panel["x"] / 2
        stocks = accumulate_stock(panel, {"x": panel["x"], "y": panel["y"]}, [0.9, 0.8, 0.9])
        self.assertEqual(list(stocks), [
            StockKey("x", 0.9), StockKey("x", 0.8), StockKey("y", 0.9), StockKey("y", 0.8),
        ])

    def test_errors(self):
        panel = stock_panel(n_countries=1, years=range(1900, 1905))
        with self.assertRaises(InvalidWeight):
            accumulate_stock(panel, {"x": panel["x"]}, [1.2])
        with self.assertRaises(UnknownVariable):
            accumulate_stock(panel, {"x": panel["x"]}, [0.9], variables=["z"])


if __name__ == "__main__":
    unittest.main()
