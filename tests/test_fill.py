import unittest
import warnings

import numpy as np
import pandas as pd

from vdemstock.errors import InvalidFill, LowCardinalityWarning, NonNumericVariable, UnknownVariable
from vdemstock.reporter import RunReporter
from vdemstock.transform.fill import forward_fill_gaps, normalize, normalize_and_fill, validate_fill


def panel_with(values, country_ids=None):
    n = len(values)
    country_ids = country_ids or [1] * n
    years = []
    for i, cid in enumerate(country_ids):
        years.append(1900 + sum(1 for c in country_ids[:i] if c == cid))
    return pd.DataFrame({
        "country_name": [f"C{c}" for c in country_ids],
        "country_id_hist": country_ids,
        "country_id": country_ids,
        "year": years,
        "x": values,
    })


def run_quietly(panel, variables, fill, reporter=None):
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", LowCardinalityWarning)
        return normalize_and_fill(panel, variables, fill, reporter)


class TestValidateFill(unittest.TestCase):
    def test_accepts_whole_numbers(self):
        self.assertEqual(validate_fill(0), 0)
        self.assertEqual(validate_fill(5), 5)
        self.assertEqual(validate_fill(np.int64(3)), 3)
        self.assertEqual(validate_fill(5.0), 5)

    def test_rejects_invalid(self):
        for bad in (-1, 2.5, True, "3", None, [5]):
            with self.subTest(fill=bad):
                with self.assertRaises(InvalidFill):
                    validate_fill(bad)


class TestNormalize(unittest.TestCase):
    def test_min_zero_max_one(self):
        s = pd.Series([10.0, 20.0, np.nan, 30.0])
        normalized, lo, hi = normalize(s, "x")
        self.assertEqual((lo, hi), (10.0, 30.0))
        self.assertEqual(normalized.min(), 0.0)
        self.assertEqual(normalized.max(), 1.0)
        self.assertTrue(np.isnan(normalized.iloc[2]))

    def test_constant_indicator(self):
        s = pd.Series([0.5, np.nan, 0.5])
        with self.assertWarns(UserWarning):
            normalized, lo, hi = normalize(s, "x")
        self.assertEqual(normalized.iloc[0], 0.0)
        self.assertTrue(np.isnan(normalized.iloc[1]))

    def test_all_missing(self):
        s = pd.Series([np.nan, np.nan])
        with self.assertWarns(UserWarning):
            normalized, lo, hi = normalize(s, "x")
        self.assertTrue(normalized.isna().all())
        self.assertTrue(np.isnan(lo))


class TestForwardFill(unittest.TestCase):
    def fill(self, values, fill, groups=None):
        values = pd.Series(values, dtype="float64")
        groups = pd.Series(groups or [1] * len(values))
        return forward_fill_gaps(values, groups, fill).tolist()

    def assertSeq(self, got, expected):
        self.assertEqual(len(got), len(expected))
        for g, e in zip(got, expected):
            if np.isnan(e):
                self.assertTrue(np.isnan(g), f"{got} != {expected}")
            else:
                self.assertAlmostEqual(g, e)

    def test_gap_of_exactly_fill_is_filled(self):
        self.assertSeq(self.fill([0.1, np.nan, np.nan, 0.4], 2), [0.1, 0.1, 0.1, 0.4])

    def test_gap_longer_than_fill_fills_first_years_only(self):
        self.assertSeq(self.fill([0.1, np.nan, np.nan, np.nan, 0.4], 2), [0.1, 0.1, 0.1, np.nan, 0.4])

    def test_trailing_gap(self):
        self.assertSeq(self.fill([0.1, 0.2, np.nan], 1), [0.1, 0.2, 0.2])
        self.assertSeq(self.fill([0.1, 0.2, np.nan, np.nan, np.nan], 2), [0.1, 0.2, 0.2, 0.2, np.nan])

    def test_new_observation_resets_horizon(self):
        got = self.fill([0.1, np.nan, np.nan, 0.5, np.nan, np.nan, np.nan], 2)
        self.assertSeq(got, [0.1, 0.1, 0.1, 0.5, 0.5, 0.5, np.nan])

    def test_leading_gap_never_filled(self):
        self.assertSeq(self.fill([np.nan, 0.3, np.nan], 5), [np.nan, 0.3, 0.3])

    def test_zero_disables(self):
        self.assertSeq(self.fill([0.1, np.nan, 0.4], 0), [0.1, np.nan, 0.4])

    def test_does_not_cross_countries(self):
        got = self.fill([0.1, 0.2, np.nan, 0.5], 3, groups=[1, 1, 2, 2])
        self.assertSeq(got, [0.1, 0.2, np.nan, 0.5])


class TestNormalizeAndFill(unittest.TestCase):
    def test_returns_named_series(self):
        panel = panel_with([0.0, 0.5, np.nan, 1.0])
        out = run_quietly(panel, ["x"], 1)
        ind = out["x"]
        self.assertEqual(ind.normalized.name, "x_normalized")
        self.assertEqual(ind.filled.name, "x_filled")
        self.assertEqual(ind.filled.tolist(), [0.0, 0.5, 0.5, 1.0])
        self.assertTrue(ind.filled.index.equals(panel.index))

    def test_filled_values_in_unit_interval(self):
        rng = np.random.default_rng(7)
        values = rng.normal(50, 20, 60)
        values[rng.integers(0, 60, 12)] = np.nan
        panel = panel_with(list(values), [1] * 30 + [2] * 30)
        ind = normalize_and_fill(panel, ["x"], 3)["x"]
        observed = ind.filled.dropna()
        self.assertTrue(((observed >= 0) & (observed <= 1)).all())

    def test_unknown_and_non_numeric(self):
        panel = panel_with([0.1, 0.2])
        panel["label"] = ["a", "b"]
        panel["flag"] = [True, False]
        with self.assertRaises(UnknownVariable):
            normalize_and_fill(panel, ["nope"])
        with self.assertRaises(NonNumericVariable):
            normalize_and_fill(panel, ["label"])
        with self.assertRaises(NonNumericVariable):
            normalize_and_fill(panel, ["flag"])

    def test_invalid_fill(self):
        with self.assertRaises(InvalidFill):
            normalize_and_fill(panel_with([0.1, 0.2]), ["x"], -2)

    def test_low_cardinality_warns(self):
        panel = panel_with([0.0, 1.0, 2.0, 1.0])
        reporter = RunReporter()
        with self.assertWarns(LowCardinalityWarning):
            normalize_and_fill(panel, ["x"], 1, reporter)
        self.assertEqual(reporter.status, "warning")

    def test_fill_metric(self):
        reporter = RunReporter()
        run_quietly(panel_with([0.0, np.nan, np.nan, 1.0]), ["x"], 2, reporter)
        self.assertEqual(reporter.metrics["filled_values[x]"], 2)


if __name__ == "__main__":
    unittest.main()
