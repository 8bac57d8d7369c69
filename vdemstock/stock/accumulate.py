"""
Stock Accumulator

For each (indicator, weight) pair and each country:

    stock[start_year]  = 0
    stock[t]           = weight * stock[t-1] + antecedent[t-1]     (t > start_year)

where start_year is the first year with an antecedent value. A missing
antecedent breaks the series: every later year is missing too. The seed year
carries no information and is dropped, as is every year before the country's
first observed raw value (keep_year). The reported index is
stock * (1 - weight), which bounds a [0, 1] input series to [0, 1].

The recurrence is sequential in time but independent across countries, so each
country is one task; with max_workers > 1 tasks run on a thread pool and write
disjoint slices of the output arrays.
"""

import logging
import numbers
import re
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Sequence

import numpy as np
import pandas as pd

from vdemstock.errors import InvalidWeight, UnknownVariable
from vdemstock.reporter import RunReporter

log = logging.getLogger("vdemstock.stock")


def weight_label(weight: float) -> str:
    """Shortest decimal literal of the weight without its leading zero (0.99 → '.99')."""
    text = np.format_float_positional(float(weight), trim="-")
    return re.sub(r"^(-?)0\.", r"\1.", text)


class StockKey(NamedTuple):
    variable: str
    weight: float

    @property
    def label(self) -> str:
        return f"{self.variable}{weight_label(self.weight)}"


@dataclass(frozen=True)
class StockSeries:
    key: StockKey
    raw: pd.Series        # aligned to panel.index
    rescaled: pd.Series   # raw * (1 - weight)
    start_year: pd.Series  # per country_id, NaN when no antecedent value
    keep_year: pd.Series   # per country_id, NaN when no raw value


def validate_weight(weight) -> float:
    if isinstance(weight, bool) or not isinstance(weight, numbers.Real):
        raise InvalidWeight(f"Weight must be numeric, got {weight!r}")
    weight = float(weight)
    if not (0.0 < weight < 1.0):
        raise InvalidWeight(f"Weight must be strictly between 0 and 1, got {weight!r}")
    return weight


def scan_stock(antecedent: np.ndarray, weight: float) -> np.ndarray:
    """
    Run the recurrence over one country's year-ordered antecedent values.
    The seed year is returned as NaN.
    """
    antecedent = np.asarray(antecedent, dtype="float64")
    stock = np.full(antecedent.shape[0], np.nan)
    valid = ~np.isnan(antecedent)
    if not valid.any():
        return stock

    start = int(np.argmax(valid))
    stock[start] = 0.0
    for i in range(start + 1, antecedent.shape[0]):
        stock[i] = weight * stock[i - 1] + antecedent[i - 1]

    stock[start] = np.nan
    return stock


def _country_positions(panel: pd.DataFrame) -> Dict[int, np.ndarray]:
    """Row positions per country, ordered by year."""
    years = panel["year"].to_numpy()
    out = {}
    for cid, pos in panel.groupby("country_id", sort=True).indices.items():
        out[cid] = pos[np.argsort(years[pos], kind="stable")]
    return out


def _log_progress(done: int, total: int, next_mark: float) -> float:
    if total and done / total >= next_mark:
        log.info(f"  progress: {done}/{total} countries ({done / total:.0%})")
        return next_mark + 0.25
    return next_mark


def _accumulate_one(
    panel: pd.DataFrame,
    positions: Dict[int, np.ndarray],
    antecedent: pd.Series,
    key: StockKey,
    max_workers: int,
) -> StockSeries:
    weight = key.weight
    years = panel["year"].to_numpy()
    ante = antecedent.to_numpy(dtype="float64")
    raw_values = panel[key.variable].to_numpy(dtype="float64")

    stock = np.full(len(panel), np.nan)
    start_years: Dict[int, float] = {}
    keep_years: Dict[int, float] = {}

    def task(cid: int, pos: np.ndarray):
        country_ante = ante[pos]
        country_years = years[pos]
        values = scan_stock(country_ante, weight)

        valid = ~np.isnan(country_ante)
        start = float(country_years[valid][0]) if valid.any() else np.nan

        observed = ~np.isnan(raw_values[pos])
        if observed.any():
            keep = float(country_years[observed][0])
            values[country_years < keep] = np.nan
        else:
            keep = np.nan
            values[:] = np.nan
        return cid, pos, values, start, keep

    total = len(positions)
    next_mark = 0.25
    done = 0
    if max_workers > 1 and total > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            futures = [executor.submit(task, cid, pos) for cid, pos in positions.items()]
            for future in as_completed(futures):
                cid, pos, values, start, keep = future.result()
                stock[pos] = values
                start_years[cid], keep_years[cid] = start, keep
                done += 1
                next_mark = _log_progress(done, total, next_mark)
    else:
        for cid, pos in positions.items():
            cid, pos, values, start, keep = task(cid, pos)
            stock[pos] = values
            start_years[cid], keep_years[cid] = start, keep
            done += 1
            next_mark = _log_progress(done, total, next_mark)

    raw = pd.Series(stock, index=panel.index, name=f"{key.label}_raw")
    country_index = pd.Index(sorted(positions), name="country_id")
    return StockSeries(
        key=key,
        raw=raw,
        rescaled=(raw * (1.0 - weight)).rename(key.label),
        start_year=pd.Series(start_years, dtype="float64").reindex(country_index),
        keep_year=pd.Series(keep_years, dtype="float64").reindex(country_index),
    )


def accumulate_stock(
    panel: pd.DataFrame,
    antecedents: Dict[str, pd.Series],
    weights: Sequence[float],
    variables: Optional[List[str]] = None,
    max_workers: int = 1,
    reporter: Optional[RunReporter] = None,
) -> Dict[StockKey, StockSeries]:
    """
    Compute stock for every (variable, weight) pair.

    Args:
        panel: expanded panel with raw indicator columns, sorted by (country_id, year)
        antecedents: {variable: antecedent series aligned to panel.index}
        weights: depreciation weights in (0, 1)
        variables: subset/order of variables (defaults to antecedents order)
        max_workers: thread pool size for per-country tasks

    Returns:
        {StockKey(variable, weight): StockSeries}, in variable-major order
    """
    weights = [validate_weight(w) for w in dict.fromkeys(weights)]
    variables = list(dict.fromkeys(variables if variables is not None else antecedents))

    n_var, n_wt = len(variables), len(weights)
    log.info(
        f"Working on calculating stock for {n_var} variable{'s' if n_var != 1 else ''} "
        f"and {n_wt} depreciation rate{'s' if n_wt != 1 else ''}"
    )

    positions = _country_positions(panel)
    out: Dict[StockKey, StockSeries] = {}

    for variable in variables:
        if variable not in antecedents:
            raise UnknownVariable(variable, "antecedent values")
        if variable not in panel.columns:
            raise UnknownVariable(variable, "panel")

        for weight in weights:
            key = StockKey(variable, weight)
            log.info(f"Variable: {variable}; Depreciation rate: {(1 - weight) * 100:g}%")
            series = _accumulate_one(panel, positions, antecedents[variable], key, max_workers)
            out[key] = series

            no_start = int(series.start_year.isna().sum())
            if reporter is not None:
                reporter.add_metric(f"countries_without_start[{variable}]", no_start)
            if no_start and weight == weights[0]:
                msg = f"{variable}: {no_start} countries have no antecedent values; their stock is missing"
                if reporter is not None:
                    reporter.add_warning(msg)
                else:
                    log.warning(msg)
            if reporter is not None:
                reporter.add_metric(f"stock_values[{key.label}]", int(series.raw.notna().sum()))

            log.info(
                f"Stock of {variable} calculated based on weight {weight:g} "
                f"({(1 - weight) * 100:g}% depreciation rate)"
            )
        log.info("Note: stock will be missing after breaks between values")

    return out
