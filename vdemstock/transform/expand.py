"""
Panel Filter & Expander

Subsets the raw country-year panel to the requested columns, removes a fixed
set of small entities the historical mapping does not cover, and regularises
every country's coverage into a contiguous run of years.

Inputs:
- raw panel (country_id, country_name, year, indicator columns)

Outputs:
- panel sorted by (country_id, year) with `is_original` flagging observed rows
"""

import logging
from typing import Iterable, List, Optional

import numpy as np
import pandas as pd

from vdemstock.errors import MissingDataset, UnknownVariable
from vdemstock.reporter import RunReporter

log = logging.getLogger("vdemstock.expand")

ID_COLUMNS = ["country_name", "country_id", "year"]

# Overseas territories and micro-states outside the historical identity rules
EXCLUDED_COUNTRY_IDS = frozenset({349, 354, 355, 356, 357, 358, 359, 360, 361, 362, 363, 366})


def _unique(columns: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(columns))


def subset_panel(
    raw: pd.DataFrame,
    variables: List[str],
    extra_variables: Optional[List[str]] = None,
    reporter: Optional[RunReporter] = None,
) -> pd.DataFrame:
    """
    Keep identifier, indicator and extra columns; drop excluded countries.

    Raises:
        MissingDataset: no panel supplied
        UnknownVariable: a required or requested column is absent
    """
    if raw is None:
        raise MissingDataset("Must load a dataset before subsetting")

    extra_variables = list(extra_variables or [])
    for col in ID_COLUMNS + list(variables) + extra_variables:
        if col not in raw.columns:
            raise UnknownVariable(col)

    columns = _unique(ID_COLUMNS + list(variables) + extra_variables)

    excluded = raw["country_id"].isin(EXCLUDED_COUNTRY_IDS)
    excluded_names = sorted(raw.loc[excluded, "country_name"].dropna().astype(str).unique())
    if excluded_names:
        log.info(f"Removed the following states from subset data: {', '.join(excluded_names)}")
    else:
        log.info("No excluded states present in the dataset")
    if reporter is not None:
        reporter.add_metric("excluded_countries", excluded_names)

    sub = raw.loc[~excluded, columns].copy()

    missing_keys = sub["country_id"].isna() | sub["year"].isna()
    if missing_keys.any():
        msg = f"Dropped {int(missing_keys.sum())} rows with missing country_id or year"
        if reporter is not None:
            reporter.add_warning(msg)
        else:
            log.warning(msg)
        sub = sub.loc[~missing_keys]

    sub["country_id"] = sub["country_id"].astype("int64")
    sub["year"] = sub["year"].astype("int64")

    dupes = sub.duplicated(subset=["country_id", "year"], keep="first")
    if dupes.any():
        msg = f"Dropped {int(dupes.sum())} duplicated country-year rows (kept first)"
        if reporter is not None:
            reporter.add_warning(msg)
        else:
            log.warning(msg)
        sub = sub.loc[~dupes]

    return sub.sort_values(["country_id", "year"]).reset_index(drop=True)


def expand_panel(panel: pd.DataFrame, reporter: Optional[RunReporter] = None) -> pd.DataFrame:
    """
    Add an all-missing row for every year absent from a country's
    [min_year, max_year] span. Observed rows get is_original=True.
    """
    orig_shape = panel.shape
    panel = panel.copy()
    panel["is_original"] = True

    value_cols = [c for c in panel.columns if c not in ID_COLUMNS + ["is_original"]]
    ordered = ["is_original"] + ID_COLUMNS + value_cols

    if panel.empty:
        return panel[ordered].reset_index(drop=True)

    spans = panel.groupby("country_id")["year"].agg(["min", "max"])
    names = panel.groupby("country_id")["country_name"].first()

    lengths = (spans["max"] - spans["min"] + 1).to_numpy()
    ids = np.repeat(spans.index.to_numpy(), lengths)
    years = np.concatenate([
        np.arange(lo, hi + 1, dtype="int64") for lo, hi in zip(spans["min"], spans["max"])
    ])
    full_index = pd.MultiIndex.from_arrays([ids, years], names=["country_id", "year"])

    out = (
        panel.drop(columns=["country_name"])
        .set_index(["country_id", "year"])
        .reindex(full_index)
        .reset_index()
    )
    out["is_original"] = out["is_original"].eq(True)
    out["country_name"] = out["country_id"].map(names)
    out = out[ordered].reset_index(drop=True)

    added = len(out) - len(panel)
    log.info(
        f"Subset data expanded. Old dimensions were {orig_shape[0]} by {orig_shape[1]}; "
        f"new dimensions are {out.shape[0]} by {out.shape[1]}"
    )
    if reporter is not None:
        reporter.add_metric("rows_observed", int(orig_shape[0]))
        reporter.add_metric("rows_expanded", int(len(out)))
        reporter.add_metric("rows_synthesised", int(added))
        reporter.add_metric("countries", int(len(spans)))

    return out


def filter_and_expand(
    raw: pd.DataFrame,
    variables: List[str],
    extra_variables: Optional[List[str]] = None,
    reporter: Optional[RunReporter] = None,
) -> pd.DataFrame:
    """Subset then expand the raw panel."""
    return expand_panel(subset_panel(raw, variables, extra_variables, reporter), reporter)
