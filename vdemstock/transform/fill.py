"""
Normalizer & Imputer

Min-max normalises each indicator over the whole panel, then forward-fills
short gaps inside each country's series.

A missing year takes the country's last observed value when that observation
is at most `fill` years back. In a longer gap only the first `fill` years are
filled. Leading missing years are never filled.
"""

import logging
import numbers
import warnings
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from vdemstock.errors import InvalidFill, LowCardinalityWarning, NonNumericVariable, UnknownVariable
from vdemstock.reporter import RunReporter

log = logging.getLogger("vdemstock.fill")

MIN_DISTINCT_VALUES = 10


@dataclass(frozen=True)
class FilledIndicator:
    variable: str
    minimum: float
    maximum: float
    normalized: pd.Series
    filled: pd.Series


def validate_fill(fill) -> int:
    if isinstance(fill, bool) or not isinstance(fill, numbers.Integral):
        if isinstance(fill, numbers.Real) and not isinstance(fill, bool) and float(fill).is_integer():
            fill = int(fill)
        else:
            raise InvalidFill(f"'fill' must be a single whole number >= 0, got {fill!r}")
    if fill < 0:
        raise InvalidFill(f"'fill' must be a single whole number >= 0, got {fill!r}")
    return int(fill)


def check_indicator(panel: pd.DataFrame, variable: str) -> pd.Series:
    if variable not in panel.columns:
        raise UnknownVariable(variable, "panel")
    series = panel[variable]
    if not pd.api.types.is_numeric_dtype(series) or pd.api.types.is_bool_dtype(series):
        raise NonNumericVariable(variable, series.dtype)
    return series.astype("float64")


def _warn(message: str, reporter: Optional[RunReporter], category=UserWarning):
    warnings.warn(message, category, stacklevel=3)
    if reporter is not None:
        reporter.add_warning(message)
    else:
        log.warning(message)


def normalize(series: pd.Series, variable: str = "", reporter: Optional[RunReporter] = None):
    """Rescale to [0, 1] using the observed min and max. Returns (normalized, min, max)."""
    observed = series.dropna()
    if observed.empty:
        _warn(f"{variable}: no observed values; normalised series is all missing", reporter)
        return series.astype("float64"), np.nan, np.nan

    minval = float(observed.min())
    maxval = float(observed.max())
    if maxval == minval:
        _warn(f"{variable}: constant indicator ({minval}); normalised to 0", reporter)
        return series.where(series.isna(), 0.0).astype("float64"), minval, maxval

    normalized = (series - minval) / (maxval - minval)
    return normalized.clip(lower=0.0, upper=1.0), minval, maxval


def forward_fill_gaps(values: pd.Series, groups: pd.Series, fill: int) -> pd.Series:
    """
    Carry each group's last observed value forward at most `fill` rows.

    `values` must be ordered by year within each group with no missing years,
    so a row limit is a year limit.
    """
    if fill == 0:
        return values.copy()
    return values.groupby(groups).ffill(limit=fill)


def normalize_and_fill(
    panel: pd.DataFrame,
    variables: List[str],
    fill: int = 5,
    reporter: Optional[RunReporter] = None,
) -> Dict[str, FilledIndicator]:
    """
    Normalise and forward-fill each indicator.

    Args:
        panel: expanded panel sorted by (country_id, year)
        variables: indicator columns
        fill: maximum gap length (years) to fill; 0 disables filling

    Returns:
        {variable: FilledIndicator} with series aligned to panel.index
    """
    fill = validate_fill(fill)
    out: Dict[str, FilledIndicator] = {}

    for variable in variables:
        raw = check_indicator(panel, variable)

        n_distinct = raw.dropna().nunique()
        if n_distinct < MIN_DISTINCT_VALUES:
            _warn(
                f"{variable}: small number of possible values ({n_distinct}); "
                "stock may not be appropriate for this measure",
                reporter,
                LowCardinalityWarning,
            )

        normalized, minval, maxval = normalize(raw, variable, reporter)
        filled = forward_fill_gaps(normalized, panel["country_id"], fill)

        n_filled = int((filled.notna() & normalized.isna()).sum())
        log.info(f"{variable}: normalised over [{minval}, {maxval}]; {n_filled} values filled forward (fill={fill})")
        if reporter is not None:
            reporter.add_metric(f"filled_values[{variable}]", n_filled)

        out[variable] = FilledIndicator(
            variable=variable,
            minimum=minval,
            maximum=maxval,
            normalized=normalized.rename(f"{variable}_normalized"),
            filled=filled.rename(f"{variable}_filled"),
        )

    log.info(f"Variables filled forward {fill} years")
    return out
