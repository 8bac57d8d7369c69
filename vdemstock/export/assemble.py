"""
Output Assembler

Flattens the panel and the typed stock mapping into the final table:

    country_name, country_id_hist, country_id, year, <extras>,
    then per (variable, weight): {variable}{label}_raw, {variable}{label}
"""

import logging
from typing import Dict, List, Optional, Tuple

import pandas as pd

from vdemstock.errors import UnknownVariable
from vdemstock.stock.accumulate import StockKey, StockSeries, weight_label

log = logging.getLogger("vdemstock.assemble")

KEY_COLUMNS = ["country_name", "country_id_hist", "country_id", "year"]

__all__ = ["KEY_COLUMNS", "assemble_output", "stock_columns", "weight_label"]


def stock_columns(key: StockKey) -> Tuple[str, str]:
    """(raw column, rescaled column) for a stock key."""
    return f"{key.label}_raw", key.label


def assemble_output(
    panel: pd.DataFrame,
    stocks: Dict[StockKey, StockSeries],
    extra_variables: Optional[List[str]] = None,
) -> pd.DataFrame:
    """
    Build the output table. Intermediate columns are not carried; identifier
    and year columns are cast to int64.
    """
    extra_variables = list(dict.fromkeys(extra_variables or []))
    for col in KEY_COLUMNS + extra_variables:
        if col not in panel.columns:
            raise UnknownVariable(col, "panel")

    columns = list(dict.fromkeys(KEY_COLUMNS + extra_variables))
    out = panel[columns].copy()
    for col in ("country_id_hist", "country_id", "year"):
        out[col] = out[col].astype("int64")

    stock_frames = {}
    for key, series in stocks.items():
        raw_col, rescaled_col = stock_columns(key)
        stock_frames[raw_col] = series.raw
        stock_frames[rescaled_col] = series.rescaled
    if stock_frames:
        out = pd.concat([out, pd.DataFrame(stock_frames, index=panel.index)], axis=1)

    out = out.reset_index(drop=True)
    log.info(f"Output assembled: {out.shape[0]} rows, {out.shape[1]} columns")
    return out
