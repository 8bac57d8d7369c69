"""
vdemstock - depreciation-weighted stock measures from country-year panels.

    from vdemstock import compute_stock
    df = compute_stock("v2x_polyarchy", 0.99, fill=5, dataset=vdem)
"""

from vdemstock.config import StockConfig
from vdemstock.errors import (
    InvalidFill,
    InvalidWeight,
    LowCardinalityWarning,
    MissingDataset,
    NonNumericVariable,
    RuleConflict,
    StockError,
    UnknownVariable,
)
from vdemstock.pipeline import StockPipeline, StockResult, compute_stock
from vdemstock.stock.accumulate import StockKey, StockSeries

__version__ = "0.1.0"
