"""Stock accumulation."""

from vdemstock.stock.accumulate import (
    StockKey,
    StockSeries,
    accumulate_stock,
    scan_stock,
    validate_weight,
    weight_label,
)
