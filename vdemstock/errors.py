"""
Error and warning types raised by the stock pipeline.

Validation errors abort the call on first detection. Per-country problems
(no start year, no observed values) are not errors: they produce missing
stock values for that country only.
"""


class StockError(Exception):
    """Base class for all pipeline errors."""


class MissingDataset(StockError):
    """No panel dataset was supplied or the configured source does not exist."""


class UnknownVariable(StockError, LookupError):
    """A requested column is not present in the panel."""

    def __init__(self, variable: str, where: str = "dataset"):
        self.variable = variable
        super().__init__(f"Variable '{variable}' does not exist in {where}")


class NonNumericVariable(StockError, TypeError):
    """A requested indicator column is not numeric."""

    def __init__(self, variable: str, dtype=None):
        self.variable = variable
        self.dtype = dtype
        super().__init__(f"Variable '{variable}' is not numeric (dtype={dtype})")


class InvalidWeight(StockError, ValueError):
    """Depreciation weight outside the open interval (0, 1)."""


class InvalidFill(StockError, ValueError):
    """Fill horizon is negative or not a whole number."""


class RuleConflict(StockError):
    """Two historical identity rules cover the same country and year (strict mode)."""


class LowCardinalityWarning(UserWarning):
    """Indicator has few distinct values; a stock measure may not be suitable."""
