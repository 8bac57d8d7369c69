"""
Stock pipeline orchestrator.

Runs the stages in fixed order, each consuming only the value returned by the
previous one:

    Load → Filter & Expand → Historical IDs → Normalise & Fill →
    Antecedents → Stock → Assemble

Usage:
    from vdemstock import compute_stock

    df = compute_stock(["v2x_libdem"], [0.99, 0.975], fill=10, dataset=vdem)
"""

import logging
import numbers
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Union

import pandas as pd

from vdemstock.config import StockConfig, load_config
from vdemstock.errors import InvalidWeight, MissingDataset, StockError
from vdemstock.export.assemble import assemble_output
from vdemstock.ingest.provider import DatasetProvider, as_provider, provider_from_config
from vdemstock.reporter import RunReporter
from vdemstock.stock.accumulate import StockKey, StockSeries, accumulate_stock, validate_weight
from vdemstock.transform.antecedent import resolve_antecedents
from vdemstock.transform.expand import filter_and_expand
from vdemstock.transform.fill import FilledIndicator, normalize_and_fill, validate_fill
from vdemstock.transform.historical import HistoricalRuleTable, default_rule_table

log = logging.getLogger("vdemstock.pipeline")


@dataclass
class StockResult:
    """Everything one run produced. `table` is the flat output."""
    panel: pd.DataFrame
    indicators: Dict[str, FilledIndicator]
    antecedents: Dict[str, pd.Series]
    stocks: Dict[StockKey, StockSeries]
    extra_variables: List[str] = field(default_factory=list)
    table: Optional[pd.DataFrame] = None
    report: Dict = field(default_factory=dict)

    def __getitem__(self, key) -> StockSeries:
        return self.stocks[StockKey(*key)]

    def to_frame(self) -> pd.DataFrame:
        if self.table is None:
            self.table = assemble_output(self.panel, self.stocks, self.extra_variables)
        return self.table


def _as_list(value) -> List:
    if value is None:
        return []
    if isinstance(value, (str, bytes, numbers.Number)):
        return [value]
    return list(value)


class StockPipeline:
    """Orchestrates one stock computation."""

    STAGES = [
        "Filter & expand panel",
        "Resolve historical identities",
        "Normalise & fill",
        "Impute antecedent values",
        "Accumulate stock",
        "Assemble output",
    ]

    def __init__(
        self,
        config: Optional[StockConfig] = None,
        provider: Optional[DatasetProvider] = None,
        rules: Optional[HistoricalRuleTable] = None,
        reporter: Optional[RunReporter] = None,
    ):
        self.config = config or StockConfig()
        self.provider = provider
        self.rules = rules
        self.reporter = reporter or RunReporter("stock")

    def _stage(self, n: int):
        log.info(f"\n[{n}/{len(self.STAGES)}] {self.STAGES[n - 1]}...")

    def validate(self) -> StockConfig:
        """Check fill, weights and variable list before touching the data."""
        cfg = self.config
        fill = validate_fill(cfg.fill)
        variables = list(dict.fromkeys(_as_list(cfg.variables)))
        weights = _as_list(cfg.weights)
        if not variables:
            raise StockError("At least one variable is required")
        if not weights:
            raise InvalidWeight("At least one weight is required")
        weights = list(dict.fromkeys(validate_weight(w) for w in weights))
        extras = list(dict.fromkeys(_as_list(cfg.extra_variables)))
        return replace(cfg, variables=variables, weights=weights, fill=fill, extra_variables=extras)

    def run(self) -> StockResult:
        cfg = self.validate()
        if self.provider is None:
            raise MissingDataset("No dataset supplied; pass a DataFrame or configure VDEMSTOCK_DATA_PATH")

        log.info("=" * 70)
        log.info("STOCK PIPELINE")
        log.info("=" * 70)
        log.info(f"Variables: {cfg.variables}; weights: {cfg.weights}; fill: {cfg.fill}")
        self.reporter.add_metric("variables", cfg.variables)
        self.reporter.add_metric("weights", cfg.weights)
        self.reporter.add_metric("fill", cfg.fill)

        raw = self.provider.load()
        if raw is None:
            raise MissingDataset("Dataset provider returned no data")

        self._stage(1)
        panel = filter_and_expand(raw, cfg.variables, cfg.extra_variables, self.reporter)
        del raw

        self._stage(2)
        rules = self.rules or default_rule_table(cfg.rules_path, strict=cfg.strict_rules)
        self.reporter.add_metric("historical_rule_overlaps", len(rules.find_overlaps()))
        panel = rules.apply(panel, self.reporter)

        self._stage(3)
        indicators = normalize_and_fill(panel, cfg.variables, cfg.fill, self.reporter)

        self._stage(4)
        antecedents = resolve_antecedents(panel, indicators, reporter=self.reporter)

        self._stage(5)
        stocks = accumulate_stock(
            panel,
            antecedents,
            cfg.weights,
            variables=cfg.variables,
            max_workers=max(1, int(cfg.max_workers)),
            reporter=self.reporter,
        )

        self._stage(6)
        result = StockResult(
            panel=panel,
            indicators=indicators,
            antecedents=antecedents,
            stocks=stocks,
            extra_variables=cfg.extra_variables,
        )
        result.to_frame()
        result.report = self.reporter.finalize()
        log.info("New variables include the stock with depreciation rate (_raw) and the rescaled stock")
        return result


def compute_stock(
    variables: Union[str, List[str], None] = None,
    weights: Union[float, List[float], None] = None,
    fill: Optional[int] = None,
    extra_variables: Union[str, List[str], None] = None,
    *,
    dataset: Union[pd.DataFrame, DatasetProvider, None] = None,
    config: Optional[StockConfig] = None,
    max_workers: Optional[int] = None,
    rules: Optional[HistoricalRuleTable] = None,
) -> pd.DataFrame:
    """
    Compute stock measures for each (variable, weight) pair.

    Args:
        variables: indicator columns (default ["v2x_polyarchy"])
        weights: depreciation weights in (0, 1) (default [0.99])
        fill: years to fill forward after the last observation; 0 disables
            filling (default: config.fill, 5 unless configured)
        extra_variables: additional dataset columns carried into the output
        dataset: DataFrame or provider; defaults to the source configured
            in the environment (VDEMSTOCK_DATA_PATH / VDEMSTOCK_DUCKDB_PATH)

    Returns:
        DataFrame with one row per country-year and, per pair,
        `{variable}{label}_raw` and `{variable}{label}` columns.
    """
    if config is None:
        env_cfg, data_cfg = load_config()
        config = env_cfg
    else:
        data_cfg = None

    config = replace(
        config,
        variables=_as_list(variables) if variables is not None else config.variables,
        weights=_as_list(weights) if weights is not None else config.weights,
        fill=fill if fill is not None else config.fill,
        extra_variables=_as_list(extra_variables) if extra_variables is not None else config.extra_variables,
    )
    if max_workers is not None:
        config = replace(config, max_workers=max_workers)

    provider = as_provider(dataset)
    if provider is None:
        if data_cfg is None:
            _, data_cfg = load_config()
        provider = provider_from_config(data_cfg)

    return StockPipeline(config, provider, rules=rules).run().to_frame()
