#!/usr/bin/env python3
"""
Command-line entry point.

Usage:
    vdemstock --data data/raw/V-Dem-CY-Full.csv
    vdemstock --data vdem.csv --var v2x_libdem --weight 0.99 0.975 --fill 10
    vdemstock --duckdb data/lake/warehouse.duckdb --table bronze.vdem_cy --to-duckdb
    vdemstock --data vdem.csv --add v2x_regime e_regionpol --name libdem_stock

Results are written to <output-dir>/<name>.csv (and gold.<name> with
--to-duckdb); a JSON run summary goes to <log-dir>/stock_<name>_summary.json.
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path

from vdemstock.config import load_config
from vdemstock.errors import StockError
from vdemstock.export.writers import safe_name, write_csv, write_duckdb
from vdemstock.ingest.provider import provider_from_config
from vdemstock.pipeline import StockPipeline

log = logging.getLogger("vdemstock")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Compute depreciation-weighted stock measures from a country-year panel")
    parser.add_argument("--data", type=Path, help="CSV panel (country_id, country_name, year, indicators)")
    parser.add_argument("--duckdb", type=Path, help="DuckDB warehouse holding the panel")
    parser.add_argument("--table", help="Panel table inside the DuckDB warehouse")
    parser.add_argument("--var", nargs="+", help="Indicator(s) to build stock from (default v2x_polyarchy)")
    parser.add_argument("--weight", nargs="+", type=float, help="Depreciation weight(s) in (0, 1) (default 0.99)")
    parser.add_argument("--fill", type=int, help="Years to fill forward missing values (default 5; 0 disables)")
    parser.add_argument("--add", nargs="+", default=None, help="Extra dataset columns to carry into the output")
    parser.add_argument("--name", default="v.dem.out", help="Output name (default v.dem.out)")
    parser.add_argument("--output-dir", type=Path, help="Directory for the CSV result")
    parser.add_argument("--to-duckdb", action="store_true", help="Also write gold.<name> to the DuckDB warehouse")
    parser.add_argument("--workers", type=int, help="Threads for per-country stock computation")
    parser.add_argument("--strict-rules", action="store_true", help="Fail on overlapping historical identity rules")
    parser.add_argument("--report", type=Path, help="Path for the JSON run summary")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    stock_cfg, data_cfg = load_config()

    logging.basicConfig(
        level=getattr(logging, data_cfg.log_level, logging.INFO),
        format="%(asctime)s | %(levelname)s | %(message)s",
    )

    if args.data is not None:
        data_cfg.data_path = args.data
    if args.duckdb is not None:
        data_cfg.duckdb_path = args.duckdb
    if args.table:
        data_cfg.table = args.table
    if args.output_dir is not None:
        data_cfg.output_dir = args.output_dir

    stock_cfg = replace(
        stock_cfg,
        variables=args.var or stock_cfg.variables,
        weights=args.weight or stock_cfg.weights,
        fill=args.fill if args.fill is not None else stock_cfg.fill,
        extra_variables=args.add or stock_cfg.extra_variables,
        max_workers=args.workers or stock_cfg.max_workers,
        strict_rules=args.strict_rules or stock_cfg.strict_rules,
    )

    pipeline = StockPipeline(stock_cfg, provider_from_config(data_cfg))
    report_path = args.report or data_cfg.log_dir / f"stock_{safe_name(args.name)}_summary.json"

    try:
        result = pipeline.run()
    except StockError as e:
        pipeline.reporter.add_critical_error(str(e))
        pipeline.reporter.save(report_path)
        return 1

    table = result.to_frame()
    write_csv(table, data_cfg.output_dir, args.name)
    if args.to_duckdb:
        if data_cfg.duckdb_path is None:
            log.warning("--to-duckdb given without a DuckDB path; skipping")
        else:
            write_duckdb(table, data_cfg.duckdb_path, args.name)

    pipeline.reporter.save(report_path)

    log.info("\n" + "=" * 70)
    log.info("SUMMARY")
    log.info("=" * 70)
    log.info(f"Rows: {len(table)}; stock columns: {2 * len(result.stocks)}")
    log.info(f"Warnings: {len(pipeline.reporter.warnings)}")
    log.info("=" * 70)
    return 0


if __name__ == "__main__":
    sys.exit(main())
