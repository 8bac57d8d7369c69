"""
Named persistence of stock results (CSV and DuckDB).
"""

import logging
import re
from pathlib import Path

import pandas as pd

try:
    import duckdb
    HAVE_DUCKDB = True
except ImportError:
    HAVE_DUCKDB = False

log = logging.getLogger("vdemstock.writers")

_NAME_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def safe_name(name: str) -> str:
    """Turn an output name such as 'v.dem.out' into a table/file-safe identifier."""
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Output name must be a non-empty string")
    cleaned = re.sub(r"[^A-Za-z0-9_]", "_", name.strip())
    if not _NAME_RE.match(cleaned):
        cleaned = f"_{cleaned}"
    return cleaned


def write_csv(df: pd.DataFrame, output_dir: Path, name: str) -> Path:
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{safe_name(name)}.csv"
    df.to_csv(path, index=False)
    log.info(f"✓ Wrote {len(df)} rows → {path}")
    return path


def write_duckdb(df: pd.DataFrame, duck_path: Path, name: str, schema: str = "gold") -> str:
    """Write the table to {schema}.{name}, replacing any previous result of that name."""
    if not HAVE_DUCKDB:
        log.warning("duckdb not installed; skipping DuckDB write")
        return ""

    table = f"{safe_name(schema)}.{safe_name(name)}"
    Path(duck_path).parent.mkdir(parents=True, exist_ok=True)
    con = duckdb.connect(str(duck_path))
    try:
        con.execute(f"CREATE SCHEMA IF NOT EXISTS {safe_name(schema)}")
        con.register("df_tmp", df)
        con.execute(f"CREATE OR REPLACE TABLE {table} AS SELECT * FROM df_tmp")
        con.unregister("df_tmp")
        log.info(f"✓ Wrote {len(df)} rows to {table}")
    finally:
        con.close()
    return table
