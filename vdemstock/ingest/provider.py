"""
Dataset providers for the raw country-year panel.

A provider returns a DataFrame with at least `country_id`, `country_name`,
`year` and the indicator columns. The V-Dem country-year file is usually read
from CSV; a DuckDB warehouse table is supported as well.
"""

import logging
from pathlib import Path
from typing import Optional, Protocol

import pandas as pd

try:
    import duckdb
    HAVE_DUCKDB = True
except ImportError:
    HAVE_DUCKDB = False

from vdemstock.config import DataConfig
from vdemstock.errors import MissingDataset

log = logging.getLogger("vdemstock.ingest")


class DatasetProvider(Protocol):
    def load(self) -> pd.DataFrame:
        ...


class FrameProvider:
    """Wraps an in-memory DataFrame."""

    def __init__(self, frame: pd.DataFrame):
        if frame is None:
            raise MissingDataset("No dataset supplied")
        self.frame = frame

    def load(self) -> pd.DataFrame:
        return self.frame.copy()


class CsvProvider:
    """Reads the panel from a CSV file (optionally restricted to some columns)."""

    def __init__(self, path: Path, columns: Optional[list] = None):
        self.path = Path(path)
        self.columns = columns

    def load(self) -> pd.DataFrame:
        if not self.path.exists():
            raise MissingDataset(f"Panel dataset not found: {self.path}")
        log.info(f"Loading panel from CSV: {self.path}")
        df = pd.read_csv(self.path, usecols=self.columns, low_memory=False)
        log.info(f"Loaded {len(df)} observations from CSV")
        return df


class DuckDBProvider:
    """Reads the panel from a table in a DuckDB warehouse."""

    def __init__(self, path: Path, table: str):
        self.path = Path(path)
        self.table = table

    def load(self) -> pd.DataFrame:
        if not HAVE_DUCKDB:
            raise MissingDataset("duckdb not installed; cannot read warehouse table")
        if not self.path.exists():
            raise MissingDataset(f"DuckDB warehouse not found: {self.path}")

        log.info(f"Loading panel from DuckDB: {self.path} ({self.table})")
        con = duckdb.connect(str(self.path), read_only=True)
        try:
            df = con.execute(f"SELECT * FROM {self.table}").fetchdf()
        except duckdb.Error as e:
            raise MissingDataset(f"Could not read {self.table} from {self.path}: {e}") from e
        finally:
            con.close()
        log.info(f"Loaded {len(df)} observations from DuckDB")
        return df


def provider_from_config(cfg: DataConfig) -> Optional[DatasetProvider]:
    """Pick the configured source: DuckDB table first, then CSV, else None."""
    if cfg.duckdb_path is not None and cfg.table:
        if Path(cfg.duckdb_path).exists() or cfg.data_path is None:
            return DuckDBProvider(cfg.duckdb_path, cfg.table)
        log.warning(f"DuckDB warehouse {cfg.duckdb_path} not found; falling back to CSV")
    if cfg.data_path is not None:
        return CsvProvider(cfg.data_path)
    return None


def as_provider(dataset) -> Optional[DatasetProvider]:
    """Accept a DataFrame, a provider or None."""
    if dataset is None:
        return None
    if isinstance(dataset, pd.DataFrame):
        return FrameProvider(dataset)
    if hasattr(dataset, "load"):
        return dataset
    raise TypeError(f"Unsupported dataset type: {type(dataset).__name__}")
