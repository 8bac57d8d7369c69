"""Raw panel acquisition (CSV, DuckDB, in-memory)."""

from vdemstock.ingest.provider import (
    CsvProvider,
    DatasetProvider,
    DuckDBProvider,
    FrameProvider,
    as_provider,
    provider_from_config,
)
