"""
Runtime configuration for the stock pipeline.

Values come from dataclass defaults, overridden by environment variables
(optionally loaded from a repo-root .env file). Explicit arguments passed to
`compute_stock` or the CLI always win over both.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

log = logging.getLogger("vdemstock.config")

PACKAGE_DIR = Path(__file__).resolve().parent
REFERENCE_DIR = PACKAGE_DIR / "reference"
DEFAULT_RULES_PATH = REFERENCE_DIR / "historical_rules.csv"

DEFAULT_VARIABLES = ["v2x_polyarchy"]
DEFAULT_WEIGHTS = [0.99]
DEFAULT_FILL = 5

_DOTENV_LOADED_FROM: Optional[str] = None


def load_env_file() -> Optional[str]:
    """Load the first .env found (cwd, then repo root). Exported vars take precedence."""
    global _DOTENV_LOADED_FROM
    candidates = [Path.cwd() / ".env", PACKAGE_DIR.parent / ".env"]
    for dotenv_path in candidates:
        if dotenv_path.exists():
            load_dotenv(dotenv_path=dotenv_path, override=False)
            _DOTENV_LOADED_FROM = str(dotenv_path)
            log.debug(f"Loaded environment from {dotenv_path}")
            break
    return _DOTENV_LOADED_FROM


# ===============================
# Config
# ===============================

@dataclass
class StockConfig:
    """
    Parameters of one stock computation.
    """
    variables: List[str] = field(default_factory=lambda: list(DEFAULT_VARIABLES))
    weights: List[float] = field(default_factory=lambda: list(DEFAULT_WEIGHTS))
    fill: int = DEFAULT_FILL
    extra_variables: List[str] = field(default_factory=list)

    # Performance
    max_workers: int = 1

    # Historical identity rules
    rules_path: Path = DEFAULT_RULES_PATH
    strict_rules: bool = False


@dataclass
class DataConfig:
    """
    Where the raw panel comes from and where named results go.
    """
    data_path: Optional[Path] = None
    duckdb_path: Optional[Path] = None
    table: Optional[str] = None

    output_dir: Path = Path("data/stock")
    log_dir: Path = Path("data/logs")
    log_level: str = "INFO"


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


def load_config() -> tuple[StockConfig, DataConfig]:
    """Build configs from the environment (VDEMSTOCK_* variables)."""
    load_env_file()

    stock_cfg = StockConfig()
    workers = os.getenv("VDEMSTOCK_WORKERS")
    if workers:
        stock_cfg.max_workers = max(1, int(workers))

    data_cfg = DataConfig(
        data_path=_env_path("VDEMSTOCK_DATA_PATH"),
        duckdb_path=_env_path("VDEMSTOCK_DUCKDB_PATH"),
        table=os.getenv("VDEMSTOCK_TABLE") or None,
    )
    output_dir = _env_path("VDEMSTOCK_OUTPUT_DIR")
    if output_dir is not None:
        data_cfg.output_dir = output_dir
    log_dir = _env_path("VDEMSTOCK_LOG_DIR")
    if log_dir is not None:
        data_cfg.log_dir = log_dir
    data_cfg.log_level = os.getenv("VDEMSTOCK_LOG_LEVEL", data_cfg.log_level).upper()

    return stock_cfg, data_cfg
