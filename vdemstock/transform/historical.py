"""
Historical Identity Resolver

Attaches `country_id_hist` to every panel row: the id of the polity a modern
country is treated as inheriting its history from in that year (e.g. Ukraine
before 1990 → Russia/USSR). Rows no rule covers keep their own country_id.

The rules are data, read from reference/historical_rules.csv. File order is
evaluation order: a later rule overwrites an earlier one for the same
country-year.
"""

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from vdemstock.config import DEFAULT_RULES_PATH
from vdemstock.errors import RuleConflict
from vdemstock.reporter import RunReporter

log = logging.getLogger("vdemstock.historical")


@dataclass(frozen=True)
class HistoricalIdentityRule:
    country_id: int
    year_start: Optional[int]  # None = open
    year_end: Optional[int]    # None = open
    predecessor_id: int
    country_name: str = ""

    def covers(self, year: int) -> bool:
        if self.year_start is not None and year < self.year_start:
            return False
        if self.year_end is not None and year > self.year_end:
            return False
        return True

    def overlaps(self, other: "HistoricalIdentityRule") -> bool:
        if self.country_id != other.country_id:
            return False
        lo = max(
            self.year_start if self.year_start is not None else -np.inf,
            other.year_start if other.year_start is not None else -np.inf,
        )
        hi = min(
            self.year_end if self.year_end is not None else np.inf,
            other.year_end if other.year_end is not None else np.inf,
        )
        return lo <= hi

    def describe(self) -> str:
        start = self.year_start if self.year_start is not None else "…"
        end = self.year_end if self.year_end is not None else "…"
        return f"{self.country_name or self.country_id} ({self.country_id}) {start}-{end} → {self.predecessor_id}"


def _optional_int(value) -> Optional[int]:
    return None if pd.isna(value) else int(value)


class HistoricalRuleTable:
    """
    Ordered historical identity rules with a per-country interval lookup.
    """

    def __init__(self, rules: Sequence[HistoricalIdentityRule], strict: bool = False):
        self.rules: Tuple[HistoricalIdentityRule, ...] = tuple(rules)
        self.by_country: Dict[int, List[HistoricalIdentityRule]] = {}
        for rule in self.rules:
            self.by_country.setdefault(rule.country_id, []).append(rule)

        overlaps = self.find_overlaps()
        if overlaps:
            lines = [f"{a.describe()} / {b.describe()}" for a, b in overlaps]
            if strict:
                raise RuleConflict("Overlapping historical identity rules: " + "; ".join(lines))
            for line in lines:
                log.warning(f"Overlapping historical rules (later wins): {line}")

    @classmethod
    def load(cls, path: Optional[Path] = None, strict: bool = False) -> "HistoricalRuleTable":
        """Read rules from CSV, preserving file order."""
        path = Path(path) if path is not None else DEFAULT_RULES_PATH
        df = pd.read_csv(path, dtype={"country_name": str})
        rules = [
            HistoricalIdentityRule(
                country_id=int(row.country_id),
                year_start=_optional_int(row.year_start),
                year_end=_optional_int(row.year_end),
                predecessor_id=int(row.predecessor_id),
                country_name=row.country_name if isinstance(row.country_name, str) else "",
            )
            for row in df.itertuples(index=False)
        ]
        log.debug(f"Loaded {len(rules)} historical identity rules from {path}")
        return cls(rules, strict=strict)

    def __len__(self) -> int:
        return len(self.rules)

    def find_overlaps(self) -> List[Tuple[HistoricalIdentityRule, HistoricalIdentityRule]]:
        """Pairs of rules (earlier, later) covering the same country-year."""
        pairs = []
        for rules in self.by_country.values():
            for i, earlier in enumerate(rules):
                for later in rules[i + 1:]:
                    if earlier.overlaps(later):
                        pairs.append((earlier, later))
        return pairs

    def resolve(self, country_id: int, year: int) -> int:
        """Historical id for one country-year."""
        hist = country_id
        for rule in self.by_country.get(country_id, ()):
            if rule.covers(year):
                hist = rule.predecessor_id
        return hist

    def apply(self, panel: pd.DataFrame, reporter: Optional[RunReporter] = None) -> pd.DataFrame:
        """Return a copy of `panel` with `country_id_hist` after `country_name`."""
        ids = panel["country_id"].to_numpy()
        years = panel["year"].to_numpy()
        hist = ids.astype("int64", copy=True)

        for rule in self.rules:
            mask = ids == rule.country_id
            if rule.year_start is not None:
                mask &= years >= rule.year_start
            if rule.year_end is not None:
                mask &= years <= rule.year_end
            hist[mask] = rule.predecessor_id

        out = panel.drop(columns=["country_id_hist"], errors="ignore")
        pos = out.columns.get_loc("country_name") + 1 if "country_name" in out.columns else 0
        out.insert(pos, "country_id_hist", hist)

        n_changed = int((hist != ids).sum())
        log.info(f"Historical country ID created ({n_changed} country-years mapped to a predecessor)")
        if reporter is not None:
            reporter.add_metric("historical_rows_remapped", n_changed)
        return out


@lru_cache(maxsize=None)
def _cached_table(path: str, strict: bool) -> HistoricalRuleTable:
    return HistoricalRuleTable.load(Path(path), strict=strict)


def default_rule_table(path: Optional[Path] = None, strict: bool = False) -> HistoricalRuleTable:
    """Shared read-only table, loaded once per (path, strict)."""
    return _cached_table(str(path or DEFAULT_RULES_PATH), strict)


def resolve_historical_ids(
    panel: pd.DataFrame,
    table: Optional[HistoricalRuleTable] = None,
    reporter: Optional[RunReporter] = None,
) -> pd.DataFrame:
    table = table if table is not None else default_rule_table()
    return table.apply(panel, reporter=reporter)
