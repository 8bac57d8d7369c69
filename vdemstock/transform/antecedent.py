"""
Antecedent Resolver

For years in which a country's historical identity differs from its modern
one, there is no country-specific record. Those years take the contemporaneous
mean of the filled indicator across every country mapped to the same
historical polity. A short list of literal overrides then patches documented
colonial-administration gaps.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import pandas as pd

from vdemstock.errors import UnknownVariable
from vdemstock.reporter import RunReporter
from vdemstock.transform.fill import FilledIndicator

log = logging.getLogger("vdemstock.antecedent")

# Historical ids shared by a predecessor polity and its successor states
CHANGED_HISTORICAL_IDS = frozenset({
    11, 13, 15, 17, 19, 26, 29, 33, 34, 35, 37, 39, 42, 76, 77,
    91, 97, 99, 101, 110, 112, 125, 144, 157, 158, 190, 197, 198, 210, 373,
})


def _window(panel: pd.DataFrame, country_ids, year_start: int, year_end: int) -> pd.Series:
    return (
        panel["country_id"].isin(country_ids)
        & (panel["year"] >= year_start)
        & (panel["year"] <= year_end)
    )


@dataclass(frozen=True)
class CarryForward:
    """Carry the previous year's antecedent value through [year_start, year_end]."""
    country_id: int
    year_start: int
    year_end: int
    note: str = ""

    def apply(self, panel: pd.DataFrame, antecedent: pd.Series, filled: pd.Series) -> pd.Series:
        out = antecedent.copy()
        rows = panel.index[panel["country_id"] == self.country_id]
        by_year = dict(zip(panel.loc[rows, "year"], rows))
        for year in range(self.year_start, self.year_end + 1):
            if year in by_year and (year - 1) in by_year:
                out.at[by_year[year]] = out.at[by_year[year - 1]]
        return out


@dataclass(frozen=True)
class GroupMean:
    """Replace [year_start, year_end] with the yearly mean filled value of `source_ids`."""
    country_id: int
    year_start: int
    year_end: int
    source_ids: Tuple[int, ...]
    note: str = ""

    def apply(self, panel: pd.DataFrame, antecedent: pd.Series, filled: pd.Series) -> pd.Series:
        out = antecedent.copy()
        source = _window(panel, self.source_ids, self.year_start, self.year_end)
        means = filled[source].groupby(panel.loc[source, "year"]).mean()
        target = _window(panel, [self.country_id], self.year_start, self.year_end)
        out.loc[target] = panel.loc[target, "year"].map(means)
        return out


ANTECEDENT_OVERRIDES: Tuple = (
    CarryForward(34, 1891, 1901, "Vietnam: French colonial rule, similar values either side of the gap"),
    CarryForward(13, 1883, 1912, "Egypt: British colonial rule, similar values either side of the gap"),
    GroupMean(54, 1932, 1946, (64, 28, 60), "Burkina Faso: administered within French West Africa"),
)


def historical_means(panel: pd.DataFrame, filled: pd.Series) -> pd.DataFrame:
    """Mean filled value per (country_id_hist, year) over the changed historical ids."""
    frame = pd.DataFrame({
        "country_id_hist": panel["country_id_hist"],
        "year": panel["year"],
        "value": filled,
    })
    frame = frame[frame["country_id_hist"].isin(CHANGED_HISTORICAL_IDS)]
    return frame.groupby(["country_id_hist", "year"], as_index=False)["value"].mean()


def resolve_antecedent(
    panel: pd.DataFrame,
    indicator: FilledIndicator,
    overrides: Sequence = ANTECEDENT_OVERRIDES,
) -> pd.Series:
    """Antecedent series for one indicator, aligned to panel.index."""
    if "country_id_hist" not in panel.columns:
        raise UnknownVariable("country_id_hist", "panel (resolve historical ids first)")

    filled = indicator.filled
    antecedent = filled.copy()

    remapped = panel["country_id_hist"] != panel["country_id"]
    if remapped.any():
        means = historical_means(panel, filled)
        joined = panel.loc[remapped, ["country_id_hist", "year"]].merge(
            means, on=["country_id_hist", "year"], how="left"
        )
        antecedent.loc[remapped] = joined["value"].to_numpy()

    for override in overrides:
        antecedent = override.apply(panel, antecedent, filled)

    return antecedent.rename(f"{indicator.variable}_hist")


def resolve_antecedents(
    panel: pd.DataFrame,
    indicators: Dict[str, FilledIndicator],
    overrides: Sequence = ANTECEDENT_OVERRIDES,
    reporter: Optional[RunReporter] = None,
) -> Dict[str, pd.Series]:
    """Antecedent series for every indicator."""
    out = {}
    for variable, indicator in indicators.items():
        out[variable] = resolve_antecedent(panel, indicator, overrides)
        if reporter is not None:
            reporter.add_metric(f"antecedent_values[{variable}]", int(out[variable].notna().sum()))
    log.info("Antecedent values imputed")
    return out
