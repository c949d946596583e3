"""Observation table: the normalized ``indicator -> entity -> year -> value`` store.

Absent data is represented by key absence only; every stored value is a
finite float.
"""

import math
from typing import Dict, Iterator, List, Optional, Set, Tuple, Union

import pandas as pd

from eurostat_pipeline.reference import Indicator

Year = int
FRAME_COLUMNS = ["indicator", "entity", "year", "value"]


def is_finite_number(value) -> bool:
    """True for real numbers that are neither NaN nor infinite (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # ints beyond float range
        return False


def coerce_year(year: Union[int, str]) -> Optional[int]:
    if isinstance(year, bool):
        return None
    if isinstance(year, int):
        return year
    try:
        return int(str(year).strip())
    except (TypeError, ValueError):
        return None


class ObservationTable:
    """Mapping of indicator to entity to year to value, built once per load."""

    def __init__(self) -> None:
        self._data: Dict[Indicator, Dict[str, Dict[Year, float]]] = {
            indicator: {} for indicator in Indicator
        }

    def set(self, indicator: Indicator, entity: str, year: Year, value: float) -> None:
        """Store a value, overwriting any earlier one for the same key.

        :raises ValueError: If the value is not a finite number
        """
        if not is_finite_number(value):
            raise ValueError(f"Refusing to store non-finite value {value!r}")
        self._data[indicator].setdefault(entity, {})[int(year)] = float(value)

    def get(self, indicator: Indicator, entity: str, year: Union[int, str]) -> Optional[float]:
        year_num = coerce_year(year)
        if year_num is None:
            return None
        return self._data[indicator].get(entity, {}).get(year_num)

    def has(self, indicator: Indicator, entity: str, year: Year) -> bool:
        return year in self._data[indicator].get(entity, {})

    def entities(self, indicator: Indicator) -> List[str]:
        return [entity for entity, years in self._data[indicator].items() if years]

    def series(self, indicator: Indicator, entity: str) -> List[Tuple[Year, float]]:
        """Return the entity's observations sorted by ascending year."""
        return sorted(self._data[indicator].get(entity, {}).items())

    def entity_count(self, indicator: Indicator) -> int:
        return len(self.entities(indicator))

    def count(self, indicator: Optional[Indicator] = None) -> int:
        indicators = [indicator] if indicator else list(Indicator)
        return sum(
            len(years)
            for ind in indicators
            for years in self._data[ind].values()
        )

    def years(self, indicator: Optional[Indicator] = None) -> Set[Year]:
        indicators = [indicator] if indicator else list(Indicator)
        found: Set[Year] = set()
        for ind in indicators:
            for years in self._data[ind].values():
                found.update(years)
        return found

    def common_years(self) -> Set[Year]:
        """Years for which every indicator has at least one observation."""
        per_indicator = [self.years(indicator) for indicator in Indicator]
        return set.intersection(*per_indicator)

    def is_empty(self) -> bool:
        return self.count() == 0

    def iter_values(self) -> Iterator[Tuple[Indicator, str, Year, float]]:
        for indicator in Indicator:
            for entity, years in self._data[indicator].items():
                for year, value in years.items():
                    yield indicator, entity, year, value

    def to_frame(self) -> pd.DataFrame:
        """Long-format frame with one row per observation."""
        rows = [
            (indicator.value, entity, year, value)
            for indicator, entity, year, value in self.iter_values()
        ]
        frame = pd.DataFrame(rows, columns=FRAME_COLUMNS)
        return frame.astype({"year": "int64", "value": "float64"})

    def __len__(self) -> int:
        return self.count()

    def __repr__(self) -> str:
        counts = ", ".join(
            f"{indicator.value}={self.entity_count(indicator)} entities"
            for indicator in Indicator
        )
        return f"ObservationTable({counts}, {len(self)} values)"
