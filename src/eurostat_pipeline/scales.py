"""Fixed scale derivation for cross-year comparable visual encodings."""

from dataclasses import dataclass
from typing import Dict, Optional

from eurostat_pipeline.reference import SCALED_INDICATORS, Indicator
from eurostat_pipeline.table import ObservationTable

PADDING = 0.05


@dataclass(frozen=True)
class ScaleRange:
    """Padded ``{min, max}`` range; both ends are None when no data exists."""

    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_empty(self) -> bool:
        return self.min is None or self.max is None


def derive_scale(table: ObservationTable, indicator: Indicator,
                 padding: float = PADDING) -> ScaleRange:
    """Global min/max across every entity and year, padded and floored at zero."""
    low = high = None
    for entity in table.entities(indicator):
        for _, value in table.series(indicator, entity):
            if low is None or value < low:
                low = value
            if high is None or value > high:
                high = value

    if low is None:
        return ScaleRange()

    spread = high - low
    return ScaleRange(min=max(0.0, low - spread * padding), max=high + spread * padding)


def derive_scales(table: ObservationTable) -> Dict[Indicator, ScaleRange]:
    return {indicator: derive_scale(table, indicator) for indicator in SCALED_INDICATORS}
