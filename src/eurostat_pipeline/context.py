"""Owned load state exposed to the rendering layer.

``DataContext`` is the only holder of the observation table, the scale
ranges and the current year. ``reload`` replaces all of them at once and
only after a load has fully succeeded.
"""

from typing import Callable, Dict, List, Optional, Union

from eurostat_pipeline.ingest.run import LoadPipeline, LoadResult
from eurostat_pipeline.logging_config import create_logger
from eurostat_pipeline.reference import COUNTRY_CODES, Indicator
from eurostat_pipeline.scales import ScaleRange

logger = create_logger(__name__)

Loader = Callable[[], LoadResult]


class DataContext:
    """Read-only view over the most recent successful load."""

    def __init__(self, loader: Optional[Loader] = None) -> None:
        self._loader = loader
        self._result: Optional[LoadResult] = None
        self.current_year: Optional[int] = None

    @property
    def loaded(self) -> bool:
        return self._result is not None

    @property
    def result(self) -> Optional[LoadResult]:
        return self._result

    @property
    def source(self) -> Optional[str]:
        return self._result.source if self._result else None

    def reload(self, loader: Optional[Loader] = None) -> LoadResult:
        """Run a full load and swap in its state.

        If the load raises, the previous state is kept and the error propagates.
        """
        load = loader or self._loader or LoadPipeline().run
        result = load()

        common = sorted(result.table.common_years(), reverse=True)
        years = sorted(result.table.years(), reverse=True)
        current_year = common[0] if common else (years[0] if years else None)

        self._result, self.current_year = result, current_year
        logger.info(f"Context reloaded from {result.source}; current year {current_year}")
        return result

    def get_value(self, entity: str, year: Union[int, str],
                  indicator: Union[Indicator, str]) -> Optional[float]:
        if self._result is None:
            return None
        if not isinstance(indicator, Indicator):
            indicator = Indicator.parse(indicator)
        return self._result.table.get(indicator, entity, year)

    def available_years(self) -> List[int]:
        """Every year present for any indicator, ascending."""
        if self._result is None:
            return []
        return sorted(self._result.table.years())

    def common_years(self) -> List[int]:
        """Years present for all three indicators, most recent first."""
        if self._result is None:
            return []
        return sorted(self._result.table.common_years(), reverse=True)

    @property
    def scales(self) -> Dict[Indicator, ScaleRange]:
        if self._result is None:
            return {}
        return dict(self._result.scales)

    def scale(self, indicator: Indicator) -> ScaleRange:
        return self.scales.get(indicator, ScaleRange())

    def eu_averages(self, year: int) -> Dict[Indicator, float]:
        """Mean of the present values per indicator for ``year``; 0 when none."""
        averages = {}
        for indicator in Indicator:
            values = [
                value for value in (
                    self.get_value(code, year, indicator) for code in COUNTRY_CODES
                )
                if value is not None
            ]
            averages[indicator] = sum(values) / len(values) if values else 0.0
        return averages
