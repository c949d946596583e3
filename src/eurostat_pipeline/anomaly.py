"""Year-over-year anomaly detection and unit-scale self-correction.

Detection scans every (indicator, entity) series independently and flags
relative jumps above indicator-specific thresholds. A flagged jump is
confirmed when the following change is also large, when it is more than
twice the threshold, or when it falls on the known base-year transition.

Correction is a separate, bounded pass: it only inspects the configured
correction year and tries a small set of divisors. Whether a candidate may
be applied is decided by ``CorrectionPolicy.decision_table``, keyed by
``(indicator, confirmed, factor)``. Confirmed anomalies elsewhere in a
series are reported, never rewritten.

This is a heuristic. It can miss real anomalies and it can alter
legitimately volatile data.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from eurostat_pipeline.exceptions import ConfigurationError
from eurostat_pipeline.logging_config import create_logger
from eurostat_pipeline.reference import Indicator
from eurostat_pipeline.table import ObservationTable

logger = create_logger(__name__)

DecisionKey = Tuple[Indicator, bool, int]


@dataclass(frozen=True)
class PlausibleRange:
    """Open interval of physically plausible values."""

    low: float
    high: float

    def contains(self, value: float) -> bool:
        return self.low < value < self.high


DEFAULT_THRESHOLDS: Dict[Indicator, float] = {
    Indicator.OUTPUT: 25.0,
    Indicator.LIFE_EXPECTANCY: 15.0,
    Indicator.POPULATION: 10.0,
}

DEFAULT_PLAUSIBLE_RANGES: Dict[Indicator, PlausibleRange] = {
    Indicator.OUTPUT: PlausibleRange(5_000, 120_000),
    Indicator.POPULATION: PlausibleRange(0, 85_000_000),
}

DEFAULT_FACTORS: Tuple[int, ...] = (10, 100)

CORRECTABLE_INDICATORS = (Indicator.OUTPUT, Indicator.POPULATION)


def default_decision_table(factors: Tuple[int, ...] = DEFAULT_FACTORS) -> Dict[DecisionKey, bool]:
    """Accept rescaling only for confirmed output and population anomalies."""
    return {
        (indicator, confirmed, factor): confirmed and indicator in CORRECTABLE_INDICATORS
        for indicator in Indicator
        for confirmed in (True, False)
        for factor in factors
    }


@dataclass
class CorrectionPolicy:
    """Thresholds, transition years and rescaling rules for the anomaly engine."""

    thresholds: Dict[Indicator, float] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    special_transition: Tuple[int, int] = (2009, 2010)
    correction_year: int = 2010
    factors: Tuple[int, ...] = DEFAULT_FACTORS
    plausible_ranges: Dict[Indicator, PlausibleRange] = field(
        default_factory=lambda: dict(DEFAULT_PLAUSIBLE_RANGES)
    )
    min_improvement: float = 0.5
    decision_table: Optional[Dict[DecisionKey, bool]] = None

    def __post_init__(self) -> None:
        missing = [ind.value for ind in Indicator if ind not in self.thresholds]
        if missing:
            raise ConfigurationError(f"Anomaly thresholds missing for: {missing}")
        unbounded = [ind.value for ind in CORRECTABLE_INDICATORS if ind not in self.plausible_ranges]
        if unbounded:
            raise ConfigurationError(f"Plausible ranges missing for: {unbounded}")
        if any(factor <= 1 for factor in self.factors):
            raise ConfigurationError(f"Rescaling factors must be > 1, got {self.factors}")
        if not 0 < self.min_improvement <= 1:
            raise ConfigurationError("min_improvement must be in (0, 1]")
        if self.decision_table is None:
            self.decision_table = default_decision_table(self.factors)

    def threshold(self, indicator: Indicator) -> float:
        return self.thresholds[indicator]

    def accepts(self, indicator: Indicator, confirmed: bool, factor: int) -> bool:
        return self.decision_table.get((indicator, confirmed, factor), False)

    def is_special(self, from_year: int, to_year: int) -> bool:
        return (from_year, to_year) == tuple(self.special_transition)


@dataclass
class Anomaly:
    indicator: Indicator
    entity: str
    from_year: int
    to_year: int
    from_value: float
    to_value: float
    percent_change: float
    next_percent_change: Optional[float]
    confirmed: bool
    special: bool

    @property
    def direction(self) -> str:
        return "increase" if self.to_value > self.from_value else "decrease"

    def touches(self, year: int) -> bool:
        return year in (self.from_year, self.to_year)


@dataclass
class Correction:
    indicator: Indicator
    entity: str
    year: int
    original: float
    corrected: float
    factor: int


@dataclass
class AnomalyReport:
    anomalies: List[Anomaly] = field(default_factory=list)
    corrections: List[Correction] = field(default_factory=list)

    @property
    def confirmed(self) -> List[Anomaly]:
        return [a for a in self.anomalies if a.confirmed]

    @property
    def corrected(self) -> bool:
        return bool(self.corrections)


def relative_change(a: float, b: float) -> Optional[float]:
    """``|b - a| / max(a, b) * 100``; None when the larger value is not positive."""
    larger = max(a, b)
    if larger <= 0:
        return None
    return abs(b - a) / larger * 100


class AnomalyEngine:
    """Detect and correct anomalies in an ``ObservationTable`` in place."""

    def __init__(self, policy: Optional[CorrectionPolicy] = None) -> None:
        self.policy = policy or CorrectionPolicy()
        # Reference value each correctable indicator is compared against
        self._references: Dict[Indicator, Optional[Callable]] = {
            Indicator.OUTPUT: self._output_reference,
            Indicator.LIFE_EXPECTANCY: None,
            Indicator.POPULATION: self._population_reference,
        }

    def run(self, table: ObservationTable) -> AnomalyReport:
        report = AnomalyReport(anomalies=self.detect(table))
        confirmed = report.confirmed
        logger.info(
            f"Anomaly scan: {len(report.anomalies)} flagged, {len(confirmed)} confirmed"
        )

        if confirmed:
            report.corrections = self.correct(table, report.anomalies)

        correction_year = self.policy.correction_year
        for anomaly in confirmed:
            if not anomaly.touches(correction_year):
                logger.warning(
                    f"Unreviewed anomaly {anomaly.entity} {anomaly.indicator.value} "
                    f"{anomaly.from_year}->{anomaly.to_year}: "
                    f"{anomaly.from_value} -> {anomaly.to_value} "
                    f"({anomaly.percent_change:.1f}% {anomaly.direction}), left unchanged"
                )
        return report

    def detect(self, table: ObservationTable) -> List[Anomaly]:
        anomalies: List[Anomaly] = []
        for indicator in Indicator:
            threshold = self.policy.threshold(indicator)
            for entity in table.entities(indicator):
                series = table.series(indicator, entity)
                anomalies.extend(self._scan_series(indicator, entity, series, threshold))
        return anomalies

    def _scan_series(self, indicator: Indicator, entity: str,
                     series: List[Tuple[int, float]], threshold: float) -> List[Anomaly]:
        found = []
        for i in range(1, len(series)):
            prev_year, prev_value = series[i - 1]
            year, value = series[i]
            percent = relative_change(prev_value, value)
            if percent is None:
                continue

            special = self.policy.is_special(prev_year, year)
            flagged = percent > threshold or (special and percent > threshold * 0.5)
            if not flagged:
                continue

            next_percent = None
            if i < len(series) - 1:
                next_percent = relative_change(value, series[i + 1][1])

            confirmed = (
                (next_percent is not None and next_percent > threshold)
                or percent > threshold * 2
                or special
            )
            found.append(Anomaly(
                indicator=indicator,
                entity=entity,
                from_year=prev_year,
                to_year=year,
                from_value=prev_value,
                to_value=value,
                percent_change=percent,
                next_percent_change=next_percent,
                confirmed=confirmed,
                special=special,
            ))
            logger.debug(
                f"{'Confirmed' if confirmed else 'Flagged'} jump {entity} "
                f"{indicator.value} {prev_year}->{year}: {percent:.1f}%"
            )
        return found

    def correct(self, table: ObservationTable, anomalies: List[Anomaly]) -> List[Correction]:
        """Try rescaling values at the correction year; mutates ``table``."""
        corrections: List[Correction] = []
        year = self.policy.correction_year

        for indicator in Indicator:
            reference_for = self._references[indicator]
            if reference_for is None:
                continue
            threshold = self.policy.threshold(indicator)

            for entity in table.entities(indicator):
                series = table.series(indicator, entity)
                years = [y for y, _ in series]
                if year not in years:
                    continue
                i = years.index(year)
                if i == len(series) - 1:
                    continue

                value = series[i][1]
                next_value = series[i + 1][1]
                percent = relative_change(value, next_value)
                if percent is None or percent <= threshold:
                    continue

                prev_value = series[i - 1][1] if i > 0 else None
                reference = reference_for(value, prev_value, next_value)
                if reference is None:
                    continue

                confirmed = any(
                    a.confirmed and a.indicator is indicator and a.entity == entity
                    and a.touches(year)
                    for a in anomalies
                )
                correction = self._try_rescale(indicator, entity, value, reference, confirmed)
                if correction:
                    table.set(indicator, entity, year, correction.corrected)
                    corrections.append(correction)
                    logger.warning(
                        f"Corrected {entity} {indicator.value} {year}: "
                        f"{correction.original} -> {correction.corrected} (÷{correction.factor})"
                    )
                else:
                    logger.info(
                        f"No acceptable rescaling for {entity} {indicator.value} {year}; "
                        "value left unchanged"
                    )

        if corrections:
            logger.info(f"Applied {len(corrections)} corrections")
        return corrections

    def _try_rescale(self, indicator: Indicator, entity: str, value: float,
                     reference: float, confirmed: bool) -> Optional[Correction]:
        plausible = self.policy.plausible_ranges[indicator]
        original_diff = abs(value - reference)
        for factor in self.policy.factors:
            candidate = value / factor
            improves = abs(candidate - reference) < original_diff * self.policy.min_improvement
            if (
                self.policy.accepts(indicator, confirmed, factor)
                and improves
                and plausible.contains(candidate)
            ):
                return Correction(indicator, entity, self.policy.correction_year,
                                  value, candidate, factor)
        return None

    def _population_reference(self, value: float, prev_value: Optional[float],
                              next_value: float) -> Optional[float]:
        # Only values above the physical ceiling are treated as a unit error
        if value <= self.policy.plausible_ranges[Indicator.POPULATION].high:
            return None
        return next_value

    def _output_reference(self, value: float, prev_value: Optional[float],
                          next_value: float) -> Optional[float]:
        if prev_value is None:
            return None
        neighbors = (prev_value + next_value) / 2
        if abs(value - neighbors) <= neighbors * 0.5:
            return None
        return neighbors
