"""Coverage metrics for a loaded observation table.

The metrics decide whether a remote load is complete enough to be used
or must be replaced by the local fallback file.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
import json
from typing import Dict, List, Optional

import duckdb

from eurostat_pipeline.logging_config import create_logger
from eurostat_pipeline.reference import COUNTRY_CODES, Indicator
from eurostat_pipeline.table import ObservationTable

logger = create_logger(__name__)


@dataclass
class IndicatorCoverage:
    """Coverage of a single indicator."""

    indicator: str
    total_records: int = 0
    total_entities: int = 0
    total_years: int = 0
    year_range_min: Optional[int] = None
    year_range_max: Optional[int] = None
    completeness_percentage: float = 0.0


@dataclass
class TableMetrics:
    """Coverage metrics for a whole observation table."""

    timestamp: str
    total_records: int
    total_years: int
    indicators: Dict[str, IndicatorCoverage]
    issues: List[str] = field(default_factory=list)

    def is_sufficient(self, min_entities: int, min_years: int) -> bool:
        """All indicators present with ``min_entities`` each, and ``min_years`` overall."""
        if self.total_years < min_years:
            return False
        return all(
            coverage.total_entities > 0 and coverage.total_entities >= min_entities
            for coverage in self.indicators.values()
        )


class QualityMetrics:
    """Calculate coverage metrics for an ``ObservationTable`` using DuckDB."""

    def __init__(self, connection: Optional[duckdb.DuckDBPyConnection] = None):
        """Initialize the calculator.

        Args:
            connection: DuckDB connection. If None, creates a new in-memory connection.
        """
        self.con = connection if connection else duckdb.connect()

    def calculate_table_metrics(self, table: ObservationTable) -> TableMetrics:
        """Calculate per-indicator coverage for ``table``.

        Args:
            table: Observation table to inspect

        Returns:
            TableMetrics with one IndicatorCoverage per indicator
        """
        self.con.register("observations", table.to_frame())
        coverage = {
            indicator.value: IndicatorCoverage(indicator=indicator.value)
            for indicator in Indicator
        }

        rows = self.con.execute(
            """
            SELECT
                indicator,
                COUNT(*) AS total_records,
                COUNT(DISTINCT entity) AS total_entities,
                COUNT(DISTINCT year) AS total_years,
                MIN(year) AS year_min,
                MAX(year) AS year_max
            FROM observations
            GROUP BY indicator
            """
        ).fetchall()

        for name, records, entities, years, year_min, year_max in rows:
            expected_cells = len(COUNTRY_CODES) * years
            coverage[name] = IndicatorCoverage(
                indicator=name,
                total_records=int(records),
                total_entities=int(entities),
                total_years=int(years),
                year_range_min=int(year_min),
                year_range_max=int(year_max),
                completeness_percentage=round(100.0 * records / expected_cells, 2)
                if expected_cells else 0.0,
            )

        total_years = self.con.execute(
            "SELECT COUNT(DISTINCT year) FROM observations"
        ).fetchone()[0]
        self.con.unregister("observations")

        issues = []
        for name, cov in coverage.items():
            if cov.total_records == 0:
                issues.append(f"No observations for {name}")
            elif cov.completeness_percentage < 80:
                issues.append(f"Low completeness for {name}: {cov.completeness_percentage:.2f}%")

        metrics = TableMetrics(
            timestamp=datetime.now().isoformat(),
            total_records=len(table),
            total_years=int(total_years or 0),
            indicators=coverage,
            issues=issues,
        )
        logger.info(
            "Coverage: "
            + ", ".join(
                f"{name}={cov.total_entities} entities/{cov.total_years} years"
                for name, cov in coverage.items()
            )
        )
        return metrics

    def export_metrics_json(self, metrics: TableMetrics, output_path: str) -> None:
        """Export metrics to a JSON file.

        Args:
            metrics: Table metrics
            output_path: Path to output JSON file
        """
        with open(output_path, "w") as f:
            json.dump(asdict(metrics), f, indent=2)
        logger.info(f"Metrics exported to {output_path}")
