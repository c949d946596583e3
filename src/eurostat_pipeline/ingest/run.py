"""Load pipeline for the Eurostat indicators dataset.

One load runs decode -> normalize -> detect -> correct -> derive scales as a
single sequence and produces a fresh ``LoadResult``. Remote data is used when
it is sufficiently complete; otherwise it is discarded and the local
fallback file is loaded instead. The two sources are never merged.
"""

import argparse
import sys
import time
from dataclasses import dataclass
from typing import Dict, Optional

from eurostat_pipeline.anomaly import AnomalyEngine, AnomalyReport, CorrectionPolicy
from eurostat_pipeline.config import (
    ENABLE_REMOTE_FETCH,
    LOCAL_DATA_PATH,
    MIN_ENTITIES_PER_INDICATOR,
    MIN_YEARS,
    validate_config,
)
from eurostat_pipeline.exceptions import (
    ConfigurationError,
    LocalFileError,
    NoDataAvailableError,
    PipelineBaseError,
)
from eurostat_pipeline.export import save_table
from eurostat_pipeline.ingest.fetch import EurostatClient
from eurostat_pipeline.local_normalizer import LocalFileNormalizer, load_local_file
from eurostat_pipeline.logging_config import create_logger, log_exception
from eurostat_pipeline.quality_metrics import QualityMetrics, TableMetrics
from eurostat_pipeline.reference import Indicator
from eurostat_pipeline.response_normalizer import ResponseNormalizer
from eurostat_pipeline.scales import ScaleRange, derive_scales
from eurostat_pipeline.table import ObservationTable

logger = create_logger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_LOCAL = "local"


@dataclass
class LoadResult:
    """Everything a completed load hands to downstream consumers."""

    source: str
    table: ObservationTable
    scales: Dict[Indicator, ScaleRange]
    anomaly_report: AnomalyReport
    metrics: TableMetrics


class LoadPipeline:
    """Acquire, normalize, correct and scale one complete dataset.

    Key features:
    - Parallel remote acquisition with isolated failures
    - Sufficiency check before accepting remote data
    - Local fallback file when remote data is missing or incomplete
    - Anomaly detection and bounded unit-scale correction
    - Stable scale ranges for the continuously-scaled indicators
    """

    def __init__(
        self,
        client: Optional[EurostatClient] = None,
        local_path: str = LOCAL_DATA_PATH,
        policy: Optional[CorrectionPolicy] = None,
        enable_remote: bool = ENABLE_REMOTE_FETCH,
        min_entities: int = MIN_ENTITIES_PER_INDICATOR,
        min_years: int = MIN_YEARS,
        quality: Optional[QualityMetrics] = None,
    ) -> None:
        self.client = client
        self.local_path = local_path
        self.engine = AnomalyEngine(policy)
        self.enable_remote = enable_remote
        self.min_entities = min_entities
        self.min_years = min_years
        self.quality = quality or QualityMetrics()

    def load_remote(self) -> ObservationTable:
        """Fetch and normalize every indicator into a fresh table."""
        client = self.client or EurostatClient()
        fetched = client.fetch_all()
        if not fetched.collector.has_successes():
            fetched.collector.raise_if_failures("Eurostat API unreachable")

        table = ObservationTable()
        normalizer = ResponseNormalizer(table)
        for indicator, payloads in fetched.payloads.items():
            for payload in payloads:
                normalizer.normalize(payload, indicator)
        return table

    def load_local(self) -> ObservationTable:
        """Normalize the local fallback file into a fresh table.

        :raises LocalFileError: If the file cannot be read
        """
        records = load_local_file(self.local_path)
        table = ObservationTable()
        LocalFileNormalizer(table).normalize(records)
        return table

    def _acquire(self):
        if self.enable_remote:
            try:
                table = self.load_remote()
            except PipelineBaseError as e:
                logger.error(f"Remote load failed: {e}")
                table = ObservationTable()

            if not table.is_empty():
                metrics = self.quality.calculate_table_metrics(table)
                if metrics.is_sufficient(self.min_entities, self.min_years):
                    return SOURCE_REMOTE, table
                logger.warning(
                    "Remote data incomplete "
                    f"(need {self.min_entities} entities per indicator and {self.min_years} years); "
                    "discarding it in favour of the local file"
                )
            else:
                logger.warning("Remote load produced no values")
        else:
            logger.info("Remote fetch disabled")

        try:
            return SOURCE_LOCAL, self.load_local()
        except LocalFileError as e:
            logger.error(f"Error loading local data: {e}")
            return SOURCE_LOCAL, ObservationTable()

    def run(self) -> LoadResult:
        """Run a complete load.

        :raises NoDataAvailableError: If no source produced a single value
        """
        start_time = time.time()
        source, table = self._acquire()

        if table.is_empty():
            raise NoDataAvailableError(
                "No data available from the Eurostat API or the local file"
            )

        report = self.engine.run(table)
        scales = derive_scales(table)
        if report.corrected:
            logger.info("Scales derived after corrections")
        metrics = self.quality.calculate_table_metrics(table)

        duration = time.time() - start_time
        logger.info(
            f"Load completed from {source}: {len(table)} values, "
            f"{len(table.years())} years, {len(report.corrections)} corrections "
            f"in {duration:.2f}s"
        )
        return LoadResult(
            source=source,
            table=table,
            scales=scales,
            anomaly_report=report,
            metrics=metrics,
        )


def print_summary(result: LoadResult) -> None:
    table = result.table
    years = sorted(table.years())
    print(f"\nData loaded from {result.source}")
    for indicator in Indicator:
        print(f"  {indicator.value}: {table.entity_count(indicator)} countries")
    if years:
        print(f"  Years: {years[0]}-{years[-1]} ({len(years)} available)")
    for indicator, scale in result.scales.items():
        print(f"  Scale {indicator.value}: {scale.min} .. {scale.max}")
    report = result.anomaly_report
    print(f"  Anomalies: {len(report.anomalies)} flagged, {len(report.confirmed)} confirmed, "
          f"{len(report.corrections)} corrected")
    for issue in result.metrics.issues:
        print(f"  Issue: {issue}")


def main(argv=None) -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Load Eurostat GDP, life expectancy and population data"
    )
    parser.add_argument(
        "--local-only",
        action="store_true",
        help="Skip the Eurostat API and load the local fallback file"
    )
    parser.add_argument(
        "--local-path",
        default=LOCAL_DATA_PATH,
        help="Path to the local fallback JSON file (default: from config)"
    )
    parser.add_argument(
        "--export",
        help="Write the observation table to a .parquet or .csv file"
    )
    parser.add_argument(
        "--metrics-json",
        help="Write coverage metrics to a JSON file"
    )
    args = parser.parse_args(argv)

    try:
        validate_config()
        pipeline = LoadPipeline(
            local_path=args.local_path,
            enable_remote=ENABLE_REMOTE_FETCH and not args.local_only,
        )
        result = pipeline.run()
    except NoDataAvailableError as e:
        logger.error(f"{e}. Check the internet connection or the local data file.")
        return 1
    except ConfigurationError as e:
        log_exception(logger, e, {"context": "Configuration"})
        return 1

    print_summary(result)
    if args.export:
        save_table(result.table, args.export)
    if args.metrics_json:
        pipeline.quality.export_metrics_json(result.metrics, args.metrics_json)
    return 0


if __name__ == "__main__":
    sys.exit(main())
