"""Local fallback file ingestion.

The fallback file is a flat JSON list of already-labelled records::

    [{"indicator": "POP", "tara": "DK", "an": 2015, "valoare": 5659715}, ...]

English keys (``entity``, ``year``, ``value``) are accepted as well.
"""

import json
import math
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from eurostat_pipeline.exceptions import LocalFileError, UnknownIndicatorError
from eurostat_pipeline.logging_config import create_logger
from eurostat_pipeline.reference import Indicator, indicator_from_tag, is_known_entity
from eurostat_pipeline.table import ObservationTable

logger = create_logger(__name__)

ENTITY_KEYS = ("entity", "tara")
YEAR_KEYS = ("year", "an")
VALUE_KEYS = ("value", "valoare")

# Relative difference (percent of the larger value) above which a
# duplicate key is reported
CONFLICT_THRESHOLD_PCT = 50.0

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


@dataclass(frozen=True)
class KnownCorrection:
    """A fixed multiplier for one entity/indicator whose raw values are undercounted."""

    entity: str
    indicator: Indicator
    below: float
    factor: float

    def applies(self, entity: str, indicator: Indicator, value: float) -> bool:
        return entity == self.entity and indicator is self.indicator and value < self.below


# Danish population in the fallback file is stored at a reduced scale
KNOWN_CORRECTIONS: Tuple[KnownCorrection, ...] = (
    KnownCorrection(entity="DK", indicator=Indicator.POPULATION, below=1_000_000, factor=6.7),
)


@dataclass
class MergeConflict:
    indicator: Indicator
    entity: str
    year: int
    existing: float
    new: float
    percent_diff: float


@dataclass
class LocalNormalizationStats:
    processed: int = 0
    skipped: int = 0
    corrected: int = 0
    conflicts: List[MergeConflict] = field(default_factory=list)


def load_local_file(path: str) -> List[Dict[str, Any]]:
    """Read the fallback file and return its list of records.

    :raises LocalFileError: If the file is missing, unreadable or not a JSON list
    """
    if not os.path.isfile(path):
        raise LocalFileError(f"Local data file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise LocalFileError(f"Could not read local data file {path}: {e}") from e

    if not isinstance(records, list):
        raise LocalFileError("Invalid JSON format: expected array of records")
    logger.info(f"Loaded {len(records)} records from {path}")
    return records


def _first_present(record: Dict[str, Any], keys) -> Any:
    for key in keys:
        if record.get(key) is not None:
            return record[key]
    return None


def parse_year(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if math.isfinite(raw) else None
    match = _LEADING_INT.match(str(raw))
    return int(match.group(1)) if match else None


def parse_value(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        return None
    return value if math.isfinite(value) else None


class LocalFileNormalizer:
    """Fold fallback records into an ``ObservationTable``, last write wins."""

    def __init__(self, table: ObservationTable,
                 corrections: Tuple[KnownCorrection, ...] = KNOWN_CORRECTIONS) -> None:
        self.table = table
        self.corrections = corrections

    def normalize(self, records: List[Any]) -> LocalNormalizationStats:
        stats = LocalNormalizationStats()
        for record in records:
            if self._ingest_record(record, stats):
                stats.processed += 1
            else:
                stats.skipped += 1

        logger.info(
            f"Local file: processed={stats.processed} skipped={stats.skipped} "
            f"corrected={stats.corrected} conflicts={len(stats.conflicts)}"
        )
        return stats

    def _ingest_record(self, record: Any, stats: LocalNormalizationStats) -> bool:
        if not isinstance(record, dict):
            return False

        tag = record.get("indicator")
        entity = _first_present(record, ENTITY_KEYS)
        raw_year = _first_present(record, YEAR_KEYS)
        raw_value = _first_present(record, VALUE_KEYS)
        if not isinstance(tag, str) or not isinstance(entity, str):
            return False
        if raw_year is None or raw_value is None:
            return False

        try:
            indicator = indicator_from_tag(tag)
        except UnknownIndicatorError as e:
            logger.debug(str(e))
            return False
        if not is_known_entity(entity):
            return False

        year = parse_year(raw_year)
        value = parse_value(raw_value)
        if year is None or value is None:
            return False

        for correction in self.corrections:
            if correction.applies(entity, indicator, value):
                value *= correction.factor
                stats.corrected += 1

        existing = self.table.get(indicator, entity, year)
        if existing is not None:
            self._check_conflict(indicator, entity, year, existing, value, stats)

        self.table.set(indicator, entity, year, value)
        return True

    @staticmethod
    def _check_conflict(indicator: Indicator, entity: str, year: int, existing: float,
                        value: float, stats: LocalNormalizationStats) -> None:
        larger = max(existing, value)
        if larger <= 0:
            return
        percent_diff = abs(value - existing) / larger * 100
        if percent_diff >= CONFLICT_THRESHOLD_PCT:
            stats.conflicts.append(
                MergeConflict(indicator, entity, year, existing, value, percent_diff)
            )
            logger.warning(
                f"Duplicate value for {entity} {year} {indicator.value}: "
                f"existing={existing}, new={value}, diff={percent_diff:.1f}%"
            )


def normalize_local_records(records: List[Any], table: ObservationTable) -> LocalNormalizationStats:
    return LocalFileNormalizer(table).normalize(records)
