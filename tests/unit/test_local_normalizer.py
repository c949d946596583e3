"""Unit tests for the local fallback file normalizer.

Tests cover:
- Loading and validating the fallback file
- Tag and entity filtering
- The known Danish population rescale
- Duplicate keys (last write wins, large differences logged)
"""

import json
from unittest.mock import patch

import pytest

from eurostat_pipeline.exceptions import LocalFileError
from eurostat_pipeline.local_normalizer import (
    KnownCorrection,
    LocalFileNormalizer,
    load_local_file,
    normalize_local_records,
    parse_value,
    parse_year,
)
from eurostat_pipeline.reference import Indicator
from eurostat_pipeline.table import ObservationTable


# ============================================================================
# File loading
# ============================================================================

@pytest.mark.unit
class TestLoadLocalFile:

    def test_reads_list_of_records(self, local_file, local_records):
        assert load_local_file(str(local_file)) == local_records

    def test_missing_file(self, tmp_path):
        with pytest.raises(LocalFileError, match="not found"):
            load_local_file(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("[{not json")
        with pytest.raises(LocalFileError):
            load_local_file(str(path))

    def test_top_level_object_is_rejected(self, tmp_path):
        path = tmp_path / "object.json"
        path.write_text(json.dumps({"records": []}))
        with pytest.raises(LocalFileError, match="expected array"):
            load_local_file(str(path))


# ============================================================================
# Record normalization
# ============================================================================

@pytest.mark.unit
class TestLocalFileNormalizer:

    def test_tags_map_to_indicators(self, local_records):
        table = ObservationTable()
        stats = normalize_local_records(local_records, table)

        assert stats.processed == 4
        assert table.get(Indicator.OUTPUT, "BE", 2015) == 35000
        assert table.get(Indicator.LIFE_EXPECTANCY, "BE", 2015) == 81.1
        assert table.get(Indicator.POPULATION, "BE", 2015) == 11237274

    def test_danish_population_is_rescaled(self):
        table = ObservationTable()
        stats = normalize_local_records(
            [{"indicator": "POP", "tara": "DK", "an": 2015, "valoare": 500000}], table
        )
        assert table.get(Indicator.POPULATION, "DK", 2015) == pytest.approx(3_350_000)
        assert stats.corrected == 1

    def test_danish_population_above_limit_is_kept(self):
        table = ObservationTable()
        normalize_local_records(
            [{"indicator": "POP", "tara": "DK", "an": 2015, "valoare": 2_000_000}], table
        )
        assert table.get(Indicator.POPULATION, "DK", 2015) == 2_000_000

    def test_rescale_is_specific_to_denmark_population(self):
        table = ObservationTable()
        normalize_local_records([
            {"indicator": "POP", "tara": "MT", "an": 2015, "valoare": 500000},
            {"indicator": "PIB", "tara": "DK", "an": 2015, "valoare": 50000},
        ], table)
        assert table.get(Indicator.POPULATION, "MT", 2015) == 500000
        assert table.get(Indicator.OUTPUT, "DK", 2015) == 50000

    def test_english_keys_and_string_years(self):
        table = ObservationTable()
        normalize_local_records(
            [{"indicator": "SV", "entity": "FR", "year": "2018 (p)", "value": "82.9"}], table
        )
        assert table.get(Indicator.LIFE_EXPECTANCY, "FR", 2018) == 82.9

    @pytest.mark.parametrize(
        "record",
        [
            {"indicator": "GDP", "tara": "BE", "an": 2015, "valoare": 1},
            {"indicator": "PIB", "tara": "US", "an": 2015, "valoare": 1},
            {"indicator": "PIB", "tara": "BE", "an": "n/a", "valoare": 1},
            {"indicator": "PIB", "tara": "BE", "an": 2015, "valoare": "x"},
            {"indicator": "PIB", "tara": "BE", "an": 2015},
            {"indicator": None, "tara": "BE", "an": 2015, "valoare": 1},
            {"indicator": "PIB", "tara": 7, "an": 2015, "valoare": 1},
            "not a record",
        ],
    )
    def test_unusable_records_are_skipped(self, record):
        table = ObservationTable()
        stats = normalize_local_records([record], table)
        assert stats.skipped == 1
        assert table.is_empty()

    def test_value_beyond_float_range_is_skipped(self):
        table = ObservationTable()
        stats = normalize_local_records([
            {"indicator": "PIB", "tara": "BE", "an": 2015, "valoare": 35000},
            {"indicator": "PIB", "tara": "BE", "an": 2016, "valoare": int("1" + "0" * 400)},
            {"indicator": "PIB", "tara": "BE", "an": 2017, "valoare": 36000},
        ], table)

        assert stats.skipped == 1
        assert stats.processed == 2
        assert table.get(Indicator.OUTPUT, "BE", 2016) is None
        assert table.get(Indicator.OUTPUT, "BE", 2017) == 36000

    def test_last_write_wins_and_large_conflict_is_logged(self):
        table = ObservationTable()
        records = [
            {"indicator": "PIB", "tara": "BE", "an": 2015, "valoare": 100},
            {"indicator": "PIB", "tara": "BE", "an": 2015, "valoare": 200},
        ]

        with patch("eurostat_pipeline.local_normalizer.logger") as mock_logger:
            stats = normalize_local_records(records, table)

        assert table.get(Indicator.OUTPUT, "BE", 2015) == 200
        assert len(stats.conflicts) == 1
        assert stats.conflicts[0].percent_diff == pytest.approx(50.0)
        mock_logger.warning.assert_called_once()
        assert "Duplicate value for BE 2015" in mock_logger.warning.call_args[0][0]

    def test_small_conflict_is_silent(self):
        table = ObservationTable()
        records = [
            {"indicator": "PIB", "tara": "BE", "an": 2015, "valoare": 100},
            {"indicator": "PIB", "tara": "BE", "an": 2015, "valoare": 140},
        ]

        with patch("eurostat_pipeline.local_normalizer.logger") as mock_logger:
            stats = normalize_local_records(records, table)

        assert table.get(Indicator.OUTPUT, "BE", 2015) == 140
        assert stats.conflicts == []
        mock_logger.warning.assert_not_called()

    def test_custom_corrections(self):
        table = ObservationTable()
        normalizer = LocalFileNormalizer(
            table, corrections=(KnownCorrection("SE", Indicator.OUTPUT, 10_000, 10),)
        )
        normalizer.normalize([{"indicator": "PIB", "tara": "SE", "an": 2015, "valoare": 4500}])
        assert table.get(Indicator.OUTPUT, "SE", 2015) == 45000


@pytest.mark.unit
class TestParsers:

    @pytest.mark.parametrize("raw,expected", [
        (2015, 2015), (2015.0, 2015), ("2015", 2015), (" 2016M03", 2016), ("abc", None), (True, None),
    ])
    def test_parse_year(self, raw, expected):
        assert parse_year(raw) == expected

    @pytest.mark.parametrize("raw,expected", [
        (1, 1.0), ("2.5", 2.5), ("nan", None), (float("inf"), None), (None, None), (False, None),
        (10 ** 400, None),
    ])
    def test_parse_value(self, raw, expected):
        assert parse_value(raw) == expected
