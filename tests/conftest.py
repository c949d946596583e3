"""Pytest configuration and shared fixtures for the Eurostat pipeline tests.

This module provides fixtures for:
- JSON-stat style payloads in each supported layout
- Observation tables built from plain dictionaries
- Temporary local fallback files
- A mocked HTTP session for the Eurostat client
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Tuple
from unittest.mock import MagicMock

import pytest

from eurostat_pipeline.reference import COUNTRY_CODES, Indicator
from eurostat_pipeline.table import ObservationTable


# ============================================================================
# Payload builders
# ============================================================================

def category(labels: List[str]) -> Dict[str, Any]:
    return {"category": {"index": {label: position for position, label in enumerate(labels)}}}


def strided_payload(data: Dict[str, Dict[int, float]]) -> Dict[str, Any]:
    """Build a two-dimension strided payload (geo outer, time inner).

    Args:
        data: entity -> year -> value; missing cells are left out of the sparse value dict
    """
    entities = list(data)
    years = sorted({year for series in data.values() for year in series})
    values = {}
    for e, entity in enumerate(entities):
        for t, year in enumerate(years):
            if year in data[entity]:
                values[str(e * len(years) + t)] = data[entity][year]
    return {
        "id": ["geo", "time"],
        "size": [len(entities), len(years)],
        "dimension": {
            "geo": category(entities),
            "time": category([str(year) for year in years]),
        },
        "value": values,
    }


@pytest.fixture
def tuple_payload() -> Dict[str, Any]:
    """Per-value position tuples (unit, geo, time); one value uses the wrong unit."""
    ids = [
        [0, 0, 0], [0, 0, 1], [0, 0, 2],
        [0, 1, 0], [1, 1, 1], [0, 1, 2],
    ]
    return {
        "id": ids,
        "size": [2, 3],
        "dimension": {
            "unit": category(["CLV10_EUR_HAB", "CLV20_EUR_HAB"]),
            "geo": category(["BE", "DK"]),
            "time": category(["2015", "2016", "2017"]),
        },
        "value": [35000, 35500, 36000, 46000, 46500, 47000],
    }


@pytest.fixture
def eurostat_strided_payload() -> Dict[str, Any]:
    """Dimension names in ``id``, four declared dimensions, sparse value dict."""
    return {
        "id": ["freq", "unit", "geo", "time"],
        "size": [1, 2, 2, 3],
        "dimension": {
            "freq": category(["A"]),
            "unit": category(["CLV10_EUR_HAB", "CLV_PCH_PRE_HAB"]),
            "geo": category(["BE", "DK"]),
            "time": category(["2015", "2016", "2017"]),
        },
        "value": {str(i): 30000 + i for i in range(12)},
    }


@pytest.fixture
def legacy_payload() -> Dict[str, Any]:
    """Two dimensions, no ``id`` member."""
    return {
        "size": [2, 3],
        "dimension": {
            "geo": category(["BE", "DK"]),
            "time": category(["2015", "2016", "2017"]),
        },
        "value": [81.1, 81.2, 81.3, 80.6, 80.8, 80.9],
    }


# ============================================================================
# Table fixtures
# ============================================================================

def build_table(data: Dict[Indicator, Dict[str, Dict[int, float]]]) -> ObservationTable:
    table = ObservationTable()
    for indicator, entities in data.items():
        for entity, series in entities.items():
            for year, value in series.items():
                table.set(indicator, entity, year, value)
    return table


@pytest.fixture
def table_factory():
    return build_table


def complete_dataset(entities=COUNTRY_CODES[:10], years=range(2015, 2020)
                     ) -> Dict[Indicator, Dict[str, Dict[int, float]]]:
    """Smooth, anomaly-free series for every indicator."""
    data = {indicator: {} for indicator in Indicator}
    for n, entity in enumerate(entities):
        for k, year in enumerate(years):
            data[Indicator.OUTPUT].setdefault(entity, {})[year] = 20000 + 1000 * n + 100 * k
            data[Indicator.LIFE_EXPECTANCY].setdefault(entity, {})[year] = 75 + 0.1 * n + 0.1 * k
            data[Indicator.POPULATION].setdefault(entity, {})[year] = 1_000_000 * (n + 1) + 1000 * k
    return data


@pytest.fixture
def sufficient_data():
    return complete_dataset()


# ============================================================================
# Local fallback file fixtures
# ============================================================================

@pytest.fixture
def local_records() -> List[Dict[str, Any]]:
    return [
        {"indicator": "PIB", "tara": "BE", "an": 2015, "valoare": 35000},
        {"indicator": "SV", "tara": "BE", "an": 2015, "valoare": 81.1},
        {"indicator": "POP", "tara": "BE", "an": 2015, "valoare": 11237274},
        {"indicator": "POP", "tara": "DK", "an": 2015, "valoare": 500000},
    ]


@pytest.fixture
def local_file(tmp_path: Path, local_records) -> Path:
    path = tmp_path / "eurostat.json"
    path.write_text(json.dumps(local_records))
    return path


# ============================================================================
# HTTP mocking
# ============================================================================

def json_response(payload: Any, status_code: int = 200) -> MagicMock:
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.json.return_value = payload
    return response


@pytest.fixture
def routed_session():
    """Session whose ``get`` answers by dataset code found in the URL.

    Returns:
        Tuple of (session mock, routes dict); routes map a dataset code to a
        response, an exception instance, or a callable taking the URL.
    """
    routes: Dict[str, Any] = {}
    session = MagicMock()

    def get(url, timeout=None):
        for code, outcome in routes.items():
            if f"/{code}?" in url:
                if isinstance(outcome, Exception):
                    raise outcome
                if callable(outcome) and not isinstance(outcome, MagicMock):
                    return outcome(url)
                return outcome
        return json_response({}, status_code=404)

    session.get.side_effect = get
    return session, routes
