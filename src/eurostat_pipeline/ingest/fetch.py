"""Eurostat dissemination API client.

Fetches the three indicator datasets for every country over the most
recent years. Indicator requests run in parallel; an oversized output
request is split into country batches that are fetched in parallel too.
Every request failure is isolated and contributes zero payloads.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlencode

import requests

from eurostat_pipeline.config import (
    BATCH_SIZE,
    EUROSTAT_BASE_URL,
    FETCH_MAX_ATTEMPTS,
    FETCH_RETRY_DELAY,
    FETCH_YEARS,
    MAX_WORKERS,
    REQUEST_TIMEOUT,
    URL_LENGTH_LIMIT,
)
from eurostat_pipeline.error_handler import PartialFailureCollector
from eurostat_pipeline.exceptions import FetchError
from eurostat_pipeline.logging_config import create_logger
from eurostat_pipeline.reference import COUNTRY_CODES, UNIT_DIMENSION, Indicator
from eurostat_pipeline.utils import chunked, retry

logger = create_logger(__name__)

# Dataset code and fixed filters per indicator
DATASETS: Dict[Indicator, tuple] = {
    Indicator.OUTPUT: ("sdg_08_10", [("na_item", "B1GQ"), ("unit", "CLV10_EUR_HAB")]),
    Indicator.LIFE_EXPECTANCY: ("demo_mlexpec", [("sex", "T"), ("age", "Y1")]),
    Indicator.POPULATION: ("demo_pjan", [("sex", "T"), ("age", "TOTAL")]),
}


def value_count(payload: Any) -> int:
    values = payload.get("value") if isinstance(payload, dict) else None
    if isinstance(values, (list, dict)):
        return len(values)
    return 0


def unit_dimension_empty(payload: Dict[str, Any]) -> bool:
    names = payload.get("id") or []
    sizes = payload.get("size") or []
    if UNIT_DIMENSION in names:
        position = names.index(UNIT_DIMENSION)
        return position < len(sizes) and sizes[position] == 0
    return False


def recent_years(count: int, today: Optional[date] = None) -> List[int]:
    current = (today or date.today()).year
    return [current - offset for offset in range(count)]


@dataclass
class FetchResult:
    """Payloads per indicator plus the outcome of every request."""

    payloads: Dict[Indicator, List[Dict[str, Any]]] = field(
        default_factory=lambda: {indicator: [] for indicator in Indicator}
    )
    collector: PartialFailureCollector = field(default_factory=PartialFailureCollector)


class EurostatClient:
    """Thin client over the Eurostat statistics dissemination endpoint."""

    def __init__(
        self,
        base_url: str = EUROSTAT_BASE_URL,
        session: Optional[requests.Session] = None,
        years: Optional[Sequence[int]] = None,
        countries: Sequence[str] = COUNTRY_CODES,
        timeout: float = REQUEST_TIMEOUT,
        url_length_limit: int = URL_LENGTH_LIMIT,
        batch_size: int = BATCH_SIZE,
        max_workers: int = MAX_WORKERS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.years = list(years) if years else recent_years(FETCH_YEARS)
        self.countries = list(countries)
        self.timeout = timeout
        self.url_length_limit = url_length_limit
        self.batch_size = batch_size
        self.max_workers = max_workers

    def build_url(self, indicator: Indicator, countries: Sequence[str],
                  with_unit: bool = True) -> str:
        dataset, filters = DATASETS[indicator]
        if not with_unit:
            filters = [(key, value) for key, value in filters if key != UNIT_DIMENSION]
        params = list(filters)
        params += [("geo", code) for code in countries]
        params += [("time", year) for year in self.years]
        return f"{self.base_url}/{dataset}?{urlencode(params)}"

    @retry(max_attempts=FETCH_MAX_ATTEMPTS, delay=FETCH_RETRY_DELAY, exceptions=(FetchError,))
    def get_json(self, url: str) -> Dict[str, Any]:
        """GET ``url`` and decode the JSON body.

        :raises FetchError: On transport errors, non-OK status or invalid JSON
        """
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise FetchError(f"Request failed for {url}: {e}") from e

        if not response.ok:
            raise FetchError(f"HTTP {response.status_code} for {url}")
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(f"Invalid JSON from {url}: {e}") from e

    def fetch_all(self) -> FetchResult:
        """Fetch every indicator; failures are recorded, never raised."""
        result = FetchResult()
        collector = result.collector

        with ThreadPoolExecutor(max_workers=len(Indicator)) as executor:
            futures = {
                Indicator.OUTPUT: executor.submit(self._fetch_output, collector),
                Indicator.LIFE_EXPECTANCY: executor.submit(
                    self._fetch_single, Indicator.LIFE_EXPECTANCY, collector
                ),
                Indicator.POPULATION: executor.submit(
                    self._fetch_single, Indicator.POPULATION, collector
                ),
            }
            for indicator, future in futures.items():
                result.payloads[indicator] = future.result()

        collector.log_summary("Eurostat fetch")
        return result

    def _fetch_single(self, indicator: Indicator, collector: PartialFailureCollector
                      ) -> List[Dict[str, Any]]:
        url = self.build_url(indicator, self.countries)
        payload = self._guarded_get(url, indicator.value, collector)
        return [payload] if payload is not None else []

    def _fetch_output(self, collector: PartialFailureCollector) -> List[Dict[str, Any]]:
        url = self.build_url(Indicator.OUTPUT, self.countries)
        if len(url) > self.url_length_limit:
            return self._fetch_output_batches(collector)

        payload = self._guarded_get(url, Indicator.OUTPUT.value, collector)
        if payload is None:
            return []

        if value_count(payload) == 0 or unit_dimension_empty(payload):
            logger.warning("Output response has no values for the preferred unit; retrying without unit")
            fallback_url = self.build_url(Indicator.OUTPUT, self.countries, with_unit=False)
            fallback = self._guarded_get(fallback_url, f"{Indicator.OUTPUT.value}-no-unit", collector)
            if fallback is not None and value_count(fallback) > 0:
                return [fallback]
            return []
        return [payload]

    def _fetch_output_batches(self, collector: PartialFailureCollector) -> List[Dict[str, Any]]:
        batches = chunked(self.countries, self.batch_size)
        logger.info(f"Output request too long; splitting into {len(batches)} batches")

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [
                executor.submit(
                    self._guarded_get,
                    self.build_url(Indicator.OUTPUT, batch),
                    f"{Indicator.OUTPUT.value}[{batch[0]}..{batch[-1]}]",
                    collector,
                )
                for batch in batches
            ]
            payloads = [future.result() for future in futures]
        return [payload for payload in payloads if payload is not None]

    def _guarded_get(self, url: str, label: str, collector: PartialFailureCollector
                     ) -> Optional[Dict[str, Any]]:
        try:
            payload = self.get_json(url)
        except FetchError as e:
            collector.add_failure(label, e)
            return None

        if isinstance(payload, dict) and payload.get("error"):
            collector.add_failure(label, FetchError(f"API error: {payload['error']}"))
            return None
        collector.add_success(label)
        return payload
