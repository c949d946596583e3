"""
Request failure bookkeeping for parallel acquisition.

Every remote request is isolated: a failing indicator or country batch
contributes zero payloads and never aborts its siblings. The collector
records each outcome so the load can report what was lost.
"""

import threading
from typing import List, Tuple

from eurostat_pipeline.exceptions import PartialFailureError
from eurostat_pipeline.logging_config import create_logger

logger = create_logger(__name__)


class PartialFailureCollector:
    """Thread-safe record of request successes and failures, keyed by label.

    Labels are short request descriptions such as ``"pop"`` or
    ``"gdp[BE..FR]"``.

    Example:
        collector = PartialFailureCollector()
        for label, url in requests_to_make:
            try:
                payloads.append(client.get_json(url))
                collector.add_success(label)
            except FetchError as e:
                collector.add_failure(label, e)

        collector.log_summary("Eurostat fetch")
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.failures: List[Tuple[str, Exception]] = []
        self.successes: List[str] = []

    def add_failure(self, label: str, exception: Exception) -> None:
        """Record a failed request.

        Args:
            label: Request description
            exception: The error that ended the request
        """
        with self._lock:
            self.failures.append((label, exception))
        logger.warning(f"❌ {label} failed: {str(exception)[:200]}")

    def add_success(self, label: str) -> None:
        with self._lock:
            self.successes.append(label)

    def has_failures(self) -> bool:
        return len(self.failures) > 0

    def has_successes(self) -> bool:
        return len(self.successes) > 0

    def get_failure_count(self) -> int:
        return len(self.failures)

    def get_success_count(self) -> int:
        return len(self.successes)

    def get_total_count(self) -> int:
        return len(self.failures) + len(self.successes)

    def failed_labels(self) -> List[str]:
        return [label for label, _ in self.failures]

    def raise_if_failures(self, message: str = "Some requests failed") -> None:
        """Raise PartialFailureError if any failures occurred.

        Raises:
            PartialFailureError: If any failures were recorded
        """
        if self.has_failures():
            raise PartialFailureError(
                f"{message}: {self.get_failure_count()}/{self.get_total_count()} failed "
                f"({', '.join(self.failed_labels()[:10])})"
            )

    def log_summary(self, label: str = "Requests") -> None:
        total = self.get_total_count()
        if total == 0:
            logger.info(f"{label}: no requests made")
            return

        logger.info(f"📊 {label}: {self.get_success_count()}/{total} requests succeeded")
        if self.has_failures():
            logger.warning(f"{label}: failed {', '.join(self.failed_labels())}")
