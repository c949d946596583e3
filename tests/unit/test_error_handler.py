"""Unit tests for failure bookkeeping and the retry helper."""

from unittest.mock import MagicMock, patch

import pytest

from eurostat_pipeline.error_handler import PartialFailureCollector
from eurostat_pipeline.exceptions import FetchError, PartialFailureError
from eurostat_pipeline.utils import chunked, retry


# ============================================================================
# PartialFailureCollector
# ============================================================================

@pytest.mark.unit
class TestPartialFailureCollector:

    def test_counts(self):
        collector = PartialFailureCollector()
        collector.add_success("gdp")
        collector.add_failure("pop", FetchError("HTTP 500"))

        assert collector.has_successes()
        assert collector.has_failures()
        assert collector.get_total_count() == 2
        assert collector.failed_labels() == ["pop"]

    def test_raise_if_failures(self):
        collector = PartialFailureCollector()
        collector.add_failure("life", FetchError("timeout"))

        with pytest.raises(PartialFailureError, match="1/1 failed \\(life\\)"):
            collector.raise_if_failures()

    def test_no_failures_does_not_raise(self):
        collector = PartialFailureCollector()
        collector.add_success("gdp")
        collector.raise_if_failures()

    def test_log_summary_reports_failed_labels(self):
        collector = PartialFailureCollector()
        collector.add_success("gdp")
        collector.add_failure("pop", FetchError("HTTP 500"))

        with patch("eurostat_pipeline.error_handler.logger") as mock_logger:
            collector.log_summary("Eurostat fetch")

        mock_logger.warning.assert_called_once_with("Eurostat fetch: failed pop")


# ============================================================================
# retry / chunked
# ============================================================================

@pytest.mark.unit
class TestRetry:

    @patch("eurostat_pipeline.utils.time.sleep")
    def test_succeeds_after_transient_failure(self, mock_sleep):
        func = MagicMock(side_effect=[FetchError("boom"), "ok"])
        func.__qualname__ = "fetch"

        wrapped = retry(max_attempts=3, delay=0.5, exceptions=(FetchError,))(func)

        assert wrapped() == "ok"
        assert func.call_count == 2
        mock_sleep.assert_called_once_with(0.5)

    @patch("eurostat_pipeline.utils.time.sleep")
    def test_backoff_and_final_raise(self, mock_sleep):
        func = MagicMock(side_effect=FetchError("down"))
        func.__qualname__ = "fetch"

        wrapped = retry(max_attempts=3, delay=1.0, backoff=2.0, exceptions=(FetchError,))(func)

        with pytest.raises(FetchError):
            wrapped()
        assert [c.args[0] for c in mock_sleep.call_args_list] == [1.0, 2.0]

    def test_other_exceptions_are_not_retried(self):
        func = MagicMock(side_effect=KeyError("x"))
        func.__qualname__ = "fetch"

        wrapped = retry(max_attempts=3, exceptions=(FetchError,))(func)

        with pytest.raises(KeyError):
            wrapped()
        assert func.call_count == 1


@pytest.mark.unit
class TestChunked:

    def test_last_chunk_is_shorter(self):
        assert chunked(range(7), 3) == [[0, 1, 2], [3, 4, 5], [6]]

    def test_twenty_seven_countries_in_batches_of_ten(self):
        assert [len(batch) for batch in chunked(range(27), 10)] == [10, 10, 7]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunked([1], 0)
