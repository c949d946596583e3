"""Eurostat indicators pipeline.

This package decodes multi-dimensional Eurostat responses for the EU member
states, normalizes GDP per capita, life expectancy and population into a
single observation table, corrects unit anomalies, and derives stable
scale ranges for comparative charts.
"""

from eurostat_pipeline.logging_config import create_logger


def setup_package_logging():
    """Set up the package-level logger (level from LOG_LEVEL)."""
    return create_logger(__name__)


logger = setup_package_logging()

__version__ = "0.1.0"
