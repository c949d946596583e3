"""Configuration module for project settings and environment variables.

This module manages configuration settings and environment-specific
parameters for the Eurostat indicators pipeline. Values are read from
the process environment, optionally populated from a ``.env`` file.
"""

import os

from dotenv import load_dotenv

from eurostat_pipeline.exceptions import ConfigurationError
from eurostat_pipeline.logging_config import create_logger

load_dotenv()

logger = create_logger(__name__)

# get the local root directory
ROOT_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", ".."))

DATA_DIR = os.path.join(ROOT_DIR, "data")
LOCAL_DATA_PATH = os.getenv("LOCAL_DATA_PATH", os.path.join(DATA_DIR, "eurostat.json"))

# Remote acquisition
EUROSTAT_BASE_URL = os.getenv(
    "EUROSTAT_BASE_URL",
    "https://ec.europa.eu/eurostat/api/dissemination/statistics/1.0/data",
)
ENABLE_REMOTE_FETCH = os.getenv("ENABLE_REMOTE_FETCH", "true").lower() == "true"
FETCH_YEARS = int(os.getenv("FETCH_YEARS", "16"))
URL_LENGTH_LIMIT = int(os.getenv("URL_LENGTH_LIMIT", "2000"))
BATCH_SIZE = int(os.getenv("BATCH_SIZE", "10"))
REQUEST_TIMEOUT = float(os.getenv("REQUEST_TIMEOUT", "20"))
FETCH_MAX_ATTEMPTS = int(os.getenv("FETCH_MAX_ATTEMPTS", "2"))
FETCH_RETRY_DELAY = float(os.getenv("FETCH_RETRY_DELAY", "0.5"))
MAX_WORKERS = int(os.getenv("MAX_WORKERS", "4"))

# Sufficiency thresholds for accepting a remote load
MIN_ENTITIES_PER_INDICATOR = int(os.getenv("MIN_ENTITIES_PER_INDICATOR", "10"))
MIN_YEARS = int(os.getenv("MIN_YEARS", "5"))


def validate_config():
    """
    Validate critical configuration parameters.
    Raises ConfigurationError if any required config is missing or invalid.

    :raises ConfigurationError: If configuration is invalid
    """
    if ENABLE_REMOTE_FETCH and not EUROSTAT_BASE_URL:
        raise ConfigurationError(
            "Remote fetch is enabled but EUROSTAT_BASE_URL is empty"
        )

    if not LOCAL_DATA_PATH:
        raise ConfigurationError("Local fallback path (LOCAL_DATA_PATH) is not configured")

    positive_ints = [
        ("FETCH_YEARS", FETCH_YEARS),
        ("URL_LENGTH_LIMIT", URL_LENGTH_LIMIT),
        ("BATCH_SIZE", BATCH_SIZE),
        ("FETCH_MAX_ATTEMPTS", FETCH_MAX_ATTEMPTS),
        ("MAX_WORKERS", MAX_WORKERS),
    ]
    for name, value in positive_ints:
        if value < 1:
            raise ConfigurationError(f"{name} must be a positive integer, got {value}")

    if REQUEST_TIMEOUT <= 0:
        raise ConfigurationError(f"REQUEST_TIMEOUT must be positive, got {REQUEST_TIMEOUT}")

    if MIN_ENTITIES_PER_INDICATOR < 0 or MIN_YEARS < 0:
        raise ConfigurationError("Sufficiency thresholds cannot be negative")

    logger.info("Configuration validation successful")
