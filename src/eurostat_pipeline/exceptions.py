"""
Custom exceptions for the eurostat_pipeline package.

This module defines a hierarchy of exceptions to provide more
precise error handling and debugging across the load pipeline.
"""


class PipelineBaseError(Exception):
    """
    Base exception for all pipeline-related errors.

    All custom exceptions in the pipeline should inherit from this class.
    Provides a common base for catching and handling pipeline-specific errors.
    """

    pass


class ConfigurationError(PipelineBaseError):
    """
    Raised when there are configuration-related issues.

    This exception is used when:
    - Required configuration parameters are missing
    - Configuration values are invalid (non-numeric limits, bad ranges)
    """

    pass


class UnknownIndicatorError(PipelineBaseError, ValueError):
    """Raised when an indicator tag or name is outside the closed vocabulary."""

    pass


class IngestError(PipelineBaseError):
    """
    Raised during the data ingestion process.

    Covers errors specific to turning raw payloads into observations.
    """

    pass


class MalformedResponseError(IngestError):
    """
    Raised when a statistical response lacks the expected shape.

    Covers problems such as:
    - Missing ``dimension`` or ``value`` members
    - Entity or time dimension that cannot be located
    - API error payloads returned in place of data
    """

    pass


class LocalFileError(IngestError):
    """
    Raised when the local fallback file cannot be used.

    Covers problems such as:
    - File missing or unreadable
    - Invalid JSON
    - Top-level structure that is not a list of records
    """

    pass


class TransientError(PipelineBaseError):
    """
    Raised for transient errors that may succeed on retry.

    These are temporary errors such as:
    - Network timeouts
    - Throttling errors
    - Temporary service unavailability
    """

    pass


class FetchError(TransientError):
    """Raised when a remote dataset request fails or returns a non-OK status."""

    pass


class NoDataAvailableError(PipelineBaseError):
    """
    Raised when every acquisition path produced an empty table.

    This is the only failure surfaced to callers of a load; all
    per-value and per-indicator problems are absorbed and logged.
    """

    pass


class PartialFailureError(PipelineBaseError):
    """
    Raised when batch operations have partial failures.

    This exception indicates that some operations succeeded
    while others failed. Contains details about both
    successful and failed operations.
    """

    pass
