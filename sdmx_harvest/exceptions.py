"""Custom exception hierarchy for sdmx-harvest.

Exception Hierarchy:
    HarvestError (base)
    ├── ConfigurationError
    ├── DataProviderError
    │   └── StructureNotAvailableError
    └── InvariantViolation
        └── CombinationOverflowError

Two families matter to the extraction pipeline:

- ``DataProviderError`` is per-item noise from the registry. A dataflow whose
  structure cannot be loaded is skipped and the harvest continues.
- ``InvariantViolation`` means an upstream contract was broken (a dimension
  without codes reached the combination engine, or the combination count
  does not fit). It aborts the harvest.
"""
from __future__ import annotations

from typing import Optional, Dict, Any


class HarvestError(Exception):
    """Base exception for all sdmx-harvest errors.

    Attributes:
        message: Human-readable error message
        code: Error code for programmatic handling
        details: Additional error context
    """

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for run reports."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(HarvestError):
    """Raised when the harvester configuration is unusable.

    Examples:
        - Malformed registry or REST base URL
        - Selection pattern that does not compile
    """
    pass


class DataProviderError(HarvestError):
    """Base class for registry access errors.

    Attributes:
        provider: Name of the registry that failed
    """

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.provider = provider
        details = details or {}
        if provider:
            details["provider"] = provider
        super().__init__(message, code, details)


class StructureNotAvailableError(DataProviderError):
    """Raised when the data structure of one dataflow cannot be loaded.

    This can mean:
        - The structure request failed or timed out
        - The response could not be parsed
        - The dataflow references a structure the registry does not return
    """

    def __init__(
        self,
        message: str,
        dataflow_id: Optional[str] = None,
        provider: Optional[str] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.dataflow_id = dataflow_id
        details = details or {}
        if dataflow_id:
            details["dataflow_id"] = dataflow_id
        super().__init__(message, provider, code, details)


class InvariantViolation(HarvestError):
    """Raised when a contract between pipeline stages is broken."""
    pass


class CombinationOverflowError(InvariantViolation):
    """Raised when a combination count exceeds the representable range.

    Attributes:
        count: The computed number of combinations
    """

    def __init__(
        self,
        message: str,
        count: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.count = count
        details = details or {}
        if count is not None:
            details["count"] = count
        super().__init__(message, code, details)


def is_skippable_error(error: Exception) -> bool:
    """Check if an error only affects a single dataflow.

    Args:
        error: The exception to check

    Returns:
        True if the harvest may skip the dataflow and continue
    """
    return isinstance(error, DataProviderError)
