"""Error types for eventstats.

The read path never raises these to callers: invalid input and unsupported
statistic types resolve to ``0``, and store failures degrade to a cache miss.
They exist so that stores, the regeneration runner and configuration code can
signal failures with structured context that the coordinating layers log.
"""

from datetime import datetime
from enum import Enum
from typing import Any


class ErrorCode(Enum):
    """Standard error codes for eventstats operations."""

    # Input Validation Errors (1000-1099)
    INVALID_INPUT = 1000
    INVALID_FILTER_SET = 1001
    INVALID_TEMPORAL_PARTITION = 1002
    UNKNOWN_STATISTIC_TYPE = 1003

    # Storage Errors (1300-1399)
    STORE_ERROR = 1300
    STORE_UNAVAILABLE = 1301
    STORE_CORRUPTED = 1302

    # Operation Errors (1400-1499)
    REGENERATION_FAILED = 1400
    CALCULATION_FAILED = 1401

    # System Errors (1700-1799)
    INTERNAL_ERROR = 1700
    CONFIGURATION_ERROR = 1701


class ErrorSeverity(Enum):
    """Error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class StatisticsError(Exception):
    """Base exception class for eventstats with structured error information."""

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.severity = severity
        self.context = context or {}
        self.timestamp = datetime.now()

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary format."""
        return {
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "message": self.message,
            "severity": self.severity.value,
            "timestamp": self.timestamp.isoformat(),
            "context": self.context,
        }


class FilterValidationError(StatisticsError):
    """A filter set could not be validated."""

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        context = kwargs.get("context", {})
        if field:
            context["field"] = field
        if value is not None:
            context["invalid_value"] = str(value)[:100]  # Truncate for safety

        kwargs["context"] = context
        kwargs.setdefault("error_code", ErrorCode.INVALID_FILTER_SET)
        kwargs.setdefault("severity", ErrorSeverity.LOW)

        super().__init__(message, **kwargs)


class CacheStoreError(StatisticsError):
    """The cache store could not complete a read, write or delete."""

    def __init__(self, message: str, key: str = None, operation: str = None, **kwargs):
        context = kwargs.get("context", {})
        if key:
            context["key"] = key
        if operation:
            context["operation"] = operation

        kwargs["context"] = context
        kwargs.setdefault("error_code", ErrorCode.STORE_ERROR)
        kwargs.setdefault("severity", ErrorSeverity.MEDIUM)

        super().__init__(message, **kwargs)


class ConfigurationError(StatisticsError):
    """Settings or support configuration are invalid."""

    def __init__(self, message: str, setting: str = None, **kwargs):
        context = kwargs.get("context", {})
        if setting:
            context["setting"] = setting

        kwargs["context"] = context
        kwargs.setdefault("error_code", ErrorCode.CONFIGURATION_ERROR)
        kwargs.setdefault("severity", ErrorSeverity.HIGH)

        super().__init__(message, **kwargs)
