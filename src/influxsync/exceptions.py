"""
Exception classes for influxsync.
"""

from typing import Any, Dict, Optional


class InfluxSyncError(Exception):
    """Base exception for all influxsync errors."""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def __str__(self) -> str:
        result = self.message
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            result += f" [{details_str}]"
        if self.cause:
            result += f" (caused by: {self.cause})"
        return result


class ConfigurationError(InfluxSyncError):
    """Raised when there's an error in configuration."""

    pass


class ParseError(ConfigurationError):
    """Raised when schema definition text cannot be parsed."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        line: Optional[int] = None,
    ) -> None:
        details = {}
        if source:
            details["source"] = source
        if line is not None:
            details["line"] = line

        super().__init__(message, details)
        self.source = source
        self.line = line


class DatabaseError(InfluxSyncError):
    """Raised when there's an error talking to InfluxDB."""

    pass


class ConnectivityError(DatabaseError):
    """Raised when the InfluxDB endpoint is unusable or unreachable."""

    pass


class QueryError(DatabaseError):
    """Raised when a query fails in transport or returns an error payload."""

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ) -> None:
        details = {}
        if status_code:
            details["status_code"] = status_code

        super().__init__(message, details, cause)
        self.statement = statement
        self.status_code = status_code
