"""Exception hierarchy for query runs."""
from __future__ import annotations

from typing import Any, Optional


class QueryError(RuntimeError):
    """Base class for failures that abort a single pipeline run."""


class InvalidWindowError(QueryError):
    """Raised when time bounds are missing, unparseable or reversed."""


class InvalidQueryError(QueryError):
    """Raised when the query text is empty or the backend is unknown."""


class BackendUnavailableError(QueryError):
    """Raised when a backend has no proxy URL configured."""

    def __init__(self, backend: str, setting: str) -> None:
        super().__init__(f"{setting} is not configured")
        self.backend = backend
        self.setting = setting


class BackendRequestError(QueryError):
    """Raised when the proxy answers with a non-success status."""

    def __init__(self, backend: str, status: int, body: Any, detail: Optional[str] = None) -> None:
        message = detail or f"{backend} query failed with status {status}"
        super().__init__(message)
        self.backend = backend
        self.status = status
        self.body = body


class NetworkError(QueryError):
    """Raised on transport-level failures (connection, timeout, garbled body)."""

    def __init__(self, backend: str, detail: str) -> None:
        super().__init__(f"{backend} request failed: {detail}")
        self.backend = backend
        self.detail = detail


class ConfigurationError(RuntimeError):
    """Raised when the dashboard configuration file is invalid."""
