"""Shared helper utilities for the tsquery test-suite."""

from .data import clickhouse_rows, prometheus_payload, write_config
from .mocks import FakeHttpResponse, FakeSession, RaisingSession

__all__ = [
    "clickhouse_rows",
    "prometheus_payload",
    "write_config",
    "FakeHttpResponse",
    "FakeSession",
    "RaisingSession",
]
