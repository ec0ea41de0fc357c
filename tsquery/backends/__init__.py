"""Backend implementations reachable through the forwarding proxy."""

from .base import Backend
from .clickhouse import ClickHouseBackend
from .prometheus import PrometheusBackend

__all__ = ["Backend", "ClickHouseBackend", "PrometheusBackend"]
