"""ClickHouse SQL queries through the proxy."""
from __future__ import annotations

import logging
import re
from typing import Optional

from ..core import CLICKHOUSE, TabularResult, TimeWindow
from .base import Backend

LOGGER = logging.getLogger(__name__)

START_PLACEHOLDER = "{{start}}"
END_PLACEHOLDER = "{{end}}"
FORMAT_JSON = "FORMAT JSON"
_FORMAT_JSON_PATTERN = re.compile(r"\bformat\s+json\b", re.IGNORECASE)


def bind_window(sql: str, window: TimeWindow) -> str:
    """Substitute the millisecond bounds into the ``{{start}}``/``{{end}}`` placeholders.

    Substitution is plain text; the query comes from the operator.
    """
    return sql.replace(START_PLACEHOLDER, str(window.start)).replace(END_PLACEHOLDER, str(window.end))


def ensure_json_format(sql: str) -> str:
    if _FORMAT_JSON_PATTERN.search(sql):
        return sql
    return f"{sql.strip()}\n{FORMAT_JSON}"


class ClickHouseBackend(Backend):
    name = CLICKHOUSE
    setting_name = "CLICKHOUSE_BASE_URL"
    endpoint = "/api/clickhouse/query"

    def __init__(self, base_url: Optional[str], *, timeout_s: float = 60.0, session=None) -> None:
        super().__init__(base_url, timeout_s=timeout_s, session=session)

    def query(self, query_text: str, window: TimeWindow, step: Optional[float] = None) -> TabularResult:
        sql = ensure_json_format(bind_window(query_text, window))
        LOGGER.info("ClickHouse query [%s, %s] (%d chars)", window.start, window.end, len(sql))
        payload = self._send("POST", json={"sql": sql})
        return TabularResult.from_payload(payload)
