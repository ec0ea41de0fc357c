"""Base class for proxy-backed query backends."""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ..core import RawQueryResult, TimeWindow
from ..errors import BackendRequestError, BackendUnavailableError, NetworkError

LOGGER = logging.getLogger(__name__)


class Backend(ABC):
    """A backend reached through the forwarding proxy.

    Subclasses build the request for their endpoint and wrap the decoded JSON
    into the matching raw result type. Credentials are never handled here; the
    proxy injects them.
    """

    name: str
    setting_name: str
    endpoint: str

    def __init__(
        self,
        base_url: Optional[str],
        *,
        timeout_s: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or "").strip().rstrip("/")
        self.timeout_s = timeout_s
        self.session = session or requests.Session()

    @property
    def configured(self) -> bool:
        return bool(self.base_url)

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    def ensure_configured(self) -> None:
        if not self.configured:
            raise BackendUnavailableError(self.name, self.setting_name)

    @abstractmethod
    def query(self, query_text: str, window: TimeWindow, step: Optional[float] = None) -> RawQueryResult:
        """Issue one request and return the backend-shaped result."""

    def _send(self, method: str, **kwargs: Any) -> Any:
        self.ensure_configured()
        try:
            response = self.session.request(method, self.url, timeout=self.timeout_s, **kwargs)
        except requests.RequestException as exc:
            raise NetworkError(self.name, str(exc)) from exc

        if not 200 <= response.status_code < 300:
            body = self._safe_body(response)
            detail = body.get("error") if isinstance(body, dict) else None
            LOGGER.warning("%s proxy answered %s: %s", self.name, response.status_code, detail or body)
            raise BackendRequestError(self.name, response.status_code, body, detail=detail)

        try:
            return response.json()
        except ValueError as exc:
            raise NetworkError(self.name, f"invalid JSON response ({exc})") from exc

    @staticmethod
    def _safe_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return getattr(response, "text", "")

    def describe(self) -> Dict[str, Any]:
        return {"backend": self.name, "url": self.url if self.configured else None, "timeout_s": self.timeout_s}
