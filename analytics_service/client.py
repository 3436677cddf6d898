"""
client.py - HTTP client for the analytics API

Thin adapter that delivers visit and click payloads to a remote analytics
server and reads back the aggregated statistics document.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import requests

from .coercion import (
    MAX_HREF_LENGTH,
    DEFAULT_PATH,
    format_timestamp,
    generate_visitor_id,
    to_bounded_string,
    to_label,
)
from .models import DEFAULT_MAX_EVENTS
from .normalizer import default_document, normalize

logger = logging.getLogger(__name__)

CLIENT_VISITOR_PREFIX = "v"

DEFAULT_ENDPOINTS = {
    "summary": "/api/analytics",
    "visit": "/api/analytics/visit",
    "click": "/api/analytics/click",
    "clear": "/api/analytics/clear",
}


class AnalyticsClient:
    """Client for the analytics HTTP API.

    The visitor id is generated once per client instance and kept in memory
    unless one is supplied.
    """

    def __init__(
        self,
        base_url: str = "",
        endpoints: Optional[Dict[str, str]] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
        visitor_id: Optional[str] = None,
        max_events: int = DEFAULT_MAX_EVENTS,
    ):
        self.base_url = base_url or ""
        self.endpoints = {**DEFAULT_ENDPOINTS, **(endpoints or {})}
        self.session = session or requests.Session()
        self.timeout = timeout
        self.visitor_id = visitor_id or generate_visitor_id(CLIENT_VISITOR_PREFIX)
        self.max_events = max_events
        self._visit_logged = False
        self._last_visit_result: Optional[Any] = None

    def resolve_url(self, endpoint: str) -> str:
        """Join an endpoint path onto the configured base URL."""
        if not endpoint:
            raise ValueError("Missing endpoint path.")
        endpoint = str(endpoint)
        if endpoint.lower().startswith(("http://", "https://")):
            return endpoint
        if not self.base_url:
            return endpoint
        base = self.base_url.rstrip("/")
        if endpoint.startswith("/"):
            return f"{base}{endpoint}"
        return f"{base}/{endpoint}"

    def _request(self, endpoint_name: str, payload: Optional[Dict[str, Any]] = None,
                 method: Optional[str] = None) -> Optional[Any]:
        """Send a request and return the decoded JSON body, if any.

        Raises:
            requests.exceptions.RequestException: On network or HTTP errors
        """
        method = (method or ("POST" if payload is not None else "GET")).upper()
        url = self.resolve_url(self.endpoints[endpoint_name])
        kwargs: Dict[str, Any] = {"timeout": self.timeout, "headers": {"Cache-Control": "no-store"}}
        if method not in ("GET", "HEAD"):
            kwargs["json"] = payload or {}

        response = self.session.request(method, url, **kwargs)
        response.raise_for_status()
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return None

    def build_visit_payload(self, **overrides: Any) -> Dict[str, Any]:
        """Build a visit payload, filling defaults for missing fields."""
        path = overrides.get("path") or DEFAULT_PATH
        payload = {
            "visitorId": overrides.get("visitorId") or overrides.get("visitor_id") or self.visitor_id,
            "path": path,
            "title": overrides.get("title") or path,
            "referrer": overrides.get("referrer") or "",
            "language": overrides.get("language"),
            "userAgent": overrides.get("userAgent") or overrides.get("user_agent"),
            "timestamp": overrides.get("timestamp") or format_timestamp(datetime.now(timezone.utc)),
        }
        additional = overrides.get("additional")
        if isinstance(additional, Mapping):
            payload["additional"] = dict(additional)
        return payload

    def build_click_payload(self, label: Any, **meta: Any) -> Dict[str, Any]:
        """Build a click payload; the label is sanitized."""
        return {
            "label": to_label(meta.get("label") or label),
            "visitorId": meta.get("visitorId") or meta.get("visitor_id") or self.visitor_id,
            "path": meta.get("path") or DEFAULT_PATH,
            "href": to_bounded_string(meta.get("href"), MAX_HREF_LENGTH),
            "timestamp": meta.get("timestamp") or format_timestamp(datetime.now(timezone.utc)),
            "pageTitle": meta.get("title"),
        }

    def record_visit(self, once: bool = True, **overrides: Any) -> Optional[Any]:
        """Send a visit.

        Args:
            once: When True, only the first call per client sends a visit;
                later calls return the first result
            **overrides: Payload fields to use instead of the defaults

        Returns:
            The decoded server response, or None if delivery failed
        """
        if once and self._visit_logged:
            return self._last_visit_result
        if once:
            self._visit_logged = True

        payload = self.build_visit_payload(**overrides)
        try:
            self._last_visit_result = self._request("visit", payload)
        except requests.exceptions.RequestException as exc:
            logger.warning(f"Failed to record visit: {exc}")
            self._last_visit_result = None
        return self._last_visit_result

    def record_click(self, label: Any, **meta: Any) -> Optional[Any]:
        """Send a click. Clicks without a usable label are dropped locally."""
        payload = self.build_click_payload(label, **meta)
        if not payload["label"]:
            return None
        try:
            return self._request("click", payload)
        except requests.exceptions.RequestException as exc:
            logger.warning(f"Failed to record click: {exc}")
            return None

    def get_data(self) -> Dict[str, Any]:
        """Fetch and normalize the statistics document.

        Falls back to the default document when the server is unreachable or
        replies with something unusable.
        """
        try:
            response = self._request("summary", method="GET")
        except requests.exceptions.RequestException as exc:
            logger.warning(f"Failed to fetch analytics snapshot: {exc}")
            return default_document()
        if isinstance(response, Mapping):
            data = response.get("data")
            return normalize(data if isinstance(data, Mapping) else response, self.max_events)
        return default_document()

    def export_data(self) -> Dict[str, Any]:
        """Alias of :meth:`get_data`."""
        return self.get_data()

    def clear_data(self, secret: Any) -> Optional[Dict[str, Any]]:
        """Ask the server to reset all statistics.

        Args:
            secret: Admin password or hash, or a ready-made body such as
                ``{"hash": "..."}``

        Returns:
            The fresh document reported by the server

        Raises:
            requests.exceptions.HTTPError: With status 401 if the secret is rejected
        """
        payload = dict(secret) if isinstance(secret, Mapping) else {"password": secret or None}
        response = self._request("clear", payload, method="POST")
        if isinstance(response, Mapping) and isinstance(response.get("data"), Mapping):
            return normalize(response["data"], self.max_events)
        return response
